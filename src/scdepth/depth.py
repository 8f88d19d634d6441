"""Per-cell sequencing depth"""
import numpy as np
import warnings

from .errors import ConfigurationError, DegenerateInputError

def estimate_depth(x):
  """Return total count per cell, scaled to have median 1

  x - array-like (genes, cells); np.ndarray or scipy.sparse matrix

  """
  total = np.asarray(x.sum(axis=0), dtype=float).ravel()
  if not (total > 0).any():
    raise DegenerateInputError('all cells have zero total count')
  elif not (total > 0).all():
    empty = np.flatnonzero(total <= 0)
    raise DegenerateInputError(f'{empty.shape[0]} cell(s) have zero total count (indices: {empty.tolist()}); '
                               'drop them before normalizing')
  return total / np.median(total)

def check_depth(depth, n, log_depth=False, max_fold=2):
  """Return caller-supplied depth on the linear scale

  depth - array-like (n,)
  n - number of cells
  log_depth - depth is on the log scale
  max_fold - warn if the median depth is further than this fold from 1

  """
  depth = np.asarray(depth, dtype=float).ravel()
  if depth.shape != (n,):
    raise ConfigurationError(f'shape mismatch (depth): expected {(n,)}, got {depth.shape}')
  if log_depth:
    depth = np.exp(depth)
  if not np.isfinite(depth).all():
    raise DegenerateInputError('depth contains non-finite values')
  if not (depth != 0).any():
    raise DegenerateInputError('depth is zero for all cells')
  if (depth <= 0).any():
    raise DegenerateInputError(f'{(depth <= 0).sum()} cell(s) have non-positive depth')
  median = np.median(depth)
  if median > max_fold or median < 1 / max_fold:
    warnings.warn(f'median depth ({median:.3g}) is far from 1; normalized values will be on a '
                  'different scale than counts')
  return depth
