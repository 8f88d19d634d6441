"""Depth normalization by posterior resampling

For each gene, fit a mixture of Gamma-Poisson components to the raw counts
(scdepth.mixture), then draw a normalized value for each cell from the
posterior of its latent rate (scdepth.sample). Genes with too few non-zero
observations are scaled by depth instead.

Genes are independent, so they are distributed over a multiprocessing.Pool.
Each gene gets its own child of a single np.random.SeedSequence, which makes
the result depend only on the seed, and not on the number of workers.

"""
import dataclasses
import functools as ft
import multiprocessing as mp
import numpy as np
import pandas as pd
import scipy.sparse as ss
import scdepth.depth
import scdepth.mixture
import scdepth.sample

from .errors import ConfigurationError

@dataclasses.dataclass(frozen=True)
class Config:
  """Per-gene settings, shared read-only by all workers"""
  min_nonzero: int = 10
  max_components: int = 100
  concentration: float = 15
  max_iters: int = 1000
  tol: float = 1e-6
  extrapolate: bool = True

  def validate(self):
    if int(self.min_nonzero) < 1:
      raise ConfigurationError(f'min_nonzero must be >= 1, got {self.min_nonzero}')
    if int(self.max_components) < 1:
      raise ConfigurationError(f'max_components must be >= 1, got {self.max_components}')
    if not np.isfinite(self.concentration) or self.concentration <= 0:
      raise ConfigurationError(f'concentration must be > 0, got {self.concentration}')
    if int(self.max_iters) < 1:
      raise ConfigurationError(f'max_iters must be >= 1, got {self.max_iters}')
    if not self.tol > 0:
      raise ConfigurationError(f'tol must be > 0, got {self.tol}')
    return self

_diagnostics_columns = ['method', 'K', 'n_iters', 'converged', 'llik', 'n_dropped']

def use_fallback(y, min_nonzero=10):
  """Return True if y has too few non-zero observations to fit a mixture"""
  return (np.asarray(y) > 0).sum() < min_nonzero

def scale_fallback(y, s):
  """Return counts scaled to the reference depth 1"""
  return np.asarray(y, dtype=float) / s

def normalize_gene(key, y, seed, s, config=Config(), verbose=False):
  """Return (key, normalized values, diagnostics) for one gene

  key - gene identifier, returned unchanged
  y - counts [n,]
  seed - np.random.SeedSequence (or anything accepted by np.random.default_rng)
  s - depth [n,]

  """
  y = np.asarray(y, dtype=float).ravel()
  if use_fallback(y, config.min_nonzero):
    return key, scale_fallback(y, s), ('scale', 0, 0, True, np.nan, 0)
  try:
    fit = scdepth.mixture.nb_mixture(
      y, s, max_components=config.max_components, max_iters=config.max_iters,
      tol=config.tol, extrapolate=config.extrapolate)
    value = scdepth.sample.sample_posterior(
      y, s, mu=fit['mu'], theta=fit['theta'], tau=fit['tau'],
      concentration=config.concentration, random_state=seed)
    if not np.isfinite(value).all():
      raise FloatingPointError('non-finite posterior sample')
  except (RuntimeError, FloatingPointError) as e:
    # A single gene failing should not abort the batch
    if verbose:
      print(f'{key}: fit failed ({e}), scaling by depth')
    return key, scale_fallback(y, s), ('failed', 0, 0, False, np.nan, 0)
  if verbose:
    print(f'{key}: K={fit["K"]} iters={fit["n_iters"]} llik={fit["llik"]:.6g}')
  return key, value, ('resample', fit['K'], fit['n_iters'], fit['converged'], fit['llik'], fit['n_dropped'])

def _check_counts(x):
  """Return row-accessible counts and gene keys"""
  if isinstance(x, pd.DataFrame):
    keys = x.index
    x = x.values
  else:
    keys = None
  if ss.issparse(x):
    x = ss.csr_matrix(x)
    values = x.data
  else:
    x = np.asarray(x)
    values = x
  if x.ndim != 2:
    raise ConfigurationError(f'expected 2d counts (genes, cells), got shape {x.shape}')
  if not np.isfinite(values).all() or (values < 0).any():
    raise ConfigurationError('counts must be non-negative and finite')
  if keys is None:
    keys = pd.RangeIndex(x.shape[0])
  return x, keys

def _gene_args(x, keys, seeds):
  for i, (k, seed) in enumerate(zip(keys, seeds)):
    if ss.issparse(x):
      yield k, x[i].toarray().ravel(), seed
    else:
      yield k, x[i], seed

def _assemble(counts, x, values, precision):
  if precision is not None:
    values = [np.round(v, precision) for v in values]
  if not values:
    values = np.zeros(x.shape)
  elif ss.issparse(x):
    # Exact zeros (e.g., from scale_fallback) stay implicit
    return ss.vstack([ss.csr_matrix(v.reshape(1, -1)) for v in values], format='csr')
  else:
    values = np.vstack(values)
  if ss.issparse(x):
    return ss.csr_matrix(values)
  if isinstance(counts, pd.DataFrame):
    return pd.DataFrame(values, index=counts.index, columns=counts.columns)
  return values

def normalize(counts, depth=None, min_nonzero=10, max_components=100, concentration=15,
              workers=2, seed=None, log_depth=False, max_iters=1000, tol=1e-6,
              extrapolate=True, precision=None, return_diagnostics=False, verbose=False):
  """Return depth-normalized expression, resampled from the posterior of each
gene's latent rate

  counts - array-like (genes, cells) (np.ndarray, scipy.sparse or
    pd.DataFrame). The result has the same type, shape and labels
  depth - depth per cell (cells,) (default: total count per cell, scaled to
    median 1)
  min_nonzero - genes with fewer non-zero counts are scaled by depth
  max_components - maximum number of mixture components per gene
  concentration - larger values pull resampled values towards counts / depth
  workers - number of worker processes (1: in process; 0 or None: all CPUs)
  seed - seed for np.random.SeedSequence (default: fresh entropy)
  log_depth - depth is on the log scale
  precision - if not None, round results to this many decimals
  return_diagnostics - also return pd.DataFrame of per-gene fit summaries

  """
  config = Config(min_nonzero=min_nonzero, max_components=max_components,
                  concentration=concentration, max_iters=max_iters, tol=tol,
                  extrapolate=extrapolate).validate()
  if workers is not None and int(workers) < 0:
    raise ConfigurationError(f'workers must be >= 0, got {workers}')
  x, keys = _check_counts(counts)
  if depth is None:
    s = scdepth.depth.estimate_depth(x)
  else:
    s = scdepth.depth.check_depth(depth, x.shape[1], log_depth=log_depth)
  seeds = np.random.SeedSequence(seed).spawn(x.shape[0])
  f = ft.partial(normalize_gene, s=s, config=config, verbose=verbose)
  args = _gene_args(x, keys, seeds)
  if workers == 1:
    result = [f(*a) for a in args]
  else:
    with mp.Pool(processes=workers or None) as pool:
      result = pool.starmap(f, args)
  out = _assemble(counts, x, [v for _, v, _ in result], precision)
  if return_diagnostics:
    diagnostics = pd.DataFrame([d for *_, d in result], columns=_diagnostics_columns,
                               index=pd.Index([k for k, *_ in result], name='gene'))
    return out, diagnostics
  return out
