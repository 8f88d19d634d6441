"""Errors and warnings raised during depth normalization"""

class DegenerateInputError(ValueError):
  """Input admits no sensible depth normalization (e.g., zero depth)"""

class ConfigurationError(ValueError):
  """Invalid parameter, detected before any per-gene work"""

class NonConvergenceWarning(RuntimeWarning):
  """EM reached max_iters without meeting the tolerance. The last (best)
iterate is still returned"""

class DroppedComponentNotice(UserWarning):
  """A mixture component collapsed and was pruned"""
