"""Mixture of Gamma-Poisson components for one gene

y_j ~ Poisson(s_j lambda_j)
lambda_j ~ g = sum_k pi_k Gamma(a_k, theta)

where Gamma is parameterized by shape a_k = mu_k / theta and scale theta, so
that E[lambda | k] = mu_k. The dispersion theta is shared by all components.
Integrating out lambda_j, y_j | k is negative binomial with size a_k and
success probability 1 / (1 + s_j theta).

The parameter vector passed through (SQUAR)EM is [pi (K,), a (K,), theta].

"""
import numpy as np
import scipy.special as sp
import scdepth.em
import warnings

from .errors import DroppedComponentNotice

_em = scdepth.em.em
_squarem = scdepth.em.squarem

def _check_args(y, s):
  y = np.asarray(y, dtype=float)
  n = y.shape[0]
  if y.shape != (n,):
    raise ValueError(f'expected 1d counts, got shape {y.shape}')
  s = np.array(s, dtype=float)
  if s.shape != () and s.shape != y.shape:
    raise ValueError(f'shape mismatch (s): expected {y.shape}, got {s.shape}')
  if s.shape == ():
    s = np.ones(y.shape) * s
  return y, s

def _unpack(par):
  K = (par.shape[0] - 1) // 2
  return par[:K], par[K:-1], par[-1]

def nb_mixture_order(y, max_components=100):
  """Return the number of mixture components for counts y

  K grows as the square root of the number of non-zero observations, up to
  max_components.

  """
  nnz = (np.asarray(y) > 0).sum()
  return int(max(1, min(max_components, np.round(np.sqrt(nnz)))))

def _nb_llik(y, s, a, theta):
  """Return ln p(y_j | s_j, k) [K, n]"""
  a = a.reshape(-1, 1)
  log1p = np.log1p(s * theta)
  return (sp.gammaln(y + a) - sp.gammaln(a) - sp.gammaln(y + 1)
          - a * log1p
          + sp.xlogy(y, s * theta) - y * log1p)

def _log_joint(par, y, s):
  pi, a, theta = _unpack(par)
  # Important: pi_k can underflow to 0 for components far from the data
  with np.errstate(divide='ignore'):
    log_pi = np.log(pi).reshape(-1, 1)
  return log_pi + _nb_llik(y, s, a, theta)

def _nb_mixture_obj(par, y, s):
  """Return marginal log likelihood"""
  pi, a, theta = _unpack(par)
  if not np.isfinite(par).all() or (pi < 0).any() or (a <= 0).any() or theta <= 0:
    return -np.inf
  return sp.logsumexp(_log_joint(par, y, s), axis=0).sum()

def _responsibilities(par, y, s):
  l = _log_joint(par, y, s)
  return np.exp(l - sp.logsumexp(l, axis=0, keepdims=True))

def responsibilities(y, s, mu, pi, theta):
  """Return posterior probability tau[k, j] that lambda_j arose from component k

  y - array-like [n,]
  s - array-like [n,]
  mu - array-like [K,]
  pi - array-like [K,]
  theta - scalar

  """
  y, s = _check_args(y, s)
  return _responsibilities(np.hstack([pi, np.asarray(mu) / theta, theta]), y, s)

def nb_mixture_llik(y, s, mu, pi, theta):
  """Return marginal log likelihood of y under the fitted mixture"""
  y, s = _check_args(y, s)
  return _nb_mixture_obj(np.hstack([pi, np.asarray(mu) / theta, theta]), y, s)

def _nb_mixture_update_a(init, w, plm, log_theta, step=1, c=0.5, tau=0.5, max_iters=30):
  """Backtracking line search to select step size for weighted Newton-Raphson
update of a_k

  w - responsibilities of component k [n,]
  plm - E[ln lambda_j | y_j, k] [n,]

  """
  def loss(a):
    if a <= 0:
      return np.inf
    return -(w * (a * plm - a * log_theta - sp.gammaln(a))).sum()
  obj = loss(init)
  grad = -(w * (plm - log_theta - sp.digamma(init))).sum()
  d = -grad / (w.sum() * sp.polygamma(1, init))
  update = loss(init + step * d)
  # Important: Armijo condition guarantees the expected complete data log
  # likelihood does not decrease, which is needed for monotone EM
  while (not np.isfinite(update) or update > obj + c * step * d * grad) and max_iters > 0:
    step *= tau
    update = loss(init + step * d)
    max_iters -= 1
  if max_iters == 0:
    # Step size is small enough that update can be skipped
    return init
  else:
    return init + step * d

def _nb_mixture_update(par, y, s, min_weight=1e-12):
  pi, a, theta = _unpack(par)
  tau = _responsibilities(par, y, s)
  # Posterior lambda_j | y_j, k ~ Gamma(a_k + y_j, 1 / theta + s_j) (shape,
  # rate)
  rate = 1 / theta + s
  pm = (y + a.reshape(-1, 1)) / rate
  plm = sp.digamma(y + a.reshape(-1, 1)) - np.log(rate)
  w = tau.sum(axis=1)
  pi = w / y.shape[0]
  # Important: theta is shared, so its update pools over components
  theta = (tau * pm).sum() / (w * a).sum()
  log_theta = np.log(theta)
  a = a.copy()
  for k in range(a.shape[0]):
    if w[k] > min_weight:
      a[k] = _nb_mixture_update_a(a[k], tau[k], plm[k], log_theta)
  return np.hstack([pi, a, theta])

def _nb_mixture_prune(par, min_weight=1e-10):
  """Drop components with vanishing weight or non-finite mean"""
  pi, a, theta = _unpack(par)
  keep = (pi >= min_weight) & np.isfinite(a * theta) & (a > 0)
  if keep.all():
    return par
  if not keep.any():
    raise RuntimeError('all mixture components collapsed')
  warnings.warn(f'dropped {(~keep).sum()} of {keep.shape[0]} mixture components',
                DroppedComponentNotice)
  pi = pi[keep]
  return np.hstack([pi / pi.sum(), a[keep], theta])

def _nb_mixture_init(y, s, K):
  """Return initial values, placing component means at evenly spaced quantiles
of the non-zero depth-adjusted counts"""
  lam = (y / s)[y > 0]
  mu = np.quantile(lam, (np.arange(K) + 0.5) / K)
  # Heuristic: split the overall dispersion of the non-zero observations
  # between components
  theta = max(lam.var() / lam.mean() / K, 1e-4)
  return np.hstack([np.ones(K) / K, mu / theta, theta])

def nb_mixture(y, s, max_components=100, K=None, max_iters=1000, tol=1e-6,
               extrapolate=True, verbose=False):
  """Return fitted parameters and responsibilities assuming g is a mixture of
Gamma distributions with shared dispersion

  Returns a dict with keys

    mu - component means [K,]
    pi - mixture weights [K,]
    theta - shared dispersion
    tau - responsibilities [K, n]
    llik - marginal log likelihood
    K - number of components after pruning
    n_iters - number of (SQUAR)EM iterations
    converged - whether the tolerance was met within max_iters
    n_dropped - number of pruned components
    trace - marginal log likelihood after each iteration

  y - array-like [n,]
  s - array-like [n,]
  max_components - maximum number of components (ignored if K is given)
  K - number of components (default: nb_mixture_order(y, max_components))

  """
  y, s = _check_args(y, s)
  if not (y > 0).any():
    raise ValueError('cannot fit mixture to all-zero counts')
  if K is None:
    K = nb_mixture_order(y, max_components)
  init = _nb_mixture_init(y, s, K)
  if extrapolate:
    par, llik, trace, converged = _squarem(
      init, _nb_mixture_obj, _nb_mixture_update, max_iters=max_iters, tol=tol,
      prune_fn=_nb_mixture_prune, verbose=verbose, y=y, s=s)
  else:
    par, llik, trace, converged = _em(
      init, _nb_mixture_obj, _nb_mixture_update, max_iters=max_iters, tol=tol,
      prune_fn=_nb_mixture_prune, verbose=verbose, y=y, s=s)
  pi, a, theta = _unpack(par)
  par = np.hstack([pi / pi.sum(), a, theta])
  pi, a, theta = _unpack(par)
  return {
    'mu': a * theta,
    'pi': pi,
    'theta': theta,
    'tau': _responsibilities(par, y, s),
    'llik': llik,
    'K': pi.shape[0],
    'n_iters': len(trace) - 1,
    'converged': converged,
    'n_dropped': K - pi.shape[0],
    'trace': np.array(trace),
  }
