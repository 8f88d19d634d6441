"""Generic routines for EM, SQUAREM

Both routines take a flat parameter vector, an objective function (observed
data log likelihood) and an update function (one EM step), and return

  theta - fitted parameters
  obj - objective at theta
  trace - objective after each iteration (including the initial value)
  converged - whether relative change in the objective fell below tol

Hitting max_iters is not an error: the last iterate is returned, and a
NonConvergenceWarning is issued.

"""
import numpy as np
import warnings

from .errors import NonConvergenceWarning

def _converged(update, obj, tol):
  return abs(update - obj) <= tol * abs(obj)

def _check_max_iters(max_iters):
  if max_iters < 1:
    raise ValueError(f'max_iters must be >= 1, got {max_iters}')

def _check_obj(obj):
  if not np.isfinite(obj):
    raise RuntimeError('Non-finite objective')
  return obj

def _prune(theta, obj, prune_fn, objective_fn, **kwargs):
  """Apply prune_fn, and recompute the objective only if it changed theta"""
  if prune_fn is None:
    return theta, obj
  update = prune_fn(theta)
  if update.shape != theta.shape:
    obj = _check_obj(objective_fn(update, **kwargs))
  return update, obj

def em(init, objective_fn, update_fn, max_iters, tol, prune_fn=None, verbose=False, **kwargs):
  _check_max_iters(max_iters)
  theta = init.copy()
  obj = _check_obj(objective_fn(theta, **kwargs))
  trace = [obj]
  if verbose:
    print(f'em [0]: {obj}')
  for i in range(max_iters):
    theta = update_fn(theta, **kwargs)
    update = _check_obj(objective_fn(theta, **kwargs))
    theta, update = _prune(theta, update, prune_fn, objective_fn, **kwargs)
    trace.append(update)
    if verbose:
      print(f'em [{i + 1}]: {update}')
    if _converged(update, obj, tol):
      return theta, update, trace, True
    obj = update
  warnings.warn(f'failed to converge in max_iters ({abs(update - trace[-2]):.3g} > {tol:.3g} * |llik|)',
                NonConvergenceWarning)
  return theta, obj, trace, False

def squarem(init, objective_fn, update_fn, max_iters, tol, par_tol=1e-8, max_step_updates=10,
            prune_fn=None, verbose=False, **kwargs):
  """Squared extrapolation scheme for accelerated EM

  Each iteration takes two EM steps x1, x2 from theta, and proposes the
  extrapolated point theta - 2 a r + a^2 v. The proposal is accepted only if
  its objective is finite and no worse than the objective at x2; otherwise,
  the plain EM iterate x2 is used. Therefore, the objective is non-decreasing.

  prune_fn - optional function of theta returning theta, possibly with fewer
    entries. Called once per iteration, after the step is accepted

  Reference:

    Varadhan, R. and Roland, C. (2008), Simple and Globally Convergent Methods
    for Accelerating the Convergence of Any EM Algorithm. Scandinavian Journal
    of Statistics, 35: 335-353. doi:10.1111/j.1467-9469.2007.00585.x

  """
  _check_max_iters(max_iters)
  theta = init.copy()
  obj = _check_obj(objective_fn(theta, **kwargs))
  trace = [obj]
  if verbose:
    print(f'squarem [0]: {obj}')
  for i in range(max_iters):
    x1 = update_fn(theta, **kwargs)
    x2 = update_fn(x1, **kwargs)
    em_obj = _check_obj(objective_fn(x2, **kwargs))
    r = x1 - theta
    v = (x2 - x1) - r
    step = -1
    if np.linalg.norm(v) >= par_tol:
      step = min(-np.sqrt(r @ r) / np.sqrt(v @ v), -1)
    accepted = False
    if step < -1:
      # Step length = -1 is EM; use as large a step length as is feasible to
      # maintain monotonicity
      for j in range(max_step_updates):
        candidate = theta - 2 * step * r + step * step * v
        update = objective_fn(candidate, **kwargs)
        if np.isfinite(update) and update >= em_obj:
          accepted = True
          break
        step = (step - 1) / 2
    if accepted:
      theta = candidate
    else:
      theta, update = x2, em_obj
    theta, update = _prune(theta, update, prune_fn, objective_fn, **kwargs)
    trace.append(update)
    if verbose:
      print(f'squarem [{i + 1}]: {update} (step={step:.3g}, accepted={accepted})')
    if _converged(update, obj, tol):
      return theta, update, trace, True
    obj = update
  warnings.warn(f'failed to converge in max_iters ({abs(update - trace[-2]):.3g} > {tol:.3g} * |llik|)',
                NonConvergenceWarning)
  return theta, obj, trace, False
