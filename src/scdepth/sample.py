"""Posterior resampling of the latent expression rate"""
import numpy as np

def sample_posterior(y, s, mu, theta, tau, concentration=15, random_state=None):
  """Return one depth-normalized value per cell, drawn from the posterior of
lambda_j

  The posterior of lambda_j is a mixture of Gammas with weights tau[:,j] and
  components

    Gamma(shape = mu_k / theta + concentration * y_j,
          rate = 1 / theta + concentration * s_j)

  As concentration grows, draws concentrate at y_j / s_j.

  y - array-like [n,]
  s - array-like [n,]
  mu - array-like [K,]
  theta - scalar
  tau - responsibilities [K, n]
  random_state - anything accepted by np.random.default_rng

  """
  rng = np.random.default_rng(random_state)
  y = np.asarray(y, dtype=float)
  s = np.asarray(s, dtype=float)
  mu = np.asarray(mu, dtype=float).reshape(-1, 1)
  tau = np.asarray(tau, dtype=float)
  n = y.shape[0]
  if tau.shape != (mu.shape[0], n):
    raise ValueError(f'shape mismatch (tau): expected {(mu.shape[0], n)}, got {tau.shape}')
  # Sample component memberships by inverting the per-cell CDF
  u = rng.uniform(size=n)
  z = (np.cumsum(tau, axis=0) < u).sum(axis=0)
  # Important: cumulative sums can fall short of 1 by rounding error
  z = np.minimum(z, mu.shape[0] - 1)
  shape = mu[z, 0] / theta + concentration * y
  rate = 1 / theta + concentration * s
  return rng.gamma(shape=shape, scale=1 / rate)
