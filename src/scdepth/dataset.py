"""Simulated count data"""
import numpy as np
import pandas as pd
import scipy.stats as st

def simulate_depth(n, log_sd=0.5, seed=0):
  """Return log-normal depth (n,) scaled to median 1"""
  np.random.seed(seed)
  s = np.exp(np.random.normal(scale=log_sd, size=n))
  return s / np.median(s)

def simulate_nb(n, mean, theta, s=None, seed=0):
  """Return counts (n,) and depth (n,)

  y_j ~ Poisson(s_j lambda_j)
  lambda_j ~ Gamma(mean / theta, theta) (shape, scale)

  """
  return simulate_nb_mixture(n, means=[mean], weights=[1], theta=theta, s=s, seed=seed)

def simulate_nb_mixture(n, means, weights, theta, s=None, seed=0):
  """Return counts (n,) and depth (n,)

  y_j ~ Poisson(s_j lambda_j)
  lambda_j ~ sum_k weights_k Gamma(means_k / theta, theta)

  """
  np.random.seed(seed)
  if s is None:
    s = np.ones(n)
  means = np.asarray(means, dtype=float)
  z = np.random.choice(means.shape[0], size=n, p=np.asarray(weights) / np.sum(weights))
  lam = st.gamma(a=means[z] / theta, scale=theta).rvs(size=n)
  y = np.random.poisson(lam=s * lam)
  return y, s

def simulate_counts(n_genes, n_cells, log_mean_range=(-2, 3), theta=0.5, log_sd=0.5, seed=0):
  """Return pd.DataFrame of counts (genes, cells) and depth (cells,)

  Gene means are log-uniform on log_mean_range, so low-expressed genes fall
  below the usual non-zero threshold.

  """
  s = simulate_depth(n_cells, log_sd=log_sd, seed=seed)
  log_mean = np.random.uniform(*log_mean_range, size=n_genes)
  lam = st.gamma(a=np.exp(log_mean).reshape(-1, 1) / theta, scale=theta).rvs(size=(n_genes, n_cells))
  x = np.random.poisson(lam=lam * s)
  return (pd.DataFrame(x,
                       index=[f'gene{i}' for i in range(n_genes)],
                       columns=[f'cell{j}' for j in range(n_cells)]),
          s)
