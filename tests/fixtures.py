import numpy as np
import pytest
import scdepth.dataset

@pytest.fixture
def simulate_nb():
  n = 200
  mean = 10
  theta = 1
  s = scdepth.dataset.simulate_depth(n, log_sd=0.3, seed=1)
  y, s = scdepth.dataset.simulate_nb(n, mean=mean, theta=theta, s=s, seed=0)
  return y, s, mean, theta

@pytest.fixture
def simulate_nb_large():
  n = 2000
  mean = 10
  theta = 1
  s = scdepth.dataset.simulate_depth(n, log_sd=0.3, seed=1)
  y, s = scdepth.dataset.simulate_nb(n, mean=mean, theta=theta, s=s, seed=0)
  return y, s, mean, theta

@pytest.fixture
def simulate_nb_mixture():
  n = 500
  means = [5, 50]
  theta = 0.2
  y, s = scdepth.dataset.simulate_nb_mixture(n, means=means, weights=[1, 1], theta=theta, seed=0)
  return y, s, means, theta

@pytest.fixture
def simulate_counts():
  x, s = scdepth.dataset.simulate_counts(n_genes=20, n_cells=100, log_mean_range=(0, 3), seed=0)
  # Gene with too few non-zero observations, and gene with no observations
  x.iloc[0] = 0
  x.iloc[0, :3] = [1, 2, 4]
  x.iloc[1] = 0
  return x, s
