import numpy as np
import pytest
import scipy.sparse as ss
import scdepth.depth

from scdepth.errors import ConfigurationError, DegenerateInputError

def test_estimate_depth():
  x = np.array([[1, 2, 3, 0], [1, 0, 3, 8]])
  s = scdepth.depth.estimate_depth(x)
  assert s.shape == (4,)
  assert np.isclose(np.median(s), 1)
  assert np.isclose(s / s[0], [1, 1, 3, 4]).all()

def test_estimate_depth_sparse():
  x = np.array([[1, 2, 3, 0], [1, 0, 3, 8]])
  assert np.isclose(scdepth.depth.estimate_depth(ss.csr_matrix(x)), scdepth.depth.estimate_depth(x)).all()

def test_estimate_depth_all_zero():
  with pytest.raises(DegenerateInputError):
    scdepth.depth.estimate_depth(np.zeros((3, 4)))

def test_estimate_depth_zero_cell():
  x = np.array([[1, 2, 3, 0], [1, 0, 3, 0]])
  with pytest.raises(DegenerateInputError):
    scdepth.depth.estimate_depth(x)

def test_check_depth():
  s = np.array([0.5, 1, 2])
  assert (scdepth.depth.check_depth(s, 3) == s).all()

def test_check_depth_log():
  s = np.array([0.5, 1, 2])
  assert np.isclose(scdepth.depth.check_depth(np.log(s), 3, log_depth=True), s).all()

def test_check_depth_shape():
  with pytest.raises(ConfigurationError):
    scdepth.depth.check_depth(np.ones(3), 4)

def test_check_depth_all_zero():
  with pytest.raises(DegenerateInputError):
    scdepth.depth.check_depth(np.zeros(3), 3)

def test_check_depth_negative():
  with pytest.raises(DegenerateInputError):
    scdepth.depth.check_depth(np.array([1, -1, 1]), 3)

def test_check_depth_median():
  with pytest.warns(UserWarning):
    s = scdepth.depth.check_depth(np.array([10, 20, 30]), 3)
  assert (s == [10, 20, 30]).all()

def test_estimate_depth_zero_cell_indices():
  x = np.array([[1, 0, 3, 0], [1, 0, 3, 8]])
  with pytest.raises(DegenerateInputError, match=r'indices: \[1\]'):
    scdepth.depth.estimate_depth(x)
