"""Depth normalization of single cell counts by posterior resampling

Each gene's expression is modeled as a depth-independent latent rate, with a
mixture of Gamma distributions as prior, and normalized values are drawn from
its posterior.

"""
from .errors import *
from .depth import estimate_depth
from .pipeline import normalize
