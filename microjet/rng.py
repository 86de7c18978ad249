"""
Random fills for gradient-check trial inputs and layer initialization.

All functions draw from one module-level numpy Generator so that a single
set_seed() call makes a whole trial reproducible. Arrays are filled in place
and also returned for convenience.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

_rng = np.random.default_rng()


def set_seed(seed):
    """Reseed the generator shared by every function in this module."""
    global _rng
    _rng = np.random.default_rng(seed)
    logger.debug("rng reseeded with %s", seed)


def get_generator():
    return _rng


def gaussian(arr, mean, std):
    """
    Fill ``arr`` with samples from N(mean, std^2).

    Raises:
        ValueError: If std is not positive
    """
    if std <= 0:
        raise ValueError(f"std must be positive, got {std}")
    arr[...] = _rng.normal(mean, std, size=np.shape(arr))
    return arr


def uniform(arr, low, high):
    """
    Fill ``arr`` with samples from U[low, high).

    Raises:
        ValueError: If low > high
    """
    if low > high:
        raise ValueError(f"low must not exceed high, got low={low}, high={high}")
    arr[...] = _rng.uniform(low, high, size=np.shape(arr))
    return arr


def bernoulli(arr, p):
    """
    Fill ``arr`` with 1 (probability p) or 0.

    Works for boolean arrays (True/False) as well as numeric ones, which is
    how drop-out masks are drawn.

    Raises:
        ValueError: If p is outside [0, 1]
    """
    if not 0 <= p <= 1:
        raise ValueError(f"probability must be in [0, 1], got {p}")
    arr[...] = _rng.random(size=np.shape(arr)) < p
    return arr
