"""
Helpers for pulling numbers out of arrays of jets and printing them.

Functions here accept plain numpy arrays as well, so code written against
either floats or jets can report its results the same way.
"""

import numpy as np

from microjet.engine import Jet, ShapeMismatchError, value_of


def values_of(arr):
    """
    Return the values of an array (or nested list) of jets as a float array.

    Plain numbers are passed through, so mixed object arrays are fine.

    Example:
        >>> values_of([Jet(1, 2.0), 3.0])
        array([2., 3.])
    """
    arr = np.asarray(arr, dtype=object)
    out = np.empty(arr.shape, dtype=float)
    for idx, x in np.ndenumerate(arr):
        out[idx] = value_of(x)
    return out


def gradients_of(arr, dim=None):
    """
    Stack the gradients of an array of jets into a float array.

    The result has shape ``arr.shape + (dim,)``. Plain numbers contribute a
    zero gradient, which is why ``dim`` must be given when no element is a Jet.

    Args:
        arr: Array-like of jets and/or numbers
        dim: Number of tracked variables (inferred from the first Jet if None)

    Raises:
        ValueError: If dim cannot be inferred
        ShapeMismatchError: If the jets disagree on their dimension
    """
    arr = np.asarray(arr, dtype=object)
    if dim is None:
        dim = next((x.dimension() for x in arr.flat if isinstance(x, Jet)), None)
        if dim is None:
            raise ValueError("cannot infer gradient dimension from an array without jets")

    out = np.zeros(arr.shape + (dim,), dtype=float)
    for idx, x in np.ndenumerate(arr):
        if isinstance(x, Jet):
            if x.dimension() != dim:
                raise ShapeMismatchError(dim, x.dimension(), 'gradients_of')
            out[idx] = x.gradient.to_numpy()
    return out


def _short_repr(arr, max_size=8):
    """
    Compact string form of an array for log messages.

    Small arrays are printed in full with 4 decimals; larger ones as their
    shape plus the first and last three entries.

    Example:
        >>> _short_repr(np.array(3.14159))
        '3.1416'
        >>> _short_repr(np.arange(100.0))
        'shape=(100,) [0.0000, 1.0000, 2.0000, ..., 97.0000, 98.0000, 99.0000]'
    """
    arr = np.asarray(arr, dtype=float)

    if arr.ndim == 0:
        return f"{arr.item():.4f}"

    if arr.size == 0:
        return "[]"

    flat = arr.ravel()
    if arr.size <= max_size:
        return "[" + ", ".join(f"{x:.4f}" for x in flat) + "]"

    head = ", ".join(f"{x:.4f}" for x in flat[:3])
    tail = ", ".join(f"{x:.4f}" for x in flat[-3:])
    return f"shape={arr.shape} [{head}, ..., {tail}]"
