"""
Gradient checking with jets.

A function written against generic scalars is evaluated once on jets, one
independent variable per input element, and the resulting gradient is
compared with a gradient computed some other way (usually a hand-written
backward pass).

Example:
    >>> from microjet import exp
    >>> def f(v):
    ...     return v[0] * v[1] + exp(v[0])
    >>> value, g = value_and_grad(f, [3.0, 4.0])
    >>> result = check_gradient(f, [3.0, 4.0], [4.0 + np.exp(3.0), 3.0])
    >>> result.passed
    True
"""

import logging
from dataclasses import dataclass

import numpy as np

from microjet.config import PrecisionConfig
from microjet.engine import Jet, ShapeMismatchError
from microjet.utils import _short_repr

logger = logging.getLogger(__name__)


def make_variables(values, dtype=None):
    """
    Turn every element of ``values`` into an independent variable.

    The k-th element in flat (C) order becomes ``Jet.variable(n, v, k)``
    where n is the total number of elements.

    Returns:
        Object array of jets with the shape of ``values``
    """
    values = np.asarray(values, dtype=float)
    n = values.size
    out = np.empty(values.shape, dtype=object)
    for k, (idx, v) in enumerate(np.ndenumerate(values)):
        out[idx] = Jet.variable(n, v, k, dtype=dtype)
    return out


def value_and_grad(func, values, dtype=None):
    """
    Evaluate ``func`` on jets and return (value, gradient).

    Args:
        func: Callable taking an array of the shape of ``values`` and
              returning a single scalar (Jet, plain number, or size-1 array)
        values: Point at which to differentiate

    Returns:
        tuple: (value as a float, gradient with the shape of ``values``)
    """
    values = np.asarray(values, dtype=float)
    out = func(make_variables(values, dtype=dtype))
    if isinstance(out, np.ndarray) and out.size == 1:
        # e.g. np.sum(..., keepdims=True) or a[:1]
        out = out.item()

    if not isinstance(out, Jet):
        # Result does not depend on the inputs
        return float(out), np.zeros(values.shape)

    if out.dimension() != values.size:
        raise ShapeMismatchError(values.size, out.dimension(), 'value_and_grad')
    return float(out.value), out.gradient.to_numpy().astype(float).reshape(values.shape)


def grad(func, dtype=None):
    """Return a callable computing only the gradient of ``func``."""

    def grad_func(values):
        return value_and_grad(func, values, dtype=dtype)[1]

    return grad_func


@dataclass
class GradCheckResult:
    """Outcome of comparing an analytic gradient with the jet gradient."""
    passed: bool
    max_abs_error: float
    max_rel_error: float
    jet_grad: np.ndarray
    analytic_grad: np.ndarray

    def __bool__(self):
        return self.passed


def check_gradient(func, values, analytic, rtol=None, atol=None, dtype=None):
    """
    Compare ``analytic`` against the gradient of ``func`` computed with jets.

    An element passes when ``|analytic - jet| <= atol + rtol * |jet|``.

    Args:
        func: Generic scalar function of an array
        values: Point at which to check
        analytic: Gradient to verify, same number of elements as ``values``
        rtol, atol: Tolerances (default: PrecisionConfig.get_tolerances())

    Returns:
        GradCheckResult

    Raises:
        ShapeMismatchError: If ``analytic`` and ``values`` differ in size
    """
    default_rtol, default_atol = PrecisionConfig.get_tolerances()
    rtol = default_rtol if rtol is None else rtol
    atol = default_atol if atol is None else atol

    values = np.asarray(values, dtype=float)
    analytic = np.asarray(analytic, dtype=float)
    if analytic.size != values.size:
        raise ShapeMismatchError(values.size, analytic.size, 'check_gradient')
    analytic = analytic.reshape(values.shape)

    _, jet_grad = value_and_grad(func, values, dtype=dtype)

    abs_err = np.abs(analytic - jet_grad)
    with np.errstate(divide='ignore', invalid='ignore'):
        rel_err = np.where(jet_grad != 0, abs_err / np.abs(jet_grad), abs_err)

    passed = bool(np.all(abs_err <= atol + rtol * np.abs(jet_grad)))
    max_abs = float(abs_err.max()) if abs_err.size else 0.0
    max_rel = float(rel_err.max()) if rel_err.size else 0.0

    if passed:
        logger.debug("gradient check passed: max abs error %.3e", max_abs)
    else:
        logger.warning("gradient check failed: max abs error %.3e, max rel error %.3e\n"
                       "  jet:      %s\n  analytic: %s",
                       max_abs, max_rel, _short_repr(jet_grad), _short_repr(analytic))

    return GradCheckResult(passed, max_abs, max_rel, jet_grad, analytic)
