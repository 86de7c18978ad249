"""
Microjet: forward-mode automatic differentiation for gradient checking.

A Jet carries a value together with its gradient with respect to a fixed set
of input variables. Evaluating a generic numeric function on jets instead of
floats yields the exact analytic gradient, which is used to verify
hand-written backward passes.
"""

from microjet.engine import (
    Jet,
    Scalar,
    ShapeMismatchError,
    TangentVector,
    exp,
    log,
    maximum,
    sqrt,
    value_of,
)
from microjet.config import PrecisionConfig, PrecisionMode
from microjet.gradcheck import GradCheckResult, check_gradient, grad, make_variables, value_and_grad
from microjet import nn, rng

__version__ = "0.1.0"
__all__ = [
    "Jet", "TangentVector", "ShapeMismatchError", "Scalar",
    "exp", "log", "sqrt", "maximum", "value_of",
    "PrecisionConfig", "PrecisionMode",
    "make_variables", "value_and_grad", "grad", "check_gradient", "GradCheckResult",
    "nn", "rng",
]
