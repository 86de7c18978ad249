import logging
from numbers import Number
from typing import Protocol, runtime_checkable

import numpy as np

from microjet.config import PrecisionConfig

logger = logging.getLogger(__name__)


class ShapeMismatchError(AssertionError):
    """
    Raised when two tangent vectors (or jets) of different lengths are combined.

    This is a programmer error in how the computation was set up, not a data
    error, so it derives from AssertionError and is never caught internally.
    """

    def __init__(self, expected, actual, op=''):
        self.expected = expected
        self.actual = actual
        self.op = op
        where = f" in '{op}'" if op else ""
        super().__init__(f"dimension mismatch{where}: expected {expected}, got {actual}")


def _check_same_shape(a, b, op):
    if not a.shape_matches(b):
        err = ShapeMismatchError(len(a), len(b), op)
        logger.error("%s", err)
        raise err


class TangentVector:
    """
    Fixed-length buffer holding the partial derivatives carried by a Jet.

    The length is set at construction and never changes. Binary elementwise
    operations require both operands to have the same length.

    Example:
        >>> g = TangentVector(3)
        >>> g[1] = 2.0
        >>> (g * 3)[1]
        6.0
    """

    # Keep numpy scalars from coercing the vector into an array: s * v goes to __rmul__
    __array_ufunc__ = None

    def __init__(self, n, dtype=None):
        """
        Create a zero-filled tangent vector.

        Args:
            n: Number of components (number of tracked variables)
            dtype: numpy dtype of the components (default: PrecisionConfig dtype)
        """
        if n < 0:
            raise ValueError(f"tangent vector length must be non-negative, got {n}")
        dtype = dtype if dtype is not None else PrecisionConfig.get_dtype()
        self._v = np.zeros(int(n), dtype=dtype)

    @classmethod
    def from_iterable(cls, values, dtype=None):
        """Build a tangent vector holding a copy of ``values``."""
        data = np.array(values, dtype=dtype if dtype is not None else PrecisionConfig.get_dtype())
        out = cls(data.size, dtype=data.dtype)
        out._v[:] = data.ravel()
        return out

    @classmethod
    def _wrap(cls, data):
        # Takes ownership of an already computed buffer
        out = cls.__new__(cls)
        out._v = data
        return out

    @property
    def n(self):
        return self._v.shape[0]

    @property
    def dtype(self):
        return self._v.dtype

    def __len__(self):
        return self._v.shape[0]

    def _check_index(self, i):
        if isinstance(i, (bool, np.bool_)) or not isinstance(i, (int, np.integer)):
            raise TypeError(f"tangent vector indices must be integers, not {type(i).__name__}")
        if not 0 <= i < len(self):
            raise IndexError(f"index {i} out of range for tangent vector of length {len(self)}")

    def __getitem__(self, i):
        self._check_index(i)
        return self._v[i]

    def __setitem__(self, i, value):
        self._check_index(i)
        self._v[i] = value

    def __iter__(self):
        return iter(self._v)

    def shape_matches(self, other):
        """Return True iff both vectors have the same length."""
        return len(self) == len(other)

    def copy(self):
        return TangentVector._wrap(self._v.copy())

    def to_numpy(self):
        """Return a copy of the components as a 1-D numpy array."""
        return self._v.copy()

    def __add__(self, other):
        if not isinstance(other, TangentVector):
            return NotImplemented
        _check_same_shape(self, other, '+')
        return TangentVector._wrap(self._v + other._v)

    def __sub__(self, other):
        if not isinstance(other, TangentVector):
            return NotImplemented
        _check_same_shape(self, other, '-')
        return TangentVector._wrap(self._v - other._v)

    def __neg__(self):
        return TangentVector._wrap(-self._v)

    def __mul__(self, s):
        if not _is_scalar(s):
            return NotImplemented
        return TangentVector._wrap((self._v * s).astype(self._v.dtype, copy=False))

    def __rmul__(self, s):
        return self * s

    def __truediv__(self, s):
        if not _is_scalar(s):
            return NotImplemented
        return TangentVector._wrap((self._v / s).astype(self._v.dtype, copy=False))

    def __eq__(self, other):
        if not isinstance(other, TangentVector):
            return NotImplemented
        return len(self) == len(other) and bool(np.all(self._v == other._v))

    __hash__ = None

    def __repr__(self):
        return f"TangentVector({self._v.tolist()})"


@runtime_checkable
class Scalar(Protocol):
    """
    The numeric capability generic formulas are written against.

    Both plain floats and Jet satisfy it, so a function using only these
    operations (plus exp/log/sqrt/maximum from this module) runs unchanged
    on either.
    """

    def __add__(self, other): ...
    def __sub__(self, other): ...
    def __mul__(self, other): ...
    def __truediv__(self, other): ...
    def __neg__(self): ...
    def __lt__(self, other): ...


def _is_scalar(x):
    # Booleans count as 0/1 constants so masks like x * (x > 0) work
    return isinstance(x, (Number, np.number, np.bool_))


class Jet:
    """
    Dual number with a vector tangent for forward-mode differentiation.

    A Jet pairs a scalar ``value`` with a ``gradient`` (TangentVector) holding
    d(value)/dx_i for each tracked variable x_i. Arithmetic and the
    elementary functions in this module propagate the gradient by the chain
    rule, so a formula evaluated on Jets yields its exact analytic gradient.

    Example:
        >>> x = Jet.variable(2, 3.0, 0)
        >>> y = Jet.variable(2, 4.0, 1)
        >>> z = x * y + exp(x)
        >>> z.gradient.to_numpy()  # [y + e^3, x]
        array([24.08553692,  3.        ])
    """

    def __array_ufunc__(self, ufunc, method, *inputs, **kwargs):
        """
        Let numpy treat a lone Jet as an object scalar.

        Each Jet operand is boxed in a 0-d object array, so ``ndarray * jet``,
        ``np.float64(2) * jet`` and ``np.exp(jet)`` run numpy's object loop,
        which calls back into the Jet operators element by element.
        """
        boxed = []
        for x in inputs:
            if isinstance(x, Jet):
                box = np.empty((), dtype=object)
                box[()] = x
                x = box
            boxed.append(x)
        out = getattr(ufunc, method)(*boxed, **kwargs)
        if isinstance(out, np.ndarray) and out.dtype == object and out.ndim == 0:
            return out[()]
        return out

    def __init__(self, dim, value=0, dtype=None):
        """
        Create a constant jet: gradient is all zero.

        Args:
            dim: Number of independent variables being tracked
            value: The scalar value
            dtype: numpy dtype (default: PrecisionConfig dtype)
        """
        self.gradient = TangentVector(dim, dtype=dtype)
        self.value = self.gradient.dtype.type(value)

    @classmethod
    def constant(cls, dim, value, dtype=None):
        """A constant has zero derivative with respect to every variable."""
        return cls(dim, value, dtype=dtype)

    @classmethod
    def variable(cls, dim, value, index, derivative=1, dtype=None):
        """
        Create an independent variable.

        Args:
            dim: Number of independent variables being tracked
            value: The variable's value
            index: Position of this variable in the gradient, 0 <= index < dim
            derivative: Seed derivative stored at ``index`` (default 1)

        Raises:
            IndexError: If index is outside [0, dim)
        """
        out = cls(dim, value, dtype=dtype)
        out.gradient[index] = derivative
        return out

    @classmethod
    def _from_parts(cls, value, gradient):
        out = cls.__new__(cls)
        out.gradient = gradient
        out.value = gradient.dtype.type(value)
        return out

    def set(self, value, index, derivative=1):
        """
        Re-initialize as an independent variable, discarding the old gradient.

        Returns:
            self, for chaining
        """
        grad = TangentVector(len(self.gradient), dtype=self.gradient.dtype)
        grad[index] = derivative
        self.gradient = grad
        self.value = grad.dtype.type(value)
        return self

    def assign(self, value):
        """Reset to a constant ``value`` (zero gradient). Returns self."""
        self.gradient = TangentVector(len(self.gradient), dtype=self.gradient.dtype)
        self.value = self.gradient.dtype.type(value)
        return self

    def dimension(self):
        """Number of tracked variables (length of the gradient)."""
        return len(self.gradient)

    def has_same_shape(self, other):
        return self.gradient.shape_matches(other.gradient)

    def copy(self):
        return Jet._from_parts(self.value, self.gradient.copy())

    def _replace(self, other):
        # Compound assignment: take over the state of a freshly computed jet
        self.value = other.value
        self.gradient = other.gradient
        return self

    def _check(self, other, op):
        if not self.has_same_shape(other):
            err = ShapeMismatchError(self.dimension(), other.dimension(), op)
            logger.error("%s", err)
            raise err

    # Arithmetic

    def __neg__(self):
        return Jet._from_parts(-self.value, -self.gradient)

    def __pos__(self):
        return self.copy()

    def __add__(self, other):
        if isinstance(other, Jet):
            # d(f+g) = df + dg; the tangent vector checks the shapes
            return Jet._from_parts(self.value + other.value, self.gradient + other.gradient)
        if _is_scalar(other):
            # Constants have zero derivative: gradient is unchanged
            return Jet._from_parts(self.value + other, self.gradient.copy())
        return NotImplemented

    def __radd__(self, other):
        if _is_scalar(other):
            return Jet._from_parts(other + self.value, self.gradient.copy())
        return NotImplemented

    def __sub__(self, other):
        if isinstance(other, Jet):
            return Jet._from_parts(self.value - other.value, self.gradient - other.gradient)
        if _is_scalar(other):
            return Jet._from_parts(self.value - other, self.gradient.copy())
        return NotImplemented

    def __rsub__(self, other):
        if _is_scalar(other):
            return Jet._from_parts(other - self.value, -self.gradient)
        return NotImplemented

    def __mul__(self, other):
        if isinstance(other, Jet):
            self._check(other, '*')
            # Product rule: d(xy) = x dy + y dx
            return Jet._from_parts(self.value * other.value,
                                   other.gradient * self.value + self.gradient * other.value)
        if _is_scalar(other):
            return Jet._from_parts(self.value * other, self.gradient * other)
        return NotImplemented

    def __rmul__(self, other):
        if _is_scalar(other):
            return Jet._from_parts(other * self.value, self.gradient * other)
        return NotImplemented

    def __truediv__(self, other):
        if isinstance(other, Jet):
            self._check(other, '/')
            x, y = self.value, other.value
            # Quotient rule: d(x/y) = dx/y - x dy/y^2
            return Jet._from_parts(x / y, self.gradient / y - other.gradient * x / (y * y))
        if _is_scalar(other):
            return Jet._from_parts(self.value / other, self.gradient / other)
        return NotImplemented

    def __rtruediv__(self, other):
        if _is_scalar(other):
            x = self.value
            # d(s/x) = -s dx / x^2
            return Jet._from_parts(other / x, self.gradient * -other / (x * x))
        return NotImplemented

    def __pow__(self, other):
        """
        Power with a constant real exponent: d(x^n) = n x^(n-1) dx.

        Example:
            >>> x = Jet.variable(1, 3.0, 0)
            >>> (x ** 2).gradient[0]
            6.0
        """
        if not _is_scalar(other):
            return NotImplemented
        x = self.value
        return Jet._from_parts(x ** other, self.gradient * (other * x ** (other - 1)))

    # Compound assignment replaces self with the binary result

    def __iadd__(self, other):
        res = self.__add__(other)
        if res is NotImplemented:
            return NotImplemented
        return self._replace(res)

    def __isub__(self, other):
        res = self.__sub__(other)
        if res is NotImplemented:
            return NotImplemented
        return self._replace(res)

    def __imul__(self, other):
        res = self.__mul__(other)
        if res is NotImplemented:
            return NotImplemented
        return self._replace(res)

    def __itruediv__(self, other):
        res = self.__truediv__(other)
        if res is NotImplemented:
            return NotImplemented
        return self._replace(res)

    # Comparisons only look at the value

    def _compare_operand(self, other, op):
        if isinstance(other, Jet):
            self._check(other, op)
            return other.value
        if _is_scalar(other):
            return other
        return NotImplemented

    def __eq__(self, other):
        v = self._compare_operand(other, '==')
        return v if v is NotImplemented else bool(self.value == v)

    def __ne__(self, other):
        v = self._compare_operand(other, '!=')
        return v if v is NotImplemented else bool(self.value != v)

    def __lt__(self, other):
        v = self._compare_operand(other, '<')
        return v if v is NotImplemented else bool(self.value < v)

    def __le__(self, other):
        v = self._compare_operand(other, '<=')
        return v if v is NotImplemented else bool(self.value <= v)

    def __gt__(self, other):
        v = self._compare_operand(other, '>')
        return v if v is NotImplemented else bool(self.value > v)

    def __ge__(self, other):
        v = self._compare_operand(other, '>=')
        return v if v is NotImplemented else bool(self.value >= v)

    # Mutable, so not hashable
    __hash__ = None

    # Hooks used by numpy ufuncs on object arrays (np.exp(arr) calls x.exp())

    def exp(self):
        return exp(self)

    def log(self):
        return log(self)

    def sqrt(self):
        return sqrt(self)

    def __str__(self):
        """Debug form ``[value, (g0, g1, ..., gn-1)]``."""
        grads = ", ".join(str(g) for g in self.gradient)
        return f"[{self.value}, ({grads})]"

    def __repr__(self):
        return f"Jet(value={self.value}, gradient={self.gradient.to_numpy().tolist()})"


def value_of(x):
    """Return the value of a Jet, or ``x`` unchanged for plain numbers."""
    return x.value if isinstance(x, Jet) else x


def exp(f):
    """
    Exponential: d(e^x) = e^x dx.

    Accepts a Jet or anything numpy's ``exp`` accepts.
    """
    if not isinstance(f, Jet):
        return np.exp(f)
    s = np.exp(f.value)
    return Jet._from_parts(s, f.gradient * s)


def log(f):
    """
    Natural logarithm: d(ln x) = dx / x.

    No domain check; log of a non-positive value gives nan/-inf.
    """
    if not isinstance(f, Jet):
        return np.log(f)
    return Jet._from_parts(np.log(f.value), f.gradient / f.value)


def sqrt(f):
    """
    Square root: d(sqrt x) = dx / (2 sqrt x).

    No domain check; sqrt of a negative value gives nan.
    """
    if not isinstance(f, Jet):
        return np.sqrt(f)
    s = np.sqrt(f.value)
    return Jet._from_parts(s, f.gradient / (2 * s))


def maximum(f, g):
    """
    Select the operand with the larger value, gradient included.

    Returns a copy of ``g`` if f < g, otherwise a copy of ``f``; at a tie the
    left operand wins. A plain number mixed with a Jet is treated as a
    constant of the Jet's dimension.

    Example:
        >>> f = Jet.variable(2, 3.0, 0)
        >>> g = Jet.variable(2, 5.0, 1)
        >>> str(maximum(f, g))
        '[5.0, (0.0, 1.0)]'
    """
    if not isinstance(f, Jet) and not isinstance(g, Jet):
        return np.maximum(f, g)
    if not isinstance(f, Jet):
        f = Jet.constant(g.dimension(), f, dtype=g.gradient.dtype)
    if not isinstance(g, Jet):
        g = Jet.constant(f.dimension(), g, dtype=f.gradient.dtype)
    return g.copy() if f < g else f.copy()
