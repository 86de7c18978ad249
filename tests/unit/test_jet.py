"""Unit tests for Jet construction, arithmetic and comparisons."""

import numpy as np
import pytest

from microjet import Jet, PrecisionConfig, ShapeMismatchError, value_of


def grad(j):
    return j.gradient.to_numpy()


class TestConstruction:

    def test_constant(self):
        c = Jet.constant(3, 2.5)
        assert c.value == 2.5
        assert c.dimension() == 3
        np.testing.assert_array_equal(grad(c), [0.0, 0.0, 0.0])

    def test_default_constructor_is_zero(self):
        j = Jet(2)
        assert j.value == 0.0
        np.testing.assert_array_equal(grad(j), [0.0, 0.0])

    def test_variable(self):
        x = Jet.variable(3, 4.0, 1)
        assert x.value == 4.0
        np.testing.assert_array_equal(grad(x), [0.0, 1.0, 0.0])

    def test_variable_with_derivative(self):
        x = Jet.variable(2, 4.0, 0, derivative=0.5)
        np.testing.assert_array_equal(grad(x), [0.5, 0.0])

    @pytest.mark.parametrize("index", [2, 5, -1])
    def test_variable_index_out_of_range(self, index):
        with pytest.raises(IndexError):
            Jet.variable(2, 1.0, index)

    def test_set_resets_gradient(self):
        x = Jet.variable(3, 1.0, 0) * 5 + Jet.variable(3, 2.0, 2)
        assert x.set(7.0, 1) is x
        assert x.value == 7.0
        np.testing.assert_array_equal(grad(x), [0.0, 1.0, 0.0])

    def test_set_with_derivative(self):
        x = Jet.variable(2, 1.0, 0)
        x.set(3.0, 1, derivative=2.0)
        np.testing.assert_array_equal(grad(x), [0.0, 2.0])

    def test_set_index_out_of_range(self):
        x = Jet.variable(2, 1.0, 0)
        with pytest.raises(IndexError):
            x.set(3.0, 2)

    def test_assign_returns_self(self):
        x = Jet.variable(2, 1.0, 0)
        assert x.assign(9.0) is x
        assert x.value == 9.0
        np.testing.assert_array_equal(grad(x), [0.0, 0.0])

    def test_copy_is_independent(self):
        x = Jet.variable(2, 1.0, 0)
        y = x.copy()
        y.set(5.0, 1)
        assert x.value == 1.0
        np.testing.assert_array_equal(grad(x), [1.0, 0.0])

    def test_dtype_follows_config(self):
        PrecisionConfig.set_precision('float32')
        x = Jet.variable(2, 1.0, 0)
        assert x.gradient.dtype == np.float32
        assert isinstance(x.value, np.float32)

    def test_value_of(self):
        assert value_of(Jet.constant(1, 3.0)) == 3.0
        assert value_of(3.0) == 3.0


class TestJetJetArithmetic:

    def setup_method(self):
        # f = (x, gx), g = (y, gy) with non-trivial gradients
        self.f = Jet.variable(2, 3.0, 0) + Jet.variable(2, 0.0, 1) * 2.0
        self.g = Jet.variable(2, 5.0, 1) - Jet.variable(2, 0.0, 0) * 4.0

    def test_operands_as_expected(self):
        np.testing.assert_array_equal(grad(self.f), [1.0, 2.0])
        np.testing.assert_array_equal(grad(self.g), [-4.0, 1.0])

    def test_add(self):
        h = self.f + self.g
        assert h.value == 8.0
        np.testing.assert_array_equal(grad(h), [-3.0, 3.0])

    def test_sub(self):
        h = self.f - self.g
        assert h.value == -2.0
        np.testing.assert_array_equal(grad(h), [5.0, 1.0])

    def test_negate(self):
        h = -self.f
        assert h.value == -3.0
        np.testing.assert_array_equal(grad(h), [-1.0, -2.0])

    def test_unary_plus_copies(self):
        h = +self.f
        assert h is not self.f
        assert h.value == self.f.value
        np.testing.assert_array_equal(grad(h), grad(self.f))

    def test_product_rule(self):
        h = self.f * self.g
        assert h.value == 15.0
        # x*gy + y*gx = 3*[-4, 1] + 5*[1, 2]
        np.testing.assert_allclose(grad(h), [-7.0, 13.0])

    def test_quotient_rule(self):
        h = self.f / self.g
        assert h.value == pytest.approx(0.6)
        # gx/y - x*gy/y^2
        expected = np.array([1.0, 2.0]) / 5.0 - 3.0 * np.array([-4.0, 1.0]) / 25.0
        np.testing.assert_allclose(grad(h), expected)

    @pytest.mark.parametrize("op", ["+", "-", "*", "/"])
    def test_dimension_mismatch_is_fatal(self, op):
        a = Jet.variable(2, 1.0, 0)
        b = Jet.variable(3, 1.0, 0)
        with pytest.raises(ShapeMismatchError):
            {"+": lambda: a + b, "-": lambda: a - b,
             "*": lambda: a * b, "/": lambda: a / b}[op]()

    def test_operands_unchanged(self):
        f_grad = grad(self.f).copy()
        _ = self.f * self.g
        _ = self.f / self.g
        assert self.f.value == 3.0
        np.testing.assert_array_equal(grad(self.f), f_grad)


class TestScalarArithmetic:

    def setup_method(self):
        self.f = Jet.variable(2, 2.0, 0) + Jet.variable(2, 0.0, 1) * 3.0

    def test_add_scalar_keeps_gradient(self):
        for h in (self.f + 1.5, 1.5 + self.f):
            assert h.value == 3.5
            np.testing.assert_array_equal(grad(h), [1.0, 3.0])

    def test_sub_scalar_keeps_gradient(self):
        h = self.f - 0.5
        assert h.value == 1.5
        np.testing.assert_array_equal(grad(h), [1.0, 3.0])

    def test_scalar_minus_jet_negates_gradient(self):
        h = 10 - self.f
        assert h.value == 8.0
        np.testing.assert_array_equal(grad(h), [-1.0, -3.0])

    def test_scale(self):
        for h in (self.f * 4, 4 * self.f):
            assert h.value == 8.0
            np.testing.assert_array_equal(grad(h), [4.0, 12.0])

    def test_divide_by_scalar(self):
        h = self.f / 4
        assert h.value == 0.5
        np.testing.assert_array_equal(grad(h), [0.25, 0.75])

    def test_scalar_divided_by_jet(self):
        h = 8 / self.f
        assert h.value == 4.0
        # -s * gx / x^2 = -8 * [1, 3] / 4
        np.testing.assert_array_equal(grad(h), [-2.0, -6.0])

    def test_numpy_scalars(self):
        h = np.float64(2.0) * self.f + np.float32(1.0)
        assert isinstance(h, Jet)
        assert h.value == 5.0
        np.testing.assert_array_equal(grad(h), [2.0, 6.0])

    def test_power(self):
        h = self.f ** 3
        assert h.value == 8.0
        # 3 x^2 gx
        np.testing.assert_array_equal(grad(h), [12.0, 36.0])

    def test_unsupported_operand(self):
        with pytest.raises(TypeError):
            self.f + "1"
        with pytest.raises(TypeError):
            self.f * [1.0, 2.0]

    def test_boolean_mask(self):
        def relu_like(x):
            return x * (x > 0)

        assert relu_like(3.0) == 3.0
        pos = relu_like(Jet.variable(1, 3.0, 0))
        assert pos.value == 3.0
        np.testing.assert_array_equal(grad(pos), [1.0])
        neg = relu_like(Jet.variable(1, -3.0, 0))
        assert neg.value == 0.0
        np.testing.assert_array_equal(grad(neg), [0.0])

    def test_numpy_bool(self):
        h = self.f * np.bool_(True) + np.bool_(False)
        assert h.value == 2.0
        np.testing.assert_array_equal(grad(h), [1.0, 3.0])

    def test_divide_by_zero_is_not_checked(self):
        with np.errstate(divide='ignore', invalid='ignore'):
            h = self.f / 0.0
        assert np.isinf(h.value)


class TestCompoundAssignment:

    def test_iadd_jet(self):
        x = Jet.variable(2, 1.0, 0)
        ref = x
        x += Jet.variable(2, 2.0, 1)
        assert x is ref
        assert x.value == 3.0
        np.testing.assert_array_equal(grad(x), [1.0, 1.0])

    def test_isub_imul_itruediv_jet(self):
        x = Jet.variable(2, 6.0, 0)
        y = Jet.variable(2, 2.0, 1)
        x -= y
        assert x.value == 4.0
        np.testing.assert_array_equal(grad(x), [1.0, -1.0])
        x *= y
        assert x.value == 8.0
        # 4*[0,1] + 2*[1,-1]
        np.testing.assert_array_equal(grad(x), [2.0, 2.0])
        x /= y
        assert x.value == 4.0
        # [2,2]/2 - 8*[0,1]/4
        np.testing.assert_array_equal(grad(x), [1.0, -1.0])

    def test_scalar_forms(self):
        x = Jet.variable(1, 2.0, 0)
        x += 1
        x -= 0.5
        x *= 4
        x /= 2
        assert x.value == 5.0
        np.testing.assert_array_equal(grad(x), [2.0])

    def test_mismatch(self):
        x = Jet.variable(2, 1.0, 0)
        with pytest.raises(ShapeMismatchError):
            x += Jet.variable(3, 1.0, 0)


class TestComparisons:

    def test_ignore_gradient(self):
        a = Jet.variable(2, 3.0, 0)
        b = Jet.variable(2, 3.0, 1)
        assert a == b
        assert not a != b
        assert a <= b and a >= b
        assert not a < b and not a > b

    def test_ordering(self):
        a = Jet.constant(1, 1.0)
        b = Jet.constant(1, 2.0)
        assert a < b and a <= b and a != b
        assert b > a and b >= a

    @pytest.mark.parametrize("op", ["==", "!=", "<", "<=", ">", ">="])
    def test_mismatch_is_fatal_for_every_operator(self, op):
        a = Jet.constant(2, 1.0)
        b = Jet.constant(3, 2.0)
        compare = {
            "==": lambda: a == b, "!=": lambda: a != b,
            "<": lambda: a < b, "<=": lambda: a <= b,
            ">": lambda: a > b, ">=": lambda: a >= b,
        }[op]
        with pytest.raises(ShapeMismatchError):
            compare()

    def test_against_plain_numbers(self):
        a = Jet.variable(1, 2.0, 0)
        assert a == 2.0
        assert a < 3 and a > 1
        assert 1 < a
        assert a != "2.0"

    def test_builtin_max_uses_values(self):
        a = Jet.variable(2, 3.0, 0)
        b = Jet.variable(2, 5.0, 1)
        assert max(a, b) is b

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(Jet.constant(1, 0.0))


class TestRepresentation:

    def test_str(self):
        x = Jet.variable(3, 2.5, 1)
        assert str(x) == "[2.5, (0.0, 1.0, 0.0)]"

    def test_repr(self):
        x = Jet.variable(2, 1.0, 0)
        assert repr(x) == "Jet(value=1.0, gradient=[1.0, 0.0])"


class TestNumpyInterop:

    def test_array_times_jet(self):
        x = Jet.variable(1, 2.0, 0)
        for prod in (np.array([1.0, 2.0]) * x, x * np.array([1.0, 2.0])):
            assert prod.dtype == object and prod.shape == (2,)
            total = np.sum(prod)
            assert isinstance(total, Jet)
            assert total.value == 6.0
            np.testing.assert_array_equal(grad(total), [3.0])

    def test_ufunc_on_lone_jet(self):
        x = Jet.variable(1, 0.0, 0)
        h = np.exp(x)
        assert isinstance(h, Jet)
        assert h.value == 1.0
        np.testing.assert_array_equal(grad(h), [1.0])
