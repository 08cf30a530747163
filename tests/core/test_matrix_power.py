"""Tests for fractional 2x2 matrix powers."""

import math

import pytest

from droste.core.matrix_power import matrix_power_2x2


def _mul(m, n):
    a, b, c, d = m
    e, f, g, h = n
    return (a * e + b * g, a * f + b * h, c * e + d * g, c * f + d * h)


SPIRAL = (1.1, -0.3, 0.3, 1.1)
STRETCH = (2.0, 0.0, 0.0, 0.5)
SHEAR = (2.0, 1.0, 0.0, 2.0)
SCALAR = (3.0, 0.0, 0.0, 3.0)


class TestEndpoints:
    @pytest.mark.parametrize("m", [SPIRAL, STRETCH, SHEAR, SCALAR])
    def test_zero_is_identity(self, m):
        assert matrix_power_2x2(*m, 0.0) == pytest.approx((1.0, 0.0, 0.0, 1.0), abs=1e-9)

    @pytest.mark.parametrize("m", [SPIRAL, STRETCH, SHEAR, SCALAR])
    def test_one_is_matrix(self, m):
        assert matrix_power_2x2(*m, 1.0) == pytest.approx(m, abs=1e-9)


class TestRegimes:
    def test_distinct_real_eigenvalues(self):
        result = matrix_power_2x2(*STRETCH, 0.5)
        assert result == pytest.approx((math.sqrt(2.0), 0.0, 0.0, math.sqrt(0.5)))

    def test_complex_pair_rotation(self):
        # 90 degree rotation, half power is 45 degrees
        result = matrix_power_2x2(0.0, -1.0, 1.0, 0.0, 0.5)
        s = math.sqrt(0.5)
        assert result == pytest.approx((s, -s, s, s), abs=1e-9)

    def test_repeated_eigenvalue_jordan_block(self):
        result = matrix_power_2x2(*SHEAR, 0.5)
        r2 = math.sqrt(2.0)
        assert result == pytest.approx((r2, r2 * 0.25, 0.0, r2), abs=1e-9)

    def test_scalar_matrix(self):
        result = matrix_power_2x2(*SCALAR, 2.0)
        assert result == pytest.approx((9.0, 0.0, 0.0, 9.0))

    def test_nilpotent_gives_identity(self):
        assert matrix_power_2x2(0.0, 1.0, 0.0, 0.0, 0.5) == (1.0, 0.0, 0.0, 1.0)

    def test_negative_eigenvalues_fractional_power_is_nan(self):
        result = matrix_power_2x2(-2.0, 0.0, 0.0, -0.5, 0.5)
        assert any(math.isnan(v) for v in result)

    def test_negative_repeated_eigenvalue_is_nan(self):
        result = matrix_power_2x2(-1.0, 0.0, 0.0, -1.0, 0.5)
        assert all(math.isnan(v) for v in result)

    def test_negative_eigenvalues_integer_power(self):
        result = matrix_power_2x2(-2.0, 0.0, 0.0, -0.5, 2.0)
        assert result == pytest.approx((4.0, 0.0, 0.0, 0.25))


class TestSemigroup:
    @pytest.mark.parametrize("m", [SPIRAL, STRETCH, SHEAR])
    def test_powers_add(self, m):
        a, b = 0.3, 0.45
        product = _mul(matrix_power_2x2(*m, a), matrix_power_2x2(*m, b))
        assert product == pytest.approx(matrix_power_2x2(*m, a + b), abs=1e-9)

    def test_square_of_half_power(self):
        half = matrix_power_2x2(*SPIRAL, 0.5)
        assert _mul(half, half) == pytest.approx(SPIRAL, abs=1e-9)
