"""
===============================================================================
LOW-THRUST SHAPING - Composite Shape Function Test Suite
===============================================================================
Tests for the basis terms and composite functions: closed-form derivatives
against central differences, the reciprocal radial shape, coefficient
handling and component access.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from shaping.composite_functions import (
    ELEVATION_BASIS,
    FREE_COEFFICIENT_INDEX,
    RADIAL_BASIS,
    CompositeFunction,
    elevation_angle_function,
    radial_distance_function,
)
from shaping.errors import ConfigurationError, ShapingError


ANGLES = np.array([0.0, 0.4, 1.7, 3.1, 5.9, 9.2])
STEP = 1e-5


def central_difference(f, theta, h=STEP):
    return (f(theta + h) - f(theta - h)) / (2.0 * h)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def radial():
    """Radial shape with a positive reciprocal over the test angles."""
    return radial_distance_function([1.0, 0.01, -0.002, 0.05, 0.003, -0.04, 0.002])


@pytest.fixture
def elevation():
    return elevation_angle_function([0.02, -0.001, 0.03, 0.002])


# =============================================================================
# Test: Basis terms
# =============================================================================

class TestBasisTerms:
    """Closed-form derivatives of every basis term."""

    @pytest.mark.parametrize("term", RADIAL_BASIS, ids=lambda term: term.name)
    def test_derivative_chain(self, term):
        """Each derivative order matches a central difference of the previous one."""
        for order in range(1, 4):
            numerical = central_difference(lambda t: term.derivative(order - 1, t), ANGLES)
            assert_allclose(term.derivative(order, ANGLES), numerical, rtol=1e-6, atol=1e-6)

    def test_invalid_order(self):
        with pytest.raises(ValueError):
            RADIAL_BASIS[0].derivative(4, 0.0)

    def test_basis_layout(self):
        assert [term.name for term in RADIAL_BASIS] == [
            'constant', 'theta', 'theta^2', 'cos', 'theta*cos', 'sin', 'theta*sin']
        assert [term.name for term in ELEVATION_BASIS] == [
            'cos', 'theta*cos', 'sin', 'theta*sin']
        assert RADIAL_BASIS[FREE_COEFFICIENT_INDEX].name == 'theta^2'


# =============================================================================
# Test: Composite evaluation
# =============================================================================

class TestCompositeFunction:
    """Linear combinations of basis terms."""

    def test_evaluate_is_linear_combination(self, elevation):
        expected = sum(c * term.value(ANGLES)
                       for c, term in zip(elevation.coefficients, ELEVATION_BASIS))
        assert_allclose(elevation.evaluate(ANGLES), expected, rtol=1e-14)

    def test_derivatives(self, elevation):
        assert_allclose(elevation.first_derivative(ANGLES),
                        central_difference(elevation.evaluate, ANGLES), rtol=1e-6, atol=1e-9)
        assert_allclose(elevation.third_derivative(ANGLES),
                        central_difference(elevation.second_derivative, ANGLES),
                        rtol=1e-6, atol=1e-9)

    def test_scalar_input(self, elevation):
        value = elevation.evaluate(0.5)
        assert np.ndim(value) == 0

    def test_zero_coefficients_by_default(self):
        function = elevation_angle_function()
        assert_allclose(function.coefficients, np.zeros(4))
        assert_allclose(function.evaluate(ANGLES), 0.0)

    def test_components_ignore_coefficients(self, radial):
        """component_*() returns the bare basis term."""
        assert radial.component_value(FREE_COEFFICIENT_INDEX, 3.0) == pytest.approx(9.0)
        assert radial.component_first_derivative(1, 2.0) == pytest.approx(1.0)
        assert radial.component_second_derivative(3, 0.0) == pytest.approx(-1.0)
        assert radial.component_third_derivative(5, 0.0) == pytest.approx(-1.0)

    def test_component_index_out_of_range(self, elevation):
        with pytest.raises(IndexError):
            elevation.component_value(4, 0.0)

    def test_repr_lists_terms(self, elevation):
        assert 'theta*sin' in repr(elevation)


# =============================================================================
# Test: Coefficient handling
# =============================================================================

class TestCoefficients:
    """reset_coefficients() and the coefficients property."""

    def test_size_mismatch_raises(self, radial):
        with pytest.raises(ConfigurationError):
            radial.reset_coefficients(np.ones(6))

    def test_size_mismatch_is_shaping_and_value_error(self, elevation):
        with pytest.raises(ShapingError):
            elevation.reset_coefficients([1.0, 2.0])
        with pytest.raises(ValueError):
            elevation.reset_coefficients([1.0, 2.0, 3.0, 4.0, 5.0])

    def test_coefficients_are_a_copy(self, elevation):
        copy = elevation.coefficients
        copy[:] = 99.0
        assert not np.any(elevation.coefficients == 99.0)

    def test_reset_changes_evaluation(self):
        function = elevation_angle_function()
        function.reset_coefficients([1.0, 0.0, 0.0, 0.0])
        assert_allclose(function.evaluate(ANGLES), np.cos(ANGLES))

    def test_empty_basis_rejected(self):
        with pytest.raises(ConfigurationError):
            CompositeFunction([])


# =============================================================================
# Test: Radial shape
# =============================================================================

class TestCompositeRadialFunction:
    """r = 1/u and the chain-rule derivatives."""

    def test_reciprocal(self, radial):
        assert_allclose(radial.evaluate(ANGLES) * radial.reciprocal_value(ANGLES), 1.0,
                        rtol=1e-14)

    @pytest.mark.parametrize("order", [1, 2, 3])
    def test_chain_rule(self, radial, order):
        lower = [radial.evaluate, radial.first_derivative, radial.second_derivative][order - 1]
        upper = [radial.first_derivative, radial.second_derivative,
                 radial.third_derivative][order - 1]
        assert_allclose(upper(ANGLES), central_difference(lower, ANGLES), rtol=1e-6, atol=1e-8)

    def test_circle(self):
        """A constant reciprocal gives a circle with vanishing derivatives."""
        circle = radial_distance_function([0.5, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        assert_allclose(circle.evaluate(ANGLES), 2.0)
        assert_allclose(circle.first_derivative(ANGLES), 0.0)
        assert_allclose(circle.second_derivative(ANGLES), 0.0)
