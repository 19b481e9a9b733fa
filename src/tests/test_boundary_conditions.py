"""
===============================================================================
LOW-THRUST SHAPING - Boundary-Value Problem Test Suite
===============================================================================
Tests for the azimuth re-parametrization of the boundary states and for the
10x10 boundary-value solve: for any trial free coefficient the solved shape
must reproduce the boundary radius, radial slope, elevation, elevation slope
and azimuth rate at both ends.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import SUN_MU, normalize_gravitational_parameter
from shaping.boundary_conditions import (
    AzimuthParametrizedState,
    BoundaryConditionSystem,
    ShapeCoefficients,
    build_boundary_matrix,
    compute_inverse_boundary_matrix,
)
from shaping.composite_functions import (
    FREE_COEFFICIENT_INDEX,
    elevation_angle_function,
    radial_distance_function,
)
from shaping.errors import ConfigurationError
from shaping.quadrature import time_rate_term


MU = normalize_gravitational_parameter(SUN_MU)

# Normalized spherical states [r, theta, phi, v_r, v_theta, v_phi] (AU, AU/yr)
DEPARTURE = np.array([1.0, 0.0, 0.0, 0.0, 2.0 * np.pi, 0.0])
ARRIVAL = np.array([1.5, np.pi, 0.04, 0.3, 5.0, 0.15])


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def initial_state():
    return AzimuthParametrizedState.from_spherical(DEPARTURE)


@pytest.fixture
def final_state():
    return AzimuthParametrizedState.from_spherical(ARRIVAL, azimuth=np.pi + 2.0 * np.pi)


@pytest.fixture
def system(initial_state, final_state):
    return BoundaryConditionSystem(radial_distance_function(), elevation_angle_function(),
                                   initial_state, final_state, MU)


# =============================================================================
# Test: Azimuth-parametrized state
# =============================================================================

class TestAzimuthParametrizedState:
    """Time derivatives replaced by azimuth derivatives."""

    def test_circular_orbit(self, initial_state):
        """Circular orbit at 1 AU: theta_dot = v_theta / r, r' = 0."""
        assert initial_state.azimuth_rate == pytest.approx(2.0 * np.pi)
        assert initial_state.radius_rate == 0.0
        assert initial_state.azimuthal_term == pytest.approx(1.0)
        assert initial_state.elevation_rate == 0.0

    def test_inclined_state(self, final_state):
        r, _, phi, v_r, v_theta, v_phi = ARRIVAL
        theta_dot = v_theta / (r * np.cos(phi))
        assert final_state.azimuth_rate == pytest.approx(theta_dot)
        assert final_state.radius_rate == pytest.approx(v_r / theta_dot)
        assert final_state.elevation_rate == pytest.approx(v_phi / theta_dot / r)
        assert final_state.azimuthal_term == pytest.approx(r * np.cos(phi))

    def test_azimuth_override(self, final_state):
        assert final_state.azimuth == pytest.approx(3.0 * np.pi)
        assert final_state.as_array()[1] == pytest.approx(3.0 * np.pi)

    def test_curvature_weight_zero_in_plane(self, initial_state):
        assert initial_state.curvature_weight() == 0.0

    def test_zero_azimuthal_velocity_rejected(self):
        radial_fall = np.array([1.0, 0.0, 0.0, -1.0, 0.0, 0.0])
        with pytest.raises(ConfigurationError):
            AzimuthParametrizedState.from_spherical(radial_fall)

    def test_frozen(self, initial_state):
        with pytest.raises(AttributeError):
            initial_state.radius = 2.0


# =============================================================================
# Test: Boundary matrix
# =============================================================================

class TestBoundaryMatrix:
    """Assembly and inversion of the 10x10 matrix."""

    def test_shape_and_inverse(self, initial_state, final_state):
        radial, elevation = radial_distance_function(), elevation_angle_function()
        matrix = build_boundary_matrix(radial, elevation, initial_state, final_state)
        inverse = compute_inverse_boundary_matrix(radial, elevation, initial_state, final_state)
        assert matrix.shape == (10, 10)
        assert_allclose(matrix @ inverse, np.eye(10), atol=1e-9)

    def test_coincident_angles_rejected(self, initial_state):
        with pytest.raises(ConfigurationError):
            compute_inverse_boundary_matrix(radial_distance_function(),
                                            elevation_angle_function(),
                                            initial_state, initial_state)

    def test_wrong_basis_size_rejected(self, initial_state, final_state):
        with pytest.raises(ConfigurationError):
            build_boundary_matrix(elevation_angle_function(), elevation_angle_function(),
                                  initial_state, final_state)


# =============================================================================
# Test: Solved shape reproduces the boundary conditions
# =============================================================================

class TestBoundaryConditionSolve:
    """Shape built from solve(c) honours every boundary condition."""

    @pytest.mark.parametrize("free_coefficient", [-0.5, 0.0, 0.8])
    def test_boundary_values_reproduced(self, system, initial_state, final_state,
                                        free_coefficient):
        coefficients = system.solve(free_coefficient)
        radial = radial_distance_function(coefficients.radial)
        elevation = elevation_angle_function(coefficients.elevation)

        for state in (initial_state, final_state):
            theta = state.azimuth
            assert radial.evaluate(theta) == pytest.approx(state.radius, rel=1e-10)
            assert radial.first_derivative(theta) == pytest.approx(
                state.radius_rate, rel=1e-9, abs=1e-11)
            assert elevation.evaluate(theta) == pytest.approx(state.elevation, abs=1e-11)
            assert elevation.first_derivative(theta) == pytest.approx(
                state.elevation_rate, abs=1e-11)

    @pytest.mark.parametrize("free_coefficient", [-0.5, 0.8])
    def test_azimuth_rate_reproduced(self, system, initial_state, final_state,
                                     free_coefficient):
        """The curvature rows make theta_dot = sqrt(mu / (D r^2)) match at both ends."""
        coefficients = system.solve(free_coefficient)
        radial = radial_distance_function(coefficients.radial)
        elevation = elevation_angle_function(coefficients.elevation)

        for state in (initial_state, final_state):
            d = time_rate_term(radial, elevation, state.azimuth)
            rate = np.sqrt(MU / (d * state.radius ** 2))
            assert rate == pytest.approx(state.azimuth_rate, rel=1e-9)

    def test_free_coefficient_placed_at_index(self, system):
        coefficients = system.solve(0.123)
        assert coefficients.free_coefficient == 0.123
        assert coefficients.radial[FREE_COEFFICIENT_INDEX] == 0.123
        assert coefficients.radial.shape == (7,)
        assert coefficients.elevation.shape == (4,)

    def test_solve_is_deterministic(self, system):
        first = system.solve(0.3)
        second = system.solve(0.3)
        assert np.array_equal(first.radial, second.radial)
        assert np.array_equal(first.elevation, second.elevation)

    def test_coefficients_read_only(self, system):
        coefficients = system.solve(0.0)
        assert isinstance(coefficients, ShapeCoefficients)
        with pytest.raises(ValueError):
            coefficients.radial[0] = 1.0
