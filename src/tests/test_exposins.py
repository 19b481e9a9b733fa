"""
===============================================================================
LOW-THRUST SHAPING - Exponential Sinusoid Test Suite
===============================================================================
Tests for the exposin shape: admissible flight-path angle range, shape
parameters through both radii, time-of-flight matching, delta-V, Cartesian
states and thrust vectors, and the time <-> angle table.

Reference geometry: circular 1 AU departure, 1.5 AU arrival a quarter turn
ahead, two complete revolutions, k2 = 1/12.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import AU, JULIAN_DAY, SUN_MU
from dynamics.orbital_mechanics import OrbitalMechanics
from shaping.errors import ConfigurationError, RootNotBracketedError
from shaping.exposins import ExponentialSinusoidShaping
from shaping.spherical_shaping import ThrustProfile


DEPARTURE = OrbitalMechanics.circular_state(1.0 * AU, 0.0, 0.0, SUN_MU)
ARRIVAL = OrbitalMechanics.circular_state(1.5 * AU, np.pi / 2, 0.0, SUN_MU)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def exposin():
    return ExponentialSinusoidShaping(DEPARTURE, ARRIVAL, number_of_revolutions=2)


@pytest.fixture
def selected(exposin):
    """Exposin with gamma1 = 0.05 rad adopted as the transfer."""
    exposin.select_shape(exposin.shape_parameters(0.05))
    return exposin


# =============================================================================
# Test: Geometry
# =============================================================================

class TestExposinGeometry:
    """Transfer plane, swept angle and admissible gamma range."""

    def test_swept_angle(self, exposin):
        assert exposin.travelled_angle == pytest.approx(np.pi / 2 + 4.0 * np.pi)

    def test_radii(self, exposin):
        assert exposin.initial_radius == pytest.approx(1.0)
        assert exposin.final_radius == pytest.approx(1.5)

    def test_gamma_bounds(self, exposin):
        lower, upper = exposin.flight_path_angle_bounds
        assert lower < 0.0 < upper
        assert np.degrees(upper) == pytest.approx(81.5, abs=0.5)
        assert np.degrees(lower) == pytest.approx(-81.5, abs=0.5)

    def test_default_bracket_inside_bounds(self, exposin):
        lower, upper = exposin.default_bracket()
        bound_lower, bound_upper = exposin.flight_path_angle_bounds
        assert bound_lower < lower < upper < bound_upper

    def test_unreachable_radii(self):
        """A tight winding over a short angle cannot join very different radii."""
        far = OrbitalMechanics.circular_state(20.0 * AU, np.pi / 4, 0.0, SUN_MU)
        with pytest.raises(ConfigurationError):
            ExponentialSinusoidShaping(DEPARTURE, far, winding_parameter=1.0)

    def test_invalid_winding(self):
        with pytest.raises(ConfigurationError):
            ExponentialSinusoidShaping(DEPARTURE, ARRIVAL, winding_parameter=0.0)

    def test_no_selection_yet(self, exposin):
        with pytest.raises(ConfigurationError):
            exposin.radius(0.0)


# =============================================================================
# Test: Shape parameters
# =============================================================================

class TestShapeParameters:
    """Exposin through r1 and r2 for a given initial flight-path angle."""

    @pytest.mark.parametrize("gamma", [-0.1, 0.0, 0.1])
    def test_passes_through_both_radii(self, exposin, gamma):
        parameters = exposin.shape_parameters(gamma)
        assert exposin.radius(0.0, parameters) == pytest.approx(1.0, rel=1e-12)
        assert exposin.radius(exposin.travelled_angle, parameters) == pytest.approx(
            1.5, rel=1e-10)

    def test_initial_flight_path_angle(self, exposin):
        """tan(gamma) = k1 k2 cos(phase) at theta = 0."""
        parameters = exposin.shape_parameters(0.1)
        tan_gamma = (parameters.dynamic_range * parameters.winding_parameter
                     * np.cos(parameters.phase_angle))
        assert tan_gamma == pytest.approx(np.tan(0.1), rel=1e-10)

    def test_zero_gamma_dynamic_range(self, exposin):
        parameters = exposin.shape_parameters(0.0)
        assert parameters.dynamic_range == pytest.approx(-0.657, abs=1e-3)

    def test_equal_radii_zero_gamma_degenerate(self):
        same_radius = OrbitalMechanics.circular_state(1.0 * AU, np.pi / 2, 0.0, SUN_MU)
        shaping = ExponentialSinusoidShaping(DEPARTURE, same_radius, number_of_revolutions=1)
        with pytest.raises(ConfigurationError):
            shaping.shape_parameters(0.0)


# =============================================================================
# Test: Time of flight and delta-V
# =============================================================================

class TestExposinTransfer:
    """TOF matching and thrust along the exposin."""

    def test_match_time_of_flight(self, exposin):
        target = exposin.compute_time_of_flight(exposin.shape_parameters(0.0))
        parameters = exposin.match_time_of_flight(target, bracket=(-0.1, 0.1))
        assert parameters.flight_path_angle == pytest.approx(0.0, abs=1e-8)
        assert exposin.parameters is parameters
        assert exposin.compute_time_of_flight() == pytest.approx(target, rel=1e-9)

    def test_unreachable_time_of_flight(self, exposin):
        target = exposin.compute_time_of_flight(exposin.shape_parameters(0.0))
        with pytest.raises(RootNotBracketedError):
            exposin.match_time_of_flight(10.0 * target, bracket=(-0.1, 0.1))

    def test_tof_spans_several_years(self, exposin):
        """Two and a quarter revolutions between 1 and 1.5 AU take a few years."""
        years = exposin.compute_time_of_flight(exposin.shape_parameters(0.0)) / (365.25 * 86400.0)
        assert 2.0 < years < 5.0

    def test_delta_v_positive(self, exposin):
        parameters = exposin.shape_parameters(0.05)
        assert exposin.compute_delta_v(parameters) > 0.0

    def test_thrust_is_tangential_magnitude(self, exposin):
        parameters = exposin.shape_parameters(0.05)
        theta = np.linspace(0.0, exposin.travelled_angle, 9)
        thrust = exposin.compute_thrust_acceleration_magnitude(theta, parameters)
        assert thrust.shape == theta.shape
        assert np.all(thrust >= 0.0)

    def test_boundary_delta_v(self, exposin):
        """At gamma = 0 the exposin leaves tangentially: only a speed mismatch remains."""
        parameters = exposin.shape_parameters(0.0)
        departure, arrival = exposin.compute_boundary_delta_v(parameters)
        velocity = exposin.shaped_velocity(0.0, parameters)
        assert np.dot(velocity, DEPARTURE[0:3]) == pytest.approx(0.0, abs=1e-6 * AU)
        assert departure == pytest.approx(
            abs(np.linalg.norm(velocity) - np.linalg.norm(DEPARTURE[3:6])), rel=1e-9)
        assert arrival >= 0.0

    def test_shaped_velocity_in_plane(self, exposin):
        parameters = exposin.shape_parameters(0.1)
        velocity = exposin.shaped_velocity(1.0, parameters)
        assert_allclose(velocity[2], 0.0, atol=1e-9)

    def test_hohmann_reference(self, exposin):
        dv1, dv2, _ = OrbitalMechanics.hohmann_transfer(AU, 1.5 * AU, SUN_MU)
        assert exposin.compute_delta_v_hohmann() == pytest.approx(dv1 + dv2, rel=1e-9)


# =============================================================================
# Test: Cartesian state and thrust vector
# =============================================================================

class TestExposinStateAndThrust:
    """States and tangential thrust rotated into the transfer plane."""

    def test_state_at_departure(self, selected):
        state = selected.compute_current_state_vector(0.0)
        assert_allclose(state[0:3], DEPARTURE[0:3], rtol=1e-12, atol=1e-3)
        assert_allclose(state[3:6], selected.shaped_velocity(0.0), rtol=1e-14)

    def test_state_at_arrival(self, selected):
        state = selected.compute_current_state_vector(selected.travelled_angle)
        assert_allclose(state[0:3], ARRIVAL[0:3], rtol=0.0, atol=1e-9 * AU)

    def test_state_in_plane(self, selected):
        state = selected.compute_current_state_vector(2.0)
        assert_allclose(state[[2, 5]], 0.0, atol=1e-6)

    def test_velocity_direction_matches_flight_path_angle(self, selected):
        """At departure the velocity leans outwards by gamma1."""
        state = selected.compute_current_state_vector(0.0)
        r_hat = state[0:3] / np.linalg.norm(state[0:3])
        v_hat = state[3:6] / np.linalg.norm(state[3:6])
        assert np.arcsin(np.dot(r_hat, v_hat)) == pytest.approx(0.05, rel=1e-8)

    @pytest.mark.parametrize("theta", [0.0, 3.0, 9.0])
    def test_thrust_is_tangential(self, selected, theta):
        thrust = selected.compute_current_thrust_acceleration_vector(theta)
        velocity = selected.shaped_velocity(theta)
        assert np.linalg.norm(np.cross(thrust, velocity)) == pytest.approx(
            0.0, abs=1e-12 * np.linalg.norm(thrust) * np.linalg.norm(velocity))
        assert np.linalg.norm(thrust) == pytest.approx(
            float(selected.compute_thrust_acceleration_magnitude(theta)), rel=1e-12)

    def test_thrust_direction_unit(self, selected):
        direction = selected.compute_current_thrust_acceleration_direction(1.0)
        assert np.linalg.norm(direction) == pytest.approx(1.0)


# =============================================================================
# Test: Time <-> angle
# =============================================================================

class TestExposinTimeAngle:
    """Time table built when a shape is selected."""

    def test_not_available_before_selection(self, exposin):
        with pytest.raises(ConfigurationError):
            exposin.angle_at_time(0.0)
        with pytest.raises(ConfigurationError):
            exposin.thrust_profile()

    def test_table_duration_is_tof(self, selected):
        assert selected.time_angle_map.duration == pytest.approx(
            selected.compute_time_of_flight(), rel=1e-8)

    def test_end_points(self, selected):
        assert selected.time_at_angle(0.0) == 0.0
        assert selected.time_at_angle(selected.travelled_angle) == pytest.approx(
            selected.compute_time_of_flight(), rel=1e-12)
        assert selected.angle_at_time(0.0) == pytest.approx(0.0, abs=1e-12)

    def test_round_trip(self):
        fine = ExponentialSinusoidShaping(DEPARTURE, ARRIVAL, number_of_revolutions=2,
                                          interpolation_step=3600.0)
        fine.select_shape(fine.shape_parameters(0.05))
        for theta in (0.5, 4.0, 11.0):
            assert fine.angle_at_time(fine.time_at_angle(theta)) == pytest.approx(
                theta, abs=1e-5)

    def test_out_of_range(self, selected):
        with pytest.raises(ValueError):
            selected.time_at_angle(-0.1)
        with pytest.raises(ValueError):
            selected.time_at_angle(selected.travelled_angle + 0.1)
        with pytest.raises(ValueError):
            selected.angle_at_time(selected.time_angle_map.duration + JULIAN_DAY)

    def test_match_builds_table(self, exposin):
        target = exposin.compute_time_of_flight(exposin.shape_parameters(0.0))
        exposin.match_time_of_flight(target, bracket=(-0.1, 0.1))
        assert exposin.time_angle_map.duration == pytest.approx(target, rel=1e-8)

    def test_thrust_profile(self, selected):
        profile = selected.thrust_profile()
        assert isinstance(profile, ThrustProfile)
        assert profile.duration == selected.time_angle_map.duration
        assert_allclose(profile.acceleration(0.0),
                        selected.compute_current_thrust_acceleration_vector(0.0), rtol=1e-9)
