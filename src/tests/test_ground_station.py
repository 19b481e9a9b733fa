"""
===============================================================================
LOW-THRUST SHAPING - Ground Station Test Suite
===============================================================================
Tests for station states on a rotating body, azimuth / elevation pointing
angles, the elevation-mask visibility check and the line-of-sight test.

A spherical non-flattened Earth is used where exact geometry is easier to
state.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import DEG2RAD, EARTH_EQUATORIAL_RADIUS, EARTH_ROTATION_RATE
from navigation.ground_station import (
    GroundStation,
    GroundStationState,
    PointingAnglesCalculator,
    has_line_of_sight,
    is_target_in_view,
)


R = EARTH_EQUATORIAL_RADIUS


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def equator_station():
    """Station at lat 0, lon 0 on a spherical Earth."""
    return GroundStation.from_geodetic('EQ-0', 0.0, 0.0, flattening=0.0)


@pytest.fixture
def madrid():
    return GroundStation.from_geodetic('DSS-63', 40.4314, -4.2481, 865.0)


# =============================================================================
# Test: Station state
# =============================================================================

class TestGroundStationState:
    """Body-fixed and inertial station states."""

    def test_body_fixed_position(self, equator_station):
        state = equator_station.get_state_in_body_fixed_frame(1000.0)
        assert_allclose(state, [R, 0.0, 0.0, 0.0, 0.0, 0.0], atol=1e-6)

    def test_inertial_state_at_epoch(self, equator_station):
        state = equator_station.get_state_in_inertial_frame(0.0)
        assert_allclose(state[0:3], [R, 0.0, 0.0], atol=1e-6)
        assert_allclose(state[3:6], [0.0, EARTH_ROTATION_RATE * R, 0.0], rtol=1e-12)

    def test_inertial_state_after_quarter_turn(self, equator_station):
        t_quarter = (np.pi / 2) / EARTH_ROTATION_RATE
        state = equator_station.get_state_in_inertial_frame(t_quarter)
        assert_allclose(state[0:3], [0.0, R, 0.0], atol=1e-6)
        assert_allclose(state[3:6], [-EARTH_ROTATION_RATE * R, 0.0, 0.0], atol=1e-9)

    def test_radius_on_ellipsoid(self, madrid):
        radius = np.linalg.norm(madrid.station_state.body_fixed_position)
        assert 6.36e6 < radius < 6.38e6

    def test_latitude_out_of_range(self):
        with pytest.raises(ValueError):
            GroundStationState(latitude=2.0, longitude=0.0)

    def test_repr(self, madrid):
        assert 'DSS-63' in repr(madrid)


# =============================================================================
# Test: Pointing angles
# =============================================================================

class TestPointingAngles:
    """Azimuth from north towards east, elevation above the horizon."""

    def test_zenith(self, equator_station):
        calculator = equator_station.pointing_angles_calculator
        elevation = calculator.calculate_elevation_angle(np.array([1000e3, 0.0, 0.0]), 0.0)
        assert elevation == pytest.approx(np.pi / 2)

    def test_north_on_horizon(self, equator_station):
        azimuth, elevation = equator_station.pointing_angles_calculator \
            .calculate_pointing_angles(np.array([0.0, 0.0, 1000e3]), 0.0)
        assert azimuth == pytest.approx(0.0, abs=1e-12)
        assert elevation == pytest.approx(0.0, abs=1e-12)

    def test_east_on_horizon(self, equator_station):
        azimuth = equator_station.pointing_angles_calculator.calculate_azimuth_angle(
            np.array([0.0, 1000e3, 0.0]), 0.0)
        assert azimuth == pytest.approx(np.pi / 2)

    def test_azimuth_range(self, equator_station):
        """West is reported as 3 pi / 2, not -pi / 2."""
        azimuth = equator_station.pointing_angles_calculator.calculate_azimuth_angle(
            np.array([0.0, -1000e3, 0.0]), 0.0)
        assert azimuth == pytest.approx(1.5 * np.pi)

    def test_rotation_moves_target(self, equator_station):
        """An inertially fixed overhead target sets as the Earth turns."""
        calculator = equator_station.pointing_angles_calculator
        target = np.array([2.0 * R, 0.0, 0.0])
        elevations = []
        for hours in (0.0, 2.0, 4.0):
            time_s = hours * 3600.0
            relative = equator_station.relative_position(target, time_s)
            elevations.append(calculator.calculate_elevation_angle(relative, time_s))
        assert elevations[0] == pytest.approx(np.pi / 2)
        assert elevations[0] > elevations[1] > elevations[2]

    def test_coincident_target(self, equator_station):
        with pytest.raises(ValueError):
            equator_station.pointing_angles_calculator.calculate_elevation_angle(
                np.zeros(3), 0.0)


# =============================================================================
# Test: Visibility
# =============================================================================

class TestVisibility:
    """Elevation mask and line of sight."""

    def test_in_view_above_mask(self, equator_station):
        relative = np.array([1000e3, 0.0, 1000e3])
        assert is_target_in_view(0.0, relative, equator_station.pointing_angles_calculator,
                                 10.0 * DEG2RAD)

    def test_not_in_view_below_mask(self, equator_station):
        relative = np.array([50e3, 0.0, 1000e3])
        assert not is_target_in_view(0.0, relative,
                                     equator_station.pointing_angles_calculator,
                                     10.0 * DEG2RAD)

    def test_custom_calculator(self):
        state = GroundStationState(latitude=0.5, longitude=1.0, flattening=0.0)
        calculator = PointingAnglesCalculator(state)
        up = state.body_fixed_position / np.linalg.norm(state.body_fixed_position)
        assert is_target_in_view(0.0, 1e6 * up, calculator, 89.0 * DEG2RAD)

    def test_line_of_sight_clear(self):
        assert has_line_of_sight(np.array([R, 0.0, 0.0]), np.array([3.0 * R, 0.0, 0.0]), R)

    def test_line_of_sight_along_horizon(self):
        assert has_line_of_sight(np.array([R, 0.0, 0.0]), np.array([R, 5.0 * R, 0.0]), R)

    def test_line_of_sight_blocked(self):
        assert not has_line_of_sight(np.array([R, 0.0, 0.0]), np.array([-3.0 * R, 0.0, 0.0]), R)

    def test_line_of_sight_between_satellites(self):
        a = np.array([2.0 * R, 0.5 * R, 0.0])
        b = np.array([-2.0 * R, 0.5 * R, 0.0])
        assert not has_line_of_sight(a, b, R)
        assert has_line_of_sight(a, b, 0.4 * R)
