"""
===============================================================================
LOW-THRUST SHAPING - Shaped Trajectory Propagation Test Suite
===============================================================================
Flies the thrust profile of a converged transfer through a full two-body
integration and checks that the propagated states follow the shaped ones,
and that the propagated mass obeys the rocket equation.  The same checks run
on an exposin transfer, whose thrust is purely tangential.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest

from core.constants import AU, JULIAN_DAY, STANDARD_GRAVITY, SUN_MU
from dynamics.orbital_mechanics import OrbitalMechanics
from dynamics.propagation import PropagationResult, ShapedTrajectoryPropagator
from shaping.exposins import ExponentialSinusoidShaping
from shaping.root_finding import RootFinderSettings
from shaping.spherical_shaping import ShapingProblem


INITIAL_MASS = 1000.0
SPECIFIC_IMPULSE = 3000.0


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope='module')
def problem():
    departure = OrbitalMechanics.circular_state(1.0 * AU, 0.0, 0.0, SUN_MU)
    arrival = OrbitalMechanics.circular_state(1.5 * AU, np.pi, 0.0, SUN_MU)
    return ShapingProblem(departure, arrival, 250.0 * JULIAN_DAY,
                          root_finder_settings=RootFinderSettings(lower_bound=-2.0,
                                                                  upper_bound=2.0))


@pytest.fixture(scope='module')
def result(problem):
    propagator = ShapedTrajectoryPropagator(problem, initial_mass=INITIAL_MASS,
                                            specific_impulse=SPECIFIC_IMPULSE)
    return propagator.propagate(number_of_epochs=21)


# =============================================================================
# Test: Propagated trajectory
# =============================================================================

class TestPropagatedTrajectory:
    """Propagated states track the shaped states."""

    def test_epochs(self, result, problem):
        assert isinstance(result, PropagationResult)
        assert result.times.size == 21
        assert result.times[0] == 0.0
        assert result.times[-1] == pytest.approx(problem.time_angle_map.duration)
        assert result.propagated_states.shape == (21, 6)
        assert result.shaped_states.shape == (21, 6)

    def test_position_error_small(self, result):
        assert np.max(result.relative_position_errors) < 1e-3

    def test_end_points_near_boundary_states(self, result, problem):
        assert np.linalg.norm(result.propagated_states[0, 0:3]
                              - problem.initial_state.cartesian[0:3]) < 1e-3 * AU
        assert np.linalg.norm(result.propagated_states[-1, 0:3]
                              - problem.final_state.cartesian[0:3]) < 1e-3 * 1.5 * AU

    def test_dataframe(self, result):
        table = result.to_dataframe()
        assert len(table) == 21
        for column in ('time_s', 'time_days', 'propagated_x_m', 'shaped_vz_mps',
                       'position_error_m', 'mass_kg'):
            assert column in table.columns


# =============================================================================
# Test: Mass propagation
# =============================================================================

class TestMassPropagation:
    """Mass decreases with the thrust profile as the rocket equation predicts."""

    def test_initial_mass_recovered(self, result):
        """Backward integration from mid-transfer returns to the departure mass."""
        assert result.masses[0] == pytest.approx(INITIAL_MASS, rel=1e-5)

    def test_mass_non_increasing(self, result):
        assert np.all(np.diff(result.masses) <= 1e-9)

    def test_rocket_equation(self, result, problem):
        expected = INITIAL_MASS * np.exp(-problem.compute_delta_v()
                                         / (SPECIFIC_IMPULSE * STANDARD_GRAVITY))
        assert result.masses[-1] == pytest.approx(expected, rel=1e-3)


# =============================================================================
# Test: Configuration
# =============================================================================

class TestPropagatorConfiguration:
    """Mass propagation needs both a mass and a specific impulse."""

    def test_mass_without_isp(self, problem):
        with pytest.raises(ValueError):
            ShapedTrajectoryPropagator(problem, initial_mass=1000.0)

    def test_nonpositive_mass(self, problem):
        with pytest.raises(ValueError):
            ShapedTrajectoryPropagator(problem, initial_mass=-1.0, specific_impulse=3000.0)

    def test_without_mass(self, problem):
        propagator = ShapedTrajectoryPropagator(problem)
        assert not propagator.propagate_mass
        result = propagator.propagate(number_of_epochs=5)
        assert result.masses is None
        assert 'mass_kg' not in result.to_dataframe().columns


# =============================================================================
# Test: Exposin hand-off
# =============================================================================

class TestExposinPropagation:
    """An exposin transfer flies through the same propagator."""

    @pytest.fixture(scope='class')
    def exposin(self):
        departure = OrbitalMechanics.circular_state(1.0 * AU, 0.0, 0.0, SUN_MU)
        arrival = OrbitalMechanics.circular_state(1.5 * AU, np.pi / 2, 0.0, SUN_MU)
        shaping = ExponentialSinusoidShaping(departure, arrival, number_of_revolutions=2)
        shaping.select_shape(shaping.shape_parameters(0.05))
        return shaping

    @pytest.fixture(scope='class')
    def exposin_result(self, exposin):
        propagator = ShapedTrajectoryPropagator(exposin, initial_mass=INITIAL_MASS,
                                                specific_impulse=SPECIFIC_IMPULSE)
        return propagator.propagate(number_of_epochs=11)

    def test_epochs(self, exposin_result, exposin):
        assert exposin_result.times[-1] == pytest.approx(exposin.time_angle_map.duration)
        assert exposin_result.propagated_states.shape == (11, 6)

    def test_position_error_small(self, exposin_result):
        assert np.max(exposin_result.relative_position_errors) < 1e-3

    def test_rocket_equation(self, exposin_result, exposin):
        expected = INITIAL_MASS * np.exp(-exposin.compute_delta_v()
                                         / (SPECIFIC_IMPULSE * STANDARD_GRAVITY))
        assert exposin_result.masses[-1] == pytest.approx(expected, rel=1e-3)
