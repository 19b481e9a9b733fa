"""
===============================================================================
LOW-THRUST SHAPING - Shaped Trajectory Propagation
===============================================================================
Flies the thrust profile of a converged shaped transfer through a full
numerical integration of

    r'' = -mu r / |r|^3 + a_thrust(t)
    m'  = -m |a_thrust(t)| / (Isp g0)          (optional)

and compares the result with the analytical shaped states on the same
epochs.  The integration starts from the shaped state at half the time of
flight and runs forward to the arrival epoch and backward to departure, so
the accumulated integration error is split over two half-arcs.  When mass
is propagated, the initial mass is first carried from departure to the
half-way epoch.

Integration uses scipy.integrate.solve_ivp; results are returned as a
PropagationResult that can be exported to a pandas DataFrame.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp

from core.constants import JULIAN_DAY, STANDARD_GRAVITY
from dynamics.orbital_mechanics import OrbitalMechanics

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class PropagationResult:
    """
    Propagated and shaped states on common epochs.

    Attributes:
        times:              Epochs (s since departure), ascending.
        propagated_states:  (n, 6) integrated Cartesian states [m, m/s].
        shaped_states:      (n, 6) analytical shaped states [m, m/s].
        masses:             (n,) spacecraft mass (kg), or None.
    """
    times: np.ndarray
    propagated_states: np.ndarray
    shaped_states: np.ndarray
    masses: Optional[np.ndarray] = None

    @property
    def position_errors(self) -> np.ndarray:
        """|r_propagated - r_shaped| at every epoch (m)."""
        return np.linalg.norm(self.propagated_states[:, 0:3] - self.shaped_states[:, 0:3],
                              axis=1)

    @property
    def relative_position_errors(self) -> np.ndarray:
        return self.position_errors / np.linalg.norm(self.shaped_states[:, 0:3], axis=1)

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for i, time_s in enumerate(self.times):
            row = {'time_s': time_s, 'time_days': time_s / JULIAN_DAY}
            for label, state in (('propagated', self.propagated_states[i]),
                                 ('shaped', self.shaped_states[i])):
                for axis, value in zip(('x_m', 'y_m', 'z_m', 'vx_mps', 'vy_mps', 'vz_mps'),
                                       state):
                    row[f'{label}_{axis}'] = value
            row['position_error_m'] = self.position_errors[i]
            if self.masses is not None:
                row['mass_kg'] = self.masses[i]
            rows.append(row)
        return pd.DataFrame(rows)


# =============================================================================
# PROPAGATOR
# =============================================================================

class ShapedTrajectoryPropagator:
    """
    Numerically integrates the thrust profile of a converged shape.

    Args:
        problem:          Converged ShapingProblem, or an
                          ExponentialSinusoidShaping with a selected shape.
        initial_mass:     Departure mass (kg); enables mass propagation
                          together with specific_impulse.
        specific_impulse: Engine Isp (s).
        rtol, atol:       solve_ivp tolerances.
        method:           solve_ivp integration method.
    """

    def __init__(self, problem, initial_mass: Optional[float] = None,
                 specific_impulse: Optional[float] = None,
                 rtol: float = 1e-10, atol: float = 1e-6,
                 method: str = 'DOP853') -> None:
        if (initial_mass is None) != (specific_impulse is None):
            raise ValueError("initial_mass and specific_impulse must be given together")
        if initial_mass is not None and (initial_mass <= 0.0 or specific_impulse <= 0.0):
            raise ValueError("initial_mass and specific_impulse must be positive")

        self.problem = problem
        self.thrust_profile = problem.thrust_profile()
        self.mu = problem.central_body_gravitational_parameter
        self.initial_mass = initial_mass
        self.specific_impulse = specific_impulse
        self.rtol = rtol
        self.atol = atol
        self.method = method

    @property
    def propagate_mass(self) -> bool:
        return self.initial_mass is not None

    def _mass_rate(self, mass: float, thrust_magnitude: float) -> float:
        return -mass * thrust_magnitude / (self.specific_impulse * STANDARD_GRAVITY)

    def _derivative(self, t: float, y: np.ndarray) -> np.ndarray:
        thrust = self.thrust_profile.acceleration(t)
        acceleration = OrbitalMechanics.two_body_acceleration(y[0:3], self.mu) + thrust

        dydt = np.empty_like(y)
        dydt[0:3] = y[3:6]
        dydt[3:6] = acceleration
        if y.size == 7:
            dydt[6] = self._mass_rate(y[6], np.linalg.norm(thrust))
        return dydt

    def _integrate(self, y0: np.ndarray, t0: float, t1: float, epochs: np.ndarray):
        solution = solve_ivp(self._derivative, (t0, t1), y0, method=self.method,
                             t_eval=epochs, rtol=self.rtol, atol=self.atol)
        if not solution.success:
            raise RuntimeError(f"Propagation from {t0:.1f} s to {t1:.1f} s failed: "
                               f"{solution.message}")
        return solution.y.T

    def _mass_at(self, time_s: float) -> float:
        """Mass carried from departure to *time_s* along the shaped thrust profile."""
        def mass_derivative(t, m):
            return [self._mass_rate(m[0], self.thrust_profile.magnitude(t))]

        solution = solve_ivp(mass_derivative, (0.0, time_s), [self.initial_mass],
                             method=self.method, rtol=self.rtol, atol=self.atol)
        if not solution.success:
            raise RuntimeError(f"Mass propagation failed: {solution.message}")
        return float(solution.y[0, -1])

    def propagate(self, number_of_epochs: int = 50) -> PropagationResult:
        """
        Integrate forward and backward from half the time of flight.

        Args:
            number_of_epochs: Uniform output epochs over [0, TOF].
        """
        duration = self.thrust_profile.duration
        half_time = 0.5 * duration
        epochs = np.linspace(0.0, duration, int(number_of_epochs))

        half_state = self.problem.compute_current_state_vector(
            self.problem.angle_at_time(half_time))
        y_half = half_state
        if self.propagate_mass:
            y_half = np.append(half_state, self._mass_at(half_time))

        logger.info("Propagating shaped transfer over %.3f days (%d epochs, mass: %s)",
                    duration / JULIAN_DAY, epochs.size, self.propagate_mass)

        backward_epochs = epochs[epochs <= half_time][::-1]
        forward_epochs = epochs[epochs > half_time]

        backward = self._integrate(y_half, half_time, 0.0, backward_epochs)[::-1]
        forward = self._integrate(y_half, half_time, duration, forward_epochs)
        states = np.vstack([backward, forward])

        shaped = np.array([
            self.problem.compute_current_state_vector(self.problem.angle_at_time(t))
            for t in epochs
        ])

        result = PropagationResult(
            times=epochs,
            propagated_states=states[:, 0:6],
            shaped_states=shaped,
            masses=states[:, 6] if self.propagate_mass else None,
        )
        logger.info("Maximum position difference propagated vs shaped: %.3e m",
                    float(np.max(result.position_errors)))
        return result
