"""
===============================================================================
LOW-THRUST SHAPING - Spherical Shaping Transfer
===============================================================================
Shape-based design of a continuous low-thrust transfer between two fixed
Cartesian states, for a required time of flight and number of complete
revolutions (Novak & Vasile, JGCD 34(1), 2011).

Pipeline executed by the ShapingProblem constructor:

    1. Normalize the inputs (AU, Julian year, mu in AU^3/yr^2).
    2. Convert both states to spherical coordinates; wrap the azimuths to
       [0, 2 pi) and unwrap the final one by the revolution count.
    3. Re-parametrize the boundary states by the azimuth angle.
    4. Assemble and invert the 10x10 boundary-value problem.
    5. Match the time of flight by adjusting the free radial coefficient.
    6. Build the time <-> azimuth interpolation table.

After construction every query is a pure function of its argument: the same
azimuth always gives bit-identical results.

Kinematics along the shape (primes are derivatives with respect to theta):

    theta_dot   = sqrt( mu / (D r^2) )
    theta_ddot  = -theta_dot^2 ( D' / (2 D) + r' / r )
    velocity    = theta_dot [ r', r cos(phi), r phi' ]
    thrust      = theta_dot^2 a_param + theta_ddot v_param + mu/r^2 e_r

    a_param = [ r'' - r (phi'^2 + cos^2 phi),
                2 r' cos(phi) - 2 r phi' sin(phi),
                2 r' phi' + r (phi'' + sin(phi) cos(phi)) ]

Inputs and outputs are SI (m, s, m/s, m/s^2); everything internal is
normalized.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import pandas as pd

from core.constants import (
    ACCELERATION_UNIT,
    AU,
    JULIAN_DAY,
    JULIAN_YEAR,
    SUN_MU,
    TWO_PI,
    VELOCITY_UNIT,
    normalize_gravitational_parameter,
)
from core.frames import cartesian_to_spherical_state, spherical_to_cartesian_state
from dynamics.orbital_mechanics import OrbitalMechanics
from shaping.boundary_conditions import (
    AzimuthParametrizedState,
    BoundaryConditionSystem,
    ShapeCoefficients,
)
from shaping.composite_functions import (
    elevation_angle_function,
    radial_distance_function,
)
from shaping.errors import ConfigurationError, InfeasibleTrajectoryError
from shaping.quadrature import (
    IntegrandEvaluation,
    QuadratureSettings,
    infeasible_mask,
    integrate,
    time_derivative_integrand,
    time_rate_term,
)
from shaping.root_finding import LoopState, RootFinderSettings, TimeOfFlightMatcher
from shaping.time_angle_map import RANGE_TOLERANCE, TimeAngleMap

logger = logging.getLogger(__name__)


# =============================================================================
# AZIMUTH HELPERS
# =============================================================================

def wrap_azimuth(azimuth: float) -> float:
    """Map an atan2 azimuth from (-pi, pi] to [0, 2 pi)."""
    return azimuth + TWO_PI if azimuth < 0.0 else azimuth


def compute_final_azimuth_angle(initial_azimuth: float, raw_final_azimuth: float,
                                number_of_revolutions: int) -> float:
    """
    Unwrapped final azimuth.

    The raw final azimuth is advanced by 2 pi per complete revolution, and by
    one more 2 pi when it lies behind the initial azimuth, so the transfer
    always sweeps forward.

    Args:
        initial_azimuth:       theta0 in [0, 2 pi).
        raw_final_azimuth:     thetaf in [0, 2 pi).
        number_of_revolutions: Complete revolutions N >= 0.
    """
    final_azimuth = raw_final_azimuth + TWO_PI * number_of_revolutions
    if raw_final_azimuth - initial_azimuth < 0.0:
        final_azimuth += TWO_PI
    return final_azimuth


# =============================================================================
# BOUNDARY STATE
# =============================================================================

@dataclass(frozen=True)
class BoundaryState:
    """
    Departure or arrival state in physical and normalized units.

    Attributes:
        cartesian:  [x, y, z, vx, vy, vz] in m and m/s.
        normalized: Same state in AU and AU/yr.
        spherical:  Normalized [r, theta, phi, v_r, v_theta, v_phi] with the
                    azimuth wrapped to [0, 2 pi).
    """
    cartesian: np.ndarray
    normalized: np.ndarray
    spherical: np.ndarray

    @classmethod
    def from_cartesian(cls, state) -> 'BoundaryState':
        cartesian = np.array(state, dtype=np.float64).ravel()
        if cartesian.size != 6 or not np.all(np.isfinite(cartesian)):
            raise ConfigurationError(
                f"Boundary state must be 6 finite numbers, got {np.asarray(state)!r}"
            )
        normalized = np.concatenate([cartesian[0:3] / AU, cartesian[3:6] / VELOCITY_UNIT])
        try:
            spherical = cartesian_to_spherical_state(normalized)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid boundary state: {exc}") from exc
        spherical[1] = wrap_azimuth(spherical[1])

        for array in (cartesian, normalized, spherical):
            array.setflags(write=False)
        return cls(cartesian=cartesian, normalized=normalized, spherical=spherical)

    @property
    def radius(self) -> float:
        """Distance from the central body (m)."""
        return float(self.spherical[0] * AU)


# =============================================================================
# THRUST PROFILE (time-domain hand-off)
# =============================================================================

class ThrustProfile:
    """
    Thrust acceleration of a converged transfer as functions of elapsed time.

    This is what the shaping engine hands to a downstream propagator: time
    is mapped to azimuth by the interpolation table, then the shaped
    kinematics give the thrust.  Any converged shape providing
    time_angle_map, angle_at_time() and
    compute_current_thrust_acceleration_vector() can be wrapped.
    """

    def __init__(self, problem) -> None:
        self._problem = problem

    @property
    def duration(self) -> float:
        return self._problem.time_angle_map.duration

    def acceleration(self, time_s: float) -> np.ndarray:
        """Thrust acceleration vector (m/s^2) at elapsed time *time_s*."""
        azimuth = self._problem.angle_at_time(time_s)
        return self._problem.compute_current_thrust_acceleration_vector(azimuth)

    def magnitude(self, time_s: float) -> float:
        return float(np.linalg.norm(self.acceleration(time_s)))

    def direction(self, time_s: float) -> np.ndarray:
        vector = self.acceleration(time_s)
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0.0 else np.zeros(3)


# =============================================================================
# SPHERICAL SHAPING PROBLEM
# =============================================================================

class ShapingProblem:
    """
    Spherically-shaped low-thrust transfer.

    Construction either converges or raises; there is no partially built
    problem.

    Args:
        initial_state:   Departure Cartesian state [m, m/s].
        final_state:     Arrival Cartesian state [m, m/s].
        time_of_flight:  Required time of flight (s).
        number_of_revolutions: Complete revolutions around the central body.
        central_body_gravitational_parameter: mu (m^3/s^2), Sun by default.
        root_finder_settings: Free-coefficient search configuration.
        quadrature_settings:  TOF / delta-V quadrature configuration.
        interpolation_step:   Time step (s) of the time-angle table.

    Raises:
        ConfigurationError:        Invalid input or degenerate geometry.
        InfeasibleTrajectoryError: A trial shape cannot be flown.
        ConvergenceError:          TOF could not be matched.
    """

    def __init__(self, initial_state, final_state, time_of_flight: float,
                 number_of_revolutions: int = 0,
                 central_body_gravitational_parameter: float = SUN_MU,
                 root_finder_settings: RootFinderSettings = RootFinderSettings(),
                 quadrature_settings: QuadratureSettings = QuadratureSettings(),
                 interpolation_step: float = JULIAN_DAY) -> None:

        if not time_of_flight > 0.0:
            raise ConfigurationError(f"Time of flight must be positive, got {time_of_flight}")
        if int(number_of_revolutions) != number_of_revolutions or number_of_revolutions < 0:
            raise ConfigurationError(
                f"Number of revolutions must be a non-negative integer, "
                f"got {number_of_revolutions}"
            )
        if not central_body_gravitational_parameter > 0.0:
            raise ConfigurationError("Gravitational parameter must be positive")

        self.initial_state = BoundaryState.from_cartesian(initial_state)
        self.final_state = BoundaryState.from_cartesian(final_state)
        self.number_of_revolutions = int(number_of_revolutions)
        self.central_body_gravitational_parameter = float(central_body_gravitational_parameter)
        self.required_time_of_flight = float(time_of_flight)
        self.quadrature_settings = quadrature_settings
        self.root_finder_settings = root_finder_settings

        # Normalized quantities
        self._mu = normalize_gravitational_parameter(self.central_body_gravitational_parameter)
        self._required_tof = self.required_time_of_flight / JULIAN_YEAR

        self._initial_azimuth = float(self.initial_state.spherical[1])
        self._final_azimuth = compute_final_azimuth_angle(
            self._initial_azimuth,
            float(self.final_state.spherical[1]),
            self.number_of_revolutions,
        )

        logger.info(
            "Spherical shaping: theta0 = %.6f rad, thetaf = %.6f rad, "
            "N = %d, TOF = %.3f days",
            self._initial_azimuth, self._final_azimuth,
            self.number_of_revolutions, self.required_time_of_flight / JULIAN_DAY,
        )

        initial_parametrized = AzimuthParametrizedState.from_spherical(
            self.initial_state.spherical, azimuth=self._initial_azimuth)
        final_parametrized = AzimuthParametrizedState.from_spherical(
            self.final_state.spherical, azimuth=self._final_azimuth)

        boundary_system = BoundaryConditionSystem(
            radial_distance_function(),
            elevation_angle_function(),
            initial_parametrized,
            final_parametrized,
            self._mu,
        )

        self._matcher = TimeOfFlightMatcher(
            boundary_system,
            self._required_tof,
            quadrature_settings=quadrature_settings,
            root_finder_settings=root_finder_settings,
        )
        self._coefficients: ShapeCoefficients = self._matcher.run()

        self._radial = radial_distance_function(self._coefficients.radial)
        self._elevation = elevation_angle_function(self._coefficients.elevation)

        self._shaped_tof = integrate(
            self._time_integrand(), self._initial_azimuth, self._final_azimuth,
            quadrature_settings,
        ).value_or_raise(self.free_coefficient)

        self.time_angle_map = TimeAngleMap.from_integrand(
            self._time_integrand(),
            self._initial_azimuth,
            self._final_azimuth,
            self._shaped_tof * JULIAN_YEAR,
            interpolation_step,
            quadrature_settings,
        )

        logger.info("Shaped TOF = %.6f days (required %.6f days)",
                    self.compute_time_of_flight() / JULIAN_DAY,
                    self.required_time_of_flight / JULIAN_DAY)

    # -------------------------------------------------------------------------
    # Converged-problem properties
    # -------------------------------------------------------------------------

    @property
    def initial_azimuth_angle(self) -> float:
        return self._initial_azimuth

    @property
    def final_azimuth_angle(self) -> float:
        return self._final_azimuth

    @property
    def free_coefficient(self) -> float:
        return self._coefficients.free_coefficient

    @property
    def coefficients(self) -> ShapeCoefficients:
        return self._coefficients

    @property
    def loop_state(self) -> LoopState:
        return self._matcher.state

    @property
    def iterations(self) -> int:
        return self._matcher.iterations

    @property
    def normalized_gravitational_parameter(self) -> float:
        return self._mu

    # -------------------------------------------------------------------------
    # Shape evaluation (normalized)
    # -------------------------------------------------------------------------

    def _time_integrand(self) -> Callable:
        return time_derivative_integrand(self._radial, self._elevation, self._mu)

    def _check_feasible(self, theta) -> None:
        angles = np.atleast_1d(np.asarray(theta, dtype=np.float64))
        bad = infeasible_mask(self._radial, self._elevation, angles)
        if np.any(bad):
            angles = angles[bad]
            raise InfeasibleTrajectoryError(
                f"Shaped trajectory has no real azimuth rate at theta = {angles[0]:.6f} rad",
                angles=angles,
                free_coefficient=self.free_coefficient,
            )

    def time_rate_term_derivative(self, theta):
        """
        dD/dtheta, used for the azimuth acceleration.

        With F1 = phi'^2 + cos^2 phi and F2 = phi'' - sin(phi) cos(phi):

            D' = -r''' + 4 r' r'' / r - 2 r'^3 / r^2 + r' F1 + 2 r phi' F2
                 + [ r'' phi' F2 + r' phi'' F2 + r' phi' (phi''' - phi' cos(2 phi)) ] / F1
                 - 2 r' phi'^2 F2^2 / F1^2
        """
        radial, elevation = self._radial, self._elevation
        r = radial.evaluate(theta)
        dr = radial.first_derivative(theta)
        d2r = radial.second_derivative(theta)
        d3r = radial.third_derivative(theta)
        phi = elevation.evaluate(theta)
        dphi = elevation.first_derivative(theta)
        d2phi = elevation.second_derivative(theta)
        d3phi = elevation.third_derivative(theta)

        f1 = dphi ** 2 + np.cos(phi) ** 2
        f2 = d2phi - np.sin(phi) * np.cos(phi)

        return (-d3r
                + 4.0 * dr * d2r / r
                - 2.0 * dr ** 3 / r ** 2
                + dr * f1
                + 2.0 * r * dphi * f2
                + (d2r * dphi * f2 + dr * d2phi * f2
                   + dr * dphi * (d3phi - dphi * np.cos(2.0 * phi))) / f1
                - 2.0 * dr * dphi ** 2 * f2 ** 2 / f1 ** 2)

    def _kinematics(self, theta):
        """
        Normalized spherical kinematics at azimuth(s) theta.

        Returns:
            (r, phi, velocity, thrust) where velocity and thrust are stacked
            [radial, azimuthal, elevation] components, shape (3, ...).
        """
        self._check_feasible(theta)
        radial, elevation = self._radial, self._elevation

        r = radial.evaluate(theta)
        dr = radial.first_derivative(theta)
        d2r = radial.second_derivative(theta)
        phi = elevation.evaluate(theta)
        dphi = elevation.first_derivative(theta)
        d2phi = elevation.second_derivative(theta)

        cos_phi, sin_phi = np.cos(phi), np.sin(phi)
        d = time_rate_term(radial, elevation, theta)
        d_prime = self.time_rate_term_derivative(theta)

        azimuth_rate = np.sqrt(self._mu / (d * r ** 2))
        azimuth_acceleration = -azimuth_rate ** 2 * (d_prime / (2.0 * d) + dr / r)

        v_param = np.array([dr, r * cos_phi, r * dphi])
        a_param = np.array([
            d2r - r * (dphi ** 2 + cos_phi ** 2),
            2.0 * dr * cos_phi - 2.0 * r * dphi * sin_phi,
            2.0 * dr * dphi + r * (d2phi + sin_phi * cos_phi),
        ])
        gravity_compensation = np.array([self._mu / r ** 2, np.zeros_like(r), np.zeros_like(r)])

        velocity = azimuth_rate * v_param
        thrust = (azimuth_rate ** 2 * a_param
                  + azimuth_acceleration * v_param
                  + gravity_compensation)
        return r, phi, velocity, thrust

    # -------------------------------------------------------------------------
    # Public queries (SI units)
    # -------------------------------------------------------------------------

    def compute_current_state_vector(self, azimuth: float) -> np.ndarray:
        """Cartesian state [m, m/s] on the shaped trajectory at *azimuth*."""
        r, phi, velocity, _ = self._kinematics(azimuth)
        normalized = spherical_to_cartesian_state(
            [r, azimuth, phi, velocity[0], velocity[1], velocity[2]])
        return np.concatenate([normalized[0:3] * AU, normalized[3:6] * VELOCITY_UNIT])

    def compute_current_thrust_acceleration_vector(self, azimuth: float) -> np.ndarray:
        """Cartesian thrust acceleration (m/s^2) at *azimuth*."""
        r, phi, _, thrust = self._kinematics(azimuth)
        normalized = spherical_to_cartesian_state(
            [r, azimuth, phi, thrust[0], thrust[1], thrust[2]])
        return normalized[3:6] * ACCELERATION_UNIT

    def compute_current_thrust_acceleration_magnitude(self, azimuth: float) -> float:
        return float(np.linalg.norm(self.compute_current_thrust_acceleration_vector(azimuth)))

    def compute_current_thrust_acceleration_direction(self, azimuth: float) -> np.ndarray:
        """Unit thrust direction; zero vector where no thrust is needed."""
        vector = self.compute_current_thrust_acceleration_vector(azimuth)
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0.0 else np.zeros(3)

    def compute_time_of_flight(self) -> float:
        """Time of flight (s) of the converged shape."""
        return self._shaped_tof * JULIAN_YEAR

    def compute_delta_v(self) -> float:
        """
        Velocity increment (m/s) of the shaped transfer,

            delta_V = integral |a_thrust| dt/dtheta dtheta
        """
        def integrand(theta):
            bad = infeasible_mask(self._radial, self._elevation, theta)
            if np.any(bad):
                return IntegrandEvaluation(values=np.zeros_like(theta),
                                           infeasible_angles=theta[bad])
            r, _, _, thrust = self._kinematics(theta)
            d = time_rate_term(self._radial, self._elevation, theta)
            dt_dtheta = np.sqrt(d * r ** 2 / self._mu)
            return IntegrandEvaluation(values=np.linalg.norm(thrust, axis=0) * dt_dtheta)

        delta_v = integrate(integrand, self._initial_azimuth, self._final_azimuth,
                            self.quadrature_settings).value_or_raise(self.free_coefficient)
        return delta_v * VELOCITY_UNIT

    def compute_delta_v_hohmann(self) -> float:
        """Two-impulse Hohmann delta-V (m/s) between the boundary radii, for reference."""
        dv1, dv2, _ = OrbitalMechanics.hohmann_transfer(
            self.initial_state.radius, self.final_state.radius,
            self.central_body_gravitational_parameter,
        )
        return dv1 + dv2

    # -------------------------------------------------------------------------
    # Time <-> azimuth
    # -------------------------------------------------------------------------

    def time_at_angle(self, azimuth: float) -> float:
        """
        Elapsed time (s) from departure to *azimuth*, by quadrature.

        Raises:
            ValueError: If *azimuth* lies outside [theta0, thetaf].
        """
        slack = RANGE_TOLERANCE * (self._final_azimuth - self._initial_azimuth)
        if not (self._initial_azimuth - slack <= azimuth <= self._final_azimuth + slack):
            raise ValueError(
                f"Azimuth {azimuth:.6f} rad outside the transfer: valid range is "
                f"[{self._initial_azimuth:.6f}, {self._final_azimuth:.6f}] rad"
            )
        azimuth = min(max(azimuth, self._initial_azimuth), self._final_azimuth)
        elapsed = integrate(self._time_integrand(), self._initial_azimuth, azimuth,
                            self.quadrature_settings).value_or_raise(self.free_coefficient)
        return elapsed * JULIAN_YEAR

    def angle_at_time(self, time_s):
        """Azimuth (rad) reached at elapsed time *time_s* (s), interpolated."""
        return self.time_angle_map.angle_at_time(time_s)

    def thrust_profile(self) -> ThrustProfile:
        return ThrustProfile(self)

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def to_dataframe(self, number_of_points: Optional[int] = None) -> pd.DataFrame:
        """
        Tabulate the shaped trajectory.

        Args:
            number_of_points: Uniform azimuth samples; defaults to the
                samples of the time-angle table.

        Returns:
            DataFrame with time, azimuth, Cartesian state and thrust columns.
        """
        if number_of_points is None:
            azimuths = np.asarray(self.time_angle_map.angles)
            times = np.asarray(self.time_angle_map.times)
        else:
            azimuths = np.linspace(self._initial_azimuth, self._final_azimuth,
                                   int(number_of_points))
            times = np.array([self.time_at_angle(theta) for theta in azimuths])

        rows = []
        for time_s, theta in zip(times, azimuths):
            state = self.compute_current_state_vector(theta)
            thrust = self.compute_current_thrust_acceleration_vector(theta)
            rows.append({
                'time_s': time_s,
                'time_days': time_s / JULIAN_DAY,
                'azimuth_rad': theta,
                'x_m': state[0], 'y_m': state[1], 'z_m': state[2],
                'vx_mps': state[3], 'vy_mps': state[4], 'vz_mps': state[5],
                'thrust_x_mps2': thrust[0],
                'thrust_y_mps2': thrust[1],
                'thrust_z_mps2': thrust[2],
                'thrust_magnitude_mps2': float(np.linalg.norm(thrust)),
            })
        return pd.DataFrame(rows)
