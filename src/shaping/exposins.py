"""
===============================================================================
LOW-THRUST SHAPING - Exponential Sinusoid (Exposin) Shaping
===============================================================================
Planar shape of Petropoulos & Longuski,

    r(theta) = k0 exp( k1 sin(k2 theta + phase) )

swept over the in-plane angle theta in [0, psi] from the departure radius r1
to the arrival radius r2.  With the winding parameter k2 fixed, the family
is indexed by the initial flight-path angle gamma1:

    tan(gamma)  = k1 k2 cos(k2 theta + phase)
    k1          = sign(S) sqrt( (S / (1 - cos(k2 psi)))^2 + tan^2(gamma1) / k2^2 )
    S           = ln(r1/r2) + tan(gamma1)/k2 sin(k2 psi)
    phase       = acos( tan(gamma1) / (k1 k2) )
    k0          = r1 / exp(k1 sin(phase))

Only gamma1 within [gamma_min, gamma_max] reach r2,

    gamma_min/max = atan( k2/2 ( -ln(r1/r2) cot(k2 psi / 2) -/+ sqrt(Delta) ) )
    Delta         = 2 (1 - cos(k2 psi)) / k2^4 - ln^2(r1/r2)

and Delta < 0 means no exposin connects the two radii.

With s = sin(k2 theta + phase) and Q = tan^2(gamma) + k1 k2^2 s + 1,

    theta_dot^2 = mu / r^3 / Q
    a_thrust    = mu/r^2 * tan(gamma) / (2 cos(gamma))
                  * [ 1/Q - k2^2 (1 - 2 k1 s) / Q^2 ]       (tangential)

The transfer plane is spanned by the departure position and velocity; the
arrival position is projected onto it.  Boundary delta-V is the velocity
mismatch between the shape and the given states at both ends.

Once a shape is selected (directly or by matching the time of flight) the
elapsed time is tabulated against theta, so the tangential thrust can be
handed to ShapedTrajectoryPropagator as a function of time, exactly like a
spherically shaped transfer.
===============================================================================
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np
from scipy.optimize import root_scalar

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
from dynamics.orbital_mechanics import OrbitalMechanics
from shaping.errors import (
    ConfigurationError,
    ConvergenceError,
    InfeasibleTrajectoryError,
    RootNotBracketedError,
)
from shaping.quadrature import IntegrandEvaluation, QuadratureSettings, integrate
from shaping.root_finding import BRACKETING_METHODS, RootFinderSettings
from shaping.spherical_shaping import ThrustProfile
from shaping.time_angle_map import RANGE_TOLERANCE, TimeAngleMap

logger = logging.getLogger(__name__)


DEFAULT_WINDING_PARAMETER = 1.0 / 12.0

# Fraction of the admissible gamma range trimmed from each end of the
# default search bracket
BRACKET_MARGIN = 1e-3

# Below this |k1| the exposin is a circle and the phase is undefined
DEGENERATE_DYNAMIC_RANGE = 1e-12


@dataclass(frozen=True)
class ExposinParameters:
    """Coefficients of one exposin (distances in AU)."""
    flight_path_angle: float
    scaling_factor: float       # k0
    dynamic_range: float        # k1
    winding_parameter: float    # k2
    phase_angle: float


class ExponentialSinusoidShaping:
    """
    Exposin transfer between two states.

    Args:
        initial_state:  Departure Cartesian state [m, m/s].
        final_state:    Arrival Cartesian state [m, m/s].
        number_of_revolutions: Complete revolutions added to the swept angle.
        winding_parameter:     k2.
        central_body_gravitational_parameter: mu (m^3/s^2).
        quadrature_settings:   Quadrature for TOF and delta-V.
        interpolation_step:    Time step (s) of the time-angle table built
                               when a shape is selected.

    Raises:
        ConfigurationError: Degenerate geometry or Delta < 0.
    """

    def __init__(self, initial_state, final_state, number_of_revolutions: int = 0,
                 winding_parameter: float = DEFAULT_WINDING_PARAMETER,
                 central_body_gravitational_parameter: float = SUN_MU,
                 quadrature_settings: QuadratureSettings = QuadratureSettings(),
                 interpolation_step: float = JULIAN_DAY) -> None:
        if not winding_parameter > 0.0:
            raise ConfigurationError(f"Winding parameter must be positive, got {winding_parameter}")
        if int(number_of_revolutions) != number_of_revolutions or number_of_revolutions < 0:
            raise ConfigurationError(
                f"Number of revolutions must be a non-negative integer, "
                f"got {number_of_revolutions}"
            )

        initial = np.asarray(initial_state, dtype=np.float64)
        final = np.asarray(final_state, dtype=np.float64)
        if initial.shape != (6,) or final.shape != (6,):
            raise ConfigurationError("Boundary states must be 6-element vectors")

        self.initial_state = initial
        self.final_state = final
        self.winding_parameter = float(winding_parameter)
        self.number_of_revolutions = int(number_of_revolutions)
        self.central_body_gravitational_parameter = float(central_body_gravitational_parameter)
        self.quadrature_settings = quadrature_settings
        self.interpolation_step = float(interpolation_step)
        self.parameters: Optional[ExposinParameters] = None
        self.time_angle_map: Optional[TimeAngleMap] = None

        self._mu = normalize_gravitational_parameter(self.central_body_gravitational_parameter)
        self._set_up_plane()

        logger.info(
            "Exposin geometry: r1 = %.6f AU, r2 = %.6f AU, psi = %.6f rad, k2 = %.6g",
            self.initial_radius, self.final_radius, self.travelled_angle,
            self.winding_parameter,
        )

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    def _set_up_plane(self) -> None:
        r1 = self.initial_state[0:3] / AU
        v1 = self.initial_state[3:6] / VELOCITY_UNIT
        r2 = self.final_state[0:3] / AU

        h = np.cross(r1, v1)
        if np.linalg.norm(h) == 0.0 or np.linalg.norm(r1) == 0.0:
            raise ConfigurationError("Departure state defines no orbital plane")
        self._normal = h / np.linalg.norm(h)
        self._radial_axis = r1 / np.linalg.norm(r1)
        self._transverse_axis = np.cross(self._normal, self._radial_axis)

        projected = r2 - np.dot(r2, self._normal) * self._normal
        if np.linalg.norm(projected) == 0.0:
            raise ConfigurationError("Arrival position projects onto the plane origin")

        in_plane_angle = np.arctan2(np.dot(projected, self._transverse_axis),
                                    np.dot(projected, self._radial_axis))
        if in_plane_angle < 0.0:
            in_plane_angle += TWO_PI

        self.travelled_angle = float(in_plane_angle + TWO_PI * self.number_of_revolutions)
        if self.travelled_angle == 0.0:
            raise ConfigurationError("Departure and arrival directions coincide")

        self.initial_radius = float(np.linalg.norm(r1))
        self.final_radius = float(np.linalg.norm(projected))

        k2 = self.winding_parameter
        log_ratio = np.log(self.initial_radius / self.final_radius)
        k2_psi = k2 * self.travelled_angle

        discriminant = 2.0 * (1.0 - np.cos(k2_psi)) / k2 ** 4 - log_ratio ** 2
        if discriminant < 0.0:
            raise ConfigurationError(
                f"No exposin joins r1 = {self.initial_radius:.6f} AU and "
                f"r2 = {self.final_radius:.6f} AU over {self.travelled_angle:.6f} rad "
                f"with k2 = {k2:.6g} (Delta = {discriminant:.6e})"
            )

        centre = -log_ratio / np.tan(k2_psi / 2.0)
        root = np.sqrt(discriminant)
        self.flight_path_angle_bounds: Tuple[float, float] = (
            float(np.arctan(k2 / 2.0 * (centre - root))),
            float(np.arctan(k2 / 2.0 * (centre + root))),
        )

    def shape_parameters(self, flight_path_angle: float) -> ExposinParameters:
        """Exposin through r1 and r2 with initial flight-path angle gamma1."""
        k2 = self.winding_parameter
        tan_gamma = np.tan(flight_path_angle)
        k2_psi = k2 * self.travelled_angle
        log_ratio = np.log(self.initial_radius / self.final_radius)

        numerator = log_ratio + tan_gamma / k2 * np.sin(k2_psi)
        magnitude = np.sqrt((numerator / (1.0 - np.cos(k2_psi))) ** 2
                            + tan_gamma ** 2 / k2 ** 2)
        if magnitude < DEGENERATE_DYNAMIC_RANGE:
            raise ConfigurationError(
                "Exposin degenerates to a circle (equal radii and zero flight-path angle)"
            )
        dynamic_range = float(np.copysign(magnitude, numerator))

        phase = float(np.arccos(np.clip(tan_gamma / (dynamic_range * k2), -1.0, 1.0)))
        scaling = float(self.initial_radius / np.exp(dynamic_range * np.sin(phase)))

        return ExposinParameters(
            flight_path_angle=float(flight_path_angle),
            scaling_factor=scaling,
            dynamic_range=dynamic_range,
            winding_parameter=k2,
            phase_angle=phase,
        )

    # -------------------------------------------------------------------------
    # Shape evaluation (normalized)
    # -------------------------------------------------------------------------

    def _resolve(self, parameters: Optional[ExposinParameters]) -> ExposinParameters:
        if parameters is not None:
            return parameters
        if self.parameters is None:
            raise ConfigurationError(
                "No exposin selected; call match_time_of_flight() or pass parameters"
            )
        return self.parameters

    @staticmethod
    def _terms(parameters: ExposinParameters, theta):
        """r, tan(gamma), sin term s and Q at theta."""
        theta = np.asarray(theta, dtype=np.float64)
        k1 = parameters.dynamic_range
        k2 = parameters.winding_parameter
        argument = k2 * theta + parameters.phase_angle

        s = np.sin(argument)
        r = parameters.scaling_factor * np.exp(k1 * s)
        tan_gamma = k1 * k2 * np.cos(argument)
        q = tan_gamma ** 2 + k1 * k2 ** 2 * s + 1.0
        return r, tan_gamma, s, q

    def radius(self, theta, parameters: Optional[ExposinParameters] = None):
        """Radius (AU) at in-plane angle theta."""
        r, _, _, _ = self._terms(self._resolve(parameters), theta)
        return r

    def _time_integrand(self, parameters: ExposinParameters):
        def integrand(theta):
            r, _, _, q = self._terms(parameters, theta)
            bad = ~(q > 0.0)
            if np.any(bad):
                return IntegrandEvaluation(values=np.zeros_like(theta),
                                           infeasible_angles=theta[bad])
            return IntegrandEvaluation(values=np.sqrt(r ** 3 * q / self._mu))
        return integrand

    def _normalized_thrust(self, parameters: ExposinParameters, theta):
        r, tan_gamma, s, q = self._terms(parameters, theta)
        k1 = parameters.dynamic_range
        k2 = parameters.winding_parameter
        cos_gamma = 1.0 / np.sqrt(1.0 + tan_gamma ** 2)
        return (self._mu / r ** 2 * tan_gamma / (2.0 * cos_gamma)
                * (1.0 / q - k2 ** 2 * (1.0 - 2.0 * k1 * s) / q ** 2))

    def azimuth_rate(self, theta, parameters: Optional[ExposinParameters] = None):
        """dtheta/dt (rad/yr); InfeasibleTrajectoryError where Q <= 0."""
        parameters = self._resolve(parameters)
        r, _, _, q = self._terms(parameters, theta)
        if np.any(~(q > 0.0)):
            raise InfeasibleTrajectoryError(
                "Exposin has no real angular rate at the requested angle",
                angles=np.atleast_1d(theta)[np.atleast_1d(~(q > 0.0))],
            )
        return np.sqrt(self._mu / r ** 3 / q)

    # -------------------------------------------------------------------------
    # Public queries (SI units)
    # -------------------------------------------------------------------------

    def compute_time_of_flight(self, parameters: Optional[ExposinParameters] = None) -> float:
        """Transfer time (s) along the exposin."""
        parameters = self._resolve(parameters)
        tof = integrate(self._time_integrand(parameters), 0.0, self.travelled_angle,
                        self.quadrature_settings).value_or_raise()
        return tof * JULIAN_YEAR

    def compute_thrust_acceleration_magnitude(self, theta,
                                              parameters: Optional[ExposinParameters] = None):
        """Tangential thrust acceleration magnitude (m/s^2) at theta."""
        parameters = self._resolve(parameters)
        return np.abs(self._normalized_thrust(parameters, theta)) * ACCELERATION_UNIT

    def compute_delta_v(self, parameters: Optional[ExposinParameters] = None) -> float:
        """Low-thrust delta-V (m/s) along the shape, integral of |a| / theta_dot."""
        parameters = self._resolve(parameters)

        def integrand(theta):
            r, _, _, q = self._terms(parameters, theta)
            bad = ~(q > 0.0)
            if np.any(bad):
                return IntegrandEvaluation(values=np.zeros_like(theta),
                                           infeasible_angles=theta[bad])
            rate = np.sqrt(self._mu / r ** 3 / q)
            return IntegrandEvaluation(
                values=np.abs(self._normalized_thrust(parameters, theta)) / rate)

        delta_v = integrate(integrand, 0.0, self.travelled_angle,
                            self.quadrature_settings).value_or_raise()
        return delta_v * VELOCITY_UNIT

    def compute_delta_v_hohmann(self) -> float:
        """Two-impulse Hohmann delta-V (m/s) between r1 and r2, for reference."""
        dv1, dv2, _ = OrbitalMechanics.hohmann_transfer(
            self.initial_radius * AU, self.final_radius * AU,
            self.central_body_gravitational_parameter,
        )
        return dv1 + dv2

    def _in_plane_axes(self, theta: float) -> Tuple[np.ndarray, np.ndarray]:
        radial = np.cos(theta) * self._radial_axis + np.sin(theta) * self._transverse_axis
        transverse = -np.sin(theta) * self._radial_axis + np.cos(theta) * self._transverse_axis
        return radial, transverse

    def shaped_velocity(self, theta: float,
                        parameters: Optional[ExposinParameters] = None) -> np.ndarray:
        """Inertial velocity (m/s) on the exposin at in-plane angle theta."""
        parameters = self._resolve(parameters)
        r, tan_gamma, _, _ = self._terms(parameters, theta)
        rate = self.azimuth_rate(theta, parameters)

        radial, transverse = self._in_plane_axes(theta)
        return r * rate * (tan_gamma * radial + transverse) * VELOCITY_UNIT

    def compute_current_state_vector(self, theta: float,
                                     parameters: Optional[ExposinParameters] = None
                                     ) -> np.ndarray:
        """Cartesian state [m, m/s] on the exposin at in-plane angle theta."""
        parameters = self._resolve(parameters)
        radial, _ = self._in_plane_axes(theta)
        position = self.radius(theta, parameters) * AU * radial
        return np.concatenate([position, self.shaped_velocity(theta, parameters)])

    def compute_current_thrust_acceleration_vector(
            self, theta: float, parameters: Optional[ExposinParameters] = None) -> np.ndarray:
        """
        Thrust acceleration (m/s^2) at theta.

        The exposin thrust is tangential: positive values push along the
        velocity, negative values brake against it.
        """
        parameters = self._resolve(parameters)
        velocity = self.shaped_velocity(theta, parameters)
        along_track = velocity / np.linalg.norm(velocity)
        signed = float(self._normalized_thrust(parameters, theta)) * ACCELERATION_UNIT
        return signed * along_track

    def compute_current_thrust_acceleration_direction(
            self, theta: float, parameters: Optional[ExposinParameters] = None) -> np.ndarray:
        """Unit thrust direction; zero vector where no thrust is needed."""
        vector = self.compute_current_thrust_acceleration_vector(theta, parameters)
        norm = np.linalg.norm(vector)
        return vector / norm if norm > 0.0 else np.zeros(3)

    def compute_boundary_delta_v(self, parameters: Optional[ExposinParameters] = None
                                 ) -> Tuple[float, float]:
        """Impulses (m/s) needed to join the exposin at departure and arrival."""
        parameters = self._resolve(parameters)
        departure = np.linalg.norm(self.shaped_velocity(0.0, parameters)
                                   - self.initial_state[3:6])
        arrival = np.linalg.norm(self.shaped_velocity(self.travelled_angle, parameters)
                                 - self.final_state[3:6])
        return float(departure), float(arrival)

    # -------------------------------------------------------------------------
    # Time <-> in-plane angle
    # -------------------------------------------------------------------------

    def select_shape(self, parameters: ExposinParameters) -> ExposinParameters:
        """
        Adopt *parameters* as the transfer and tabulate time against theta.

        Raises:
            InfeasibleTrajectoryError: If Q <= 0 somewhere along the shape.
        """
        time_integrand = self._time_integrand(parameters)
        tof = integrate(time_integrand, 0.0, self.travelled_angle,
                        self.quadrature_settings).value_or_raise()
        self.time_angle_map = TimeAngleMap.from_integrand(
            time_integrand, 0.0, self.travelled_angle, tof * JULIAN_YEAR,
            self.interpolation_step, self.quadrature_settings,
        )
        self.parameters = parameters
        return parameters

    def _require_time_map(self) -> TimeAngleMap:
        if self.time_angle_map is None:
            raise ConfigurationError(
                "No exposin selected; call match_time_of_flight() or select_shape()"
            )
        return self.time_angle_map

    def time_at_angle(self, theta: float) -> float:
        """
        Elapsed time (s) from departure to in-plane angle theta, by quadrature.

        Raises:
            ValueError: If theta lies outside [0, psi].
        """
        self._require_time_map()
        slack = RANGE_TOLERANCE * self.travelled_angle
        if not (-slack <= theta <= self.travelled_angle + slack):
            raise ValueError(
                f"Angle {theta:.6f} rad outside the transfer: valid range is "
                f"[0, {self.travelled_angle:.6f}] rad"
            )
        theta = min(max(theta, 0.0), self.travelled_angle)
        elapsed = integrate(self._time_integrand(self.parameters), 0.0, theta,
                            self.quadrature_settings).value_or_raise()
        return elapsed * JULIAN_YEAR

    def angle_at_time(self, time_s):
        """In-plane angle (rad) reached at elapsed time *time_s* (s), interpolated."""
        return self._require_time_map().angle_at_time(time_s)

    def thrust_profile(self) -> ThrustProfile:
        """Thrust as a function of elapsed time, for ShapedTrajectoryPropagator."""
        self._require_time_map()
        return ThrustProfile(self)

    # -------------------------------------------------------------------------
    # Time-of-flight matching
    # -------------------------------------------------------------------------

    def default_bracket(self) -> Tuple[float, float]:
        """Admissible gamma range, trimmed by BRACKET_MARGIN at each end."""
        lower, upper = self.flight_path_angle_bounds
        margin = BRACKET_MARGIN * (upper - lower)
        return lower + margin, upper - margin

    def match_time_of_flight(self, time_of_flight: float,
                             root_finder_settings: RootFinderSettings = RootFinderSettings(),
                             bracket: Optional[Tuple[float, float]] = None
                             ) -> ExposinParameters:
        """
        Find the initial flight-path angle giving *time_of_flight* (s).

        Args:
            time_of_flight:       Required TOF (s).
            root_finder_settings: Method and tolerances; its bracket is
                                  replaced by the gamma bracket.
            bracket:              Gamma search interval (rad); defaults to
                                  default_bracket().

        Raises:
            RootNotBracketedError, ConvergenceError, InfeasibleTrajectoryError
        """
        lower, upper = bracket if bracket is not None else self.default_bracket()
        settings = replace(root_finder_settings, lower_bound=lower, upper_bound=upper,
                           initial_guess=0.5 * (lower + upper))
        required = time_of_flight / JULIAN_YEAR
        history = []

        def residual(gamma):
            parameters = self.shape_parameters(gamma)
            tof = integrate(self._time_integrand(parameters), 0.0, self.travelled_angle,
                            self.quadrature_settings).value_or_raise()
            history.append((gamma, required - tof))
            logger.debug("Exposin gamma = %.10f rad, TOF residual = %.6e",
                         gamma, required - tof)
            return required - tof

        if settings.method in BRACKETING_METHODS:
            f_lower, f_upper = residual(lower), residual(upper)
            if np.sign(f_lower) == np.sign(f_upper) and f_lower != 0.0:
                raise RootNotBracketedError(
                    f"Exposin TOF residual does not change sign on [{lower:.6f}, {upper:.6f}] rad",
                    iterations=len(history), last_residual=f_upper,
                    last_free_coefficient=upper,
                )
            result = root_scalar(residual, method=settings.method, bracket=settings.bracket,
                                 xtol=settings.xtol, rtol=settings.rtol,
                                 maxiter=int(settings.maximum_iterations))
        else:
            result = root_scalar(residual, method=settings.method,
                                 x0=settings.initial_guess, x1=upper,
                                 xtol=settings.xtol, rtol=settings.rtol,
                                 maxiter=int(settings.maximum_iterations))

        if not result.converged:
            raise ConvergenceError(
                f"Exposin TOF matching did not converge ({result.flag})",
                iterations=len(history),
                last_residual=history[-1][1] if history else None,
                last_free_coefficient=history[-1][0] if history else None,
            )

        self.select_shape(self.shape_parameters(float(result.root)))
        logger.info("Exposin matched: gamma1 = %.6f deg, k1 = %.6f, phase = %.6f rad",
                    np.degrees(self.parameters.flight_path_angle),
                    self.parameters.dynamic_range, self.parameters.phase_angle)
        return self.parameters
