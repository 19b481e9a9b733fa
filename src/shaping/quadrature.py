"""
===============================================================================
LOW-THRUST SHAPING - Time-of-Flight Quadrature
===============================================================================
Time along a shaped trajectory follows from the azimuth rate

    dt/dtheta = sqrt( D r^2 / mu )

    D = -r'' + 2 r'^2 / r
        + r' phi' (phi'' - sin(phi) cos(phi)) / (phi'^2 + cos^2 phi)
        + r (phi'^2 + cos^2 phi)

(primes are derivatives with respect to theta).  D < 0 anywhere means the
shape cannot be flown with a real azimuth rate: the integrand reports those
angles explicitly instead of producing NaN, and integrate() turns them into
an infeasible QuadratureResult.

Integrals use a composite Gauss-Legendre rule: the interval is split into
equal sub-intervals and each one gets `order` nodes from
scipy.special.roots_legendre.  The rule is fixed (non-adaptive), so the
same inputs always give bit-identical results and the time of flight is a
smooth function of the free coefficient.
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
from scipy.special import roots_legendre

from shaping.errors import ConfigurationError, InfeasibleTrajectoryError

logger = logging.getLogger(__name__)


SUPPORTED_RULES = ('gauss_legendre',)


# =============================================================================
# SETTINGS AND RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class QuadratureSettings:
    """
    Quadrature rule configuration.

    Attributes:
        rule:         Quadrature family; only 'gauss_legendre' is supported.
        order:        Nodes per sub-interval.
        subintervals: Number of equal sub-intervals (composite rule).
    """
    rule: str = 'gauss_legendre'
    order: int = 16
    subintervals: int = 1

    def __post_init__(self):
        if self.rule not in SUPPORTED_RULES:
            raise ConfigurationError(
                f"Unknown quadrature rule '{self.rule}'. Valid: {list(SUPPORTED_RULES)}"
            )
        if int(self.order) < 1:
            raise ConfigurationError(f"Quadrature order must be >= 1, got {self.order}")
        if int(self.subintervals) < 1:
            raise ConfigurationError(
                f"Number of sub-intervals must be >= 1, got {self.subintervals}"
            )


@dataclass(frozen=True)
class IntegrandEvaluation:
    """Integrand samples plus the angles at which the shape is infeasible."""
    values: np.ndarray
    infeasible_angles: np.ndarray = field(default_factory=lambda: np.empty(0))

    @property
    def feasible(self) -> bool:
        return self.infeasible_angles.size == 0


@dataclass(frozen=True)
class QuadratureResult:
    """
    Outcome of one integral: either a value or a set of infeasible angles.

    Use value_or_raise() at public boundaries.
    """
    value: Optional[float]
    infeasible_angles: np.ndarray = field(default_factory=lambda: np.empty(0))

    @property
    def feasible(self) -> bool:
        return self.value is not None

    def value_or_raise(self, free_coefficient: Optional[float] = None) -> float:
        """
        Raises:
            InfeasibleTrajectoryError: If the integrand was infeasible.
        """
        if self.value is None:
            angles = self.infeasible_angles
            raise InfeasibleTrajectoryError(
                f"Shaped trajectory is infeasible at {angles.size} quadrature node(s), "
                f"first at theta = {angles[0]:.6f} rad",
                angles=angles,
                free_coefficient=free_coefficient,
            )
        return self.value


# =============================================================================
# GAUSS-LEGENDRE RULE
# =============================================================================

def composite_nodes(lower: float, upper: float, settings: QuadratureSettings):
    """
    Nodes and weights of the composite rule on [lower, upper].

    Returns:
        (nodes, weights) arrays of length order * subintervals.
    """
    reference_nodes, reference_weights = roots_legendre(int(settings.order))
    edges = np.linspace(lower, upper, int(settings.subintervals) + 1)

    half_width = 0.5 * np.diff(edges)[:, np.newaxis]
    midpoint = 0.5 * (edges[1:] + edges[:-1])[:, np.newaxis]

    nodes = midpoint + half_width * reference_nodes[np.newaxis, :]
    weights = half_width * reference_weights[np.newaxis, :]
    return nodes.ravel(), weights.ravel()


def integrate(integrand: Callable[[np.ndarray], IntegrandEvaluation],
              lower: float, upper: float,
              settings: QuadratureSettings = QuadratureSettings()) -> QuadratureResult:
    """
    Integrate an integrand over [lower, upper].

    Args:
        integrand: Vectorized callable returning an IntegrandEvaluation.
        lower:     Lower limit.
        upper:     Upper limit (may be below lower; the sign follows).
        settings:  Quadrature configuration.

    Returns:
        QuadratureResult holding the value, or the infeasible angles.
    """
    if upper == lower:
        return QuadratureResult(value=0.0)

    nodes, weights = composite_nodes(lower, upper, settings)
    evaluation = integrand(nodes)
    if not evaluation.feasible:
        return QuadratureResult(value=None, infeasible_angles=evaluation.infeasible_angles)

    return QuadratureResult(value=float(np.dot(weights, evaluation.values)))


def cumulative_integrate(integrand: Callable[[np.ndarray], IntegrandEvaluation],
                         points: np.ndarray,
                         settings: QuadratureSettings = QuadratureSettings()) -> QuadratureResult:
    """
    Running integral from points[0] to every entry of *points*.

    Each consecutive interval gets one Gauss-Legendre panel of
    `settings.order` nodes, all evaluated in a single integrand call.

    Returns:
        QuadratureResult whose value is an array with the same length as
        *points*, starting at 0.
    """
    points = np.asarray(points, dtype=np.float64)
    reference_nodes, reference_weights = roots_legendre(int(settings.order))

    half_width = 0.5 * np.diff(points)[:, np.newaxis]
    midpoint = 0.5 * (points[1:] + points[:-1])[:, np.newaxis]
    nodes = midpoint + half_width * reference_nodes[np.newaxis, :]

    evaluation = integrand(nodes.ravel())
    if not evaluation.feasible:
        return QuadratureResult(value=None, infeasible_angles=evaluation.infeasible_angles)

    panels = (half_width * reference_weights[np.newaxis, :]
              * evaluation.values.reshape(nodes.shape)).sum(axis=1)
    return QuadratureResult(value=np.concatenate([[0.0], np.cumsum(panels)]))


# =============================================================================
# TIME-RATE TERM AND INTEGRANDS
# =============================================================================

def time_rate_term(radial_function, elevation_function, theta) -> np.ndarray:
    """
    D(theta), the quantity whose square root scales dt/dtheta.

    Args:
        radial_function:    CompositeRadialFunction (returns r).
        elevation_function: CompositeFunction (returns phi).
        theta:              Azimuth angle(s).
    """
    r = radial_function.evaluate(theta)
    dr = radial_function.first_derivative(theta)
    d2r = radial_function.second_derivative(theta)

    phi = elevation_function.evaluate(theta)
    dphi = elevation_function.first_derivative(theta)
    d2phi = elevation_function.second_derivative(theta)

    f1 = dphi ** 2 + np.cos(phi) ** 2
    f2 = d2phi - np.sin(phi) * np.cos(phi)

    return -d2r + 2.0 * dr ** 2 / r + dr * dphi * f2 / f1 + r * f1


def infeasible_mask(radial_function, elevation_function, theta) -> np.ndarray:
    """True where the shape has no real azimuth rate (D < 0 or u <= 0)."""
    u = radial_function.reciprocal_value(theta)
    with np.errstate(divide='ignore', invalid='ignore'):
        d = time_rate_term(radial_function, elevation_function, theta)
    return ~(u > 0.0) | ~(d >= 0.0)


def time_derivative_integrand(radial_function, elevation_function, mu: float):
    """
    Build the dt/dtheta integrand for a fixed pair of shape functions.

    Returns:
        Callable mapping an angle array to an IntegrandEvaluation.
    """
    def integrand(theta):
        theta = np.asarray(theta, dtype=np.float64)
        bad = infeasible_mask(radial_function, elevation_function, theta)
        if np.any(bad):
            return IntegrandEvaluation(values=np.zeros_like(theta),
                                       infeasible_angles=theta[bad])

        r = radial_function.evaluate(theta)
        d = time_rate_term(radial_function, elevation_function, theta)
        return IntegrandEvaluation(values=np.sqrt(d * r ** 2 / mu))

    return integrand


def compute_time_of_flight(radial_function, elevation_function, mu: float,
                           initial_azimuth: float, final_azimuth: float,
                           settings: QuadratureSettings = QuadratureSettings()
                           ) -> QuadratureResult:
    """Time of flight (normalized units) from initial to final azimuth."""
    integrand = time_derivative_integrand(radial_function, elevation_function, mu)
    return integrate(integrand, initial_azimuth, final_azimuth, settings)
