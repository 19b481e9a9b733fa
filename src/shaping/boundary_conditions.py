"""
===============================================================================
LOW-THRUST SHAPING - Boundary-Value Problem
===============================================================================
Fixes ten of the eleven shape coefficients of spherical shaping from the
departure and arrival states.  With u = 1/r and derivatives taken with
respect to the azimuth angle theta, the linear system reads

    row 0 / 1 :  u(theta0)           = 1/r0            u(thetaf)  = 1/rf
    row 2 / 3 :  u'(theta0)          = -r0'/r0^2       u'(thetaf) = -rf'/rf^2
    row 4 / 5 :  -r^2 u'' + alpha phi'' = C - 2 r'^2 / r       (at each end)
    row 6 / 7 :  phi(theta0)         = phi0            phi(thetaf) = phif
    row 8 / 9 :  phi'(theta0)        = phi0'           phi'(thetaf) = phif'

with

    alpha = -(r' phi') / (phi'^2 + cos^2 phi)
    C     = -mu (dt/dtheta)^2 / r^2 + 2 r'^2 / r + r (phi'^2 + cos^2 phi)
            - r' phi' sin(phi) cos(phi) / (phi'^2 + cos^2 phi)

The curvature rows 4 and 5 come from the equations of motion: they make the
shaped trajectory reproduce the boundary angular rates.

Unknowns are the six radial coefficients other than the free theta^2 term
(matrix columns 0-5) followed by the four elevation coefficients (columns
6-9).  For a trial free coefficient c,

    coefficients = M^-1 (b - c * column_free)

The matrix only depends on the basis, the boundary angles and the boundary
states, so it is inverted once per problem.
===============================================================================
"""

import logging
from dataclasses import dataclass

import numpy as np

from shaping.composite_functions import (
    CompositeFunction,
    FREE_COEFFICIENT_INDEX,
)
from shaping.errors import ConfigurationError

logger = logging.getLogger(__name__)


# Radial basis indices solved by the boundary-value problem
BOUND_RADIAL_INDICES = (0, 1, 3, 4, 5, 6)

# Rejection thresholds for a degenerate set-up
MINIMUM_ANGLE_SEPARATION = 1e-10    # rad
MAXIMUM_CONDITION_NUMBER = 1e12


# =============================================================================
# AZIMUTH-PARAMETRIZED BOUNDARY STATE
# =============================================================================

@dataclass(frozen=True)
class AzimuthParametrizedState:
    """
    Boundary state with time derivatives replaced by azimuth derivatives.

    For a spherical state [r, theta, phi, v_r, v_theta, v_phi] the azimuth
    rate is theta_dot = v_theta / (r cos(phi)), and dividing each velocity
    component by it gives

        [r, theta, phi, r', r cos(phi), r phi']

    Attributes:
        radius:          r
        azimuth:         theta (rad), already wrapped by the caller
        elevation:       phi (rad)
        radius_rate:     r'  = dr/dtheta
        azimuthal_term:  r cos(phi)
        elevation_term:  r phi'
        azimuth_rate:    theta_dot = dtheta/dt
    """
    radius: float
    azimuth: float
    elevation: float
    radius_rate: float
    azimuthal_term: float
    elevation_term: float
    azimuth_rate: float

    @classmethod
    def from_spherical(cls, spherical_state, azimuth: float = None
                       ) -> 'AzimuthParametrizedState':
        """
        Build from a spherical state, optionally overriding the azimuth
        (used for the final state, whose angle is unwrapped by revolutions).

        Raises:
            ConfigurationError: If the azimuthal velocity is zero, since the
                azimuth cannot then parametrize the motion.
        """
        state = np.asarray(spherical_state, dtype=np.float64)
        radius, theta, phi, v_r, v_theta, v_phi = state
        if azimuth is not None:
            theta = azimuth

        denominator = radius * np.cos(phi)
        if abs(v_theta) < 1e-300 or abs(denominator) < 1e-300:
            raise ConfigurationError(
                "Azimuthal velocity or cos(elevation) is zero at a boundary; "
                "the azimuth angle cannot be used as independent variable."
            )
        azimuth_rate = v_theta / denominator

        return cls(
            radius=float(radius),
            azimuth=float(theta),
            elevation=float(phi),
            radius_rate=float(v_r / azimuth_rate),
            azimuthal_term=float(v_theta / azimuth_rate),
            elevation_term=float(v_phi / azimuth_rate),
            azimuth_rate=float(azimuth_rate),
        )

    @property
    def elevation_rate(self) -> float:
        """phi' = dphi/dtheta."""
        return self.elevation_term / self.radius

    def as_array(self) -> np.ndarray:
        return np.array([self.radius, self.azimuth, self.elevation,
                         self.radius_rate, self.azimuthal_term, self.elevation_term])

    def curvature_weight(self) -> float:
        """alpha = -(r' phi') / (phi'^2 + cos^2 phi)."""
        dphi = self.elevation_rate
        return -(self.radius_rate * dphi) / (dphi ** 2 + np.cos(self.elevation) ** 2)

    def curvature_constant(self, mu: float) -> float:
        """C, the dynamics-dependent part of the curvature row."""
        r = self.radius
        dr = self.radius_rate
        phi = self.elevation
        dphi = self.elevation_rate
        dt_dtheta = 1.0 / self.azimuth_rate
        f1 = dphi ** 2 + np.cos(phi) ** 2

        return (-mu * dt_dtheta ** 2 / r ** 2
                + 2.0 * dr ** 2 / r
                + r * f1
                - dr * dphi * np.sin(phi) * np.cos(phi) / f1)


# =============================================================================
# SOLVED COEFFICIENTS
# =============================================================================

@dataclass(frozen=True)
class ShapeCoefficients:
    """
    Result of one boundary-value solve.

    Attributes:
        free_coefficient: Trial theta^2 coefficient c.
        radial:           Seven radial coefficients (free one included).
        elevation:        Four elevation coefficients.
    """
    free_coefficient: float
    radial: np.ndarray
    elevation: np.ndarray

    def __post_init__(self):
        radial = np.array(self.radial, dtype=np.float64)
        elevation = np.array(self.elevation, dtype=np.float64)
        radial.setflags(write=False)
        elevation.setflags(write=False)
        object.__setattr__(self, 'radial', radial)
        object.__setattr__(self, 'elevation', elevation)


# =============================================================================
# MATRIX ASSEMBLY
# =============================================================================

def _check_basis(radial_function: CompositeFunction,
                 elevation_function: CompositeFunction) -> None:
    if radial_function.size != 7 or elevation_function.size != 4:
        raise ConfigurationError(
            f"Boundary-value problem needs a 7-term radial and a 4-term "
            f"elevation basis, got {radial_function.size} and "
            f"{elevation_function.size}"
        )


def build_boundary_matrix(radial_function: CompositeFunction,
                          elevation_function: CompositeFunction,
                          initial_state: AzimuthParametrizedState,
                          final_state: AzimuthParametrizedState) -> np.ndarray:
    """Assemble the 10x10 boundary-condition matrix (not inverted)."""
    _check_basis(radial_function, elevation_function)

    theta0 = initial_state.azimuth
    thetaf = final_state.azimuth

    matrix = np.zeros((10, 10))

    for column, index in enumerate(BOUND_RADIAL_INDICES):
        matrix[0, column] = radial_function.component_value(index, theta0)
        matrix[1, column] = radial_function.component_value(index, thetaf)
        matrix[2, column] = radial_function.component_first_derivative(index, theta0)
        matrix[3, column] = radial_function.component_first_derivative(index, thetaf)
        matrix[4, column] = (-initial_state.radius ** 2
                             * radial_function.component_second_derivative(index, theta0))
        matrix[5, column] = (-final_state.radius ** 2
                             * radial_function.component_second_derivative(index, thetaf))

    alpha0 = initial_state.curvature_weight()
    alphaf = final_state.curvature_weight()

    for i in range(4):
        column = i + 6
        matrix[4, column] = alpha0 * elevation_function.component_second_derivative(i, theta0)
        matrix[5, column] = alphaf * elevation_function.component_second_derivative(i, thetaf)
        matrix[6, column] = elevation_function.component_value(i, theta0)
        matrix[7, column] = elevation_function.component_value(i, thetaf)
        matrix[8, column] = elevation_function.component_first_derivative(i, theta0)
        matrix[9, column] = elevation_function.component_first_derivative(i, thetaf)

    return matrix


def compute_inverse_boundary_matrix(radial_function: CompositeFunction,
                                    elevation_function: CompositeFunction,
                                    initial_state: AzimuthParametrizedState,
                                    final_state: AzimuthParametrizedState
                                    ) -> np.ndarray:
    """
    Invert the boundary-condition matrix.

    Raises:
        ConfigurationError: If the boundary angles coincide or the matrix is
            singular / ill-conditioned.
    """
    separation = abs(final_state.azimuth - initial_state.azimuth)
    if separation < MINIMUM_ANGLE_SEPARATION:
        raise ConfigurationError(
            f"Initial and final azimuth angles coincide "
            f"(theta0={initial_state.azimuth:.6g}, thetaf={final_state.azimuth:.6g})"
        )

    matrix = build_boundary_matrix(radial_function, elevation_function,
                                   initial_state, final_state)

    condition = np.linalg.cond(matrix)
    if not np.isfinite(condition) or condition > MAXIMUM_CONDITION_NUMBER:
        raise ConfigurationError(
            f"Boundary-condition matrix is singular or ill-conditioned "
            f"(condition number {condition:.3e})"
        )

    logger.debug("Boundary matrix condition number: %.3e", condition)
    return np.linalg.inv(matrix)


def compute_boundary_values(initial_state: AzimuthParametrizedState,
                            final_state: AzimuthParametrizedState,
                            mu: float) -> np.ndarray:
    """Right-hand side b of the boundary-value problem."""
    values = np.zeros(10)
    for end, state in enumerate((initial_state, final_state)):
        r = state.radius
        dr = state.radius_rate
        values[0 + end] = 1.0 / r
        values[2 + end] = -dr / r ** 2
        values[4 + end] = state.curvature_constant(mu) - 2.0 * dr ** 2 / r
        values[6 + end] = state.elevation
        values[8 + end] = state.elevation_rate
    return values


def compute_free_coefficient_column(radial_function: CompositeFunction,
                                    initial_state: AzimuthParametrizedState,
                                    final_state: AzimuthParametrizedState
                                    ) -> np.ndarray:
    """Contribution per unit free coefficient to each boundary row."""
    column = np.zeros(10)
    index = FREE_COEFFICIENT_INDEX
    for end, state in enumerate((initial_state, final_state)):
        theta = state.azimuth
        column[0 + end] = radial_function.component_value(index, theta)
        column[2 + end] = radial_function.component_first_derivative(index, theta)
        column[4 + end] = (-state.radius ** 2
                           * radial_function.component_second_derivative(index, theta))
    return column


# =============================================================================
# BOUNDARY-CONDITION SYSTEM
# =============================================================================

class BoundaryConditionSystem:
    """
    Pre-assembled boundary-value problem, solved for any free coefficient.

    The inverse matrix, right-hand side and free-coefficient column are
    computed once at construction; solve() is a pure function of c.
    """

    def __init__(self, radial_function: CompositeFunction,
                 elevation_function: CompositeFunction,
                 initial_state: AzimuthParametrizedState,
                 final_state: AzimuthParametrizedState,
                 mu: float) -> None:
        self.initial_state = initial_state
        self.final_state = final_state
        self.mu = mu

        self.inverse_matrix = compute_inverse_boundary_matrix(
            radial_function, elevation_function, initial_state, final_state)
        self.boundary_values = compute_boundary_values(initial_state, final_state, mu)
        self.free_column = compute_free_coefficient_column(
            radial_function, initial_state, final_state)

    def solve(self, free_coefficient: float) -> ShapeCoefficients:
        """Coefficients satisfying all ten boundary conditions for a given c."""
        c = float(free_coefficient)
        solution = self.inverse_matrix @ (self.boundary_values - c * self.free_column)

        radial = np.empty(7)
        radial[list(BOUND_RADIAL_INDICES)] = solution[0:6]
        radial[FREE_COEFFICIENT_INDEX] = c

        return ShapeCoefficients(free_coefficient=c, radial=radial,
                                 elevation=solution[6:10])
