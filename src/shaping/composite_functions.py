"""
===============================================================================
LOW-THRUST SHAPING - Composite Shape Functions
===============================================================================
A composite shape function is a linear combination of named basis terms of
the azimuth angle theta,

    f(theta) = sum_i c_i * f_i(theta)

where each basis term knows its value and its first three derivatives in
closed form.  Two concrete shapes are used by spherical shaping:

    radial   (7 terms, of u = 1/r):
        1, theta, theta^2, cos, theta*cos, sin, theta*sin
    elevation (4 terms, of phi):
        cos, theta*cos, sin, theta*sin

The theta^2 coefficient of the radial shape (index 2) is the free
coefficient adjusted by the time-of-flight loop; the other ten follow from
the boundary conditions.

For the radial shape the composite sum represents the reciprocal distance;
CompositeRadialFunction returns the distance r = 1/u itself and applies the
chain rule for its derivatives:

    r'   = -u' / u^2
    r''  = -u'' / u^2 + 2 u'^2 / u^3
    r''' = -u''' / u^2 + 6 u' u'' / u^3 - 6 u'^3 / u^4

All evaluations accept scalars or NumPy arrays of angles.
===============================================================================
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np

from shaping.errors import ConfigurationError


# Index of the free coefficient within the radial basis (theta^2 term)
FREE_COEFFICIENT_INDEX = 2


# =============================================================================
# BASIS TERMS
# =============================================================================

@dataclass(frozen=True)
class BasisFunction:
    """
    Closed-form basis term: value and derivatives up to third order.

    Attributes:
        name:              Human-readable label (e.g. 'theta*cos').
        value:             f(theta).
        first_derivative:  f'(theta).
        second_derivative: f''(theta).
        third_derivative:  f'''(theta).
    """
    name: str
    value: Callable
    first_derivative: Callable
    second_derivative: Callable
    third_derivative: Callable

    def derivative(self, order: int, theta):
        """Evaluate the term (order 0) or one of its derivatives (1-3)."""
        if order == 0:
            return self.value(theta)
        if order == 1:
            return self.first_derivative(theta)
        if order == 2:
            return self.second_derivative(theta)
        if order == 3:
            return self.third_derivative(theta)
        raise ValueError(f"Derivative order must be 0..3, got {order}")


def _zero(theta):
    return np.zeros_like(np.asarray(theta, dtype=np.float64))


def _one(theta):
    return np.ones_like(np.asarray(theta, dtype=np.float64))


CONSTANT = BasisFunction(
    'constant', _one, _zero, _zero, _zero)

POWER_1 = BasisFunction(
    'theta',
    lambda t: np.asarray(t, dtype=np.float64),
    _one, _zero, _zero)

POWER_2 = BasisFunction(
    'theta^2',
    lambda t: np.asarray(t, dtype=np.float64) ** 2,
    lambda t: 2.0 * np.asarray(t, dtype=np.float64),
    lambda t: 2.0 * _one(t),
    _zero)

COSINE = BasisFunction(
    'cos',
    np.cos,
    lambda t: -np.sin(t),
    lambda t: -np.cos(t),
    np.sin)

SINE = BasisFunction(
    'sin',
    np.sin,
    np.cos,
    lambda t: -np.sin(t),
    lambda t: -np.cos(t))

POWER_COSINE = BasisFunction(
    'theta*cos',
    lambda t: t * np.cos(t),
    lambda t: np.cos(t) - t * np.sin(t),
    lambda t: -2.0 * np.sin(t) - t * np.cos(t),
    lambda t: -3.0 * np.cos(t) + t * np.sin(t))

POWER_SINE = BasisFunction(
    'theta*sin',
    lambda t: t * np.sin(t),
    lambda t: np.sin(t) + t * np.cos(t),
    lambda t: 2.0 * np.cos(t) - t * np.sin(t),
    lambda t: -3.0 * np.sin(t) - t * np.cos(t))

RADIAL_BASIS = (CONSTANT, POWER_1, POWER_2, COSINE, POWER_COSINE, SINE, POWER_SINE)
ELEVATION_BASIS = (COSINE, POWER_COSINE, SINE, POWER_SINE)


# =============================================================================
# COMPOSITE FUNCTION
# =============================================================================

class CompositeFunction:
    """
    Linear combination of basis terms with a mutable coefficient vector.

    The coefficient vector always has exactly one entry per basis term;
    reset_coefficients() refuses anything else instead of truncating or
    padding.
    """

    def __init__(self, basis: Sequence[BasisFunction],
                 coefficients: Optional[Sequence[float]] = None) -> None:
        if len(basis) == 0:
            raise ConfigurationError("A composite function needs at least one basis term.")
        self._basis = tuple(basis)
        self._coefficients = np.zeros(len(self._basis))
        if coefficients is not None:
            self.reset_coefficients(coefficients)

    # -------------------------------------------------------------------------
    # Coefficients
    # -------------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Number of basis terms."""
        return len(self._basis)

    @property
    def basis(self) -> tuple:
        return self._basis

    @property
    def component_names(self) -> List[str]:
        return [term.name for term in self._basis]

    @property
    def coefficients(self) -> np.ndarray:
        """Copy of the current coefficient vector."""
        return self._coefficients.copy()

    def reset_coefficients(self, coefficients: Sequence[float]) -> None:
        """
        Replace the coefficient vector.

        Raises:
            ConfigurationError: If the vector length differs from the basis size.
        """
        vector = np.asarray(coefficients, dtype=np.float64).ravel()
        if vector.size != self.size:
            raise ConfigurationError(
                f"Coefficient vector has {vector.size} entries, "
                f"basis has {self.size} terms"
            )
        self._coefficients = vector.copy()

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _combination(self, order: int, theta):
        theta = np.asarray(theta, dtype=np.float64)
        total = np.zeros_like(theta)
        for coefficient, term in zip(self._coefficients, self._basis):
            total = total + coefficient * term.derivative(order, theta)
        return total

    def evaluate(self, theta):
        return self._combination(0, theta)

    def first_derivative(self, theta):
        return self._combination(1, theta)

    def second_derivative(self, theta):
        return self._combination(2, theta)

    def third_derivative(self, theta):
        return self._combination(3, theta)

    # -------------------------------------------------------------------------
    # Individual components (uncoefficiented basis terms)
    # -------------------------------------------------------------------------

    def _component(self, index: int, order: int, theta):
        if not 0 <= index < self.size:
            raise IndexError(f"Component index {index} out of range 0..{self.size - 1}")
        return self._basis[index].derivative(order, np.asarray(theta, dtype=np.float64))

    def component_value(self, index: int, theta):
        return self._component(index, 0, theta)

    def component_first_derivative(self, index: int, theta):
        return self._component(index, 1, theta)

    def component_second_derivative(self, index: int, theta):
        return self._component(index, 2, theta)

    def component_third_derivative(self, index: int, theta):
        return self._component(index, 3, theta)

    def __repr__(self) -> str:
        terms = ", ".join(
            f"{c:+.6g}*{name}" for c, name in zip(self._coefficients, self.component_names)
        )
        return f"{type(self).__name__}({terms})"


class CompositeRadialFunction(CompositeFunction):
    """
    Radial distance r(theta) whose reciprocal u = 1/r is the composite sum.

    evaluate() and the *_derivative() methods return r and its derivatives;
    the reciprocal_*() methods and the component_*() methods work on u and
    its basis terms.
    """

    def reciprocal_value(self, theta):
        return super().evaluate(theta)

    def reciprocal_first_derivative(self, theta):
        return super().first_derivative(theta)

    def reciprocal_second_derivative(self, theta):
        return super().second_derivative(theta)

    def reciprocal_third_derivative(self, theta):
        return super().third_derivative(theta)

    def evaluate(self, theta):
        return 1.0 / self.reciprocal_value(theta)

    def first_derivative(self, theta):
        u = self.reciprocal_value(theta)
        du = self.reciprocal_first_derivative(theta)
        return -du / u ** 2

    def second_derivative(self, theta):
        u = self.reciprocal_value(theta)
        du = self.reciprocal_first_derivative(theta)
        d2u = self.reciprocal_second_derivative(theta)
        return -d2u / u ** 2 + 2.0 * du ** 2 / u ** 3

    def third_derivative(self, theta):
        u = self.reciprocal_value(theta)
        du = self.reciprocal_first_derivative(theta)
        d2u = self.reciprocal_second_derivative(theta)
        d3u = self.reciprocal_third_derivative(theta)
        return (-d3u / u ** 2
                + 6.0 * du * d2u / u ** 3
                - 6.0 * du ** 3 / u ** 4)


# =============================================================================
# FACTORIES
# =============================================================================

def radial_distance_function(coefficients: Optional[Sequence[float]] = None
                             ) -> CompositeRadialFunction:
    """Seven-term radial shape of spherical shaping (free coefficient at index 2)."""
    return CompositeRadialFunction(RADIAL_BASIS, coefficients)


def elevation_angle_function(coefficients: Optional[Sequence[float]] = None
                             ) -> CompositeFunction:
    """Four-term elevation shape of spherical shaping."""
    return CompositeFunction(ELEVATION_BASIS, coefficients)
