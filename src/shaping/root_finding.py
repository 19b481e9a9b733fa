"""
===============================================================================
LOW-THRUST SHAPING - Time-of-Flight Matching Loop
===============================================================================
Adjusts the free radial coefficient c until the shaped time of flight equals
the required one.  Each objective evaluation is an explicit value flow:

    c  ->  BoundaryConditionSystem.solve(c)  ->  ShapeCoefficients
       ->  fresh shape functions             ->  TOF quadrature
       ->  residual = TOF_required - TOF(c)

The loop is a small finite state machine

    INITIALIZING -> EVALUATING -> CONVERGED
                               -> INFEASIBLE   (D < 0 at a trial c)
                               -> FAILED       (no bracket / no convergence)

and scipy.optimize.root_scalar does the actual root search.  Bracketing
methods (brentq, bisect, ridder, toms748) use [lower_bound, upper_bound];
the secant method starts from initial_guess and upper_bound.
===============================================================================
"""

import logging
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.optimize import root_scalar

from shaping.boundary_conditions import BoundaryConditionSystem, ShapeCoefficients
from shaping.composite_functions import (
    elevation_angle_function,
    radial_distance_function,
)
from shaping.errors import (
    ConfigurationError,
    ConvergenceError,
    RootNotBracketedError,
)
from shaping.quadrature import (
    QuadratureResult,
    QuadratureSettings,
    compute_time_of_flight,
)

logger = logging.getLogger(__name__)


BRACKETING_METHODS = ('brentq', 'bisect', 'ridder', 'toms748')
SUPPORTED_METHODS = BRACKETING_METHODS + ('secant',)


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass(frozen=True)
class RootFinderSettings:
    """
    Root-finder configuration for the free-coefficient search.

    Attributes:
        method:             One of SUPPORTED_METHODS.
        xtol:               Absolute tolerance on the free coefficient.
        rtol:               Relative tolerance on the free coefficient.
        maximum_iterations: Iteration budget passed to the root finder.
        lower_bound:        Lower end of the search bracket.
        upper_bound:        Upper end of the search bracket.
        initial_guess:      Starting point for the secant method.
    """
    method: str = 'brentq'
    xtol: float = 1e-12
    rtol: float = 1e-12
    maximum_iterations: int = 100
    lower_bound: float = -1.0
    upper_bound: float = 1.0
    initial_guess: float = 0.0

    def __post_init__(self):
        if self.method not in SUPPORTED_METHODS:
            raise ConfigurationError(
                f"Unknown root-finding method '{self.method}'. "
                f"Valid: {list(SUPPORTED_METHODS)}"
            )
        if not self.lower_bound < self.upper_bound:
            raise ConfigurationError(
                f"Bracket lower bound ({self.lower_bound}) must be below "
                f"upper bound ({self.upper_bound})"
            )
        if self.xtol <= 0.0 or self.rtol <= 0.0:
            raise ConfigurationError("Root-finder tolerances must be positive")
        if int(self.maximum_iterations) < 1:
            raise ConfigurationError(
                f"maximum_iterations must be >= 1, got {self.maximum_iterations}"
            )

    @property
    def bracket(self) -> Tuple[float, float]:
        return (self.lower_bound, self.upper_bound)


# =============================================================================
# LOOP STATE
# =============================================================================

class LoopState(IntEnum):
    """Phases of the time-of-flight matching loop."""
    INITIALIZING = 0
    EVALUATING = auto()
    CONVERGED = auto()
    INFEASIBLE = auto()
    FAILED = auto()


# =============================================================================
# MATCHER
# =============================================================================

class TimeOfFlightMatcher:
    """
    Finds the free coefficient giving the required time of flight.

    Attributes:
        state:    Current LoopState.
        history:  (free coefficient, residual) of every distinct evaluation.
        solution: Converged ShapeCoefficients, None until run() succeeds.
    """

    def __init__(self, boundary_system: BoundaryConditionSystem,
                 required_time_of_flight: float,
                 quadrature_settings: QuadratureSettings = QuadratureSettings(),
                 root_finder_settings: RootFinderSettings = RootFinderSettings()) -> None:
        self.boundary_system = boundary_system
        self.required_time_of_flight = float(required_time_of_flight)
        self.quadrature_settings = quadrature_settings
        self.root_finder_settings = root_finder_settings

        self.state: LoopState = LoopState.INITIALIZING
        self.history: List[Tuple[float, float]] = []
        self.solution: Optional[ShapeCoefficients] = None
        self._residuals: Dict[float, float] = {}

    # -------------------------------------------------------------------------
    # Objective
    # -------------------------------------------------------------------------

    @property
    def initial_azimuth(self) -> float:
        return self.boundary_system.initial_state.azimuth

    @property
    def final_azimuth(self) -> float:
        return self.boundary_system.final_state.azimuth

    @property
    def iterations(self) -> int:
        return len(self.history)

    @property
    def last_residual(self) -> Optional[float]:
        return self.history[-1][1] if self.history else None

    @property
    def last_free_coefficient(self) -> Optional[float]:
        return self.history[-1][0] if self.history else None

    def time_of_flight(self, free_coefficient: float) -> QuadratureResult:
        """Shaped TOF for a trial free coefficient; does not touch the state."""
        coefficients = self.boundary_system.solve(free_coefficient)
        return compute_time_of_flight(
            radial_distance_function(coefficients.radial),
            elevation_angle_function(coefficients.elevation),
            self.boundary_system.mu,
            self.initial_azimuth,
            self.final_azimuth,
            self.quadrature_settings,
        )

    def residual(self, free_coefficient: float) -> float:
        """
        Required minus shaped TOF for a trial free coefficient.

        Raises:
            InfeasibleTrajectoryError: If the trial shape is infeasible.
        """
        c = float(free_coefficient)
        if c in self._residuals:
            return self._residuals[c]

        self.state = LoopState.EVALUATING
        result = self.time_of_flight(c)
        if not result.feasible:
            self.state = LoopState.INFEASIBLE
            logger.warning("Infeasible shape for free coefficient %.6e", c)
            result.value_or_raise(free_coefficient=c)

        residual = self.required_time_of_flight - result.value
        self._residuals[c] = residual
        self.history.append((c, residual))
        logger.debug("Iteration %d: c = %.12e, TOF residual = %.6e",
                     len(self.history), c, residual)
        return residual

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def _fail(self, error_class, message: str):
        self.state = LoopState.FAILED
        logger.error(message)
        raise error_class(
            message,
            iterations=self.iterations,
            last_residual=self.last_residual,
            last_free_coefficient=self.last_free_coefficient,
        )

    def run(self) -> ShapeCoefficients:
        """
        Run the root search and return the converged coefficients.

        Raises:
            InfeasibleTrajectoryError: A trial coefficient gave D < 0.
            RootNotBracketedError:     Residual has one sign on the bracket.
            ConvergenceError:          Iteration budget exhausted.
        """
        settings = self.root_finder_settings
        logger.info(
            "Matching TOF %.6f (normalized) with %s on [%g, %g]",
            self.required_time_of_flight, settings.method,
            settings.lower_bound, settings.upper_bound,
        )

        if settings.method in BRACKETING_METHODS:
            lower = self.residual(settings.lower_bound)
            upper = self.residual(settings.upper_bound)
            if np.sign(lower) == np.sign(upper) and lower != 0.0:
                self._fail(
                    RootNotBracketedError,
                    f"TOF residual does not change sign on "
                    f"[{settings.lower_bound}, {settings.upper_bound}] "
                    f"(residuals {lower:.6e}, {upper:.6e})",
                )
            result = root_scalar(
                self.residual,
                method=settings.method,
                bracket=settings.bracket,
                xtol=settings.xtol,
                rtol=settings.rtol,
                maxiter=int(settings.maximum_iterations),
            )
        else:
            result = root_scalar(
                self.residual,
                method=settings.method,
                x0=settings.initial_guess,
                x1=settings.upper_bound,
                xtol=settings.xtol,
                rtol=settings.rtol,
                maxiter=int(settings.maximum_iterations),
            )

        if not result.converged:
            self._fail(
                ConvergenceError,
                f"TOF root finder did not converge after {self.iterations} "
                f"evaluations ({result.flag})",
            )

        free_coefficient = float(result.root)
        span = settings.upper_bound - settings.lower_bound
        if min(abs(free_coefficient - settings.lower_bound),
               abs(free_coefficient - settings.upper_bound)) < 1e-6 * span:
            logger.warning("Free coefficient %.6e found at the edge of the bracket",
                           free_coefficient)

        self.solution = self.boundary_system.solve(free_coefficient)
        self.state = LoopState.CONVERGED
        logger.info("TOF matched after %d evaluations: free coefficient = %.10e",
                    self.iterations, free_coefficient)
        return self.solution
