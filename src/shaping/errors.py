"""
===============================================================================
LOW-THRUST SHAPING - Exception Hierarchy
===============================================================================
Every failure raised by the shaping engine derives from ShapingError.  The
concrete classes also derive from the matching built-in exception so that
callers catching ValueError / RuntimeError keep working:

    ShapingError
      +-- ConfigurationError         (also ValueError)
      +-- InfeasibleTrajectoryError  (also RuntimeError)
      +-- ConvergenceError           (also RuntimeError)
            +-- RootNotBracketedError

A transfer is either fully constructed or one of these is raised; there is
no partially-converged result.
===============================================================================
"""

from typing import Optional, Sequence

import numpy as np


class ShapingError(Exception):
    """Base class for all shaping-engine failures."""


class ConfigurationError(ShapingError, ValueError):
    """
    Invalid problem set-up.

    Raised for a singular or ill-conditioned boundary-condition matrix,
    a coefficient vector whose size differs from its basis, coincident
    boundary angles, bad solver settings or an invalid configuration file.

    Attributes:
        errors: Individual problem descriptions, when several were collected.
    """

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class InfeasibleTrajectoryError(ShapingError, RuntimeError):
    """
    The shaped trajectory cannot be flown: the time-rate term under the
    square root is negative somewhere along the transfer.

    Attributes:
        angles:           Azimuth angles (rad) where the violation was found.
        free_coefficient: Trial value of the free radial coefficient.
    """

    def __init__(self, message: str, angles: Optional[Sequence[float]] = None,
                 free_coefficient: Optional[float] = None):
        super().__init__(message)
        self.angles = np.asarray(angles if angles is not None else [], dtype=np.float64)
        self.free_coefficient = free_coefficient


class ConvergenceError(ShapingError, RuntimeError):
    """
    The time-of-flight root finder stopped without meeting its tolerance.

    Attributes:
        iterations:            Objective evaluations performed.
        last_residual:         Last TOF residual (normalized units).
        last_free_coefficient: Free coefficient of the last evaluation.
    """

    def __init__(self, message: str, iterations: int = 0,
                 last_residual: Optional[float] = None,
                 last_free_coefficient: Optional[float] = None):
        super().__init__(message)
        self.iterations = iterations
        self.last_residual = last_residual
        self.last_free_coefficient = last_free_coefficient


class RootNotBracketedError(ConvergenceError):
    """The residual has the same sign at both ends of the search bracket."""
