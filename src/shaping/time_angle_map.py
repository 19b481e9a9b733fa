"""
===============================================================================
LOW-THRUST SHAPING - Time <-> Azimuth Interpolation Table
===============================================================================
The shaped trajectory is parametrized by the azimuth angle theta, but any
downstream propagator asks for quantities as functions of time.  After
convergence the angle range [theta0, thetaf] is sampled uniformly, the
elapsed time at every sample is integrated from theta0, and a monotone
PCHIP interpolant (scipy.interpolate.PchipInterpolator) of theta(t) is
built.

    number of samples = max(ceil(TOF / step) + 1, MINIMUM_SAMPLES)

so the mean spacing between samples never exceeds the requested step.

Times are stored in seconds since departure.  The table is read-only once
built.
===============================================================================
"""

import logging
import math

import numpy as np
from scipy.interpolate import PchipInterpolator

from core.constants import JULIAN_YEAR
from shaping.errors import ConfigurationError
from shaping.quadrature import QuadratureSettings, cumulative_integrate

logger = logging.getLogger(__name__)


MINIMUM_SAMPLES = 10

# Relative slack on the time range before angle_at_time() refuses a query
RANGE_TOLERANCE = 1e-9


class TimeAngleMap:
    """
    Monotone table of azimuth angle versus elapsed time.

    Args:
        times:  Strictly increasing elapsed times (s), starting at 0.
        angles: Azimuth angles (rad) at those times.

    Raises:
        ConfigurationError: If the arrays differ in length, hold fewer than
            two samples, or the times are not strictly increasing.
    """

    def __init__(self, times, angles) -> None:
        times = np.array(times, dtype=np.float64)
        angles = np.array(angles, dtype=np.float64)

        if times.shape != angles.shape or times.ndim != 1:
            raise ConfigurationError(
                f"Time and angle samples must be 1-D arrays of equal length, "
                f"got shapes {times.shape} and {angles.shape}"
            )
        if times.size < 2:
            raise ConfigurationError("Time-angle table needs at least two samples")
        if np.any(np.diff(times) <= 0.0):
            raise ConfigurationError("Time samples must be strictly increasing")

        times.setflags(write=False)
        angles.setflags(write=False)
        self._times = times
        self._angles = angles
        self._interpolator = PchipInterpolator(times, angles, extrapolate=False)

    @classmethod
    def from_integrand(cls, integrand, initial_azimuth: float, final_azimuth: float,
                       time_of_flight_s: float, step_s: float,
                       settings: QuadratureSettings = QuadratureSettings()
                       ) -> 'TimeAngleMap':
        """
        Sample a converged shape and build the table.

        Args:
            integrand:        dt/dtheta integrand in normalized (year) units.
            initial_azimuth:  theta0 (rad).
            final_azimuth:    thetaf (rad).
            time_of_flight_s: Converged TOF (s); sets the sample count.
            step_s:           Desired time step between samples (s).
            settings:         Quadrature settings (nodes per panel).
        """
        if step_s <= 0.0:
            raise ConfigurationError(f"Interpolation step must be positive, got {step_s}")

        count = max(int(math.ceil(time_of_flight_s / step_s)) + 1, MINIMUM_SAMPLES)
        angles = np.linspace(initial_azimuth, final_azimuth, count)

        elapsed = cumulative_integrate(integrand, angles, settings).value_or_raise()
        logger.debug("Time-angle table: %d samples over %.6f rad", count,
                     final_azimuth - initial_azimuth)
        return cls(elapsed * JULIAN_YEAR, angles)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def times(self) -> np.ndarray:
        return self._times

    @property
    def angles(self) -> np.ndarray:
        return self._angles

    @property
    def duration(self) -> float:
        return float(self._times[-1])

    def __len__(self) -> int:
        return self._times.size

    def angle_at_time(self, time_s):
        """
        Interpolated azimuth angle at elapsed time(s) *time_s* (s).

        Raises:
            ValueError: If a time lies outside the tabulated range.
        """
        t = np.asarray(time_s, dtype=np.float64)
        slack = RANGE_TOLERANCE * self.duration
        if np.any(t < -slack) or np.any(t > self.duration + slack):
            raise ValueError(
                f"Time outside the transfer: valid range is [0, {self.duration:.6f}] s"
            )
        angle = self._interpolator(np.clip(t, 0.0, self.duration))
        return float(angle) if angle.ndim == 0 else angle
