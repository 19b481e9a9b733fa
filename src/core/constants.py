"""
===============================================================================
LOW-THRUST SHAPING - Physical and Astronomical Constants
===============================================================================
Central repository for the constants used by the shaping engine, the
propagation hand-off and the ground-station geometry. SI units throughout
(meters, seconds, kilograms, radians).

The shaping engine works internally in *normalized* units:

    distance unit = 1 astronomical unit (AU)
    time unit     = 1 Julian year

With this choice the Sun's gravitational parameter is ~4*pi^2 and the
boundary-condition matrix entries stay within a few orders of magnitude of
unity, whatever the planets involved.

These values come from IAU 2012 / IERS standards where applicable.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0

# =============================================================================
# FUNDAMENTAL CONSTANTS AND UNITS
# =============================================================================
AU = 1.495978707e11                    # Astronomical Unit in meters
JULIAN_DAY = 86400.0                   # s
JULIAN_YEAR = 365.25 * JULIAN_DAY      # s
STANDARD_GRAVITY = 9.80665             # m/s^2, used with Isp in seconds

# =============================================================================
# CENTRAL BODIES
# =============================================================================
SUN_MU = 1.32712440018e20              # m^3/s^2

EARTH_MU = 3.986004418e14              # m^3/s^2
EARTH_EQUATORIAL_RADIUS = 6378137.0    # WGS84 equatorial radius (m)
EARTH_FLATTENING = 1.0 / 298.257223563  # WGS84 flattening
EARTH_ROTATION_RATE = 7.2921159e-5     # rad/s (sidereal)

MARS_MU = 4.282837e13                  # m^3/s^2
JUPITER_MU = 1.26686534e17             # m^3/s^2

# =============================================================================
# NORMALIZATION HELPERS
# =============================================================================
VELOCITY_UNIT = AU / JULIAN_YEAR                 # m/s per normalized velocity
ACCELERATION_UNIT = AU / JULIAN_YEAR ** 2        # m/s^2 per normalized accel


def normalize_gravitational_parameter(mu: float) -> float:
    """Express a gravitational parameter (m^3/s^2) in AU^3 / year^2."""
    return mu * JULIAN_YEAR ** 2 / AU ** 3


def get_body_mu(body_name: str) -> float:
    """
    Look up gravitational parameter by body name.

    Args:
        body_name: One of 'sun', 'earth', 'mars', 'jupiter'

    Returns:
        Gravitational parameter mu in m^3/s^2

    Raises:
        ValueError: If body_name is not recognized
    """
    lookup = {
        'sun': SUN_MU,
        'earth': EARTH_MU,
        'mars': MARS_MU,
        'jupiter': JUPITER_MU,
    }
    if body_name.lower() not in lookup:
        raise ValueError(f"Unknown body: {body_name}. Valid: {list(lookup.keys())}")
    return lookup[body_name.lower()]
