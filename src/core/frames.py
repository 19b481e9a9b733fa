"""
===============================================================================
LOW-THRUST SHAPING - Reference Frame Transformations
===============================================================================
Supports: inertial Cartesian, spherical (radius / azimuth / elevation),
          body-fixed (rotating), geodetic and topocentric (ENU) frames.

The shaping engine describes the transfer in spherical coordinates,

    r      -- distance from the central body
    theta  -- azimuth angle, measured in the reference x-y plane from +x
    phi    -- elevation angle above the x-y plane, in [-pi/2, pi/2]

and the velocity (or any other vector attached to the trajectory) by its
components along the local unit vectors e_r, e_theta, e_phi.  Everything that
leaves the engine goes back through spherical_to_cartesian_state().

The ground-station geometry needs the body-fixed and topocentric frames; the
body-fixed frame is assumed aligned with the inertial frame at t = 0 and to
rotate uniformly about +z.

All functions operate on NumPy arrays and return NumPy arrays.  Angles are
in radians unless noted otherwise.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Montenbruck & Gill, "Satellite Orbits", Springer, 2000.
    [3] Novak & Vasile, "Improved Shaping Approach to the Preliminary Design
        of Low-Thrust Trajectories", JGCD 34(1), 2011.

===============================================================================
"""

import numpy as np

from core.constants import (
    EARTH_ROTATION_RATE,
    EARTH_EQUATORIAL_RADIUS,
    EARTH_FLATTENING,
)


# =============================================================================
# ELEMENTARY ROTATION MATRIX
# =============================================================================

def Rz(angle: float) -> np.ndarray:
    """
    Elementary rotation matrix about the Z-axis (frame rotation).

        Rz(a) = |  cos(a)  sin(a)  0 |
                | -sin(a)  cos(a)  0 |
                |  0       0       1 |

    Parameters
    ----------
    angle : float
        Rotation angle in radians.

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [c,   s,   0.0],
        [-s,  c,   0.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


# =============================================================================
# CARTESIAN <-> SPHERICAL STATE
# =============================================================================

def spherical_unit_vectors(azimuth, elevation) -> np.ndarray:
    """
    Local spherical basis (e_r, e_theta, e_phi) expressed in Cartesian axes.

        e_r     = ( cos(phi) cos(theta),  cos(phi) sin(theta), sin(phi) )
        e_theta = (-sin(theta),           cos(theta),          0        )
        e_phi   = (-sin(phi) cos(theta), -sin(phi) sin(theta), cos(phi) )

    Parameters
    ----------
    azimuth : float or np.ndarray
        Azimuth angle theta (rad).
    elevation : float or np.ndarray
        Elevation angle phi (rad).

    Returns
    -------
    np.ndarray
        Array of shape (3, 3, ...) whose first index selects the unit vector
        and second index the Cartesian component.  Extra trailing dimensions
        follow the shape of the input angles.
    """
    azimuth = np.asarray(azimuth, dtype=np.float64)
    elevation = np.asarray(elevation, dtype=np.float64)

    cos_t, sin_t = np.cos(azimuth), np.sin(azimuth)
    cos_p, sin_p = np.cos(elevation), np.sin(elevation)
    zero = np.zeros_like(cos_t * cos_p)

    e_r = np.array([cos_p * cos_t, cos_p * sin_t, sin_p + zero])
    e_theta = np.array([-sin_t + zero, cos_t + zero, zero])
    e_phi = np.array([-sin_p * cos_t, -sin_p * sin_t, cos_p + zero])

    return np.array([e_r, e_theta, e_phi])


def cartesian_to_spherical_state(cartesian_state: np.ndarray) -> np.ndarray:
    """
    Convert a Cartesian state [x, y, z, vx, vy, vz] to spherical form.

    The spherical state is

        [r, theta, phi, v_r, v_theta, v_phi]

    where theta = atan2(y, x) lies in (-pi, pi], phi = asin(z / r), and the
    velocity components are projections on the local unit vectors (so that
    v_theta = r cos(phi) dtheta/dt and v_phi = r dphi/dt).

    Parameters
    ----------
    cartesian_state : np.ndarray
        6-element Cartesian state.

    Returns
    -------
    np.ndarray
        6-element spherical state.

    Raises
    ------
    ValueError
        If the position is at the origin (angles undefined).
    """
    state = np.asarray(cartesian_state, dtype=np.float64)
    position = state[0:3]
    velocity = state[3:6]

    radius = np.linalg.norm(position)
    if radius < 1e-300:
        raise ValueError("Position is at the origin; spherical angles are undefined.")

    azimuth = np.arctan2(position[1], position[0])
    elevation = np.arcsin(np.clip(position[2] / radius, -1.0, 1.0))

    basis = spherical_unit_vectors(azimuth, elevation)
    return np.array([
        radius,
        azimuth,
        elevation,
        basis[0] @ velocity,
        basis[1] @ velocity,
        basis[2] @ velocity,
    ], dtype=np.float64)


def spherical_to_cartesian_state(spherical_state: np.ndarray) -> np.ndarray:
    """
    Convert a spherical state [r, theta, phi, v_r, v_theta, v_phi] to
    Cartesian [x, y, z, vx, vy, vz].

    The last three entries may be any vector expressed in the local
    spherical frame (velocity, acceleration, thrust); they are rotated to
    Cartesian axes with the same unit vectors.

    Parameters
    ----------
    spherical_state : np.ndarray
        6-element spherical state.

    Returns
    -------
    np.ndarray
        6-element Cartesian state.
    """
    state = np.asarray(spherical_state, dtype=np.float64)
    radius, azimuth, elevation = state[0], state[1], state[2]

    basis = spherical_unit_vectors(azimuth, elevation)
    position = radius * basis[0]
    local_vector = basis.T @ state[3:6]

    return np.concatenate([position, local_vector])


# =============================================================================
# INERTIAL <-> BODY-FIXED (uniform rotation about +z)
# =============================================================================

def body_fixed_to_inertial(r_body_fixed: np.ndarray, time_s: float,
                           rotation_rate: float = EARTH_ROTATION_RATE) -> np.ndarray:
    """
    Rotate a vector from the rotating body-fixed frame to the inertial frame.

    The two frames coincide at t = 0; the rotation angle at *time_s* is
    theta = rotation_rate * time_s and

        r_inertial = Rz(-theta) * r_body_fixed

    Parameters
    ----------
    r_body_fixed : np.ndarray
        3-element vector in the body-fixed frame.
    time_s : float
        Elapsed time since the reference epoch (s).
    rotation_rate : float
        Body rotation rate (rad/s); Earth by default.

    Returns
    -------
    np.ndarray
        3-element vector in the inertial frame.
    """
    theta = rotation_rate * time_s
    return Rz(-theta) @ np.asarray(r_body_fixed, dtype=np.float64)


def inertial_to_body_fixed(r_inertial: np.ndarray, time_s: float,
                           rotation_rate: float = EARTH_ROTATION_RATE) -> np.ndarray:
    """Inverse of body_fixed_to_inertial: r_body_fixed = Rz(+theta) * r_inertial."""
    theta = rotation_rate * time_s
    return Rz(theta) @ np.asarray(r_inertial, dtype=np.float64)


# =============================================================================
# GEODETIC -> BODY-FIXED AND TOPOCENTRIC FRAME
# =============================================================================

def geodetic_to_body_fixed(lat_rad: float, lon_rad: float, alt_m: float,
                           equatorial_radius: float = EARTH_EQUATORIAL_RADIUS,
                           flattening: float = EARTH_FLATTENING) -> np.ndarray:
    """
    Convert geodetic coordinates to a body-fixed Cartesian position on an
    oblate ellipsoid (WGS84 for the Earth by default).

    Uses the prime vertical radius of curvature

        N = a / sqrt(1 - e^2 * sin^2(lat)),   e^2 = 2f - f^2

    and

        x = (N + h) * cos(lat) * cos(lon)
        y = (N + h) * cos(lat) * sin(lon)
        z = (N * (1 - e^2) + h) * sin(lat)

    Parameters
    ----------
    lat_rad, lon_rad : float
        Geodetic latitude and longitude (rad).
    alt_m : float
        Altitude above the ellipsoid (m).
    equatorial_radius : float
        Ellipsoid semi-major axis a (m).
    flattening : float
        Ellipsoid flattening f; 0 for a sphere.

    Returns
    -------
    np.ndarray
        3-element body-fixed position (m).
    """
    e2 = 2.0 * flattening - flattening * flattening

    sin_lat = np.sin(lat_rad)
    cos_lat = np.cos(lat_rad)

    N = equatorial_radius / np.sqrt(1.0 - e2 * sin_lat * sin_lat)

    return np.array([
        (N + alt_m) * cos_lat * np.cos(lon_rad),
        (N + alt_m) * cos_lat * np.sin(lon_rad),
        (N * (1.0 - e2) + alt_m) * sin_lat,
    ], dtype=np.float64)


def body_fixed_to_topocentric(lat_rad: float, lon_rad: float) -> np.ndarray:
    """
    Rotation matrix from body-fixed axes to the local East-North-Up frame of
    a site at geodetic (lat, lon).

    Rows of the returned matrix are the ENU unit vectors in body-fixed axes:

        east  = (-sin(lon),           cos(lon),           0       )
        north = (-sin(lat) cos(lon), -sin(lat) sin(lon),  cos(lat))
        up    = ( cos(lat) cos(lon),  cos(lat) sin(lon),  sin(lat))
    """
    sin_lat, cos_lat = np.sin(lat_rad), np.cos(lat_rad)
    sin_lon, cos_lon = np.sin(lon_rad), np.cos(lon_rad)

    return np.array([
        [-sin_lon,            cos_lon,            0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon,  cos_lat],
        [cos_lat * cos_lon,   cos_lat * sin_lon,  sin_lat],
    ], dtype=np.float64)
