"""
===============================================================================
LOW-THRUST SHAPING - Ground Station Geometry
===============================================================================
Station on the surface of a rotating body, used to check whether a
spacecraft on a shaped transfer can be tracked.

    1. **Station state** -- geodetic coordinates on an oblate ellipsoid,
       converted to a body-fixed position; inertial state at any epoch from
       the uniform rotation of the body about +z (body-fixed and inertial
       frames coincide at t = 0).

    2. **Pointing angles** -- azimuth (from north, towards east) and
       elevation (above the local horizon) of a target, from its position
       relative to the station expressed in the inertial frame.

    3. **Visibility** -- a target is in view when its elevation is at least
       a minimum elevation mask; the line-of-sight test checks that the
       straight path does not cross the body.

Angles are in radians.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from core.constants import (
    DEG2RAD,
    EARTH_EQUATORIAL_RADIUS,
    EARTH_FLATTENING,
    EARTH_ROTATION_RATE,
    TWO_PI,
)
from core.frames import (
    body_fixed_to_inertial,
    body_fixed_to_topocentric,
    geodetic_to_body_fixed,
    inertial_to_body_fixed,
)

logger = logging.getLogger(__name__)


# =============================================================================
# STATION STATE
# =============================================================================

@dataclass(frozen=True)
class GroundStationState:
    """
    Nominal position of a station fixed to a rotating body.

    Attributes:
        latitude:          Geodetic latitude (rad).
        longitude:         Longitude (rad).
        altitude:          Height above the ellipsoid (m).
        equatorial_radius: Body equatorial radius (m).
        flattening:        Ellipsoid flattening.
        rotation_rate:     Body rotation rate about +z (rad/s).
    """
    latitude: float
    longitude: float
    altitude: float = 0.0
    equatorial_radius: float = EARTH_EQUATORIAL_RADIUS
    flattening: float = EARTH_FLATTENING
    rotation_rate: float = EARTH_ROTATION_RATE

    def __post_init__(self):
        if not -np.pi / 2 <= self.latitude <= np.pi / 2:
            raise ValueError(f"Latitude must lie in [-pi/2, pi/2], got {self.latitude}")

    @property
    def body_fixed_position(self) -> np.ndarray:
        return geodetic_to_body_fixed(self.latitude, self.longitude, self.altitude,
                                      self.equatorial_radius, self.flattening)

    def get_body_fixed_state(self, time_s: float = 0.0) -> np.ndarray:
        """Body-fixed state [m, m/s]; the station does not move in this frame."""
        return np.concatenate([self.body_fixed_position, np.zeros(3)])

    def get_inertial_state(self, time_s: float) -> np.ndarray:
        """
        Inertial state [m, m/s] at *time_s* seconds after the reference epoch.

        Velocity is omega x r with omega = rotation_rate * z.
        """
        position = body_fixed_to_inertial(self.body_fixed_position, time_s, self.rotation_rate)
        omega = np.array([0.0, 0.0, self.rotation_rate])
        return np.concatenate([position, np.cross(omega, position)])


# =============================================================================
# POINTING ANGLES
# =============================================================================

class PointingAnglesCalculator:
    """
    Azimuth / elevation of a target as seen from a station.

    Args:
        station_state: GroundStationState supplying the site and rotation.
    """

    def __init__(self, station_state: GroundStationState) -> None:
        self.station_state = station_state
        self._topocentric = body_fixed_to_topocentric(station_state.latitude,
                                                      station_state.longitude)

    def to_topocentric(self, relative_position: np.ndarray, time_s: float) -> np.ndarray:
        """Rotate an inertial station-to-target vector into East-North-Up axes."""
        body_fixed = inertial_to_body_fixed(relative_position, time_s,
                                            self.station_state.rotation_rate)
        return self._topocentric @ body_fixed

    def calculate_elevation_angle(self, relative_position: np.ndarray, time_s: float) -> float:
        enu = self.to_topocentric(relative_position, time_s)
        norm = np.linalg.norm(enu)
        if norm == 0.0:
            raise ValueError("Target coincides with the station; pointing angles undefined")
        return float(np.arcsin(np.clip(enu[2] / norm, -1.0, 1.0)))

    def calculate_azimuth_angle(self, relative_position: np.ndarray, time_s: float) -> float:
        """Azimuth from north towards east, in [0, 2 pi)."""
        enu = self.to_topocentric(relative_position, time_s)
        azimuth = np.arctan2(enu[0], enu[1])
        return float(azimuth + TWO_PI if azimuth < 0.0 else azimuth)

    def calculate_pointing_angles(self, relative_position: np.ndarray,
                                  time_s: float) -> Tuple[float, float]:
        """(azimuth, elevation) of the target at *time_s*."""
        return (self.calculate_azimuth_angle(relative_position, time_s),
                self.calculate_elevation_angle(relative_position, time_s))


# =============================================================================
# STATION
# =============================================================================

class GroundStation:
    """
    Named station: nominal state plus its pointing-angle calculator.
    """

    def __init__(self, station_state: GroundStationState,
                 pointing_angles_calculator: PointingAnglesCalculator,
                 station_id: str) -> None:
        self.station_state = station_state
        self.pointing_angles_calculator = pointing_angles_calculator
        self.station_id = station_id

    @classmethod
    def from_geodetic(cls, station_id: str, latitude_deg: float, longitude_deg: float,
                      altitude_m: float = 0.0, **body) -> 'GroundStation':
        """
        Build a station from geodetic coordinates in degrees.

        Extra keyword arguments (equatorial_radius, flattening, rotation_rate)
        describe the body; the Earth is used by default.
        """
        state = GroundStationState(latitude_deg * DEG2RAD, longitude_deg * DEG2RAD,
                                   altitude_m, **body)
        logger.debug("Ground station %s at lat %.4f deg, lon %.4f deg",
                     station_id, latitude_deg, longitude_deg)
        return cls(state, PointingAnglesCalculator(state), station_id)

    def get_state_in_body_fixed_frame(self, time_s: float) -> np.ndarray:
        return self.station_state.get_body_fixed_state(time_s)

    def get_state_in_inertial_frame(self, time_s: float) -> np.ndarray:
        return self.station_state.get_inertial_state(time_s)

    def relative_position(self, target_position: np.ndarray, time_s: float) -> np.ndarray:
        """Inertial vector from the station to a target given in body-centred inertial axes."""
        return (np.asarray(target_position, dtype=np.float64)
                - self.get_state_in_inertial_frame(time_s)[0:3])

    def __repr__(self) -> str:
        return (f"GroundStation({self.station_id!r}, "
                f"lat={np.degrees(self.station_state.latitude):.4f} deg, "
                f"lon={np.degrees(self.station_state.longitude):.4f} deg)")


# =============================================================================
# VISIBILITY
# =============================================================================

def is_target_in_view(time_s: float, target_relative_position: np.ndarray,
                      pointing_angles_calculator: PointingAnglesCalculator,
                      minimum_elevation_angle: float) -> bool:
    """
    True when the target is at or above the elevation mask.

    Args:
        time_s:                   Epoch (s after reference).
        target_relative_position: Station-to-target vector, inertial axes (m).
        pointing_angles_calculator: Calculator of the observing station.
        minimum_elevation_angle:  Elevation mask (rad).
    """
    elevation = pointing_angles_calculator.calculate_elevation_angle(
        target_relative_position, time_s)
    return elevation >= minimum_elevation_angle


def has_line_of_sight(station_position: np.ndarray, target_position: np.ndarray,
                      body_radius: float) -> bool:
    """
    True when the segment from the station to the target clears a spherical
    body of radius *body_radius* centred at the origin.

    The point of the segment P(t) = S + t (G - S), t in [0, 1], closest to the
    centre is at t* = -(S . d) / |d|^2.  When t* falls outside (0, 1) the
    segment only recedes from the centre, so the endpoints (a station on the
    surface included) do not block the view.
    """
    start = np.asarray(station_position, dtype=np.float64)
    direction = np.asarray(target_position, dtype=np.float64) - start

    d_dot_d = np.dot(direction, direction)
    if d_dot_d < 1e-20:
        return True

    t_closest = -np.dot(start, direction) / d_dot_d
    if t_closest <= 0.0 or t_closest >= 1.0:
        return True
    closest_point = start + t_closest * direction
    return bool(np.linalg.norm(closest_point) > body_radius)
