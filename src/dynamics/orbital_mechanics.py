"""
===============================================================================
LOW-THRUST SHAPING - Two-Body Orbital Mechanics
===============================================================================
Keplerian reference quantities used around the shaping engine:

    1. **Force model** -- central two-body gravity, the only natural
       acceleration acting on a shaped transfer.

    2. **Orbit geometry** -- circular velocity and circular states for
       building departure / arrival conditions.

    3. **Impulsive reference** -- the Hohmann transfer, whose total delta-V
       is the usual yardstick for a low-thrust transfer between the same
       radii.

All vectors are in SI units (m, m/s, s) in an inertial frame centred on the
attracting body.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.

===============================================================================
"""

from typing import Tuple

import numpy as np

from core.constants import PI


class OrbitalMechanics:
    """
    Stateless collection of two-body formulas.

    Every method is a staticmethod taking mu explicitly, so the same class
    serves heliocentric transfers and planet-centred ground-station work.
    """

    # =====================================================================
    # FORCE MODEL
    # =====================================================================

    @staticmethod
    def two_body_acceleration(pos: np.ndarray, mu: float) -> np.ndarray:
        """
        Central gravitational acceleration

            a = -mu / |r|^3 * r

        Parameters
        ----------
        pos : np.ndarray
            3-element position vector (m) from the central body.
        mu : float
            Gravitational parameter of the central body (m^3/s^2).

        Returns
        -------
        np.ndarray
            3-element acceleration vector (m/s^2).

        Raises
        ------
        ValueError
            If the position is at the centre of the body.
        """
        r = np.asarray(pos, dtype=np.float64)
        r_mag = np.linalg.norm(r)
        if r_mag <= 0.0:
            raise ValueError("Two-body acceleration is undefined at r = 0")
        return -mu / (r_mag ** 3) * r

    # =====================================================================
    # ORBIT GEOMETRY
    # =====================================================================

    @staticmethod
    def circular_velocity(r: float, mu: float) -> float:
        """Speed on a circular orbit of radius r: v = sqrt(mu / r)."""
        return float(np.sqrt(mu / r))

    @staticmethod
    def circular_state(radius: float, azimuth: float, inclination: float,
                       mu: float) -> np.ndarray:
        """
        Cartesian state on a prograde circular orbit.

        The orbit's ascending node lies on +x; *azimuth* is the argument of
        latitude measured from that node.

            r = R [cos u, sin u cos i, sin u sin i]
            v = sqrt(mu/R) [-sin u, cos u cos i, cos u sin i]

        Parameters
        ----------
        radius : float
            Orbit radius (m).
        azimuth : float
            Argument of latitude u (rad).
        inclination : float
            Inclination i of the orbit plane (rad).
        mu : float
            Gravitational parameter (m^3/s^2).

        Returns
        -------
        np.ndarray
            6-element state [x, y, z, vx, vy, vz].
        """
        if radius <= 0.0:
            raise ValueError(f"Orbit radius must be positive, got {radius}")
        speed = OrbitalMechanics.circular_velocity(radius, mu)
        cos_u, sin_u = np.cos(azimuth), np.sin(azimuth)
        cos_i, sin_i = np.cos(inclination), np.sin(inclination)

        position = radius * np.array([cos_u, sin_u * cos_i, sin_u * sin_i])
        velocity = speed * np.array([-sin_u, cos_u * cos_i, cos_u * sin_i])
        return np.concatenate([position, velocity])

    # =====================================================================
    # IMPULSIVE REFERENCE
    # =====================================================================

    @staticmethod
    def hohmann_transfer(r1: float, r2: float, mu: float) -> Tuple[float, float, float]:
        """
        Hohmann transfer between two circular coplanar orbits.

            a_t  = (r1 + r2) / 2
            dv1  = |sqrt(mu (2/r1 - 1/a_t)) - sqrt(mu/r1)|
            dv2  = |sqrt(mu/r2) - sqrt(mu (2/r2 - 1/a_t))|
            tof  = pi sqrt(a_t^3 / mu)

        Parameters
        ----------
        r1, r2 : float
            Initial and final orbit radii (m).
        mu : float
            Gravitational parameter (m^3/s^2).

        Returns
        -------
        delta_v1, delta_v2 : float
            Impulse magnitudes (m/s).
        tof : float
            Transfer time (s).
        """
        a_t = (r1 + r2) / 2.0

        v_transfer_1 = np.sqrt(mu * (2.0 / r1 - 1.0 / a_t))
        v_transfer_2 = np.sqrt(mu * (2.0 / r2 - 1.0 / a_t))

        delta_v1 = abs(v_transfer_1 - np.sqrt(mu / r1))
        delta_v2 = abs(np.sqrt(mu / r2) - v_transfer_2)

        tof = PI * np.sqrt(a_t ** 3 / mu)

        return float(delta_v1), float(delta_v2), float(tof)
