from __future__ import annotations

from typing import Sequence, Tuple
import math
import numpy as np


# --- WGS84 constants ---
_WGS84_A = 6378137.0              # semi-major axis (m)
_WGS84_F = 1.0 / 298.257223563    # flattening
_WGS84_E2 = _WGS84_F * (2.0 - _WGS84_F)  # first eccentricity squared


# -------------------------
# LLA <-> ECEF <-> ENU
# -------------------------
def lla_to_ecef(lat: float, lon: float, alt_m: float) -> np.ndarray:
    """WGS84 geodetic to ECEF (x,y,z) meters."""
    phi = math.radians(lat)
    lam = math.radians(lon)
    sinp = math.sin(phi)
    cosp = math.cos(phi)
    N = _WGS84_A / math.sqrt(1.0 - _WGS84_E2 * sinp * sinp)
    x = (N + alt_m) * cosp * math.cos(lam)
    y = (N + alt_m) * cosp * math.sin(lam)
    z = (N * (1.0 - _WGS84_E2) + alt_m) * sinp
    return np.array([x, y, z], dtype=float)


def enu_rotation(ref_lat_deg: float, ref_lon_deg: float) -> np.ndarray:
    """
    Rotation matrix R_e2enu that maps ECEF vectors into local ENU at ref (lat, lon).
    """
    lat = math.radians(ref_lat_deg)
    lon = math.radians(ref_lon_deg)
    sL, cL = math.sin(lat), math.cos(lat)
    sO, cO = math.sin(lon), math.cos(lon)
    return np.array(
        [
            [-sO, cO, 0],
            [-sL * cO, -sL * sO, cL],
            [cL * cO, cL * sO, sL],
        ],
        dtype=float,
    )


class LocalPlane:
    """
    Ground plane tangent to the WGS84 ellipsoid at a fixed origin.

    Points are projected at zero altitude so that altitude only enters the
    geometry through the explicit camera height.
    """

    def __init__(self, ref_lat: float, ref_lng: float) -> None:
        self.ref_lla = (float(ref_lat), float(ref_lng), 0.0)
        self._R = enu_rotation(ref_lat, ref_lng)
        self._x0 = lla_to_ecef(*self.ref_lla)

    def to_xy(self, lat: float, lng: float) -> Tuple[float, float]:
        """(east, north) meters of a geodetic point."""
        enu = self._R @ (lla_to_ecef(lat, lng, 0.0) - self._x0)
        return float(enu[0]), float(enu[1])

    def project(self, points: Sequence[Tuple[float, float]]) -> np.ndarray:
        """Project (lat, lng) pairs into an (N, 2) array of (east, north)."""
        return np.array([self.to_xy(lat, lng) for lat, lng in points], dtype=float).reshape(-1, 2)


def ring_area_m2(points: Sequence[Tuple[float, float]], plane: LocalPlane) -> float:
    """Shoelace area (m^2) of a (lat, lng) ring after projecting onto `plane`."""
    xy = plane.project(points)
    if len(xy) < 3:
        return 0.0
    x, y = xy[:, 0], xy[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))
