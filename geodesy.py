"""
Geodesy primitives for trip geometry.

Great-circle distance, initial bearing, spherical interpolation and a local
planar point-to-segment distance. All functions are pure.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from constants import (
    EARTH_RADIUS_M,
    SPHERICAL_INTERP_MIN_ANGLE_RAD,
    DEGENERATE_SEGMENT_LEN2,
)


@dataclass(frozen=True)
class LatLng:
    """A WGS84 position in decimal degrees."""
    latitude: float
    longitude: float


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation between a and b, exact at t=0 and t=1."""
    return a * (1.0 - t) + b * t


def _angular_distance_rad(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Central angle between two points given in radians."""
    sin_dlat = math.sin((lat2 - lat1) / 2.0)
    sin_dlon = math.sin((lon2 - lon1) / 2.0)
    x = sin_dlat * sin_dlat + math.cos(lat1) * math.cos(lat2) * sin_dlon * sin_dlon
    return 2.0 * math.atan2(math.sqrt(x), math.sqrt(1.0 - x))


def haversine_distance_m(a: LatLng, b: LatLng) -> float:
    """
    Great-circle distance between two positions.

    Args:
        a: First position
        b: Second position

    Returns:
        Distance in meters (0.0 for coincident points, never negative)
    """
    angle = _angular_distance_rad(
        math.radians(a.latitude), math.radians(a.longitude),
        math.radians(b.latitude), math.radians(b.longitude),
    )
    return EARTH_RADIUS_M * angle


def haversine_distances_m(latitudes: Sequence[float], longitudes: Sequence[float]) -> np.ndarray:
    """
    Vectorized haversine distance between consecutive points of a path.

    Args:
        latitudes: Path latitudes in degrees
        longitudes: Path longitudes in degrees (same length)

    Returns:
        Array of len(latitudes) - 1 segment lengths in meters
    """
    lat = np.radians(np.asarray(latitudes, dtype=np.float64))
    lon = np.radians(np.asarray(longitudes, dtype=np.float64))
    if lat.size < 2:
        return np.zeros(0, dtype=np.float64)

    lat1, lat2 = lat[:-1], lat[1:]
    sin_dlat = np.sin((lat2 - lat1) / 2.0)
    sin_dlon = np.sin((lon[1:] - lon[:-1]) / 2.0)
    x = sin_dlat * sin_dlat + np.cos(lat1) * np.cos(lat2) * sin_dlon * sin_dlon
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(x), np.sqrt(1.0 - x))


def initial_bearing_deg(a: LatLng, b: LatLng) -> float:
    """
    Forward azimuth from a to b.

    The result for a == b is defined but meaningless; callers keep the
    previous bearing for zero-length segments instead.

    Returns:
        Bearing in degrees in [0, 360), 0 = north, 90 = east
    """
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    deg = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to 360.0
    return 0.0 if deg >= 360.0 else deg


def spherical_interpolate(a: LatLng, b: LatLng, t: float) -> LatLng:
    """
    Great-circle interpolation between two positions.

    Falls back to independent linear interpolation of latitude and longitude
    when the points are too close for the slerp weights to be stable.

    Args:
        a: Start position (returned for t <= 0)
        b: End position (returned for t >= 1)
        t: Fraction along the arc in [0, 1]

    Returns:
        Interpolated position
    """
    if t <= 0.0:
        return a
    if t >= 1.0:
        return b

    lat1 = math.radians(a.latitude)
    lon1 = math.radians(a.longitude)
    lat2 = math.radians(b.latitude)
    lon2 = math.radians(b.longitude)

    d = _angular_distance_rad(lat1, lon1, lat2, lon2)
    if d < SPHERICAL_INTERP_MIN_ANGLE_RAD:
        return LatLng(lerp(a.latitude, b.latitude, t), lerp(a.longitude, b.longitude, t))

    sin_d = math.sin(d)
    wa = math.sin((1.0 - t) * d) / sin_d
    wb = math.sin(t * d) / sin_d

    x = wa * math.cos(lat1) * math.cos(lon1) + wb * math.cos(lat2) * math.cos(lon2)
    y = wa * math.cos(lat1) * math.sin(lon1) + wb * math.cos(lat2) * math.sin(lon2)
    z = wa * math.sin(lat1) + wb * math.sin(lat2)

    lat = math.atan2(z, math.sqrt(x * x + y * y))
    lon = math.atan2(y, x)
    return LatLng(math.degrees(lat), math.degrees(lon))


def perpendicular_distance_m(p: LatLng, a: LatLng, b: LatLng) -> float:
    """
    Approximate distance from p to the segment a-b.

    Projects all three points onto an equirectangular plane centered at p's
    latitude, then measures the planar distance to the closest point of the
    segment (not the infinite line).

    Returns:
        Distance in meters
    """
    cos_lat0 = math.cos(math.radians(p.latitude))

    def to_xy(ll: LatLng):
        return (
            math.radians(ll.longitude) * cos_lat0 * EARTH_RADIUS_M,
            math.radians(ll.latitude) * EARTH_RADIUS_M,
        )

    px, py = to_xy(p)
    ax, ay = to_xy(a)
    bx, by = to_xy(b)

    abx = bx - ax
    aby = by - ay
    ab_len2 = abx * abx + aby * aby
    if ab_len2 <= DEGENERATE_SEGMENT_LEN2:
        return math.hypot(px - ax, py - ay)

    t = ((px - ax) * abx + (py - ay) * aby) / ab_len2
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (ax + t * abx), py - (ay + t * aby))
