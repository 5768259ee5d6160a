"""
Path simplification for recorded trips.

Provides two complementary reducers plus a stride sampler used as a hard cap:
- Distance-gated pruning bounds point density in real-world space
- Douglas-Peucker removes points that do not contribute to the path shape
- Stride sampling guarantees an upper bound on the point count

Reducers accept any point type exposing either a ``position`` LatLng
(ReplayPoint, Fix) or ``latitude``/``longitude`` attributes (LatLng).
Outputs are ordered subsequences of the input that keep both endpoints.
"""

import logging
import math
from typing import List, Sequence, TypeVar

import numpy as np

from constants import (
    METERS_PER_PIXEL_AT_EQUATOR_Z0,
    MIN_MAP_ZOOM,
    MAX_MAP_ZOOM,
    ROUTE_PREVIEW_MAX_POINTS,
    ROUTE_PREVIEW_MIN_DISTANCE_M,
    ROUTE_PREVIEW_PIXELS_PER_POINT,
)
from geodesy import LatLng, haversine_distance_m, perpendicular_distance_m

logger = logging.getLogger(__name__)

P = TypeVar("P")


def position_of(point) -> LatLng:
    """Get the LatLng of a route point."""
    position = getattr(point, "position", None)
    if position is not None:
        return position
    return LatLng(point.latitude, point.longitude)


def stride_sample(points: Sequence[P], max_points: int) -> List[P]:
    """
    Uniformly sample a sequence down to max_points.

    Always keeps the first and last point. Interior indices are spread by a
    uniform stride over the input, rounded and clamped to [1, n-2].

    Args:
        points: Ordered points
        max_points: Hard cap on the output size (values below 2 act as 2)

    Returns:
        The input unchanged when already within the cap, else the sample
    """
    n = len(points)
    if n <= max(max_points, 2):
        return list(points)
    if max_points <= 2:
        return [points[0], points[-1]]

    step = (n - 1) / (max_points - 1)
    interior = np.rint(np.arange(1, max_points - 1) * step).astype(np.int64)
    interior = np.clip(interior, 1, n - 2)

    out = [points[0]]
    out.extend(points[int(i)] for i in interior)
    out.append(points[-1])
    return out


def simplify_by_distance(points: Sequence[P], min_distance_m: float, max_points: int) -> List[P]:
    """
    Drop interior points closer than min_distance_m to the last kept point.

    Args:
        points: Ordered points
        min_distance_m: Minimum spacing between kept points in meters
        max_points: Hard cap applied after pruning

    Returns:
        Pruned points, first and last always kept
    """
    if len(points) <= 2:
        return list(points)

    kept = [points[0]]
    last_kept = position_of(points[0])
    for p in points[1:-1]:
        pos = position_of(p)
        if haversine_distance_m(last_kept, pos) >= min_distance_m:
            kept.append(p)
            last_kept = pos
    kept.append(points[-1])

    logger.debug(f"Distance pruning ({min_distance_m:.1f}m): {len(points)} -> {len(kept)} points")
    return stride_sample(kept, max_points)


def simplify_rdp(points: Sequence[P], epsilon_m: float, max_points: int) -> List[P]:
    """
    Douglas-Peucker simplification with a tolerance in meters.

    Uses an explicit stack of [start, end] brackets so long near-collinear
    runs cannot exhaust the interpreter's recursion limit.

    Args:
        points: Ordered points
        epsilon_m: Tolerance in meters; <= 0 means no simplification
        max_points: Hard cap applied after simplification

    Returns:
        Simplified points, first and last always kept
    """
    if len(points) <= 2:
        return list(points)
    if epsilon_m <= 0.0:
        return list(points)

    positions = [position_of(p) for p in points]
    keep = [False] * len(points)
    keep[0] = True
    keep[-1] = True

    stack = [(0, len(points) - 1)]
    while stack:
        start, end = stack.pop()
        if end <= start + 1:
            continue

        a = positions[start]
        b = positions[end]
        max_dist = -1.0
        max_idx = -1
        for i in range(start + 1, end):
            d = perpendicular_distance_m(positions[i], a, b)
            if d > max_dist:
                max_dist = d
                max_idx = i

        if max_dist > epsilon_m and max_idx >= 0:
            keep[max_idx] = True
            stack.append((start, max_idx))
            stack.append((max_idx, end))

    out = [p for p, k in zip(points, keep) if k]
    logger.debug(f"Douglas-Peucker ({epsilon_m:.1f}m): {len(points)} -> {len(out)} points")
    return stride_sample(out, max_points)


def meters_per_pixel(latitude: float, zoom: float) -> float:
    """Web-mercator ground resolution at a latitude and zoom level."""
    z = max(MIN_MAP_ZOOM, min(MAX_MAP_ZOOM, zoom))
    return METERS_PER_PIXEL_AT_EQUATOR_Z0 * math.cos(math.radians(latitude)) / (2.0 ** z)


def min_distance_for_zoom(latitude: float, zoom: float) -> float:
    """Distance gate (meters) that keeps roughly one point per few screen pixels."""
    return max(meters_per_pixel(latitude, zoom) * ROUTE_PREVIEW_PIXELS_PER_POINT,
               ROUTE_PREVIEW_MIN_DISTANCE_M)


def simplify_for_zoom(points: Sequence[P], zoom: float,
                      max_points: int = ROUTE_PREVIEW_MAX_POINTS) -> List[P]:
    """
    Simplify a whole route for a static map preview at the given zoom.

    The distance gate is derived from the ground resolution at the first
    point's latitude.
    """
    if len(points) <= 2:
        return list(points)
    latitude = position_of(points[0]).latitude
    return simplify_by_distance(points, min_distance_for_zoom(latitude, zoom), max_points)
