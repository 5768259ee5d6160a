"""
Speed-colored polylines for route rendering.

ProgressPolyline incrementally builds the "traveled so far" line as replay
advances, coalescing consecutive segments of the same speed bucket into one
run. Forward playback only touches the newly completed segments; seeking
backward rebuilds from the route start.

build_route_polylines colors a whole stored route for static previews.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from constants import MPS_TO_KPH, ROUTE_SINGLE_POLYLINE_THRESHOLD
from geodesy import LatLng
from replay_engine import ReplayEngine
from simplify import position_of, simplify_for_zoom
from speed_colors import color_for_speed_kph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColoredPolylineSegment:
    """A contiguous run of route positions sharing one speed color."""
    points: Tuple[LatLng, ...]
    color_argb: int


class ProgressPolyline:
    """
    Incremental cache of the colored progress line for one replay session.

    Holds a back-reference to the engine's immutable route; the run list is
    private and only exposed as immutable snapshots.

    Args:
        engine: Replay engine providing the route and segment colors
    """

    def __init__(self, engine: ReplayEngine):
        self._engine = engine
        self._route = engine.full_route()
        self._closed: List[ColoredPolylineSegment] = []
        self._open_points: List[LatLng] = []
        self._open_color: Optional[int] = None
        self._cached_index = -1

    @property
    def cached_index(self) -> int:
        """Segment index the cache currently ends in, -1 when empty."""
        return self._cached_index

    def reset(self) -> None:
        """Drop all cached runs."""
        self._closed = []
        self._open_points = []
        self._open_color = None
        self._cached_index = -1

    def _append_segment(self, seg: int, seg_end: LatLng) -> None:
        color = self._engine.segment_color_argb(seg)
        seg_start = self._route[seg]

        if self._open_color is not None and self._open_color == color:
            if not self._open_points or self._open_points[-1] != seg_start:
                self._open_points.append(seg_start)
            self._open_points.append(seg_end)
            return

        if self._open_color is not None:
            self._closed.append(
                ColoredPolylineSegment(points=tuple(self._open_points), color_argb=self._open_color)
            )
        self._open_points = [seg_start, seg_end]
        self._open_color = color

    def _snapshot(self) -> Tuple[ColoredPolylineSegment, ...]:
        if self._open_color is None:
            return tuple(self._closed)
        live = ColoredPolylineSegment(points=tuple(self._open_points), color_argb=self._open_color)
        return tuple(self._closed) + (live,)

    def extend_to(self, segment_index: int, current_position: LatLng) -> Tuple[ColoredPolylineSegment, ...]:
        """
        Bring the cache up to a segment and end it at the live position.

        Args:
            segment_index: Segment the replay is currently in (clamped)
            current_position: Interpolated vehicle position in that segment

        Returns:
            Immutable snapshot of the colored runs, the last one ending at
            current_position
        """
        if len(self._route) < 2:
            return ()
        idx = max(0, min(segment_index, len(self._route) - 2))

        if self._cached_index >= 0 and idx < self._cached_index:
            logger.debug(f"Progress cache rebuilt after seek {self._cached_index} -> {idx}")
            self.reset()

        if self._cached_index < 0:
            for seg in range(0, idx + 1):
                seg_end = current_position if seg == idx else self._route[seg + 1]
                self._append_segment(seg, seg_end)
        elif idx == self._cached_index:
            self._open_points[-1] = current_position
        else:
            # The previously live segment is now complete
            self._open_points[-1] = self._route[self._cached_index + 1]
            for seg in range(self._cached_index + 1, idx + 1):
                seg_end = current_position if seg == idx else self._route[seg + 1]
                self._append_segment(seg, seg_end)

        self._cached_index = idx
        return self._snapshot()


def build_route_polylines(points: Sequence, zoom: float) -> List[ColoredPolylineSegment]:
    """
    Color a whole stored route for a static map preview.

    The route is simplified for the zoom level first. Each remaining segment
    gets its own color from the mean of its endpoint speeds; very dense
    routes collapse into a single polyline colored by the last point's speed.

    Args:
        points: Fixes or ReplayPoints ordered by time
        zoom: Map zoom level

    Returns:
        Colored polylines, empty for fewer than two points
    """
    if len(points) < 2:
        return []

    simplified = simplify_for_zoom(points, zoom)
    if len(simplified) < 2:
        return []

    def speed_of(p) -> float:
        speed = getattr(p, "speed_adjusted_mps", None)
        return speed if speed is not None else p.speed_mps_adjusted

    if len(simplified) > ROUTE_SINGLE_POLYLINE_THRESHOLD:
        return [ColoredPolylineSegment(
            points=tuple(position_of(p) for p in simplified),
            color_argb=color_for_speed_kph(speed_of(simplified[-1]) * MPS_TO_KPH),
        )]

    out = []
    for a, b in zip(simplified, simplified[1:]):
        speed_kph = (speed_of(a) + speed_of(b)) * 0.5 * MPS_TO_KPH
        out.append(ColoredPolylineSegment(
            points=(position_of(a), position_of(b)),
            color_argb=color_for_speed_kph(speed_kph),
        ))
    return out
