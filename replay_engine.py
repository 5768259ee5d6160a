"""
Time-based replay engine for recorded trips.

Owns a simplified, time-sorted point sequence and answers "where was the
vehicle at trip time t" with interpolated position, speed, bearing and
distance traveled.

Key behaviors:
- Trip time is milliseconds since the first point and is clamped to the route
- Position is interpolated along the great circle, speed linearly
- Bearing is constant across a segment (point-to-point heading)
- Zero-length segments keep the bearing of the neighbouring segment
"""

import bisect
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from constants import (
    MPS_TO_KPH,
    SPEED_SAMPLE_COUNT,
    SPEED_SAMPLE_MIN,
    SPEED_SAMPLE_MAX,
)
from geodesy import (
    LatLng,
    haversine_distances_m,
    initial_bearing_deg,
    lerp,
    spherical_interpolate,
)
from speed_colors import color_for_speed_kph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplayPoint:
    """A route point used for replay: time, position and adjusted speed."""
    timestamp_epoch_ms: int
    position: LatLng
    speed_mps_adjusted: float

    @classmethod
    def from_fix(cls, fix) -> "ReplayPoint":
        """Project a stored Fix onto a ReplayPoint."""
        return cls(
            timestamp_epoch_ms=fix.timestamp_epoch_ms,
            position=LatLng(fix.latitude, fix.longitude),
            speed_mps_adjusted=fix.speed_adjusted_mps,
        )


@dataclass(frozen=True)
class ReplayFrame:
    """Interpolated vehicle state at one trip time.

    Attributes:
        trip_time_ms: Clamped trip time the frame was computed for
        position: Interpolated position
        speed_mps_adjusted: Interpolated adjusted speed
        bearing_degrees: Heading of the current segment in [0, 360)
        distance_traveled_meters: Route distance from the start to position
        segment_index: Index i of the segment points[i] -> points[i + 1]
    """
    trip_time_ms: int
    position: LatLng
    speed_mps_adjusted: float
    bearing_degrees: float
    distance_traveled_meters: float
    segment_index: int


class ReplayEngine:
    """
    Interpolating query engine over an immutable, time-sorted route.

    Args:
        points: At least two ReplayPoints sorted by timestamp ascending

    Raises:
        ValueError: If fewer than two points are given or they are not sorted
    """

    def __init__(self, points: Sequence[ReplayPoint]):
        if len(points) < 2:
            raise ValueError(f"Replay needs at least 2 points, got {len(points)}")

        self._points: Tuple[ReplayPoint, ...] = tuple(points)
        self._timestamps: List[int] = [p.timestamp_epoch_ms for p in self._points]
        if any(b < a for a, b in zip(self._timestamps, self._timestamps[1:])):
            raise ValueError("Replay points must be sorted by timestamp")

        self._start_epoch_ms = self._timestamps[0]
        self.duration_ms: int = max(self._timestamps[-1] - self._start_epoch_ms, 0)

        self._segment_lengths = haversine_distances_m(
            [p.position.latitude for p in self._points],
            [p.position.longitude for p in self._points],
        )
        self._cum_dist = np.concatenate(([0.0], np.cumsum(self._segment_lengths)))
        self._segment_bearings = self._build_segment_bearings()

        logger.debug(
            f"Replay engine: {len(self._points)} points, {self.duration_ms}ms, "
            f"{self.total_distance_m:.1f}m"
        )

    @classmethod
    def from_fixes(cls, fixes: Sequence) -> "ReplayEngine":
        """
        Build an engine directly from stored fixes (no simplification).

        Fixes are sorted by timestamp first.
        """
        ordered = sorted(fixes, key=lambda f: f.timestamp_epoch_ms)
        return cls([ReplayPoint.from_fix(f) for f in ordered])

    def _build_segment_bearings(self) -> List[float]:
        """Per-segment bearing; degenerate segments inherit a neighbour's."""
        bearings: List[float] = []
        previous = None
        for i, length in enumerate(self._segment_lengths):
            if length > 0.0:
                previous = initial_bearing_deg(self._points[i].position, self._points[i + 1].position)
            bearings.append(previous)

        # Leading degenerate segments take the first real bearing
        first_real = next((b for b in bearings if b is not None), 0.0)
        return [first_real if b is None else b for b in bearings]

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[ReplayPoint, ...]:
        return self._points

    @property
    def cumulative_distances(self) -> np.ndarray:
        """Cumulative route distance at each point (copy, meters)."""
        return self._cum_dist.copy()

    @property
    def total_distance_m(self) -> float:
        return float(self._cum_dist[-1])

    def clamp_trip_time_ms(self, trip_time_ms: int) -> int:
        """Clamp a trip time into [0, duration_ms]."""
        return max(0, min(int(trip_time_ms), self.duration_ms))

    def _segment_index_for_epoch(self, target_epoch_ms: int) -> int:
        """Index i such that ts[i] <= target <= ts[i + 1]."""
        last_segment = len(self._points) - 2
        if target_epoch_ms <= self._timestamps[0]:
            return 0
        if target_epoch_ms >= self._timestamps[-1]:
            return last_segment
        i = bisect.bisect_right(self._timestamps, target_epoch_ms) - 1
        return max(0, min(i, last_segment))

    def frame_at(self, trip_time_ms: int) -> ReplayFrame:
        """
        Compute the interpolated frame at a trip time.

        Args:
            trip_time_ms: Milliseconds since route start (clamped)

        Returns:
            ReplayFrame for the clamped time
        """
        t = self.clamp_trip_time_ms(trip_time_ms)
        target = self._start_epoch_ms + t

        i = self._segment_index_for_epoch(target)
        a = self._points[i]
        b = self._points[i + 1]

        seg_dt = max(b.timestamp_epoch_ms - a.timestamp_epoch_ms, 1)
        frac = (target - a.timestamp_epoch_ms) / seg_dt
        frac = max(0.0, min(1.0, frac))

        return ReplayFrame(
            trip_time_ms=t,
            position=spherical_interpolate(a.position, b.position, frac),
            speed_mps_adjusted=lerp(a.speed_mps_adjusted, b.speed_mps_adjusted, frac),
            bearing_degrees=self._segment_bearings[i],
            distance_traveled_meters=float(self._cum_dist[i] + self._segment_lengths[i] * frac),
            segment_index=i,
        )

    def full_route(self) -> List[LatLng]:
        """The whole simplified route for static rendering."""
        return [p.position for p in self._points]

    def progress_route(self, frame: ReplayFrame) -> List[LatLng]:
        """The traveled-so-far line: points[0..segment_index] plus the frame position."""
        base_count = min(frame.segment_index + 1, len(self._points))
        out = [p.position for p in self._points[:base_count]]
        out.append(frame.position)
        return out

    def segment_color_argb(self, segment_index: int) -> int:
        """
        Color of a segment by the mean of its endpoint speeds.

        Args:
            segment_index: Segment index (clamped into range)

        Returns:
            ARGB color of the segment's speed bucket
        """
        i = max(0, min(segment_index, len(self._points) - 2))
        a = self._points[i]
        b = self._points[i + 1]
        speed_kph = (a.speed_mps_adjusted + b.speed_mps_adjusted) * 0.5 * MPS_TO_KPH
        return color_for_speed_kph(speed_kph)

    def speed_samples_kph(self, sample_count: int = SPEED_SAMPLE_COUNT) -> List[float]:
        """
        Evenly spaced speed samples over the trip for a speed chart.

        Args:
            sample_count: Number of samples, clamped to [20, 400]

        Returns:
            Speeds in km/h, floored at 0
        """
        n = max(SPEED_SAMPLE_MIN, min(sample_count, SPEED_SAMPLE_MAX))
        duration = max(self.duration_ms, 1)
        times = (np.arange(n) / (n - 1) * duration).astype(np.int64)
        return [max(self.frame_at(int(t)).speed_mps_adjusted * MPS_TO_KPH, 0.0) for t in times]
