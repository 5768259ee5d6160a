"""
Live trip tracking.

TrackingSession consumes GPS fixes as they arrive during an active trip,
persists them and maintains a running TrackingState (distance, moving time,
max speed). compute_trip_stats is the batch form of the same accumulation,
used for trip history; both give identical results for the same fixes.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

from constants import MOVING_THRESHOLD_MPS, MPS_TO_KPH
from geodesy import LatLng, haversine_distance_m, initial_bearing_deg
from settings import SettingsStore, TrackingConfig
from trip_store import Fix, TripStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingState:
    """Snapshot of an in-progress trip. Replaced, never mutated."""
    is_tracking: bool = False
    trip_id: Optional[int] = None
    last_timestamp_epoch_ms: Optional[int] = None
    last_latitude: Optional[float] = None
    last_longitude: Optional[float] = None
    speed_mps_raw: float = 0.0
    speed_mps_adjusted: float = 0.0
    max_speed_mps_adjusted: float = 0.0
    distance_meters: float = 0.0
    moving_time_ms: int = 0

    @property
    def last_position(self) -> Optional[LatLng]:
        if self.last_latitude is None or self.last_longitude is None:
            return None
        return LatLng(self.last_latitude, self.last_longitude)


@dataclass(frozen=True)
class TripStats:
    """Aggregate statistics of a trip."""
    distance_meters: float = 0.0
    moving_time_ms: int = 0
    max_speed_mps_adjusted: float = 0.0

    @property
    def max_speed_kph(self) -> float:
        return self.max_speed_mps_adjusted * MPS_TO_KPH

    def summary(self) -> str:
        """One-line summary, e.g. '12.34 km | 25:07 | max 88.2 km/h'."""
        seconds = self.moving_time_ms // 1000
        return (
            f"{self.distance_meters / 1000.0:.2f} km | "
            f"{seconds // 60:02d}:{seconds % 60:02d} | "
            f"max {self.max_speed_kph:.1f} km/h"
        )


def _is_finite(position: LatLng) -> bool:
    return math.isfinite(position.latitude) and math.isfinite(position.longitude)


def _distance_delta_m(a: LatLng, b: LatLng) -> float:
    """Distance between consecutive fixes; 0 when either position is not finite."""
    if not (_is_finite(a) and _is_finite(b)):
        return 0.0
    return haversine_distance_m(a, b)


def _moving_delta_ms(
    prev_timestamp_ms: int,
    prev_speed_mps: float,
    timestamp_ms: int,
    speed_mps: float,
    moving_threshold_mps: float,
) -> int:
    """Elapsed time of one interval if its average speed counts as moving."""
    elapsed = max(timestamp_ms - prev_timestamp_ms, 0)
    if (prev_speed_mps + speed_mps) * 0.5 >= moving_threshold_mps:
        return elapsed
    return 0


def compute_trip_stats(
    fixes: Sequence[Fix],
    moving_threshold_mps: float = MOVING_THRESHOLD_MPS,
) -> TripStats:
    """
    Batch trip statistics over stored fixes.

    Args:
        fixes: Fixes of one trip ordered by timestamp
        moving_threshold_mps: Average interval speed that counts as moving

    Returns:
        TripStats with total distance, moving time and max adjusted speed
    """
    if not fixes:
        return TripStats()

    distance = 0.0
    moving = 0
    max_speed = max(fixes[0].speed_adjusted_mps, 0.0)

    for a, b in zip(fixes, fixes[1:]):
        distance += _distance_delta_m(a.position, b.position)
        moving += _moving_delta_ms(
            a.timestamp_epoch_ms, a.speed_adjusted_mps,
            b.timestamp_epoch_ms, b.speed_adjusted_mps,
            moving_threshold_mps,
        )
        max_speed = max(max_speed, b.speed_adjusted_mps)

    return TripStats(distance_meters=distance, moving_time_ms=moving, max_speed_mps_adjusted=max_speed)


def live_bearing(
    previous: Optional[Fix],
    last: Optional[Fix],
    current_bearing: float,
    min_speed_mps: float,
) -> float:
    """
    Bearing for a live, heading-up map.

    Uses the heading from the previous to the last fix while the last fix is
    moving at least min_speed_mps; otherwise keeps current_bearing so GPS
    jitter while stopped does not spin the map.
    """
    if previous is None or last is None:
        return current_bearing
    if last.speed_adjusted_mps < min_speed_mps:
        return current_bearing
    if previous.position == last.position:
        return current_bearing
    if not (_is_finite(previous.position) and _is_finite(last.position)):
        return current_bearing
    return initial_bearing_deg(previous.position, last.position)


class TrackingSession:
    """
    Accumulates fixes for at most one active trip.

    Start, stop and fix handling are serialized; a fix arriving when no trip
    is active is ignored.

    Args:
        store: Where trips and fixes are persisted
        settings: Source of the persisted speed offset
        config: Tracking thresholds
        clock: Returns the current time in epoch seconds (defaults to time.time)
    """

    def __init__(
        self,
        store: TripStore,
        settings: SettingsStore,
        config: Optional[TrackingConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self.config = config or TrackingConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._current_trip_id: Optional[int] = None
        self._state = TrackingState()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def state(self) -> TrackingState:
        """Current tracking snapshot."""
        return self._state

    @property
    def current_trip_id(self) -> Optional[int]:
        return self._current_trip_id

    def set_speed_offset_kph(self, value: float) -> None:
        """Persist a new speed offset; applies to subsequent fixes."""
        self.settings.set_speed_offset_kph(value)

    def start_trip(self) -> int:
        """
        Start a new trip.

        Returns:
            The new trip id, or the active trip's id if one is running
        """
        with self._lock:
            if self._current_trip_id is not None:
                logger.debug(f"Trip {self._current_trip_id} already active")
                return self._current_trip_id
            trip_id = self.store.create_trip(started_at_epoch_ms=self._now_ms())
            self._current_trip_id = trip_id
            self._state = TrackingState(is_tracking=True, trip_id=trip_id)
        logger.info(f"Started trip {trip_id}")
        return trip_id

    def stop_trip(self) -> None:
        """Stop the active trip. No-op when nothing is being tracked."""
        with self._lock:
            trip_id = self._current_trip_id
            if trip_id is None:
                logger.debug("Stop requested with no active trip")
                return
            self.store.finish_trip(trip_id, ended_at_epoch_ms=self._now_ms())
            self._current_trip_id = None
            self._state = replace(self._state, is_tracking=False, trip_id=None)
        logger.info(f"Stopped trip {trip_id}")

    def delete_trip(self, trip_id: int) -> None:
        """Delete a trip and its fixes, stopping it first if it is active."""
        with self._lock:
            if self._current_trip_id == trip_id:
                self._current_trip_id = None
                self._state = replace(self._state, is_tracking=False, trip_id=None)
        self.store.delete_trip(trip_id)
        logger.info(f"Deleted trip {trip_id}")

    def handle_fix(
        self,
        timestamp_epoch_ms: int,
        latitude: float,
        longitude: float,
        speed_raw_mps: Optional[float] = None,
    ) -> Optional[Fix]:
        """
        Consume one GPS fix for the active trip.

        Args:
            timestamp_epoch_ms: Fix time; values <= 0 are replaced by now
            latitude: Latitude in degrees
            longitude: Longitude in degrees
            speed_raw_mps: Device speed, or None when unavailable

        Returns:
            The persisted Fix, or None when no trip is active
        """
        with self._lock:
            trip_id = self._current_trip_id
            if trip_id is None:
                logger.debug("Fix ignored: no active trip")
                return None

            timestamp = timestamp_epoch_ms if timestamp_epoch_ms > 0 else self._now_ms()
            fix = Fix.from_raw(
                timestamp, latitude, longitude, speed_raw_mps,
                speed_offset_kph=self.settings.speed_offset_kph,
            )

            prev = self._state
            delta_distance = 0.0
            delta_moving = 0
            if prev.last_position is not None and prev.last_timestamp_epoch_ms is not None:
                delta_distance = _distance_delta_m(prev.last_position, fix.position)
                delta_moving = _moving_delta_ms(
                    prev.last_timestamp_epoch_ms, prev.speed_mps_adjusted,
                    fix.timestamp_epoch_ms, fix.speed_adjusted_mps,
                    self.config.moving_threshold_mps,
                )

            self.store.append_fix(trip_id, fix)
            self._state = replace(
                prev,
                is_tracking=True,
                trip_id=trip_id,
                last_timestamp_epoch_ms=fix.timestamp_epoch_ms,
                last_latitude=fix.latitude,
                last_longitude=fix.longitude,
                speed_mps_raw=fix.speed_raw_mps,
                speed_mps_adjusted=fix.speed_adjusted_mps,
                max_speed_mps_adjusted=max(prev.max_speed_mps_adjusted, fix.speed_adjusted_mps),
                distance_meters=prev.distance_meters + delta_distance,
                moving_time_ms=prev.moving_time_ms + delta_moving,
            )

        logger.debug(
            f"Trip {trip_id} fix @{fix.timestamp_epoch_ms}: "
            f"+{delta_distance:.1f}m, +{delta_moving}ms moving"
        )
        return fix

    def trip_stats(self, trip_id: int) -> TripStats:
        """Batch statistics for a stored trip."""
        return compute_trip_stats(self.store.fixes_for_trip(trip_id), self.config.moving_threshold_mps)

    def camera_bearing(self, current_bearing: float) -> float:
        """Live map bearing from the active trip's last two fixes."""
        with self._lock:
            trip_id = self._current_trip_id
        if trip_id is None:
            return current_bearing
        fixes = self.store.fixes_for_trip(trip_id)
        if len(fixes) < 2:
            return current_bearing
        return live_bearing(fixes[-2], fixes[-1], current_bearing, self.config.bearing_min_speed_mps)
