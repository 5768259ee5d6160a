"""
In-memory trip store.

Ordered append/query storage of trips and their fixes, keyed by trip id and
timestamp. Safe to share between a tracking session and readers.
"""

import logging
import threading
from typing import Dict, List, Optional

from trip_store.data_models import Fix, Trip

logger = logging.getLogger(__name__)


class TripStore:
    """
    Stores trips and the fixes recorded for each of them.

    Usage:
        store = TripStore()
        trip_id = store.create_trip(started_at_epoch_ms=1700000000000)
        store.append_fix(trip_id, fix)
        fixes = store.fixes_for_trip(trip_id)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._trips: Dict[int, Trip] = {}
        self._fixes: Dict[int, List[Fix]] = {}
        self._next_id = 1

    def create_trip(self, started_at_epoch_ms: int, name: Optional[str] = None) -> int:
        """
        Insert a new trip.

        Returns:
            The new trip id
        """
        with self._lock:
            trip_id = self._next_id
            self._next_id += 1
            self._trips[trip_id] = Trip(
                id=trip_id, name=name, started_at_epoch_ms=started_at_epoch_ms
            )
            self._fixes[trip_id] = []
        logger.debug(f"Created trip {trip_id}")
        return trip_id

    def finish_trip(self, trip_id: int, ended_at_epoch_ms: int) -> Optional[Trip]:
        """Stamp a trip's end time. Returns the updated trip, or None if unknown."""
        with self._lock:
            trip = self._trips.get(trip_id)
            if trip is None:
                return None
            trip = trip.model_copy(update={"ended_at_epoch_ms": ended_at_epoch_ms})
            self._trips[trip_id] = trip
            return trip

    def rename_trip(self, trip_id: int, name: Optional[str]) -> None:
        """Rename a trip. Blank names clear the name."""
        with self._lock:
            trip = self._trips.get(trip_id)
            if trip is None:
                return
            clean = name if name is not None and name.strip() else None
            self._trips[trip_id] = trip.model_copy(update={"name": clean})

    def delete_trip(self, trip_id: int) -> None:
        """Delete a trip together with all of its fixes."""
        with self._lock:
            self._fixes.pop(trip_id, None)
            self._trips.pop(trip_id, None)
        logger.debug(f"Deleted trip {trip_id}")

    def get_trip(self, trip_id: int) -> Optional[Trip]:
        with self._lock:
            return self._trips.get(trip_id)

    def get_trips(self) -> List[Trip]:
        """All trips, newest start first."""
        with self._lock:
            trips = list(self._trips.values())
        return sorted(trips, key=lambda t: t.started_at_epoch_ms, reverse=True)

    def trips_between(
        self,
        from_epoch_ms: Optional[int] = None,
        to_epoch_ms: Optional[int] = None,
    ) -> List[Trip]:
        """
        Trips whose start time falls within an inclusive range.

        Args:
            from_epoch_ms: Lower bound, or None for unbounded
            to_epoch_ms: Upper bound, or None for unbounded
        """
        return [
            t for t in self.get_trips()
            if (from_epoch_ms is None or t.started_at_epoch_ms >= from_epoch_ms)
            and (to_epoch_ms is None or t.started_at_epoch_ms <= to_epoch_ms)
        ]

    def append_fix(self, trip_id: int, fix: Fix) -> None:
        """Append a fix to a trip. Raises KeyError for an unknown trip."""
        with self._lock:
            if trip_id not in self._fixes:
                raise KeyError(f"Unknown trip id {trip_id}")
            self._fixes[trip_id].append(fix)

    def fixes_for_trip(self, trip_id: int) -> List[Fix]:
        """All fixes of a trip ordered by timestamp ascending."""
        with self._lock:
            fixes = list(self._fixes.get(trip_id, ()))
        return sorted(fixes, key=lambda f: f.timestamp_epoch_ms)
