"""
Trip storage for the trip recorder.

In-memory store of trips and their GPS fixes, plus loaders for fix files.
"""

from trip_store.data_models import Fix, Trip
from trip_store.store import TripStore
from trip_store.fix_files import load_fixes, write_fixes_json

__all__ = [
    "Fix",
    "Trip",
    "TripStore",
    "load_fixes",
    "write_fixes_json",
]
