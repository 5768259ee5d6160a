"""
Pytest configuration and fixtures for trip recorder tests.

Provides reusable routes, fixes and fix files for geodesy, simplification,
replay and tracking tests.
"""

import json

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geodesy import LatLng
from replay_engine import ReplayPoint
from trip_store import Fix

# Roughly 111 m per 0.001 degree of latitude
START_EPOCH_MS = 1_700_000_000_000


def make_fixes(coords, step_ms=1000, speed_mps=10.0, start_ms=START_EPOCH_MS):
    """Build fixes at a fixed interval from (lat, lng) pairs."""
    return [
        Fix(
            timestamp_epoch_ms=start_ms + i * step_ms,
            latitude=lat,
            longitude=lng,
            speed_raw_mps=speed_mps,
            speed_adjusted_mps=speed_mps,
        )
        for i, (lat, lng) in enumerate(coords)
    ]


def make_points(coords, step_ms=1000, speeds=None, start_ms=START_EPOCH_MS):
    """Build ReplayPoints at a fixed interval from (lat, lng) pairs."""
    speeds = speeds if speeds is not None else [10.0] * len(coords)
    return [
        ReplayPoint(
            timestamp_epoch_ms=start_ms + i * step_ms,
            position=LatLng(lat, lng),
            speed_mps_adjusted=speed,
        )
        for i, ((lat, lng), speed) in enumerate(zip(coords, speeds))
    ]


@pytest.fixture
def three_fixes():
    """Three fixes heading north: stopped, then 5 m/s twice, 10 s apart."""
    return [
        Fix(timestamp_epoch_ms=0, latitude=0.0, longitude=0.0,
            speed_raw_mps=0.0, speed_adjusted_mps=0.0),
        Fix(timestamp_epoch_ms=10_000, latitude=0.001, longitude=0.0,
            speed_raw_mps=5.0, speed_adjusted_mps=5.0),
        Fix(timestamp_epoch_ms=20_000, latitude=0.002, longitude=0.0,
            speed_raw_mps=5.0, speed_adjusted_mps=5.0),
    ]


@pytest.fixture
def straight_coords():
    """101 points due north, ~11 m apart."""
    return [(37.0 + i * 0.0001, -122.0) for i in range(101)]


@pytest.fixture
def straight_points(straight_coords):
    return make_points(straight_coords)


@pytest.fixture
def wiggle_points():
    """A ~1 km eastward line along the equator with one ~5 m northward wiggle."""
    coords = [(0.0, i * 0.001) for i in range(10)]
    # 0.000045 deg latitude is ~5 m
    coords[5] = (0.000045, 0.005)
    return make_points(coords)


@pytest.fixture
def long_route_points():
    """
    61 points on a zigzag with speeds cycling through every color bucket.

    Segments alternate direction so none are collinear and each point
    survives simplification.
    """
    coords = [(i * 0.001, (i % 2) * 0.001) for i in range(61)]
    speeds = [(i % 10) * 3.0 for i in range(61)]
    return make_points(coords, step_ms=10_000, speeds=speeds)


@pytest.fixture
def fixes_csv(tmp_path):
    """A small CSV fix file with a header row."""
    path = tmp_path / "trip.csv"
    rows = ["timestamp_epoch_ms,lat,lng,speed_raw_mps"]
    for i in range(20):
        rows.append(f"{START_EPOCH_MS + i * 1000},{37.0 + i * 0.0002},-122.0,{8.0 + i * 0.1}")
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def fixes_json(tmp_path):
    """A JSON fix file using the wrapped {"fixes": [...]} form."""
    path = tmp_path / "trip.json"
    fixes = make_fixes([(37.0 + i * 0.0002, -122.0) for i in range(20)], speed_mps=12.0)
    path.write_text(json.dumps({"fixes": [f.model_dump() for f in fixes]}), encoding="utf-8")
    return path


class FakeClock:
    """Controllable epoch-seconds clock for tracking sessions."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()
