"""
Tests for live trip tracking and batch trip statistics.

Tests the TrackingSession lifecycle, running state accumulation, speed
offset handling, equivalence with compute_trip_stats, and the live map
bearing heuristic.
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geodesy import LatLng, haversine_distance_m
from settings import SettingsStore, TrackingConfig
from tracking import (
    TrackingSession,
    TrackingState,
    TripStats,
    compute_trip_stats,
    live_bearing,
)
from trip_store import Fix, TripStore
from conftest import make_fixes


@pytest.fixture
def session(fake_clock):
    return TrackingSession(TripStore(), SettingsStore(), clock=fake_clock)


def feed(session, fixes):
    for fix in fixes:
        session.handle_fix(fix.timestamp_epoch_ms, fix.latitude, fix.longitude, fix.speed_raw_mps)


class TestComputeTripStats:
    """Tests for batch statistics."""

    def test_empty(self):
        assert compute_trip_stats([]) == TripStats()

    def test_single_fix(self, three_fixes):
        stats = compute_trip_stats(three_fixes[1:2])
        assert stats.distance_meters == 0.0
        assert stats.moving_time_ms == 0
        assert stats.max_speed_mps_adjusted == 5.0

    def test_three_fix_example(self, three_fixes):
        stats = compute_trip_stats(three_fixes, moving_threshold_mps=1.0)
        step = haversine_distance_m(LatLng(0.0, 0.0), LatLng(0.001, 0.0))
        assert stats.distance_meters == pytest.approx(2 * step)
        assert stats.distance_meters == pytest.approx(222.4, abs=0.5)
        assert stats.moving_time_ms == 20_000
        assert stats.max_speed_mps_adjusted == 5.0

    def test_slow_interval_not_moving(self):
        fixes = make_fixes([(0.0, 0.0), (0.0, 0.00001), (0.0, 0.00002)], step_ms=5000, speed_mps=0.5)
        stats = compute_trip_stats(fixes, moving_threshold_mps=1.0)
        assert stats.moving_time_ms == 0
        assert stats.distance_meters > 0.0

    def test_negative_time_delta_ignored(self):
        fixes = [
            Fix(timestamp_epoch_ms=10_000, latitude=0.0, longitude=0.0, speed_adjusted_mps=5.0),
            Fix(timestamp_epoch_ms=5_000, latitude=0.001, longitude=0.0, speed_adjusted_mps=5.0),
        ]
        assert compute_trip_stats(fixes).moving_time_ms == 0

    def test_summary_format(self):
        stats = TripStats(distance_meters=12_346.0, moving_time_ms=1_507_000, max_speed_mps_adjusted=24.5)
        assert stats.summary() == "12.35 km | 25:07 | max 88.2 km/h"
        assert stats.max_speed_kph == pytest.approx(88.2)


class TestTrackingLifecycle:
    """Tests for starting, stopping and deleting trips."""

    def test_initial_state(self, session):
        assert session.state == TrackingState()
        assert session.current_trip_id is None

    def test_start_trip(self, session, fake_clock):
        trip_id = session.start_trip()
        assert session.current_trip_id == trip_id
        assert session.state.is_tracking
        assert session.state.trip_id == trip_id
        trip = session.store.get_trip(trip_id)
        assert trip.started_at_epoch_ms == int(fake_clock.now * 1000)
        assert not trip.is_finished

    def test_start_is_idempotent(self, session):
        first = session.start_trip()
        assert session.start_trip() == first
        assert len(session.store.get_trips()) == 1

    def test_stop_trip(self, session, fake_clock):
        trip_id = session.start_trip()
        fake_clock.now += 60
        session.stop_trip()
        assert session.current_trip_id is None
        assert not session.state.is_tracking
        trip = session.store.get_trip(trip_id)
        assert trip.ended_at_epoch_ms == int(fake_clock.now * 1000)

    def test_stop_without_trip_is_noop(self, session):
        session.stop_trip()
        assert session.state == TrackingState()

    def test_new_trip_resets_state(self, session, three_fixes):
        session.start_trip()
        feed(session, three_fixes)
        session.stop_trip()
        session.start_trip()
        assert session.state.distance_meters == 0.0
        assert session.state.last_position is None

    def test_delete_active_trip(self, session, three_fixes):
        trip_id = session.start_trip()
        feed(session, three_fixes)
        session.delete_trip(trip_id)
        assert session.current_trip_id is None
        assert session.store.get_trip(trip_id) is None
        assert session.store.fixes_for_trip(trip_id) == []


class TestHandleFix:
    """Tests for live fix accumulation."""

    def test_fix_without_trip_ignored(self, session):
        assert session.handle_fix(1000, 0.0, 0.0, 3.0) is None
        assert session.state == TrackingState()

    def test_fix_after_stop_ignored(self, session, three_fixes):
        trip_id = session.start_trip()
        feed(session, three_fixes)
        session.stop_trip()
        assert session.handle_fix(30_000, 0.003, 0.0, 5.0) is None
        assert len(session.store.fixes_for_trip(trip_id)) == 3

    def test_three_fix_example(self, session, three_fixes):
        session.start_trip()
        feed(session, three_fixes)
        state = session.state
        assert state.distance_meters == pytest.approx(222.4, abs=0.5)
        assert state.moving_time_ms == 20_000
        assert state.max_speed_mps_adjusted == 5.0
        assert state.last_position == LatLng(0.002, 0.0)
        assert state.last_timestamp_epoch_ms == 20_000

    def test_live_matches_batch(self, session, long_route_points):
        """Running totals equal batch statistics over the stored fixes."""
        trip_id = session.start_trip()
        for p in long_route_points:
            session.handle_fix(p.timestamp_epoch_ms, p.position.latitude, p.position.longitude,
                               p.speed_mps_adjusted)
        live = session.state
        batch = session.trip_stats(trip_id)
        assert live.distance_meters == batch.distance_meters
        assert live.moving_time_ms == batch.moving_time_ms
        assert live.max_speed_mps_adjusted == batch.max_speed_mps_adjusted

    def test_speed_offset_applied(self, session):
        session.set_speed_offset_kph(3.6)
        session.start_trip()
        fix = session.handle_fix(1000, 0.0, 0.0, 10.0)
        assert fix.speed_raw_mps == 10.0
        assert fix.speed_adjusted_mps == pytest.approx(11.0)
        assert session.state.speed_mps_adjusted == pytest.approx(11.0)

    def test_negative_offset_floored(self, session):
        session.set_speed_offset_kph(-36.0)
        session.start_trip()
        fix = session.handle_fix(1000, 0.0, 0.0, 4.0)
        assert fix.speed_adjusted_mps == 0.0
        assert fix.speed_raw_mps == 4.0

    def test_missing_speed_is_zero(self, session):
        session.start_trip()
        fix = session.handle_fix(1000, 0.0, 0.0, None)
        assert fix.speed_raw_mps == 0.0
        assert fix.speed_adjusted_mps == 0.0

    @pytest.mark.parametrize("speed", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_speed_is_zero(self, session, speed):
        trip_id = session.start_trip()
        session.handle_fix(1000, 0.0, 0.0, 5.0)
        fix = session.handle_fix(2000, 0.001, 0.0, speed)
        assert fix.speed_raw_mps == 0.0
        assert fix.speed_adjusted_mps == 0.0
        assert session.state.max_speed_mps_adjusted == 5.0
        assert len(session.store.fixes_for_trip(trip_id)) == 2

    def test_non_finite_speed_with_offset(self, session):
        session.set_speed_offset_kph(3.6)
        session.start_trip()
        fix = session.handle_fix(1000, 0.0, 0.0, float("nan"))
        assert fix.speed_adjusted_mps == pytest.approx(1.0)

    def test_non_finite_position_skips_distance(self, session):
        """A fix with a NaN coordinate adds no distance and does not poison the total."""
        trip_id = session.start_trip()
        session.handle_fix(1000, 0.0, 0.0, 5.0)
        session.handle_fix(2000, float("nan"), 0.0, 5.0)
        session.handle_fix(3000, 0.001, float("nan"), 5.0)
        session.handle_fix(4000, 0.001, 0.0, 5.0)
        session.handle_fix(5000, 0.002, 0.0, 5.0)

        step = haversine_distance_m(LatLng(0.001, 0.0), LatLng(0.002, 0.0))
        assert session.state.distance_meters == pytest.approx(step)
        assert session.state.moving_time_ms == 4000
        assert session.trip_stats(trip_id).distance_meters == session.state.distance_meters

    def test_non_finite_position_keeps_bearing(self, session):
        session.start_trip()
        session.handle_fix(1000, 0.0, 0.0, 5.0)
        session.handle_fix(2000, float("nan"), 0.0, 5.0)
        assert session.camera_bearing(42.0) == 42.0

    def test_missing_timestamp_uses_clock(self, session, fake_clock):
        session.start_trip()
        fix = session.handle_fix(0, 0.0, 0.0, 1.0)
        assert fix.timestamp_epoch_ms == int(fake_clock.now * 1000)

    def test_negative_time_delta_not_moving(self, session):
        session.start_trip()
        session.handle_fix(10_000, 0.0, 0.0, 5.0)
        session.handle_fix(5_000, 0.001, 0.0, 5.0)
        assert session.state.moving_time_ms == 0
        assert session.state.distance_meters > 100.0

    def test_custom_moving_threshold(self, fake_clock, three_fixes):
        config = TrackingConfig(moving_threshold_mps=3.0)
        session = TrackingSession(TripStore(), SettingsStore(), config, clock=fake_clock)
        session.start_trip()
        feed(session, three_fixes)
        # first interval averages 2.5 m/s
        assert session.state.moving_time_ms == 10_000


class TestLiveBearing:
    """Tests for the live map bearing heuristic."""

    def test_moving_uses_heading(self):
        prev = Fix(timestamp_epoch_ms=0, latitude=0.0, longitude=0.0, speed_adjusted_mps=5.0)
        last = Fix(timestamp_epoch_ms=1000, latitude=0.0, longitude=0.001, speed_adjusted_mps=5.0)
        assert live_bearing(prev, last, 12.0, 1.0) == pytest.approx(90.0)

    def test_slow_keeps_current(self):
        prev = Fix(timestamp_epoch_ms=0, latitude=0.0, longitude=0.0, speed_adjusted_mps=0.5)
        last = Fix(timestamp_epoch_ms=1000, latitude=0.0, longitude=0.00001, speed_adjusted_mps=0.5)
        assert live_bearing(prev, last, 12.0, 1.0) == 12.0

    def test_missing_fixes_keep_current(self):
        assert live_bearing(None, None, 33.0, 1.0) == 33.0

    def test_same_position_keeps_current(self):
        prev = Fix(timestamp_epoch_ms=0, latitude=1.0, longitude=1.0, speed_adjusted_mps=5.0)
        last = Fix(timestamp_epoch_ms=1000, latitude=1.0, longitude=1.0, speed_adjusted_mps=5.0)
        assert live_bearing(prev, last, 77.0, 1.0) == 77.0

    def test_camera_bearing(self, session):
        assert session.camera_bearing(5.0) == 5.0
        session.start_trip()
        session.handle_fix(1000, 0.0, 0.0, 5.0)
        assert session.camera_bearing(5.0) == 5.0
        session.handle_fix(2000, 0.001, 0.0, 5.0)
        assert session.camera_bearing(5.0) == pytest.approx(0.0, abs=1e-9)

    def test_camera_bearing_after_stop(self, session, three_fixes):
        session.start_trip()
        feed(session, three_fixes)
        session.stop_trip()
        assert session.camera_bearing(21.0) == 21.0
