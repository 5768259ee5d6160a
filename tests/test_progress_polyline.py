"""
Tests for speed-colored polylines.

Tests incremental progress building, same-segment updates, backward seeks
and the static route preview.
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from constants import SPEED_COLORS
from progress_polyline import ColoredPolylineSegment, ProgressPolyline, build_route_polylines
from replay_engine import ReplayEngine
from conftest import make_fixes


def fresh_build(engine, frame):
    """Progress runs computed from scratch for a frame."""
    return ProgressPolyline(engine).extend_to(frame.segment_index, frame.position)


def flatten(runs):
    """All run points with shared run boundaries collapsed."""
    out = []
    for run in runs:
        pts = list(run.points)
        if out and pts and out[-1] == pts[0]:
            pts = pts[1:]
        out.extend(pts)
    return out


@pytest.fixture
def engine(long_route_points):
    return ReplayEngine(long_route_points)


class TestProgressPolyline:
    """Tests for the incremental progress cache."""

    def test_first_segment(self, engine):
        progress = ProgressPolyline(engine)
        frame = engine.frame_at(5000)
        runs = progress.extend_to(frame.segment_index, frame.position)
        assert len(runs) == 1
        assert runs[0].points == (engine.points[0].position, frame.position)
        assert runs[0].color_argb == SPEED_COLORS.CRAWL
        assert progress.cached_index == 0

    def test_coalesces_same_color(self, engine):
        """Segments 1 and 2 are both SLOW and share one run."""
        route = engine.full_route()
        runs = ProgressPolyline(engine).extend_to(2, route[3])
        assert [r.color_argb for r in runs] == [SPEED_COLORS.CRAWL, SPEED_COLORS.SLOW]
        assert runs[1].points == (route[1], route[2], route[3])

    def test_adjacent_runs_differ_and_connect(self, engine):
        frame = engine.frame_at(455_000)
        runs = ProgressPolyline(engine).extend_to(frame.segment_index, frame.position)
        for a, b in zip(runs, runs[1:]):
            assert a.color_argb != b.color_argb
            assert a.points[-1] == b.points[0]

    def test_covers_route_prefix(self, engine):
        frame = engine.frame_at(123_000)
        runs = ProgressPolyline(engine).extend_to(frame.segment_index, frame.position)
        route = engine.full_route()
        assert flatten(runs) == route[:frame.segment_index + 1] + [frame.position]

    def test_incremental_equals_rebuild(self, engine):
        """Stepping forward frame by frame matches a from-scratch build."""
        progress = ProgressPolyline(engine)
        for t in range(0, engine.duration_ms + 1, 3_700):
            frame = engine.frame_at(t)
            runs = progress.extend_to(frame.segment_index, frame.position)
            assert runs == fresh_build(engine, frame)

    def test_jump_forward_several_segments(self, engine):
        progress = ProgressPolyline(engine)
        progress.extend_to(1, engine.frame_at(15_000).position)
        frame = engine.frame_at(333_000)
        assert progress.extend_to(frame.segment_index, frame.position) == fresh_build(engine, frame)

    def test_same_segment_updates_last_point(self, engine):
        progress = ProgressPolyline(engine)
        first = engine.frame_at(41_000)
        second = engine.frame_at(48_000)
        assert first.segment_index == second.segment_index

        before = progress.extend_to(first.segment_index, first.position)
        after = progress.extend_to(second.segment_index, second.position)
        assert len(before) == len(after)
        assert before[:-1] == after[:-1]
        assert after[-1].points[:-1] == before[-1].points[:-1]
        assert after[-1].points[-1] == second.position

    def test_seek_backward_rebuilds(self, engine):
        """Seeking from segment 50 back to 10 rebuilds runs for 0-10 only."""
        progress = ProgressPolyline(engine)
        progress.extend_to(50, engine.frame_at(505_000).position)
        assert progress.cached_index == 50

        frame = engine.frame_at(105_000)
        assert frame.segment_index == 10
        runs = progress.extend_to(frame.segment_index, frame.position)

        assert progress.cached_index == 10
        assert runs == fresh_build(engine, frame)
        assert flatten(runs) == engine.full_route()[:11] + [frame.position]

    def test_index_clamped(self, engine):
        progress = ProgressPolyline(engine)
        end = engine.full_route()[-1]
        progress.extend_to(10_000, end)
        assert progress.cached_index == engine.point_count - 2

    def test_snapshots_are_immutable(self, engine):
        progress = ProgressPolyline(engine)
        runs = progress.extend_to(3, engine.frame_at(35_000).position)
        progress.extend_to(8, engine.frame_at(85_000).position)
        assert isinstance(runs, tuple)
        assert runs == fresh_build(engine, engine.frame_at(35_000))

    def test_reset(self, engine):
        progress = ProgressPolyline(engine)
        progress.extend_to(5, engine.frame_at(55_000).position)
        progress.reset()
        assert progress.cached_index == -1


class TestBuildRoutePolylines:
    """Tests for static route previews."""

    def test_too_few_points(self):
        assert build_route_polylines([], 16) == []
        assert build_route_polylines(make_fixes([(0.0, 0.0)]), 16) == []

    def test_segment_per_pair(self):
        fixes = make_fixes([(0.0, 0.0), (0.001, 0.0), (0.002, 0.0)], speed_mps=10.0)
        out = build_route_polylines(fixes, 18)
        assert len(out) == 2
        assert all(isinstance(s, ColoredPolylineSegment) for s in out)
        assert out[0].points == (fixes[0].position, fixes[1].position)
        # 36 km/h
        assert out[0].color_argb == SPEED_COLORS.CITY

    def test_dense_route_single_polyline(self):
        """Routes still above 800 points after simplification collapse to one line."""
        coords = [(i * 0.0001, 0.0) for i in range(1000)]
        fixes = make_fixes(coords, speed_mps=30.0)
        out = build_route_polylines(fixes, 20)
        assert len(out) == 1
        assert len(out[0].points) == 1000
        assert out[0].color_argb == SPEED_COLORS.VERY_FAST

    def test_accepts_replay_points(self, long_route_points):
        out = build_route_polylines(long_route_points, 16)
        assert len(out) == len(long_route_points) - 1
