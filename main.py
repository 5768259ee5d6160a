#!/usr/bin/env python3
"""
Command line interface for the trip recorder and replay engine.

Subcommands operate on a fix file (CSV or JSON):
    stats     Batch trip statistics
    record    Feed the fixes through a live tracking session
    simplify  Run the replay simplification pipeline
    replay    Play the trip back and print sampled frames
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError
from tqdm import tqdm

from constants import MPS_TO_KPH
from replay_engine import ReplayEngine, ReplayPoint
from replay_session import ReplaySession, ReplaySpeed, run_playback, simplify_fixes
from rich_console import (
    console,
    create_progress,
    print_error,
    print_frames_table,
    print_trip_summary,
    setup_rich_logging,
)
from settings import SettingsStore, SimplificationConfig, TrackingConfig
from tracking import TrackingSession, compute_trip_stats
from trip_store import Fix, TripStore, load_fixes, write_fixes_json

logger = logging.getLogger(__name__)

COMMANDS = ("stats", "record", "simplify", "replay")


class CliConfig(BaseModel):
    command: str
    input_path: str
    output_path: Optional[str] = None
    speed_multiplier: float = Field(default=1.0, gt=0.0)
    every_ms: int = Field(default=10_000, gt=0)
    tick_ms: int = Field(default=16, gt=0)
    speed_offset_kph: float = 0.0
    settings_path: Optional[str] = None
    simplification: SimplificationConfig = Field(default_factory=SimplificationConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    verbose: bool = False


def parse_speed(value: str) -> float:
    """Parse a playback speed: a preset label ('2x') or a positive number."""
    try:
        return ReplaySpeed.from_label(value).multiplier
    except ValueError:
        pass
    try:
        multiplier = float(value.lower().rstrip("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid speed '{value}'")
    if multiplier <= 0:
        raise argparse.ArgumentTypeError(f"Speed must be positive, got '{value}'")
    return multiplier


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze, simplify and replay recorded GPS trips.")
    parser.add_argument("command", choices=COMMANDS, help="Operation to run")
    parser.add_argument("input_path", help="Path to a CSV or JSON fix file")
    parser.add_argument("-o", "--output", dest="output_path", help="Output JSON for 'simplify'")
    parser.add_argument("--speed", type=parse_speed, default=1.0,
                        help="Replay speed: 0.5x, 1x, 2x, 5x, 10x or any positive number")
    parser.add_argument("--every-ms", type=int, default=10_000,
                        help="Trip time between printed replay frames")
    parser.add_argument("--tick-ms", type=int, default=16, help="Simulated playback tick")
    parser.add_argument("--offset-kph", type=float, default=None,
                        help="Speed offset for 'record' (persisted when --settings is given)")
    parser.add_argument("--settings", dest="settings_path", help="Settings JSON file")
    parser.add_argument("--rdp-epsilon", type=float, default=None, help="Douglas-Peucker tolerance (m)")
    parser.add_argument("--min-distance", type=float, default=None, help="Minimum point spacing (m)")
    parser.add_argument("--max-points", type=int, default=None, help="Hard cap on replay points")
    parser.add_argument("--moving-threshold", type=float, default=None,
                        help="Average speed (m/s) that counts as moving")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> CliConfig:
    args = build_parser().parse_args(argv)

    simplification = {
        key: value for key, value in (
            ("rdp_epsilon_m", args.rdp_epsilon),
            ("min_distance_m", args.min_distance),
            ("max_points", args.max_points),
        ) if value is not None
    }
    tracking = {}
    if args.moving_threshold is not None:
        tracking["moving_threshold_mps"] = args.moving_threshold

    settings = SettingsStore(args.settings_path)
    offset = args.offset_kph if args.offset_kph is not None else settings.speed_offset_kph

    return CliConfig(
        command=args.command,
        input_path=args.input_path,
        output_path=args.output_path,
        speed_multiplier=args.speed,
        every_ms=args.every_ms,
        tick_ms=args.tick_ms,
        speed_offset_kph=offset,
        settings_path=args.settings_path,
        simplification=SimplificationConfig(**simplification),
        tracking=TrackingConfig(**tracking),
        verbose=args.verbose,
    )


def _duration_ms(fixes: List[Fix]) -> int:
    if len(fixes) < 2:
        return 0
    timestamps = [f.timestamp_epoch_ms for f in fixes]
    return max(timestamps) - min(timestamps)


def run_stats(config: CliConfig, fixes: List[Fix]) -> int:
    fixes = sorted(fixes, key=lambda f: f.timestamp_epoch_ms)
    stats = compute_trip_stats(fixes, config.tracking.moving_threshold_mps)
    print_trip_summary(
        title=config.input_path,
        fix_count=len(fixes),
        duration_ms=_duration_ms(fixes),
        distance_m=stats.distance_meters,
        moving_time_ms=stats.moving_time_ms,
        max_speed_kph=stats.max_speed_kph,
    )
    console.print(f"[muted]{stats.summary()}[/]")
    return 0


def run_record(config: CliConfig, fixes: List[Fix]) -> int:
    """Re-record the fixes as if they arrived live, then cross-check batch stats."""
    settings = SettingsStore(config.settings_path)
    if settings.speed_offset_kph != config.speed_offset_kph:
        settings.set_speed_offset_kph(config.speed_offset_kph)

    store = TripStore()
    session = TrackingSession(store, settings, config.tracking, clock=time.time)
    trip_id = session.start_trip()

    ordered = sorted(fixes, key=lambda f: f.timestamp_epoch_ms)
    with create_progress() as progress:
        task = progress.add_task("Recording", total=len(ordered))
        for fix in ordered:
            session.handle_fix(fix.timestamp_epoch_ms, fix.latitude, fix.longitude, fix.speed_raw_mps)
            progress.advance(task)

    live = session.state
    session.stop_trip()
    batch = session.trip_stats(trip_id)
    trip = store.get_trip(trip_id)

    print_trip_summary(
        title=trip.title if trip else f"Trip #{trip_id}",
        fix_count=len(ordered),
        duration_ms=_duration_ms(ordered),
        distance_m=live.distance_meters,
        moving_time_ms=live.moving_time_ms,
        max_speed_kph=live.max_speed_mps_adjusted * MPS_TO_KPH,
    )
    if (abs(live.distance_meters - batch.distance_meters) > 1e-6
            or live.moving_time_ms != batch.moving_time_ms
            or abs(live.max_speed_mps_adjusted - batch.max_speed_mps_adjusted) > 1e-9):
        logger.warning(f"Live and batch statistics differ: live={live}, batch={batch}")
        return 1
    console.print("[success]Live and batch statistics match[/]")
    return 0


def run_simplify(config: CliConfig, fixes: List[Fix]) -> int:
    simplified = simplify_fixes(fixes, config.simplification)
    engine = ReplayEngine([ReplayPoint.from_fix(f) for f in simplified])
    console.print(
        f"[info]{len(fixes):,}[/] fixes -> [highlight]{engine.point_count:,}[/] replay points "
        f"([distance]{engine.total_distance_m / 1000.0:.2f} km[/])"
    )
    if config.output_path:
        path = write_fixes_json(simplified, config.output_path)
        console.print(f"Wrote [green]{path}[/]")
    return 0


def run_replay(config: CliConfig, fixes: List[Fix]) -> int:
    session = ReplaySession(config.simplification)
    state = session.load(fixes)
    if state.error_message:
        print_error(state.error_message, hint="A replay needs at least two fixes")
        return 1
    session.set_speed_multiplier(config.speed_multiplier)

    frames = [state]
    next_sample = config.every_ms
    with tqdm(total=state.duration_ms, desc="Replaying", unit="ms", leave=False) as bar:
        last_time = 0
        for state in run_playback(session, config.tick_ms):
            bar.update(state.trip_time_ms - last_time)
            last_time = state.trip_time_ms
            if state.trip_time_ms >= next_sample or not state.is_playing:
                frames.append(state)
                while next_sample <= state.trip_time_ms:
                    next_sample += config.every_ms

    print_frames_table(frames)
    final = session.state
    print_trip_summary(
        title=config.input_path,
        fix_count=len(fixes),
        duration_ms=final.duration_ms,
        distance_m=final.distance_traveled_meters,
        moving_time_ms=compute_trip_stats(
            sorted(fixes, key=lambda f: f.timestamp_epoch_ms), config.tracking.moving_threshold_mps
        ).moving_time_ms,
        max_speed_kph=final.max_speed_kph,
        route_points=session.engine.point_count,
    )
    return 0


HANDLERS = {
    "stats": run_stats,
    "record": run_record,
    "simplify": run_simplify,
    "replay": run_replay,
}


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = parse_args(argv)
    except ValidationError as e:
        print_error(f"Invalid configuration: {e}")
        return 1

    setup_rich_logging(config.verbose)

    try:
        fixes = load_fixes(config.input_path)
    except FileNotFoundError:
        print_error(f"Input file {config.input_path} not found.")
        return 1
    except ValueError as e:
        print_error(str(e), hint="Expected columns: timestamp_epoch_ms,lat,lng,speed_raw_mps")
        return 1

    try:
        return HANDLERS[config.command](config, fixes)
    except ValueError as e:
        print_error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
