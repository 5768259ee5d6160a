"""
Replay session: playback state over a replay engine.

One ReplaySession per replayed trip. It builds the simplified engine from
stored fixes, keeps the playback clock (play/pause, speed multiplier, seek)
and publishes an immutable ReplayUiState after every change. The periodic
driver that calls tick() belongs to the caller; run_playback() is a
simulated driver for headless use.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from constants import MAX_TICK_ELAPSED_MS, MPS_TO_KPH, PLAYBACK_TICK_MS, SPEED_SAMPLE_COUNT
from geodesy import LatLng
from progress_polyline import ColoredPolylineSegment, ProgressPolyline
from replay_engine import ReplayEngine, ReplayFrame, ReplayPoint
from settings import SimplificationConfig
from simplify import simplify_by_distance, simplify_rdp

logger = logging.getLogger(__name__)


class ReplaySpeed(Enum):
    """Playback speed presets."""
    X0_5 = (0.5, "0.5x")
    X1 = (1.0, "1x")
    X2 = (2.0, "2x")
    X5 = (5.0, "5x")
    X10 = (10.0, "10x")

    def __init__(self, multiplier: float, label: str):
        self.multiplier = multiplier
        self.label = label

    @classmethod
    def from_label(cls, label: str) -> "ReplaySpeed":
        """Look up a preset by label, e.g. '2x' (case-insensitive)."""
        wanted = label.strip().lower()
        for speed in cls:
            if speed.label == wanted:
                return speed
        valid = ", ".join(s.label for s in cls)
        raise ValueError(f"Invalid replay speed '{label}'. Valid: {valid}")


@dataclass(frozen=True)
class ReplayUiState:
    """Everything a replay view renders for the current trip time."""
    is_loading: bool = True
    error_message: Optional[str] = None

    is_playing: bool = False
    speed_multiplier: float = ReplaySpeed.X1.multiplier

    duration_ms: int = 0
    trip_time_ms: int = 0

    current_speed_mps: float = 0.0
    current_bearing: float = 0.0
    distance_traveled_meters: float = 0.0
    segment_index: int = 0

    speed_samples_kph: Tuple[float, ...] = ()
    max_speed_kph: float = 0.0

    full_route: Tuple[LatLng, ...] = ()
    progress_route: Tuple[LatLng, ...] = ()
    progress_colored: Tuple[ColoredPolylineSegment, ...] = ()
    car_position: Optional[LatLng] = None

    follow_car: bool = True

    @property
    def current_speed_kph(self) -> float:
        return self.current_speed_mps * MPS_TO_KPH

    @property
    def speed_label(self) -> str:
        return f"{self.speed_multiplier:g}x"

    @property
    def is_finished(self) -> bool:
        return not self.is_loading and self.trip_time_ms >= self.duration_ms


def simplify_fixes(fixes: Sequence, config: Optional[SimplificationConfig] = None) -> List:
    """
    Sort stored fixes and reduce them to the replay route.

    Douglas-Peucker with a loose tolerance runs first, then distance gating
    with a tighter spacing; each stage ends with its stride cap. The result
    holds the surviving fix objects themselves, in time order.
    """
    config = config or SimplificationConfig()
    ordered = sorted(fixes, key=lambda f: f.timestamp_epoch_ms)

    rdp = simplify_rdp(ordered, config.rdp_epsilon_m, config.rdp_max_points)
    simplified = simplify_by_distance(rdp, config.min_distance_m, config.max_points)
    logger.info(f"Replay route: {len(ordered)} fixes -> {len(rdp)} (RDP) -> {len(simplified)} points")
    return simplified


def build_replay_engine(fixes: Sequence, config: Optional[SimplificationConfig] = None) -> ReplayEngine:
    """
    Sort, simplify and wrap stored fixes in a ReplayEngine.

    Raises:
        ValueError: If fewer than two points remain
    """
    return ReplayEngine([ReplayPoint.from_fix(f) for f in simplify_fixes(fixes, config)])


class ReplaySession:
    """
    Playback controller for one trip.

    Args:
        config: Route simplification parameters
        speed_sample_count: Samples in the speed chart
    """

    def __init__(
        self,
        config: Optional[SimplificationConfig] = None,
        speed_sample_count: int = SPEED_SAMPLE_COUNT,
    ):
        self.config = config or SimplificationConfig()
        self.speed_sample_count = speed_sample_count
        self.engine: Optional[ReplayEngine] = None
        self._progress: Optional[ProgressPolyline] = None
        self._state = ReplayUiState()

    @property
    def state(self) -> ReplayUiState:
        return self._state

    def load(self, fixes: Sequence) -> ReplayUiState:
        """
        Load a trip and position playback at its start.

        A trip with fewer than two fixes produces an error state instead of
        an engine.
        """
        self.engine = None
        self._progress = None
        self._state = ReplayUiState(is_loading=True)

        if len(fixes) < 2:
            logger.warning(f"Cannot replay trip with {len(fixes)} fix(es)")
            self._state = replace(self._state, is_loading=False,
                                  error_message="Trip does not have enough points")
            return self._state

        engine = build_replay_engine(fixes, self.config)
        self.engine = engine
        self._progress = ProgressPolyline(engine)

        samples = engine.speed_samples_kph(self.speed_sample_count)
        first = engine.frame_at(0)
        self._state = replace(
            self._state,
            is_loading=False,
            error_message=None,
            duration_ms=engine.duration_ms,
            speed_samples_kph=tuple(samples),
            max_speed_kph=max(samples, default=0.0),
            full_route=tuple(engine.full_route()),
        )
        self._apply_frame(first)
        return self._state

    def _apply_frame(self, frame: ReplayFrame) -> None:
        colored = self._progress.extend_to(frame.segment_index, frame.position)
        self._state = replace(
            self._state,
            trip_time_ms=frame.trip_time_ms,
            current_speed_mps=frame.speed_mps_adjusted,
            current_bearing=frame.bearing_degrees,
            distance_traveled_meters=frame.distance_traveled_meters,
            segment_index=frame.segment_index,
            car_position=frame.position,
            progress_route=tuple(self.engine.progress_route(frame)),
            progress_colored=colored,
        )

    def seek_to(self, trip_time_ms: int) -> ReplayUiState:
        """Jump to a trip time (clamped). Ignored before a trip is loaded."""
        if self.engine is None:
            return self._state
        self._apply_frame(self.engine.frame_at(self.engine.clamp_trip_time_ms(trip_time_ms)))
        return self._state

    def set_speed(self, speed: ReplaySpeed) -> None:
        self._state = replace(self._state, speed_multiplier=speed.multiplier)

    def set_speed_multiplier(self, multiplier: float) -> None:
        """Set an arbitrary positive playback multiplier."""
        if multiplier <= 0:
            raise ValueError(f"Playback multiplier must be positive, got {multiplier}")
        self._state = replace(self._state, speed_multiplier=float(multiplier))

    def play(self) -> None:
        if self.engine is None:
            return
        self._state = replace(self._state, is_playing=True)

    def pause(self) -> None:
        self._state = replace(self._state, is_playing=False)

    def toggle_play_pause(self) -> None:
        if self._state.is_playing:
            self.pause()
        else:
            self.play()

    def toggle_follow_car(self) -> None:
        self._state = replace(self._state, follow_car=not self._state.follow_car)

    def tick(self, real_elapsed_ms: int) -> ReplayUiState:
        """
        Advance playback by one driver tick.

        Args:
            real_elapsed_ms: Wall time since the previous tick; clamped to
                [0, MAX_TICK_ELAPSED_MS] so a stalled driver cannot jump ahead

        Returns:
            The new state; playback stops on reaching the end of the trip
        """
        if self.engine is None or not self._state.is_playing:
            return self._state

        dt_real = max(0, min(int(real_elapsed_ms), MAX_TICK_ELAPSED_MS))
        dt_trip = int(dt_real * self._state.speed_multiplier)
        next_time = self.engine.clamp_trip_time_ms(self._state.trip_time_ms + dt_trip)
        self._apply_frame(self.engine.frame_at(next_time))

        if next_time >= self.engine.duration_ms:
            self._state = replace(self._state, is_playing=False)
            logger.debug("Playback reached end of trip")
        return self._state


def run_playback(session: ReplaySession, tick_ms: int = PLAYBACK_TICK_MS) -> Iterator[ReplayUiState]:
    """
    Drive a session with a simulated clock until the trip ends.

    Args:
        session: Loaded replay session
        tick_ms: Simulated wall time per tick

    Yields:
        State after each tick

    Raises:
        ValueError: If a tick would not advance trip time
    """
    if session.engine is None:
        return
    dt_trip = int(max(0, min(tick_ms, MAX_TICK_ELAPSED_MS)) * session.state.speed_multiplier)
    if dt_trip < 1:
        raise ValueError(f"Tick of {tick_ms}ms at {session.state.speed_label} does not advance playback")

    session.play()
    while session.state.is_playing:
        yield session.tick(tick_ms)
