"""
Configuration and persisted user settings.

Pydantic models for the simplification and tracking parameters, and a small
JSON-backed store for the user's speed offset and map zoom.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError

from constants import (
    BEARING_MIN_SPEED_MPS,
    DEFAULT_MAP_ZOOM,
    DEFAULT_SPEED_OFFSET_KPH,
    MAX_MAP_ZOOM,
    MIN_MAP_ZOOM,
    MOVING_THRESHOLD_MPS,
    REPLAY_MAX_POINTS,
    REPLAY_MIN_DISTANCE_M,
    REPLAY_RDP_EPSILON_M,
    REPLAY_RDP_MAX_POINTS,
)

logger = logging.getLogger(__name__)


class SimplificationConfig(BaseModel):
    """Replay route reduction: Douglas-Peucker first, then distance gating."""
    rdp_epsilon_m: float = Field(default=REPLAY_RDP_EPSILON_M, ge=0.0)
    rdp_max_points: int = Field(default=REPLAY_RDP_MAX_POINTS, ge=2)
    min_distance_m: float = Field(default=REPLAY_MIN_DISTANCE_M, ge=0.0)
    max_points: int = Field(default=REPLAY_MAX_POINTS, ge=2)


class TrackingConfig(BaseModel):
    """Thresholds for live tracking."""
    moving_threshold_mps: float = Field(default=MOVING_THRESHOLD_MPS, gt=0.0)
    bearing_min_speed_mps: float = Field(
        default=BEARING_MIN_SPEED_MPS, ge=0.0,
        description="Live map keeps its previous bearing below this speed",
    )


class AppSettings(BaseModel):
    """User settings persisted between runs."""
    speed_offset_kph: float = DEFAULT_SPEED_OFFSET_KPH
    map_zoom: float = Field(default=DEFAULT_MAP_ZOOM, ge=MIN_MAP_ZOOM, le=MAX_MAP_ZOOM)


class SettingsStore:
    """
    Reads and writes AppSettings as JSON.

    Without a path the settings live in memory only. A missing or unreadable
    file yields defaults.

    Args:
        path: JSON file to persist to, or None
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._settings = self._load()

    def _load(self) -> AppSettings:
        if self.path is None or not self.path.exists():
            return AppSettings()
        try:
            return AppSettings.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return AppSettings()

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self._settings.model_dump_json(indent=2), encoding="utf-8")

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def speed_offset_kph(self) -> float:
        return self._settings.speed_offset_kph

    def set_speed_offset_kph(self, value: float) -> None:
        with self._lock:
            self._settings = self._settings.model_copy(update={"speed_offset_kph": float(value)})
            self._save()

    @property
    def map_zoom(self) -> float:
        return self._settings.map_zoom

    def set_map_zoom(self, value: float) -> None:
        """Persist a map zoom; raises ValidationError outside [2, 20]."""
        with self._lock:
            updated = AppSettings(speed_offset_kph=self._settings.speed_offset_kph, map_zoom=value)
            self._settings = updated
            self._save()
