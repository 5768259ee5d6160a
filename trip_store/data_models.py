"""
Data models for recorded trips.

Pydantic models for the raw GPS fixes of a trip and the trip record itself.
"""

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from constants import KPH_TO_MPS, MPS_TO_KPH
from geodesy import LatLng


class Fix(BaseModel):
    """
    Single timestamped GPS sample.

    Immutable once created. Fixes of one trip are ordered by timestamp.
    """
    model_config = ConfigDict(frozen=True)

    timestamp_epoch_ms: int = Field(description="Unix epoch milliseconds")
    latitude: float = Field(description="WGS84 latitude in degrees")
    longitude: float = Field(description="WGS84 longitude in degrees")
    speed_raw_mps: float = Field(default=0.0, description="Device-reported speed in m/s")
    speed_adjusted_mps: float = Field(
        default=0.0, ge=0.0, description="Raw speed plus the configured offset, floored at 0"
    )

    @property
    def position(self) -> LatLng:
        """Position as a LatLng."""
        return LatLng(self.latitude, self.longitude)

    @property
    def speed_kmh(self) -> float:
        """Adjusted speed in kilometers per hour."""
        return self.speed_adjusted_mps * MPS_TO_KPH

    @classmethod
    def from_raw(
        cls,
        timestamp_epoch_ms: int,
        latitude: float,
        longitude: float,
        speed_raw_mps: Optional[float],
        speed_offset_kph: float = 0.0,
    ) -> "Fix":
        """
        Create a Fix from a device sample, applying the speed offset.

        Args:
            timestamp_epoch_ms: Sample time
            latitude: Latitude in degrees
            longitude: Longitude in degrees
            speed_raw_mps: Device speed, or None when the device has no speed;
                non-finite values count as missing
            speed_offset_kph: Constant offset added to the raw speed

        Returns:
            Fix with adjusted speed = max(raw + offset, 0)
        """
        raw = float(speed_raw_mps) if speed_raw_mps is not None else 0.0
        if not math.isfinite(raw):
            raw = 0.0
        adjusted = max(raw + speed_offset_kph * KPH_TO_MPS, 0.0)
        return cls(
            timestamp_epoch_ms=timestamp_epoch_ms,
            latitude=latitude,
            longitude=longitude,
            speed_raw_mps=raw,
            speed_adjusted_mps=adjusted,
        )


class Trip(BaseModel):
    """
    A bounded recording session.

    The end time stays None while the trip is being recorded.
    """
    id: int = Field(description="Unique trip identifier")
    name: Optional[str] = Field(default=None, description="User-assigned name")
    started_at_epoch_ms: int = Field(description="Trip start, Unix epoch milliseconds")
    ended_at_epoch_ms: Optional[int] = Field(default=None, description="Trip end, if finished")

    @property
    def title(self) -> str:
        """Display title, e.g. 'Commute (#3)' or 'Trip #3'."""
        if self.name and self.name.strip():
            return f"{self.name} (#{self.id})"
        return f"Trip #{self.id}"

    @property
    def is_finished(self) -> bool:
        """Whether the trip has an end time."""
        return self.ended_at_epoch_ms is not None
