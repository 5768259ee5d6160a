"""
Speed bucket classification for route polylines.

Maps a speed in km/h to one of five discrete buckets and their ARGB colors.
"""

from enum import IntEnum
from typing import Tuple

from constants import (
    SPEED_COLORS,
    SPEED_BUCKET_CRAWL_KPH,
    SPEED_BUCKET_SLOW_KPH,
    SPEED_BUCKET_CITY_KPH,
    SPEED_BUCKET_FAST_KPH,
)


class SpeedBucket(IntEnum):
    """Discrete speed classes, slowest first."""
    CRAWL = 0
    SLOW = 1
    CITY = 2
    FAST = 3
    VERY_FAST = 4


_BUCKET_COLORS = {
    SpeedBucket.CRAWL: SPEED_COLORS.CRAWL,
    SpeedBucket.SLOW: SPEED_COLORS.SLOW,
    SpeedBucket.CITY: SPEED_COLORS.CITY,
    SpeedBucket.FAST: SPEED_COLORS.FAST,
    SpeedBucket.VERY_FAST: SPEED_COLORS.VERY_FAST,
}


def bucket_for_speed_kph(speed_kph: float) -> SpeedBucket:
    """Classify a speed in km/h."""
    if speed_kph < SPEED_BUCKET_CRAWL_KPH:
        return SpeedBucket.CRAWL
    elif speed_kph < SPEED_BUCKET_SLOW_KPH:
        return SpeedBucket.SLOW
    elif speed_kph < SPEED_BUCKET_CITY_KPH:
        return SpeedBucket.CITY
    elif speed_kph < SPEED_BUCKET_FAST_KPH:
        return SpeedBucket.FAST
    else:
        return SpeedBucket.VERY_FAST


def color_for_speed_kph(speed_kph: float) -> int:
    """Get the ARGB polyline color for a speed in km/h."""
    return _BUCKET_COLORS[bucket_for_speed_kph(speed_kph)]


def argb_to_rgb(argb: int) -> Tuple[int, int, int]:
    """Unpack 0xAARRGGBB into an (R, G, B) tuple."""
    return ((argb >> 16) & 0xFF, (argb >> 8) & 0xFF, argb & 0xFF)
