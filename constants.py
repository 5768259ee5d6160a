"""
Constants for the trip recorder and replay engine.

Centralized definitions for geodesy, speed buckets, tracking thresholds,
replay simplification and playback timing.
"""

from dataclasses import dataclass


# =============================================================================
# Geodesy
# =============================================================================

EARTH_RADIUS_M = 6_371_000.0  # Mean Earth radius

# Below this angular distance (radians) interpolation falls back to linear lat/lng
SPHERICAL_INTERP_MIN_ANGLE_RAD = 1e-6

# Squared projected segment length (m^2) under which a segment is a point
DEGENERATE_SEGMENT_LEN2 = 1e-9


# =============================================================================
# Unit Conversions
# =============================================================================

MPS_TO_KPH = 3.6
KPH_TO_MPS = 1.0 / MPS_TO_KPH


# =============================================================================
# Speed Colors (ARGB, as consumed by map polylines)
# =============================================================================

@dataclass(frozen=True)
class SpeedColors:
    """Polyline colors for each speed bucket, packed as 0xAARRGGBB."""
    CRAWL: int = 0xFF00C853      # Green 0-10 km/h
    SLOW: int = 0xFF64DD17       # Light green 10-30 km/h
    CITY: int = 0xFFFFD600       # Yellow 30-50 km/h
    FAST: int = 0xFFFF6D00       # Orange 50-80 km/h
    VERY_FAST: int = 0xFFD50000  # Red 80+ km/h


SPEED_COLORS = SpeedColors()


# =============================================================================
# Speed Bucket Thresholds (km/h)
# =============================================================================

SPEED_BUCKET_CRAWL_KPH = 10.0  # Below this: green
SPEED_BUCKET_SLOW_KPH = 30.0   # Below this: light green
SPEED_BUCKET_CITY_KPH = 50.0   # Below this: yellow
SPEED_BUCKET_FAST_KPH = 80.0   # Below this: orange; above: red


# =============================================================================
# Live Tracking
# =============================================================================

MOVING_THRESHOLD_MPS = 1.0     # Average interval speed that counts as moving
BEARING_MIN_SPEED_MPS = 1.0    # Live map keeps its bearing below this speed
DEFAULT_SPEED_OFFSET_KPH = 0.0


# =============================================================================
# Replay Simplification
# =============================================================================

REPLAY_RDP_EPSILON_M = 10.0
REPLAY_RDP_MAX_POINTS = 12000
REPLAY_MIN_DISTANCE_M = 3.0
REPLAY_MAX_POINTS = 6000

# Speed chart samples
SPEED_SAMPLE_COUNT = 120
SPEED_SAMPLE_MIN = 20
SPEED_SAMPLE_MAX = 400


# =============================================================================
# Static Route Preview
# =============================================================================

ROUTE_PREVIEW_MAX_POINTS = 2000
ROUTE_PREVIEW_MIN_DISTANCE_M = 5.0
ROUTE_PREVIEW_PIXELS_PER_POINT = 6.0
ROUTE_SINGLE_POLYLINE_THRESHOLD = 800  # Above this, draw one polyline

METERS_PER_PIXEL_AT_EQUATOR_Z0 = 156543.03392
MIN_MAP_ZOOM = 2.0
MAX_MAP_ZOOM = 20.0
DEFAULT_MAP_ZOOM = 16.0


# =============================================================================
# Playback Clock
# =============================================================================

PLAYBACK_TICK_MS = 16          # ~60 fps driver
MAX_TICK_ELAPSED_MS = 250      # Cap on wall time consumed by one tick
