"""
modules/travel/distance_tool.py
-------------------------------
Straight-line travel estimates using the Haversine formula and a fixed
speed per travel mode. No external HTTP calls are made.

Config knobs (config.py):
  WALK_SPEED_MPS  -- walking speed (default: 1.4 m/s)
  DRIVE_SPEED_MPS -- driving speed (default: 9 m/s)
"""

from __future__ import annotations

import math

from ideadate import config
from ideadate.schemas.plan import LatLng
from ideadate.schemas.profile import TravelMode, round_half_up

_EARTH_RADIUS_M = 6_371_000.0


def haversine_m(a: LatLng, b: LatLng) -> float:
    """Great-circle distance between two points (Haversine formula) in metres."""
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lam = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * _EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def speed_mps(mode: TravelMode) -> float:
    return config.DRIVE_SPEED_MPS if TravelMode(mode) is TravelMode.DRIVE else config.WALK_SPEED_MPS


def estimate_travel_minutes(mode: TravelMode, distance_m: float) -> int:
    """Whole minutes, at least 1 for any positive distance."""
    if not math.isfinite(distance_m) or distance_m <= 0:
        return 0
    seconds = distance_m / speed_mps(mode)
    return max(1, round_half_up(seconds / 60))
