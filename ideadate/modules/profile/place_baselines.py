"""
modules/profile/place_baselines.py
----------------------------------
Per-place-type starting points for stop profiles: typical energy, visit
length and intent vector (ordered intimacy, energy, novelty, discovery,
pretense, pressure).
"""

from __future__ import annotations

from dataclasses import dataclass

from ideadate.schemas.profile import IntentVector


@dataclass(frozen=True)
class PlaceTypeBaseline:
    place_type: str
    energy_level: float
    duration_min: int
    intent: IntentVector


def _row(place_type: str, energy: float, duration: int, *intent: float) -> PlaceTypeBaseline:
    return PlaceTypeBaseline(place_type, energy, duration, IntentVector.from_values(intent))


PLACE_TYPE_BASELINES: dict[str, PlaceTypeBaseline] = {
    row.place_type: row
    for row in (
        _row("cafe",               0.35,  55, 0.72, 0.32, 0.36, 0.44, 0.14, 0.12),
        _row("restaurant",         0.50,  85, 0.74, 0.50, 0.46, 0.42, 0.30, 0.26),
        _row("bar",                0.64,  80, 0.54, 0.72, 0.50, 0.40, 0.40, 0.32),
        _row("park",               0.28,  70, 0.78, 0.25, 0.34, 0.52, 0.05, 0.08),
        _row("museum",             0.42,  95, 0.58, 0.42, 0.62, 0.78, 0.24, 0.18),
        _row("art_gallery",        0.40,  75, 0.63, 0.40, 0.62, 0.72, 0.25, 0.20),
        _row("movie_theater",      0.48, 110, 0.56, 0.42, 0.32, 0.22, 0.22, 0.14),
        _row("live_music_venue",   0.76,  95, 0.50, 0.82, 0.64, 0.56, 0.48, 0.42),
        _row("tourist_attraction", 0.55,  80, 0.40, 0.58, 0.66, 0.72, 0.24, 0.30),
        _row("bookstore",          0.25,  45, 0.67, 0.20, 0.34, 0.48, 0.10, 0.08),
        _row("dessert_shop",       0.38,  40, 0.60, 0.36, 0.40, 0.32, 0.18, 0.12),
        _row("default",            0.46,  70, 0.50, 0.50, 0.45, 0.45, 0.20, 0.22),
    )
}


def get_place_type_baseline(place_type: str) -> PlaceTypeBaseline:
    return PLACE_TYPE_BASELINES.get(place_type, PLACE_TYPE_BASELINES["default"])
