"""
config.py
---------
Central configuration for the IdeaDate engine.
Runtime settings come from environment variables; tuned scoring constants
live below them so every threshold has exactly one home.

The calibration values are carried over from the product's tuning passes and
have no closed-form derivation. Treat them as review points, not as facts.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the repository root (if it exists) so values in that file
# are picked up by os.getenv() below.
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Runtime ───────────────────────────────────────────────────────────────────
# "development" | "staging" | "production"
IDEADATE_ENV: str = os.getenv("IDEADATE_ENV", "development").strip().lower()

# ── Google Places API (required when USE_REMOTE_RESOLVER=true) ────────────────
GOOGLE_PLACES_API_KEY: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
GOOGLE_PLACES_NEARBY_URL: str = os.getenv(
    "GOOGLE_PLACES_NEARBY_URL", "https://places.googleapis.com/v1/places:searchNearby"
)
GOOGLE_PLACES_DETAILS_URL: str = os.getenv(
    "GOOGLE_PLACES_DETAILS_URL", "https://places.googleapis.com/v1/places/{place_id}"
)
GOOGLE_PLACES_TIMEOUT_S: float = float(os.getenv("GOOGLE_PLACES_TIMEOUT_S", "8"))

# Resolver chain toggles. The local dataset needs no keys.
USE_REMOTE_RESOLVER: bool = _env_flag("USE_REMOTE_RESOLVER", "false")
USE_LOCAL_RESOLVER: bool = _env_flag("USE_LOCAL_RESOLVER", "true")

# Max outstanding place-detail lookups per batch.
DETAIL_BATCH_SIZE: int = int(os.getenv("IDEADATE_DETAIL_BATCH_SIZE", "4"))


def is_production() -> bool:
    return IDEADATE_ENV == "production"


def strict_invariants() -> bool:
    """Non-production builds fail loudly on broken engine invariants."""
    return not is_production()


# ── Intent model ──────────────────────────────────────────────────────────────

INTENT_KEYS: tuple[str, ...] = (
    "intimacy",
    "energy",
    "novelty",
    "discovery",
    "pretense",
    "pressure",
)

DEFAULT_VIBE_ID: str = "first_date_low_pressure"
DEFAULT_TRAVEL_MODE: str = "walk"

# vibe_id -> label, target, importance (ordered as INTENT_KEYS)
VIBE_PROFILES: dict[str, dict] = {
    "first_date_low_pressure": {
        "label": "First Date: Low Pressure",
        "target": (0.72, 0.44, 0.58, 0.62, 0.20, 0.15),
        "importance": (0.90, 0.65, 0.60, 0.55, 0.50, 0.95),
    },
    "anniversary_intimate": {
        "label": "Anniversary: Intimate",
        "target": (0.88, 0.38, 0.46, 0.42, 0.40, 0.12),
        "importance": (1.00, 0.58, 0.45, 0.45, 0.42, 0.90),
    },
}


def get_vibe_profile(vibe_id: str | None) -> dict:
    """Return the vibe profile for *vibe_id*, or the default vibe."""
    return VIBE_PROFILES.get(vibe_id or DEFAULT_VIBE_ID, VIBE_PROFILES[DEFAULT_VIBE_ID])


# ── Journey score ─────────────────────────────────────────────────────────────
# journey = w_intent * I + w_fatigue * (1 - Fa) + w_friction * (1 - Fr)
COMPOSITE_WEIGHTS: dict[str, float] = {
    "intent": 0.58,
    "fatigue": 0.22,
    "friction": 0.20,
}

# Minimum journey gain for a plain reorder suggestion.
REORDER_DELTA_THRESHOLD: float = 0.08

# ── Metric violation thresholds ───────────────────────────────────────────────
VIOLATION_THRESHOLDS: dict[str, float] = {
    "intent_warn": 0.55,
    "intent_critical": 0.42,
    "fatigue_warn": 0.45,
    "fatigue_critical": 0.65,
    "friction_warn": 0.35,
    "friction_critical": 0.55,
}

# ── Constraint thresholds ─────────────────────────────────────────────────────
HARD_MAX_TRAVEL_EDGE_MINUTES: int = 25
SOFT_TRAVEL_EDGE_MINUTES: int = 18
JOURNEY_SCORE_FLOOR: float = 0.50

# ── Arc shape ─────────────────────────────────────────────────────────────────
# A secondary local maximum only counts as a second peak when it reaches this
# share of the global maximum ...
DOUBLE_PEAK_MIN_RELATIVE_HEIGHT: float = 0.85
# ... and the valley between the two peaks dips by at least this fraction of
# the lower peak.
DOUBLE_PEAK_MIN_DIP_FRACTION: float = 0.25

CONCIERGE_PHRASES: dict[str, str] = {
    "intent_low": "Mood fit is slipping; tune sequence or place fit.",
    "fatigue_high": "Energy arc feels choppy; smooth the peak and taper.",
    "friction_high": "Transit drag is high; tighten spacing between stops.",
    "travel_edge_high": "One handoff is adding too much friction.",
    "no_taper": "The close is still intense; add a softer finish.",
    "double_peak": "Pacing has more than one peak; let the night build once.",
}

# ── Travel ────────────────────────────────────────────────────────────────────
WALK_SPEED_MPS: float = 1.4
DRIVE_SPEED_MPS: float = 9.0
SAME_PLACE_FALLBACK_M: float = 120.0
UNKNOWN_DISTANCE_FALLBACK_M: float = 1800.0

# ── Diversity ─────────────────────────────────────────────────────────────────
LIGHT_DIVERSITY_WEIGHT: float = 0.0005
NEAR_EQUAL_DELTA: float = 0.015
MAX_DIVERSITY_WEIGHT: float = 0.01

EMPTY_SUGGESTIONS_MESSAGE: str = "You're in great shape. This plan already flows well."
MAX_SUGGESTIONS: int = 3
