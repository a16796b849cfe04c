"""
schemas/profile.py
------------------
Per-stop and per-plan IdeaDate profile types.

A StopProfile is the semantic description every scoring function reads:
six-dimensional intent vector, scalar energy, duration and the manual
overrides that nudge it. All values are clamped on construction so the
scoring pipeline never sees out-of-range input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from ideadate import config


# ── Numeric helpers ───────────────────────────────────────────────────────────

def clamp(value: float, low: float, high: float, fallback: Optional[float] = None) -> float:
    """Clamp *value* into [low, high]; non-finite input maps to *fallback* (or low)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low if fallback is None else fallback
    if not math.isfinite(number):
        return low if fallback is None else fallback
    return min(high, max(low, number))


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (JS-style), not banker's rounding."""
    return int(math.floor(value + 0.5))


# ── Enums ─────────────────────────────────────────────────────────────────────

class Role(str, Enum):
    START = "start"
    MAIN = "main"
    WIND_DOWN = "windDown"
    FLEX = "flex"


class TravelMode(str, Enum):
    WALK = "walk"
    DRIVE = "drive"


# ── Intent vector ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IntentVector:
    intimacy: float = 0.0
    energy: float = 0.0
    novelty: float = 0.0
    discovery: float = 0.0
    pretense: float = 0.0
    pressure: float = 0.0

    def __post_init__(self) -> None:
        for key in config.INTENT_KEYS:
            object.__setattr__(self, key, clamp01(getattr(self, key)))

    @classmethod
    def from_values(cls, values: Iterable[float]) -> "IntentVector":
        return cls(*tuple(values))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float] | None) -> "IntentVector":
        mapping = mapping or {}
        return cls(**{key: mapping.get(key, 0.0) for key in config.INTENT_KEYS})

    def get(self, key: str) -> float:
        return getattr(self, key)

    def values(self) -> tuple[float, ...]:
        return tuple(getattr(self, key) for key in config.INTENT_KEYS)

    def as_dict(self) -> dict[str, float]:
        return {key: getattr(self, key) for key in config.INTENT_KEYS}


# ── Overrides ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Overrides:
    """Manual nudges, each in -1..1 (chill↔lively, relaxed↔active, quick↔lingering)."""

    chill_lively: float = 0.0
    relaxed_active: float = 0.0
    quick_lingering: float = 0.0

    def __post_init__(self) -> None:
        for name in ("chill_lively", "relaxed_active", "quick_lingering"):
            object.__setattr__(self, name, clamp(getattr(self, name), -1.0, 1.0, fallback=0.0))

    @property
    def is_neutral(self) -> bool:
        return self.chill_lively == 0 and self.relaxed_active == 0 and self.quick_lingering == 0


NEUTRAL_OVERRIDES = Overrides()

DEFAULT_ENERGY_LEVEL = 0.45
DEFAULT_DURATION_MIN = 75
MIN_DURATION_MIN = 20
MAX_DURATION_MIN = 240


def clamp_duration(value: float) -> int:
    minutes = round_half_up(clamp(value, -1e9, 1e9, fallback=DEFAULT_DURATION_MIN))
    return int(clamp(minutes, MIN_DURATION_MIN, MAX_DURATION_MIN))


# ── Stop profile ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProfileBaseline:
    """Hydrated, override-free values that overrides are applied on top of."""

    intent: IntentVector
    energy_level: float
    duration_min: int


@dataclass(frozen=True)
class StopProfile:
    role: Role = Role.FLEX
    intent: IntentVector = field(default_factory=IntentVector)
    energy_level: float = DEFAULT_ENERGY_LEVEL
    duration_min: int = DEFAULT_DURATION_MIN
    source_type: Optional[str] = None
    overrides: Overrides = NEUTRAL_OVERRIDES
    baseline: Optional[ProfileBaseline] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "energy_level", clamp(self.energy_level, 0.0, 1.0, fallback=DEFAULT_ENERGY_LEVEL))
        object.__setattr__(self, "duration_min", clamp_duration(self.duration_min))

    def as_baseline(self) -> ProfileBaseline:
        """The override-free baseline, falling back to the current values."""
        if self.baseline is not None:
            return self.baseline
        return ProfileBaseline(self.intent, self.energy_level, self.duration_min)


# ── Plan profile ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlanProfile:
    vibe_id: str = config.DEFAULT_VIBE_ID
    vibe_target: Optional[IntentVector] = None
    vibe_importance: Optional[IntentVector] = None
    travel_mode: TravelMode = TravelMode.WALK

    def __post_init__(self) -> None:
        if self.vibe_id not in config.VIBE_PROFILES:
            object.__setattr__(self, "vibe_id", config.DEFAULT_VIBE_ID)
        vibe = config.get_vibe_profile(self.vibe_id)
        if self.vibe_target is None:
            object.__setattr__(self, "vibe_target", IntentVector.from_values(vibe["target"]))
        if self.vibe_importance is None:
            object.__setattr__(self, "vibe_importance", IntentVector.from_values(vibe["importance"]))
        object.__setattr__(self, "travel_mode", TravelMode(self.travel_mode))
