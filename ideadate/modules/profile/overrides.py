"""
modules/profile/overrides.py
----------------------------
Applies the three manual sliders (chill↔lively, relaxed↔active,
quick↔lingering) on top of a stop's hydrated baseline.

Overrides always start from the stored override-free baseline, so
apply_overrides(apply_overrides(p, o), o) == apply_overrides(p, o).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ideadate.schemas.profile import (
    IntentVector,
    NEUTRAL_OVERRIDES,
    Overrides,
    ProfileBaseline,
    StopProfile,
    clamp01,
    clamp_duration,
    round_half_up,
)


def _chill_lively(intent: dict, energy_level: float, amount: float) -> float:
    lively = amount * 0.22
    intent["intimacy"] -= lively
    intent["energy"] += lively
    intent["novelty"] += amount * 0.12
    intent["discovery"] += amount * 0.10
    intent["pretense"] += amount * 0.08
    intent["pressure"] += amount * 0.10
    return clamp01(energy_level + lively * 0.5)


def _relaxed_active(intent: dict, energy_level: float, amount: float) -> float:
    delta = amount * 0.2
    intent["energy"] += delta
    intent["pressure"] += amount * 0.06
    return clamp01(energy_level + delta)


def _quick_lingering(intent: dict, duration_min: int, amount: float) -> int:
    intent["pressure"] -= amount * 0.14
    return round_half_up(duration_min * (1 + amount * 0.25))


def _clamped(intent: dict) -> dict:
    return {key: clamp01(value) for key, value in intent.items()}


def apply_overrides(profile: StopProfile, overrides: Optional[Overrides] = None) -> StopProfile:
    """
    Re-derive *profile* from its baseline with *overrides* applied
    (the profile's own overrides when None). Each slider step clamps
    before the next one runs.
    """
    overrides = profile.overrides if overrides is None else overrides
    baseline: ProfileBaseline = profile.as_baseline()

    intent = baseline.intent.as_dict()
    energy_level = _chill_lively(intent, baseline.energy_level, overrides.chill_lively)
    intent = _clamped(intent)
    energy_level = _relaxed_active(intent, energy_level, overrides.relaxed_active)
    intent = _clamped(intent)
    duration_min = _quick_lingering(intent, baseline.duration_min, overrides.quick_lingering)

    return replace(
        profile,
        intent=IntentVector(**intent),
        energy_level=energy_level,
        duration_min=clamp_duration(duration_min),
        overrides=overrides,
        baseline=baseline,
    )


def clear_overrides(profile: StopProfile) -> StopProfile:
    return apply_overrides(profile, NEUTRAL_OVERRIDES)
