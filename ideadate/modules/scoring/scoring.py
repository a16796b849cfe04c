"""
modules/scoring/scoring.py
--------------------------
Leaf scoring functions: intent alignment, fatigue, friction and the
composite journey score.

All functions are pure and total. Out-of-range or non-finite input is
clamped, never rejected, so callers always get a number back.

    journey = 0.58 * I + 0.22 * (1 - Fa) + 0.20 * (1 - Fr)

where I is the mean stop intent alignment, Fa the fatigue penalty and Fr
the friction penalty (weights in config.COMPOSITE_WEIGHTS).
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Mapping, Optional, Sequence

from ideadate import config
from ideadate.schemas.profile import IntentVector, clamp, clamp01, round_half_up


# ── Intent ────────────────────────────────────────────────────────────────────

def compute_stop_intent_score(
    intent: IntentVector,
    vibe_target: IntentVector,
    vibe_importance: IntentVector,
) -> float:
    """Importance-weighted mean of per-dimension closeness (1 - |a - b|)."""
    weighted = 0.0
    total_weight = 0.0
    for key in config.INTENT_KEYS:
        weight = max(0.01, vibe_importance.get(key))
        alignment = clamp01(1 - abs(intent.get(key) - vibe_target.get(key)))
        weighted += alignment * weight
        total_weight += weight
    if total_weight <= 0:
        return 0.0
    return clamp01(weighted / total_weight)


def compute_journey_intent_score(
    intents: Sequence[IntentVector],
    vibe_target: IntentVector,
    vibe_importance: IntentVector,
) -> float:
    if not intents:
        return 0.0
    total = sum(compute_stop_intent_score(i, vibe_target, vibe_importance) for i in intents)
    return clamp01(total / len(intents))


# ── Arc shape helpers ─────────────────────────────────────────────────────────

def _local_maxima(series: Sequence[float]) -> list[tuple[int, float]]:
    """(first index, value) of each plateau strictly above its neighbouring plateaus."""
    runs: list[tuple[int, float]] = []
    for index, value in enumerate(series):
        if not runs or runs[-1][1] != value:
            runs.append((index, value))
    if len(runs) < 2:
        return []
    maxima = []
    for pos, (index, value) in enumerate(runs):
        left = runs[pos - 1][1] if pos > 0 else None
        right = runs[pos + 1][1] if pos + 1 < len(runs) else None
        if (left is None or value > left) and (right is None or value > right):
            maxima.append((index, value))
    return maxima


def detect_double_peak(series: Sequence[float]) -> bool:
    """
    True when any two non-adjacent local maxima are separated by a real valley.

    The lower peak must reach DOUBLE_PEAK_MIN_RELATIVE_HEIGHT of the highest
    energy, and the minimum between the two peaks must sit at least
    DOUBLE_PEAK_MIN_DIP_FRACTION below the lower peak.
    """
    series = [clamp01(v) for v in series]
    maxima = _local_maxima(series)
    if len(maxima) < 2:
        return False
    top = max(series)
    if top <= 0:
        return False
    for (i, a), (j, b) in combinations(maxima, 2):
        lower = min(a, b)
        if lower < top * config.DOUBLE_PEAK_MIN_RELATIVE_HEIGHT:
            continue
        valley = min(series[i:j + 1])
        if valley <= lower * (1 - config.DOUBLE_PEAK_MIN_DIP_FRACTION):
            return True
    return False


def detect_no_taper(series: Sequence[float]) -> bool:
    """True when the final stop is still at the plan's peak energy."""
    if not series:
        return False
    series = [clamp01(v) for v in series]
    return series[-1] >= max(series)


# ── Fatigue ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FatiguePenalty:
    penalty: float = 0.0
    peak_deviation: float = 0.0
    double_peak: int = 0
    no_taper: int = 0
    actual_peak_index: int = 0
    ideal_peak_index: int = 0


def compute_fatigue_penalty(energy_series: Sequence[float]) -> FatiguePenalty:
    """
    0.5 * peak deviation + 0.3 * double peak + 0.2 * no taper, clamped.

    The ideal peak sits at round(N / 2); deviation is the distance of the
    first maximum from it, normalised by N.
    """
    if not energy_series:
        return FatiguePenalty()
    series = [clamp01(v) for v in energy_series]
    n = len(series)
    ideal = round_half_up(n * 0.5)
    actual = series.index(max(series))
    deviation = clamp01(abs(actual - ideal) / n)
    double_peak = 1 if detect_double_peak(series) else 0
    no_taper = 1 if detect_no_taper(series) else 0
    return FatiguePenalty(
        penalty=clamp01(0.5 * deviation + 0.3 * double_peak + 0.2 * no_taper),
        peak_deviation=deviation,
        double_peak=double_peak,
        no_taper=no_taper,
        actual_peak_index=actual,
        ideal_peak_index=ideal,
    )


# ── Friction ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FrictionTransition:
    minutes: float
    distance_m: float = 0.0
    from_key: Optional[str] = None
    to_key: Optional[str] = None


@dataclass(frozen=True)
class FrictionPenalty:
    penalty: float = 0.0
    edge_penalty: float = 0.0
    travel_share_penalty: float = 0.0
    backtracking_penalty: float = 0.0
    travel_share: float = 0.0


def edge_walk_friction(minutes: float) -> float:
    """0 up to 12 min, 0.5 at 18 min, 1.0 at 30 min and beyond; continuous."""
    minutes = clamp(minutes, 0.0, 1e6)
    if minutes <= 12:
        return 0.0
    if minutes <= 18:
        return ((minutes - 12) / 6) * 0.5
    return clamp01(0.5 + ((minutes - 18) / 12) * 0.5)


def _backtracking(transitions: Sequence[FrictionTransition]) -> float:
    hits = 0
    seen: set[str] = set()
    for t in transitions:
        if t.to_key and t.to_key in seen and t.to_key != t.from_key:
            hits += 1
        if t.from_key:
            seen.add(t.from_key)
        if t.to_key:
            seen.add(t.to_key)
    return clamp01(hits * 0.4)


def compute_friction_penalty(
    transitions: Sequence[FrictionTransition],
    total_stop_minutes: float = 0.0,
) -> FrictionPenalty:
    """
    0.55 * mean edge friction + 0.30 * travel-share penalty + 0.15 * backtracking.

    The travel share is travel / (travel + time at stops), so the same
    transfer weighs more in a short plan than in a long one. Non-decreasing
    in every transfer's minutes.
    """
    if not transitions:
        return FrictionPenalty()
    edge_scores = [edge_walk_friction(t.minutes) for t in transitions]
    edge_penalty = clamp01(sum(edge_scores) / len(edge_scores))
    travel_minutes = sum(clamp(t.minutes, 0.0, 1e6) for t in transitions)
    stop_minutes = max(1.0, clamp(total_stop_minutes, 0.0, 1e9))
    share = clamp01(travel_minutes / (travel_minutes + stop_minutes))
    share_penalty = 0.0 if share <= 0.35 else clamp01((share - 0.35) / 0.3)
    backtracking = _backtracking(transitions)
    return FrictionPenalty(
        penalty=clamp01(0.55 * edge_penalty + 0.3 * share_penalty + 0.15 * backtracking),
        edge_penalty=edge_penalty,
        travel_share_penalty=share_penalty,
        backtracking_penalty=backtracking,
        travel_share=share,
    )


# ── Composite ─────────────────────────────────────────────────────────────────

def compute_journey_score(
    intent: float,
    fatigue_penalty: float,
    friction_penalty: float,
    weights: Optional[Mapping[str, float]] = None,
) -> float:
    weights = weights or config.COMPOSITE_WEIGHTS
    raw = (
        weights["intent"] * clamp01(intent)
        + weights["fatigue"] * (1 - clamp01(fatigue_penalty))
        + weights["friction"] * (1 - clamp01(friction_penalty))
    )
    return clamp01(raw)


def to_score100(score01: float) -> int:
    return round_half_up(clamp01(score01) * 100)
