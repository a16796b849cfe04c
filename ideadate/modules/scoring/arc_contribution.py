"""
modules/scoring/arc_contribution.py
-----------------------------------
How much each stop helps or hurts the plan's narrative arc.

Per stop:
    positives = 0.40 * transition smoothness
              + 0.35 * peak alignment
              + 0.25 * taper integrity          (weight-normalised)
    penalties = 0.55 * fatigue impact
              + 0.45 * friction impact          (weight-normalised)
    contribution = positives * (1 - penalties)

Preference tilt (modules/scoring/refine_tilt.py) scales the five weights
within 0.8–1.2 and shifts the ideal peak by up to two stops.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ideadate.modules.scoring.scoring import FatiguePenalty, FrictionPenalty
from ideadate.schemas.profile import clamp, clamp01, round_half_up


@dataclass(frozen=True)
class ArcWeights:
    transition_smoothness: float = 1.0
    peak_alignment: float = 1.0
    taper_integrity: float = 1.0
    fatigue_impact: float = 1.0
    friction_impact: float = 1.0

    def __post_init__(self) -> None:
        for name in ("transition_smoothness", "peak_alignment", "taper_integrity",
                     "fatigue_impact", "friction_impact"):
            object.__setattr__(self, name, clamp(getattr(self, name), 0.8, 1.2, fallback=1.0))


@dataclass(frozen=True)
class ArcContributionOptions:
    weights: ArcWeights = field(default_factory=ArcWeights)
    ideal_peak_shift: int = 0


@dataclass(frozen=True)
class ArcContribution:
    by_index: tuple[float, ...] = ()
    total: float = 0.0
    narratives_by_index: tuple[str, ...] = ()


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _avg(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(_finite(v) for v in values) / len(values)


def _clamp_index(value: int, length: int) -> int:
    if length <= 0:
        return 0
    return max(0, min(length - 1, int(value)))


def _narrative(
    index: int,
    smoothness: float,
    peak_alignment: float,
    taper: float,
    fatigue_impact: float,
    friction_impact: float,
    positives: float,
    penalties: float,
    weights: ArcWeights,
) -> str:
    label = f"Stop {index + 1}"
    friction_w = clamp01(friction_impact * weights.friction_impact)
    fatigue_w = clamp01(fatigue_impact * weights.fatigue_impact)
    peak_w = clamp01(peak_alignment * weights.peak_alignment)
    if penalties > positives:
        if friction_w >= fatigue_w and friction_w > 0.2:
            return f"{label}: transition drag weakens flow around this handoff."
        if fatigue_w > 0.2:
            return f"{label}: energy load here adds fatigue and flattens momentum."
        if taper < 0.45:
            return f"{label}: taper rhythm breaks here and disrupts the landing."
        return f"{label}: contribution is limited, so this beat carries less narrative weight."
    if taper > 0.75 and peak_w > 0.6:
        return f"{label}: supports a clean peak-to-taper narrative transition."
    if peak_w > 0.75:
        return f"{label}: reinforces peak placement in the right part of the journey."
    if smoothness > 0.75:
        return f"{label}: keeps neighboring transitions smooth and coherent."
    return f"{label}: keeps narrative pacing steady without introducing new arc risks."


def compute_arc_contribution_by_stop(
    energy_series: Sequence[float],
    fatigue: FatiguePenalty,
    friction: FrictionPenalty,
    transition_minutes: Sequence[float],
    options: Optional[ArcContributionOptions] = None,
) -> ArcContribution:
    count = len(energy_series)
    if count == 0:
        return ArcContribution()

    options = options or ArcContributionOptions()
    w = options.weights
    energies = [clamp01(v) for v in energy_series]
    denominator = max(1, count - 1)
    peak_shift = max(-2, min(2, round_half_up(clamp(options.ideal_peak_shift, -1e6, 1e6, fallback=0))))
    actual_peak = _clamp_index(fatigue.actual_peak_index, count)
    ideal_peak = _clamp_index(fatigue.ideal_peak_index + peak_shift, count)
    fatigue_penalty = clamp01(fatigue.penalty)
    friction_penalty = clamp01(friction.penalty)
    positive_total = max(0.001, w.transition_smoothness * 0.4 + w.peak_alignment * 0.35
                         + w.taper_integrity * 0.25)
    penalty_total = max(0.001, w.fatigue_impact * 0.55 + w.friction_impact * 0.45)

    by_index: list[float] = []
    narratives: list[str] = []
    for index, energy in enumerate(energies):
        has_prev = index > 0
        has_next = index < count - 1
        prev_energy = energies[index - 1] if has_prev else energy
        next_energy = energies[index + 1] if has_next else energy

        deltas = []
        if has_prev:
            deltas.append(abs(energy - prev_energy))
        if has_next:
            deltas.append(abs(next_energy - energy))
        smoothness = clamp01(1 - _avg(deltas))

        slope_in = energy - prev_energy
        slope_out = next_energy - energy
        if index < actual_peak:
            peak_alignment = clamp01(0.5 + 0.35 * slope_in + 0.15 * slope_out)
        elif index > actual_peak:
            peak_alignment = clamp01(0.5 - 0.35 * slope_in - 0.15 * slope_out)
        else:
            crest = clamp01(energy - _avg([prev_energy, next_energy]))
            timing = 1 - clamp01(abs(actual_peak - ideal_peak) / denominator)
            peak_alignment = clamp01(0.65 * (0.5 + 0.5 * crest) + 0.35 * timing)

        taper = 1.0
        if has_prev:
            if index <= actual_peak:
                taper = clamp01(1 - clamp01(-slope_in))
            else:
                taper = clamp01(1 - clamp01(slope_in))
        if index == count - 1 and fatigue.no_taper == 1:
            taper = clamp01(taper * 0.7)

        fatigue_impact = 0.0 if count <= 1 else clamp01(fatigue_penalty * (0.45 + 0.55 * energy))

        local_minutes = []
        if has_prev:
            local_minutes.append(max(0.0, _finite(transition_minutes[index - 1]))
                                 if index - 1 < len(transition_minutes) else 0.0)
        if has_next:
            local_minutes.append(max(0.0, _finite(transition_minutes[index]))
                                 if index < len(transition_minutes) else 0.0)
        transition_load = clamp01(_avg(local_minutes) / 24)
        friction_impact = clamp01(friction_penalty * (0.5 + 0.5 * transition_load))

        positives = clamp01(
            (smoothness * w.transition_smoothness * 0.4
             + peak_alignment * w.peak_alignment * 0.35
             + taper * w.taper_integrity * 0.25) / positive_total
        )
        penalties = clamp01(
            (fatigue_impact * w.fatigue_impact * 0.55
             + friction_impact * w.friction_impact * 0.45) / penalty_total
        )
        by_index.append(_finite(clamp01(positives * (1 - penalties))))
        narratives.append(_narrative(index, smoothness, peak_alignment, taper,
                                     fatigue_impact, friction_impact, positives, penalties, w))

    return ArcContribution(
        by_index=tuple(by_index),
        total=_finite(sum(by_index)),
        narratives_by_index=tuple(narratives),
    )
