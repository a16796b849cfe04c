"""
modules/scoring/arc_model.py
----------------------------
Narrative energy arc of a plan: one point per stop plus shape flags.

Points are laid out on x in [0, 1] and y in [0.2, 0.8] for rendering. The
flags reuse the fatigue breakdown so the arc and the fatigue penalty can
never disagree about a plan's shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ideadate.modules.scoring.scoring import compute_fatigue_penalty
from ideadate.schemas.profile import clamp01


@dataclass(frozen=True)
class ArcPoint:
    x: float
    y: float


@dataclass(frozen=True)
class ArcFlags:
    peak_early: bool = False
    peak_late: bool = False
    double_peak: bool = False
    no_taper: bool = False


@dataclass(frozen=True)
class ArcModel:
    points: tuple[ArcPoint, ...] = ()
    peak_index_ideal: int = 0
    peak_index_actual: int = 0
    flags: ArcFlags = field(default_factory=ArcFlags)


def build_arc_model(energy_levels: Sequence[float]) -> ArcModel:
    if not energy_levels:
        return ArcModel()
    series = [clamp01(value) for value in energy_levels]
    denominator = max(1, len(series) - 1)
    points = tuple(
        ArcPoint(x=index / denominator, y=0.2 + 0.6 * energy)
        for index, energy in enumerate(series)
    )
    fatigue = compute_fatigue_penalty(series)
    return ArcModel(
        points=points,
        peak_index_ideal=fatigue.ideal_peak_index,
        peak_index_actual=fatigue.actual_peak_index,
        flags=ArcFlags(
            peak_early=fatigue.actual_peak_index < fatigue.ideal_peak_index,
            peak_late=fatigue.actual_peak_index > fatigue.ideal_peak_index,
            double_peak=fatigue.double_peak == 1,
            no_taper=fatigue.no_taper == 1,
        ),
    )
