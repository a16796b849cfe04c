"""
modules/scoring/refine_tilt.py
------------------------------
Preference tilt and planning modes.

A plan's tilt (vibe / walking / peak, each -1, 0 or +1) reshapes the
arc-contribution weights used to rank suggestions; it never changes the
journey score itself. When the plan's own tilt is neutral, the planning
mode's default tilt is used instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ideadate.modules.scoring.arc_contribution import ArcContributionOptions, ArcWeights
from ideadate.schemas.plan import PrefTilt
from ideadate.schemas.profile import clamp


class PlanningMode(str, Enum):
    DEFAULT = "default"
    DATE_NIGHT = "date_night"
    TOURIST_DAY = "tourist_day"
    FAMILY = "family"
    LOW_MOBILITY = "low_mobility"


@dataclass(frozen=True)
class ModePolicy:
    label: str
    description: str
    default_tilt: PrefTilt


MODE_POLICIES: dict[PlanningMode, ModePolicy] = {
    PlanningMode.DEFAULT: ModePolicy(
        "Default", "Balanced assistant defaults.", PrefTilt(0, 0, 0)),
    PlanningMode.DATE_NIGHT: ModePolicy(
        "Date Night", "Slightly livelier pacing with a later peak.", PrefTilt(1, 0, 1)),
    PlanningMode.TOURIST_DAY: ModePolicy(
        "Tourist Day", "Discovery-forward day plan with more walking.", PrefTilt(1, 1, -1)),
    PlanningMode.FAMILY: ModePolicy(
        "Family", "Calmer pacing, shorter walking, earlier peak.", PrefTilt(-1, -1, -1)),
    PlanningMode.LOW_MOBILITY: ModePolicy(
        "Low Mobility", "Minimize movement while preserving flow.", PrefTilt(0, -1, 0)),
}


def normalize_mode(value) -> PlanningMode:
    try:
        return PlanningMode(value)
    except ValueError:
        return PlanningMode.DEFAULT


@dataclass(frozen=True)
class RefineTiltProfile:
    mode: PlanningMode
    plan_tilt: PrefTilt
    effective_tilt: PrefTilt
    applied: bool
    arc_options: Optional[ArcContributionOptions] = None


def build_refine_tilt_profile(tilt: Optional[PrefTilt], mode=None) -> RefineTiltProfile:
    mode = normalize_mode(mode)
    plan_tilt = tilt or PrefTilt()
    effective = MODE_POLICIES[mode].default_tilt if plan_tilt.is_neutral else plan_tilt
    applied = not effective.is_neutral
    options = None
    if applied:
        options = ArcContributionOptions(
            weights=ArcWeights(
                transition_smoothness=clamp(1 - effective.walking * 0.08, 0.9, 1.16),
                peak_alignment=clamp(1 + effective.vibe * 0.16, 0.84, 1.16),
                taper_integrity=1.0,
                fatigue_impact=clamp(1 + effective.walking * 0.1, 0.9, 1.1),
                friction_impact=clamp(1 - effective.walking * 0.16, 0.84, 1.16),
            ),
            ideal_peak_shift=effective.peak,
        )
    return RefineTiltProfile(
        mode=mode,
        plan_tilt=plan_tilt,
        effective_tilt=effective,
        applied=applied,
        arc_options=options,
    )


# ── Director notes ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TiltNarrativeContext:
    worst_edge_minutes_saved: float = 0.0
    total_travel_minutes_saved: float = 0.0
    delta_arc_contribution_total: float = 0.0
    fixed_arc_issue: bool = False


def build_tilt_narrative_note(tilt: Optional[PrefTilt], context: TiltNarrativeContext) -> Optional[str]:
    """One "Director note" sentence explaining how the tilt shaped a suggestion."""
    tilt = tilt or PrefTilt()
    if tilt.is_neutral:
        return None

    travel_moved = context.worst_edge_minutes_saved >= 2 or context.total_travel_minutes_saved >= 5
    if tilt.walking != 0 and travel_moved:
        if tilt.walking < 0:
            return "Director note: this leans toward less walking while keeping the route smooth."
        return "Director note: this keeps a longer stroll where it supports the flow."

    arc_moved = context.fixed_arc_issue or context.delta_arc_contribution_total > 0.01
    if tilt.peak != 0 and arc_moved:
        if tilt.peak < 0:
            return "Director note: this nudges the plan toward an earlier peak and quicker wind-down."
        return "Director note: this lets the evening build longer toward a later peak."

    if tilt.vibe != 0:
        if tilt.vibe < 0:
            return "Director note: this keeps the tone calmer and lower-pressure."
        return "Director note: this keeps the tone livelier with a stronger build."
    return None
