"""
modules/refinement/recompute.py
-------------------------------
The full scoring pipeline for one plan:

  ensure profiles -> travel summary -> intent / fatigue / friction
  -> journey score -> arc model -> arc contribution
  -> constraint report -> metric violations

recompute() is synchronous and pure apart from filling the TravelCache it
is handed. Every suggestion preview and every applied patch runs through
this same function, so score deltas are always comparable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ideadate.modules.profile.hydrator import ensure_profiles, require_profiles
from ideadate.modules.scoring.arc_contribution import (
    ArcContribution,
    ArcContributionOptions,
    compute_arc_contribution_by_stop,
)
from ideadate.modules.scoring.arc_model import ArcModel, build_arc_model
from ideadate.modules.scoring.refine_tilt import RefineTiltProfile
from ideadate.modules.scoring.scoring import (
    FatiguePenalty,
    FrictionPenalty,
    FrictionTransition,
    compute_fatigue_penalty,
    compute_friction_penalty,
    compute_journey_intent_score,
    compute_journey_score,
    to_score100,
)
from ideadate.modules.travel.travel_cache import TravelCache, TravelSummary
from ideadate.modules.validation.constraint_evaluator import (
    ConstraintReport,
    MetricViolation,
    build_metric_violations,
    evaluate,
)
from ideadate.schemas.plan import Plan
from ideadate.schemas.suggestion import Impact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComputedMetrics:
    intent_score: float
    fatigue_penalty: float
    friction_penalty: float
    journey_score: float
    journey_score100: int
    arc_contribution: ArcContribution
    constraints: ConstraintReport
    violations: tuple[MetricViolation, ...]
    fatigue: FatiguePenalty
    friction: FrictionPenalty

    @property
    def constraint_hard_count(self) -> int:
        return self.constraints.hard_count

    @property
    def constraint_soft_count(self) -> int:
        return self.constraints.soft_count

    @property
    def violation_types(self) -> set[str]:
        return {v.type for v in self.violations}


@dataclass(frozen=True)
class LiveResult:
    plan: Plan
    computed: ComputedMetrics
    travel: TravelSummary
    arc_model: ArcModel

    @property
    def energy_series(self) -> list[float]:
        return [stop.profile.energy_level for stop in self.plan.stops]

    @property
    def worst_edge_minutes(self) -> int:
        return max((edge.minutes for edge in self.travel.edges), default=0)


def recompute(
    plan: Plan,
    travel_cache: Optional[TravelCache] = None,
    hydrate: bool = True,
    arc_options: Optional[ArcContributionOptions] = None,
) -> LiveResult:
    """
    Score *plan* end to end.

    Args:
        plan:         Plan to score; never mutated.
        travel_cache: Edge memo owned by the caller. A fresh one is used
                      when omitted.
        hydrate:      Run ensure_profiles() first. With False every stop must
                      already carry a profile (see require_profiles).
        arc_options:  Tilt-shaped arc-contribution weights.

    Raises:
        ProfileInvariantError: hydrate=False, a stop has no profile and
            invariants are strict.
    """
    travel_cache = travel_cache if travel_cache is not None else TravelCache()
    if hydrate:
        plan = ensure_profiles(plan)
    profiles = require_profiles(plan)
    if any(stop.profile is None for stop in plan.stops):
        plan = plan.with_stops(
            stop if stop.profile is not None else replace(stop, profile=profile)
            for stop, profile in zip(plan.stops, profiles)
        )

    plan_profile = plan.profile
    intent_score = compute_journey_intent_score(
        [p.intent for p in profiles], plan_profile.vibe_target, plan_profile.vibe_importance
    )
    energy_series = [p.energy_level for p in profiles]
    fatigue = compute_fatigue_penalty(energy_series)

    travel = travel_cache.summarize(plan.stops, plan_profile.travel_mode)
    friction = compute_friction_penalty(
        [FrictionTransition(e.minutes, e.distance_m, e.from_key, e.to_key) for e in travel.edges],
        total_stop_minutes=sum(p.duration_min for p in profiles),
    )
    journey = compute_journey_score(intent_score, fatigue.penalty, friction.penalty)
    arc_model = build_arc_model(energy_series)
    transition_minutes = [e.minutes for e in travel.edges]
    arc = compute_arc_contribution_by_stop(energy_series, fatigue, friction, transition_minutes, arc_options)
    constraints = evaluate(plan.stops, travel.edges, arc_model.flags, journey_score=journey)
    violations = build_metric_violations(intent_score, fatigue, friction, arc_model, travel.edges)

    computed = ComputedMetrics(
        intent_score=intent_score,
        fatigue_penalty=fatigue.penalty,
        friction_penalty=friction.penalty,
        journey_score=journey,
        journey_score100=to_score100(journey),
        arc_contribution=arc,
        constraints=constraints,
        violations=tuple(violations),
        fatigue=fatigue,
        friction=friction,
    )
    logger.debug("[recompute] plan=%s stops=%d journey=%.4f hard=%d soft=%d",
                 plan.id, len(plan.stops), journey, constraints.hard_count, constraints.soft_count)
    return LiveResult(plan=plan, computed=computed, travel=travel, arc_model=arc_model)


def weighted_arc_total(live: LiveResult, tilt: Optional[RefineTiltProfile]) -> float:
    """Arc contribution total under the tilt's weights (plain total when no tilt applies)."""
    if tilt is None or not tilt.applied or tilt.arc_options is None:
        return live.computed.arc_contribution.total
    return compute_arc_contribution_by_stop(
        live.energy_series,
        live.computed.fatigue,
        live.computed.friction,
        [edge.minutes for edge in live.travel.edges],
        tilt.arc_options,
    ).total


def build_impact(before: LiveResult, after: LiveResult) -> Impact:
    b, a = before.computed, after.computed
    return Impact(
        before=b.journey_score,
        after=a.journey_score,
        delta=a.journey_score - b.journey_score,
        before100=b.journey_score100,
        after100=a.journey_score100,
    )
