"""
modules/refinement/suggestion_pack.py
-------------------------------------
Assembles the ranked, deduplicated suggestion list for one refine cycle.

Every suggestion in a pack has been previewed with apply_patch_ops() +
recompute() against the same baseline, adds no hard constraint and strictly
raises the journey score. Ranking is journey delta, then arc delta, then id;
at most MAX_SUGGESTIONS survive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional

from ideadate import config
from ideadate.errors import PatchInvariantError
from ideadate.modules.candidates.diversity import DiversityPolicy
from ideadate.modules.candidates.resolver import CandidateResolver
from ideadate.modules.refinement.patch_ops import apply_patch_ops
from ideadate.modules.refinement.recompute import (
    ComputedMetrics,
    LiveResult,
    build_impact,
    recompute,
    weighted_arc_total,
)
from ideadate.modules.refinement.reorder import generate_reorder_suggestion
from ideadate.modules.refinement.replacement import generate_replacement_suggestions
from ideadate.modules.refinement.stats import RefineStats
from ideadate.modules.scoring.arc_model import ArcModel
from ideadate.modules.scoring.refine_tilt import (
    RefineTiltProfile,
    TiltNarrativeContext,
    build_refine_tilt_profile,
    build_tilt_narrative_note,
)
from ideadate.modules.travel.travel_cache import TravelCache, TravelSummary
from ideadate.modules.validation.constraint_narrative import (
    build_constraint_delta,
    build_constraint_narrative_note,
)
from ideadate.schemas.plan import Plan, ResolverTelemetry
from ideadate.schemas.suggestion import ArcImpact, Suggestion

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[str], None]


@dataclass(frozen=True)
class SuggestionPack:
    live: LiveResult
    suggestions: tuple[Suggestion, ...]
    stats: RefineStats
    telemetry: ResolverTelemetry

    @property
    def plan(self) -> Plan:
        return self.live.plan

    @property
    def computed(self) -> ComputedMetrics:
        return self.live.computed

    @property
    def travel(self) -> TravelSummary:
        return self.live.travel

    @property
    def arc_model(self) -> ArcModel:
        return self.live.arc_model

    @property
    def empty(self) -> bool:
        return not self.suggestions

    @property
    def message(self) -> Optional[str]:
        return config.EMPTY_SUGGESTIONS_MESSAGE if self.empty else None

    def get(self, suggestion_id: str) -> Optional[Suggestion]:
        return next((s for s in self.suggestions if s.id == suggestion_id), None)


def result_signature(plan: Plan) -> tuple[tuple[str, Optional[str]], ...]:
    """Stop order plus each stop's place; equal signatures mean equal outcomes."""
    return tuple((stop.id, stop.place_id) for stop in plan.stops)


def _fixed_arc_issue(before: LiveResult, after: LiveResult) -> bool:
    b, a = before.arc_model.flags, after.arc_model.flags
    return (b.no_taper and not a.no_taper) or (b.double_peak and not a.double_peak)


def _annotate(
    live: LiveResult,
    suggestion: Suggestion,
    preview: LiveResult,
    tilt: RefineTiltProfile,
) -> Suggestion:
    delta = build_constraint_delta(live.computed.constraints, preview.computed.constraints)
    arc_before = weighted_arc_total(live, tilt)
    arc_after = weighted_arc_total(preview, tilt)
    tilt_note = build_tilt_narrative_note(
        tilt.effective_tilt if tilt.applied else None,
        TiltNarrativeContext(
            worst_edge_minutes_saved=live.worst_edge_minutes - preview.worst_edge_minutes,
            total_travel_minutes_saved=live.travel.total_minutes - preview.travel.total_minutes,
            delta_arc_contribution_total=arc_after - arc_before,
            fixed_arc_issue=_fixed_arc_issue(live, preview),
        ),
    )
    return replace(
        suggestion,
        impact=build_impact(live, preview),
        arc_impact=ArcImpact(arc_before, arc_after, arc_after - arc_before),
        meta=replace(
            suggestion.meta,
            constraint_delta=delta,
            constraint_narrative_note=build_constraint_narrative_note(delta),
            concierge_tilt_note=tilt_note,
        ),
    )


def _rank_key(suggestion: Suggestion) -> tuple:
    arc_delta = suggestion.arc_impact.delta_total if suggestion.arc_impact else 0.0
    return (-round(suggestion.impact.delta, 9), -round(arc_delta, 9), suggestion.id)


def select_suggestions(
    live: LiveResult,
    candidates: Iterable[Suggestion],
    travel_cache: Optional[TravelCache] = None,
    tilt: Optional[RefineTiltProfile] = None,
    limit: int = config.MAX_SUGGESTIONS,
) -> list[Suggestion]:
    """
    Preview, filter, rank and deduplicate candidate suggestions.

    Each candidate is applied to *live*'s plan and recomputed. Candidates
    that add a hard constraint or fail to raise the journey score are
    dropped. Survivors are ranked first and then collapsed on
    result_signature(), so the best-ranked member of an equivalent group
    is the one kept, whatever order the candidates arrived in.
    """
    travel_cache = travel_cache if travel_cache is not None else TravelCache()
    if tilt is None:
        tilt = build_refine_tilt_profile(live.plan.meta.pref_tilt, live.plan.meta.mode)

    previewed: list[tuple[Suggestion, tuple]] = []
    for suggestion in candidates:
        try:
            preview = recompute(apply_patch_ops(live.plan, suggestion.patch_ops, strict=True), travel_cache)
        except PatchInvariantError as exc:
            logger.warning("[suggestion_pack] dropping %s: %s", suggestion.id, exc)
            continue
        if preview.computed.constraint_hard_count > live.computed.constraint_hard_count:
            continue
        if preview.computed.journey_score <= live.computed.journey_score:
            continue
        previewed.append((_annotate(live, suggestion, preview, tilt), result_signature(preview.plan)))

    previewed.sort(key=lambda item: _rank_key(item[0]))
    kept: list[Suggestion] = []
    seen: set[tuple] = set()
    for suggestion, signature in previewed:
        if signature in seen:
            logger.debug("[suggestion_pack] %s duplicates a better suggestion", suggestion.id)
            continue
        seen.add(signature)
        kept.append(suggestion)
    return kept[:limit]


async def generate_suggestions(
    plan: Plan,
    resolver: Optional[CandidateResolver] = None,
    travel_cache: Optional[TravelCache] = None,
    mode: Optional[str] = None,
    policy: Optional[DiversityPolicy] = None,
    on_phase: Optional[PhaseCallback] = None,
) -> SuggestionPack:
    """
    One full refine cycle against *plan*.

    Args:
        plan:         Baseline plan (profiles are ensured here).
        resolver:     Candidate source; None limits the cycle to reorders.
        travel_cache: Edge memo shared with the caller's session.
        mode:         Planning mode; defaults to the plan's own.
        policy:       Diversity policy; defaults to read_diversity_policy().
        on_phase:     Called with "searching" and then "previewing".
    """
    travel_cache = travel_cache if travel_cache is not None else TravelCache()
    notify = on_phase or (lambda phase: None)
    notify("searching")

    live = recompute(plan, travel_cache)
    tilt = build_refine_tilt_profile(live.plan.meta.pref_tilt, mode or live.plan.meta.mode)

    candidates: list[Suggestion] = []
    reorder = generate_reorder_suggestion(live, travel_cache, tilt)
    if reorder is not None:
        candidates.append(reorder)
    replacements, stats = await generate_replacement_suggestions(
        live, resolver, travel_cache, tilt=tilt, policy=policy
    )
    candidates.extend(replacements)

    notify("previewing")
    kept = select_suggestions(live, candidates, travel_cache, tilt)

    telemetry = stats.telemetry()
    live = replace(live, plan=live.plan.with_meta(resolver_telemetry=telemetry))
    logger.info("[suggestion_pack] plan=%s suggestions=%d telemetry=%s/%d",
                live.plan.id, len(kept), telemetry.used, telemetry.count)
    return SuggestionPack(live=live, suggestions=tuple(kept), stats=stats, telemetry=telemetry)
