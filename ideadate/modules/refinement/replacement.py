"""
modules/refinement/replacement.py
---------------------------------
Replacement suggestions: swap a weak stop for a nearby place.

Passes, in order:

  primary         the MAX_REPLACEMENTS most painful stops; candidates must
                  fit the stop's role and strictly raise the journey score.
  repair          only when primary found nothing and the plan carries a
                  repairable metric violation (friction, long edge, double
                  peak, fatigue, missing taper). Targets are re-ranked by how
                  close they sit to the problem; role fit is not required but
                  a candidate must clear at least one violation.
  reorder repair  only when both replacement passes found nothing and the
                  plan has a metric violation; see
                  reorder.generate_reorder_repairs().

Search widens through ADAPTIVE_RADIUS_KM and stops at the first radius that
produces an accepted candidate. Every candidate is previewed through
apply_patch_ops() + recompute() and dropped with a counted reason when it
breaks a rule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ideadate.errors import PatchInvariantError, ProfileInvariantError
from ideadate.modules.candidates.diversity import (
    DiversityPolicy,
    RankedCandidate,
    near_equal,
    rank_candidates,
    read_diversity_policy,
    role_matches,
)
from ideadate.modules.candidates.resolver import Candidate, CandidateResolver, SearchArgs
from ideadate.modules.candidates.resolver_chain import ResolverChain, sanitize_resolver_error
from ideadate.modules.profile.hydrator import hydrate
from ideadate.modules.profile.overrides import apply_overrides
from ideadate.modules.refinement.patch_ops import apply_patch_ops
from ideadate.modules.refinement.recompute import LiveResult, build_impact, recompute, weighted_arc_total
from ideadate.modules.refinement.reorder import generate_reorder_repairs
from ideadate.modules.refinement.stats import DiscardReason, RefineStats
from ideadate.modules.scoring.refine_tilt import RefineTiltProfile
from ideadate.modules.scoring.scoring import compute_stop_intent_score
from ideadate.modules.travel.travel_cache import TravelCache
from ideadate.schemas.plan import ResolverTelemetry, Stop
from ideadate.schemas.profile import Role
from ideadate.schemas.suggestion import (
    ArcImpact,
    ReplaceStop,
    Suggestion,
    SuggestionKind,
    SuggestionMeta,
)

logger = logging.getLogger(__name__)

MAX_REPLACEMENTS = 2
ADAPTIVE_RADIUS_KM = (0.5, 1.0, 2.0)
SEARCH_LIMIT = 8
MAX_CANDIDATES_PER_RADIUS = 16
MAX_SEEN_PRIMARY = 60
MAX_SEEN_REPAIR = 90
MIN_SIGNAL_EPS = 0.001
INTENT_RESCUE_BELOW = 0.5

# Metric violations the repair pass knows how to target.
REPAIR_VIOLATIONS = frozenset({"friction_high", "travel_edge_high", "double_peak", "fatigue_high", "no_taper"})


# ── Target selection ──────────────────────────────────────────────────────────

def _edge_minutes(live: LiveResult, index: int) -> tuple[float, float]:
    edges = live.travel.edges
    prev_minutes = edges[index - 1].minutes if 0 < index <= len(edges) else 0
    next_minutes = edges[index].minutes if index < len(edges) else 0
    return prev_minutes, next_minutes


def stop_intent(live: LiveResult, stop: Stop) -> float:
    profile = live.plan.profile
    return compute_stop_intent_score(stop.profile.intent, profile.vibe_target, profile.vibe_importance)


def pain_score(live: LiveResult, index: int) -> float:
    """Higher means the stop hurts the plan more."""
    prev_minutes, next_minutes = _edge_minutes(live, index)
    transition_pain = min(1.0, (max(prev_minutes, 12) + max(next_minutes, 12) - 24) / 24)
    intent = stop_intent(live, live.plan.stops[index])
    return 0.7 * (1 - intent) + 0.3 * transition_pain + 0.1 * live.computed.friction_penalty


def primary_targets(live: LiveResult) -> list[int]:
    scored = [(pain_score(live, index), index) for index in range(len(live.plan.stops))]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [index for _, index in scored[:MAX_REPLACEMENTS]]


def repair_targets(live: LiveResult) -> list[int]:
    """Stops ranked by pain boosted toward the active repairable violations."""
    active = live.computed.violation_types & REPAIR_VIOLATIONS
    if not active:
        return []
    count = len(live.plan.stops)
    peak = live.arc_model.peak_index_actual
    scored = []
    for index in range(count):
        score = pain_score(live, index)
        if active & {"friction_high", "travel_edge_high"}:
            prev_minutes, next_minutes = _edge_minutes(live, index)
            score += min(1.0, (prev_minutes + next_minutes) / 36) * 1.2
        if active & {"double_peak", "fatigue_high"}:
            score += (1 - min(1.0, abs(index - peak) / max(1, count - 1))) * 0.9
        if "no_taper" in active and index == count - 1:
            score += 1.0
        scored.append((score, index))
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [index for _, index in scored]


# ── Candidate search ──────────────────────────────────────────────────────────

async def search_candidates(
    resolver: CandidateResolver,
    args: SearchArgs,
    stats: RefineStats,
) -> list[Candidate]:
    """Run one search; a failing resolver yields no candidates."""
    if isinstance(resolver, ResolverChain):
        candidates, telemetry = await resolver.resolve(args)
        resolver.last_telemetry = telemetry
    else:
        try:
            candidates = list(await resolver(args))
            telemetry = ResolverTelemetry(used="remote" if candidates else "none", count=len(candidates))
        except Exception as exc:
            error = sanitize_resolver_error(exc)
            logger.warning("[replacement] resolver failed: %s", error)
            candidates, telemetry = [], ResolverTelemetry(used="none", count=0, error=error)
    stats.record_search(telemetry)

    unique: dict[str, Candidate] = {}
    for candidate in candidates:
        if candidate.place_id and candidate.place_id not in unique:
            unique[candidate.place_id] = candidate
    return [unique[key] for key in sorted(unique)]


# ── Evaluation ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _Evaluated:
    ranked: RankedCandidate
    op: ReplaceStop
    after: LiveResult
    delta_arc: float
    delta_hard: int
    delta_soft: int
    delta_violations: int
    delta_friction: float
    delta_journey: float

    @property
    def adjusted_arc(self) -> float:
        return self.delta_arc - self.ranked.penalty

    @property
    def place_id(self) -> str:
        return self.ranked.candidate.place_id


def _is_better(candidate: _Evaluated, best: Optional[_Evaluated], policy: DiversityPolicy) -> bool:
    if best is None:
        return True
    if not near_equal(candidate.adjusted_arc, best.adjusted_arc, policy):
        return candidate.adjusted_arc > best.adjusted_arc
    for attr in ("delta_hard", "delta_soft", "delta_violations"):
        a, b = getattr(candidate, attr), getattr(best, attr)
        if a != b:
            return a > b
    for attr in ("delta_friction", "delta_journey"):
        a, b = getattr(candidate, attr), getattr(best, attr)
        if abs(a - b) > MIN_SIGNAL_EPS:
            return a > b
    return candidate.place_id < best.place_id


class _ReplacementPass:
    """One primary or repair sweep over a set of target stops."""

    def __init__(
        self,
        live: LiveResult,
        resolver: CandidateResolver,
        travel_cache: TravelCache,
        tilt: Optional[RefineTiltProfile],
        policy: DiversityPolicy,
        stats: RefineStats,
        *,
        repair: bool,
    ) -> None:
        self.live = live
        self.resolver = resolver
        self.travel_cache = travel_cache
        self.tilt = tilt
        self.policy = policy
        self.stats = stats
        self.repair = repair
        self.seen_cap = MAX_SEEN_REPAIR if repair else MAX_SEEN_PRIMARY
        self.seen = 0
        self.base_arc = weighted_arc_total(live, tilt)
        self.plan_place_ids = {stop.place_id for stop in live.plan.stops if stop.place_id}

    async def run(self, targets: Sequence[int]) -> list[Suggestion]:
        suggestions: list[Suggestion] = []
        for index in targets:
            if len(suggestions) >= MAX_REPLACEMENTS or self.seen >= self.seen_cap:
                break
            suggestion = await self._replace_stop(index)
            if suggestion is not None:
                suggestions.append(suggestion)
        return suggestions

    async def _replace_stop(self, index: int) -> Optional[Suggestion]:
        stop = self.live.plan.stops[index]
        if stop.profile is None:
            self.stats.discard(DiscardReason.MISSING_STOP_PROFILE)
            return None
        role = Role(stop.profile.role)
        for radius_km in ADAPTIVE_RADIUS_KM:
            if self.seen >= self.seen_cap:
                break
            radius_m = radius_km * 1000
            args = SearchArgs(
                role=role,
                stop=stop,
                radius_meters=radius_m,
                vibe_id=self.live.plan.profile.vibe_id,
                limit=SEARCH_LIMIT,
            )
            found = await search_candidates(self.resolver, args, self.stats)
            ranked = rank_candidates(
                found, role, stop.lat_lng, radius_m,
                plan_stops=self.live.plan.stops,
                subject_stop_id=stop.id,
                policy=self.policy,
            )[:MAX_CANDIDATES_PER_RADIUS]

            best: Optional[_Evaluated] = None
            for item in ranked:
                if self.seen >= self.seen_cap:
                    break
                self.seen += 1
                self.stats.candidates_seen += 1
                evaluated = self._evaluate(stop, role, item)
                if evaluated is not None and _is_better(evaluated, best, self.policy):
                    best = evaluated
            if best is not None:
                return self._suggestion(stop, best)
        return None

    def _evaluate(self, stop: Stop, role: Role, item: RankedCandidate) -> Optional[_Evaluated]:
        candidate = item.candidate
        if candidate.place_id == stop.place_id or candidate.place_id in self.plan_place_ids:
            self.stats.discard(DiscardReason.DUPLICATE_PLACE_ID)
            return None
        if not self.repair and not role_matches(candidate.types, role):
            self.stats.discard(DiscardReason.ROLE_MISMATCH)
            return None

        new_profile = apply_overrides(
            hydrate(candidate.types, role, self.live.plan.profile.vibe_target),
            stop.profile.overrides,
        )
        op = ReplaceStop(stop_id=stop.id, new_place=candidate.to_new_place(), new_profile=new_profile)
        self.stats.candidates_evaluated += 1
        try:
            after = recompute(apply_patch_ops(self.live.plan, [op], strict=True), self.travel_cache)
        except (PatchInvariantError, ProfileInvariantError) as exc:
            logger.debug("[replacement] %s rejected: %s", candidate.place_id, exc)
            self.stats.discard(DiscardReason.INVARIANT_VIOLATION)
            return None

        before = self.live.computed
        if after.computed.constraint_hard_count > before.constraint_hard_count:
            self.stats.discard(DiscardReason.INCREASES_HARD_CONSTRAINTS)
            return None
        if len(after.computed.violations) > len(before.violations):
            self.stats.discard(DiscardReason.INCREASES_VIOLATIONS)
            return None

        evaluated = _Evaluated(
            ranked=item,
            op=op,
            after=after,
            delta_arc=weighted_arc_total(after, self.tilt) - self.base_arc,
            delta_hard=before.constraint_hard_count - after.computed.constraint_hard_count,
            delta_soft=before.constraint_soft_count - after.computed.constraint_soft_count,
            delta_violations=len(before.violations) - len(after.computed.violations),
            delta_friction=before.friction_penalty - after.computed.friction_penalty,
            delta_journey=after.computed.journey_score - before.journey_score,
        )
        if self.repair:
            if evaluated.delta_violations <= 0:
                self.stats.discard(DiscardReason.NO_ARC_IMPROVEMENT)
                return None
            if evaluated.delta_journey <= MIN_SIGNAL_EPS:
                self.stats.discard(DiscardReason.WORSENS_JOURNEY_SCORE)
                return None
            return evaluated

        if evaluated.delta_journey <= MIN_SIGNAL_EPS:
            self.stats.discard(DiscardReason.WORSENS_JOURNEY_SCORE)
            return None
        return evaluated

    def _suggestion(self, stop: Stop, best: _Evaluated) -> Suggestion:
        candidate = best.ranked.candidate
        intent = stop_intent(self.live, stop)
        arc_after = weighted_arc_total(best.after, self.tilt)
        return Suggestion(
            id=f"idea-date-replace-{stop.id}-{candidate.place_id}",
            kind=SuggestionKind.REPLACEMENT,
            reason_code="intent_rescue" if intent < INTENT_RESCUE_BELOW else "friction_relief",
            patch_ops=(best.op,),
            impact=build_impact(self.live, best.after),
            new_place=best.op.new_place,
            arc_impact=ArcImpact(self.base_arc, arc_after, arc_after - self.base_arc),
            meta=SuggestionMeta(
                original_place_name=stop.name,
                candidate_family=best.ranked.family,
                diversity_penalty=best.ranked.penalty,
            ),
            subject_stop_id=stop.id,
        )


async def generate_replacement_suggestions(
    live: LiveResult,
    resolver: Optional[CandidateResolver],
    travel_cache: Optional[TravelCache] = None,
    tilt: Optional[RefineTiltProfile] = None,
    policy: Optional[DiversityPolicy] = None,
    stats: Optional[RefineStats] = None,
) -> tuple[list[Suggestion], RefineStats]:
    """
    Run the primary, repair and reorder-repair passes against *live*.

    Never raises on resolver failure; errors land in the returned stats.
    """
    stats = stats if stats is not None else RefineStats()
    travel_cache = travel_cache if travel_cache is not None else TravelCache()
    policy = policy or read_diversity_policy()
    if not live.plan.stops:
        return [], stats

    suggestions: list[Suggestion] = []
    if resolver is not None:
        stats.passes.append("primary")
        primary = _ReplacementPass(live, resolver, travel_cache, tilt, policy, stats, repair=False)
        suggestions = await primary.run(primary_targets(live))

        targets = repair_targets(live) if not suggestions else []
        if targets:
            stats.passes.append("repair")
            repair = _ReplacementPass(live, resolver, travel_cache, tilt, policy, stats, repair=True)
            suggestions = await repair.run(targets)

    if not suggestions and live.computed.violations:
        suggestions = generate_reorder_repairs(live, travel_cache, tilt, stats)

    logger.info("[replacement] plan=%s passes=%s kept=%d discarded=%d",
                live.plan.id, ",".join(stats.passes), len(suggestions), stats.discarded_total)
    return suggestions, stats
