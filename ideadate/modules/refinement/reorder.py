"""
modules/refinement/reorder.py
-----------------------------
Reorder suggestions.

Two entry points:

  generate_reorder_suggestion()  the single best move of one stop, kept only
                                 when it lifts the journey score by at least
                                 REORDER_DELTA_THRESHOLD.
  generate_reorder_repairs()     fallback when no replacement was found:
                                 whole-order rewrites aimed at clearing the
                                 plan's repair targets.

Each candidate order is previewed with apply_patch_ops() + recompute(), the
same path an applied suggestion takes.
"""

from __future__ import annotations

import itertools
import logging
from typing import Optional, Sequence

from ideadate import config
from ideadate.errors import PatchInvariantError
from ideadate.modules.refinement.patch_ops import apply_patch_ops, move_ops_for_order
from ideadate.modules.refinement.recompute import LiveResult, build_impact, recompute, weighted_arc_total
from ideadate.modules.refinement.stats import DiscardReason, RefineStats
from ideadate.modules.scoring.refine_tilt import RefineTiltProfile
from ideadate.modules.travel.travel_cache import TravelCache
from ideadate.schemas.plan import Stop
from ideadate.schemas.suggestion import ArcImpact, MoveStop, PatchOp, Suggestion, SuggestionKind

logger = logging.getLogger(__name__)

MAX_REORDER_CANDIDATES = 80
MAX_REPAIR_ORDERS = 12
MAX_PERMUTATION_STOPS = 5
MIN_SIGNAL_EPS = 0.001
MIN_ARC_IMPROVEMENT = 0.01
MIN_GAIN = 0.05


def _preview(live: LiveResult, ops: Sequence[PatchOp], travel_cache: TravelCache) -> Optional[LiveResult]:
    try:
        return recompute(apply_patch_ops(live.plan, ops, strict=True), travel_cache)
    except PatchInvariantError as exc:
        logger.debug("[reorder] candidate rejected: %s", exc)
        return None


# ── Single-move reorder ───────────────────────────────────────────────────────

def reorder_candidates(stops: Sequence[Stop]) -> list[MoveStop]:
    """Adjacent swaps first, then every remaining from/to move, capped."""
    moves: list[MoveStop] = []
    seen: set[tuple[str, int]] = set()

    def add(stop_id: str, to_index: int) -> None:
        if (stop_id, to_index) not in seen and len(moves) < MAX_REORDER_CANDIDATES:
            seen.add((stop_id, to_index))
            moves.append(MoveStop(stop_id=stop_id, to_index=to_index))

    for index in range(len(stops) - 1):
        add(stops[index].id, index + 1)
    for from_index, stop in enumerate(stops):
        for to_index in range(len(stops)):
            if to_index != from_index:
                add(stop.id, to_index)
    return moves


def _reorder_reason(before: LiveResult, after: LiveResult) -> str:
    friction_gain = before.computed.friction_penalty - after.computed.friction_penalty
    fatigue_gain = before.computed.fatigue_penalty - after.computed.fatigue_penalty
    if friction_gain >= fatigue_gain and friction_gain > MIN_GAIN:
        return "reduce_friction"
    if fatigue_gain > MIN_GAIN:
        return "arc_smoothing"
    return "intent_alignment"


def generate_reorder_suggestion(
    live: LiveResult,
    travel_cache: Optional[TravelCache] = None,
    tilt: Optional[RefineTiltProfile] = None,
) -> Optional[Suggestion]:
    """The best single move, or None when nothing clears the threshold."""
    stops = live.plan.stops
    if len(stops) < 3:
        return None
    travel_cache = travel_cache if travel_cache is not None else TravelCache()

    best: Optional[tuple[float, MoveStop, LiveResult]] = None
    for move in reorder_candidates(stops):
        after = _preview(live, [move], travel_cache)
        if after is None or after.plan.stop_ids == live.plan.stop_ids:
            continue
        delta = after.computed.journey_score - live.computed.journey_score
        if best is None or delta > best[0]:
            best = (delta, move, after)

    if best is None or best[0] < config.REORDER_DELTA_THRESHOLD:
        return None
    _, move, after = best
    return _suggestion(
        live, after, tilt,
        suggestion_id=f"idea-date-reorder-{move.stop_id}-{move.to_index}",
        reason_code=_reorder_reason(live, after),
        ops=(move,),
        subject_stop_id=move.stop_id,
    )


# ── Reorder repair ────────────────────────────────────────────────────────────

def repair_orders(stops: Sequence[Stop]) -> list[tuple[str, ...]]:
    """Every permutation for short plans, adjacent swaps for long ones."""
    current = tuple(stop.id for stop in stops)
    if len(current) <= MAX_PERMUTATION_STOPS:
        orders = [order for order in itertools.permutations(current) if order != current]
    else:
        orders = []
        for index in range(len(current) - 1):
            order = list(current)
            order[index], order[index + 1] = order[index + 1], order[index]
            orders.append(tuple(order))
    return orders[:MAX_REPAIR_ORDERS]


def _repair_reason(delta_violations: int, delta_arc: float) -> str:
    if delta_violations > 0:
        return "reorder_repair_reduce_violations"
    if delta_arc > MIN_ARC_IMPROVEMENT:
        return "reorder_repair_arc_smoothing"
    return "reorder_repair_journey_boost"


def generate_reorder_repairs(
    live: LiveResult,
    travel_cache: Optional[TravelCache] = None,
    tilt: Optional[RefineTiltProfile] = None,
    stats: Optional[RefineStats] = None,
) -> list[Suggestion]:
    """
    Whole-order rewrites that reduce metric violations or lift the arc.

    A rewrite is kept only when it adds no hard constraint, adds no metric
    violation and strictly raises the journey score.
    """
    stats = stats if stats is not None else RefineStats()
    stats.passes.append("reorder_repair")
    travel_cache = travel_cache if travel_cache is not None else TravelCache()
    if len(live.plan.stops) < 2:
        return []

    base_arc = weighted_arc_total(live, tilt)
    suggestions: list[Suggestion] = []
    seen_orders: set[tuple[str, ...]] = set()
    orders = repair_orders(live.plan.stops)
    for order in orders:
        ops = move_ops_for_order(live.plan.stops, order)
        stats.candidates_evaluated += 1
        after = _preview(live, ops, travel_cache)
        if after is None:
            stats.discard(DiscardReason.INVARIANT_VIOLATION)
            continue
        final_order = after.plan.stop_ids
        if final_order in seen_orders or final_order == live.plan.stop_ids:
            continue

        delta_violations = len(live.computed.violations) - len(after.computed.violations)
        delta_arc = weighted_arc_total(after, tilt) - base_arc
        delta_journey = after.computed.journey_score - live.computed.journey_score
        if after.computed.constraint_hard_count > live.computed.constraint_hard_count:
            stats.discard(DiscardReason.INCREASES_HARD_CONSTRAINTS)
            continue
        if delta_violations < 0:
            stats.discard(DiscardReason.INCREASES_VIOLATIONS)
            continue
        if delta_journey <= MIN_SIGNAL_EPS:
            stats.discard(DiscardReason.WORSENS_JOURNEY_SCORE)
            continue

        seen_orders.add(final_order)
        suggestions.append(_suggestion(
            live, after, tilt,
            suggestion_id=f"idea-date-reorder-repair-{'>'.join(final_order)}",
            reason_code=_repair_reason(delta_violations, delta_arc),
            ops=tuple(ops),
            subject_stop_id=ops[0].stop_id if ops else None,
        ))

    logger.info("[reorder] repair pass kept %d of %d orders", len(suggestions), len(orders))
    return suggestions


def _suggestion(
    before: LiveResult,
    after: LiveResult,
    tilt: Optional[RefineTiltProfile],
    *,
    suggestion_id: str,
    reason_code: str,
    ops: tuple[PatchOp, ...],
    subject_stop_id: Optional[str],
) -> Suggestion:
    arc_before = weighted_arc_total(before, tilt)
    arc_after = weighted_arc_total(after, tilt)
    return Suggestion(
        id=suggestion_id,
        kind=SuggestionKind.REORDER,
        reason_code=reason_code,
        patch_ops=ops,
        impact=build_impact(before, after),
        arc_impact=ArcImpact(arc_before, arc_after, arc_after - arc_before),
        subject_stop_id=subject_stop_id,
    )
