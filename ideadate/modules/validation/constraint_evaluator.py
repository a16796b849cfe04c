"""
modules/validation/constraint_evaluator.py
------------------------------------------
Rule checks over a scored plan. Violations are advisory: they never change
the plan, they only feed ranking and user-facing "why" text.

Constraint kinds and severities:
  max_travel_edge      CRITICAL  one transfer exceeds the hard ceiling (25 min)
  long_transfer        WARN      one transfer exceeds the comfort limit (18 min)
  role_order           CRITICAL  roles break start -> main... -> windDown (flex fits anywhere)
  duplicate_family     WARN      two or more stops share a non-"other" place family
  late_spike           WARN      the arc does not taper at the final stop
  journey_score_floor  CRITICAL  journey score below the floor (0.50)
  peak_timing          INFO      the energy peak sits before or after the ideal slot

CRITICAL counts as hard, WARN as soft, INFO as neither.

Metric violations (intent_low, fatigue_high, ...) are built here as well;
they track score components rather than plan structure.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from ideadate import config
from ideadate.modules.candidates.family import FAMILY_OTHER, classify_place_family
from ideadate.modules.profile.hydrator import resolve_role
from ideadate.modules.scoring.arc_model import ArcFlags, ArcModel
from ideadate.modules.scoring.scoring import FatiguePenalty, FrictionPenalty
from ideadate.schemas.plan import Stop
from ideadate.schemas.profile import Role


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"


class ConstraintKind(str, Enum):
    MAX_TRAVEL_EDGE = "max_travel_edge"
    LONG_TRANSFER = "long_transfer"
    ROLE_ORDER = "role_order"
    DUPLICATE_FAMILY = "duplicate_family"
    LATE_SPIKE = "late_spike"
    JOURNEY_SCORE_FLOOR = "journey_score_floor"
    PEAK_TIMING = "peak_timing"


# Narrative order and short labels.
_KIND_LABELS: dict[ConstraintKind, str] = {
    ConstraintKind.MAX_TRAVEL_EDGE: "long transfer risk",
    ConstraintKind.LONG_TRANSFER: "transfer comfort risk",
    ConstraintKind.ROLE_ORDER: "stop role order risk",
    ConstraintKind.DUPLICATE_FAMILY: "stop variety risk",
    ConstraintKind.LATE_SPIKE: "late spike risk",
    ConstraintKind.JOURNEY_SCORE_FLOOR: "journey quality risk",
    ConstraintKind.PEAK_TIMING: "peak timing note",
}


@dataclass(frozen=True)
class ConstraintLimits:
    hard_max_travel_edge_minutes: float = config.HARD_MAX_TRAVEL_EDGE_MINUTES
    soft_travel_edge_minutes: float = config.SOFT_TRAVEL_EDGE_MINUTES
    journey_score_floor: float = config.JOURNEY_SCORE_FLOOR


@dataclass(frozen=True)
class ConstraintViolation:
    kind: ConstraintKind
    severity: Severity
    message: str
    stop_ids: tuple[str, ...] = ()
    edge_index: Optional[int] = None

    @property
    def is_hard(self) -> bool:
        return self.severity is Severity.CRITICAL

    @property
    def is_soft(self) -> bool:
        return self.severity is Severity.WARN

    @property
    def narrative(self) -> str:
        return f"{_KIND_LABELS[self.kind]}: {self.message}"


@dataclass(frozen=True)
class ConstraintReport:
    violations: tuple[ConstraintViolation, ...] = ()
    hard_count: int = 0
    soft_count: int = 0
    narratives: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.hard_count == 0

    def kinds(self) -> list[ConstraintKind]:
        return [v.kind for v in self.violations]


_ROLE_RANK: dict[Role, int] = {Role.START: 0, Role.MAIN: 1, Role.WIND_DOWN: 2}


def _edge_minutes(edge) -> float:
    return float(getattr(edge, "minutes", edge))


def _edge_stop_ids(stops: Sequence[Stop], index: int) -> tuple[str, str]:
    from_id = stops[index].id if index < len(stops) else f"edge_{index}_from"
    to_id = stops[index + 1].id if index + 1 < len(stops) else f"edge_{index}_to"
    return from_id, to_id


def _travel_violations(stops, travel_edges, limits: ConstraintLimits) -> list[ConstraintViolation]:
    found = []
    for index, edge in enumerate(travel_edges):
        minutes = _edge_minutes(edge)
        if minutes > limits.hard_max_travel_edge_minutes:
            found.append(ConstraintViolation(
                kind=ConstraintKind.MAX_TRAVEL_EDGE,
                severity=Severity.CRITICAL,
                message=(f"transfer {index + 1} takes {minutes:g} min, over the "
                         f"{limits.hard_max_travel_edge_minutes:g}-minute ceiling."),
                stop_ids=_edge_stop_ids(stops, index),
                edge_index=index,
            ))
        elif minutes > limits.soft_travel_edge_minutes:
            found.append(ConstraintViolation(
                kind=ConstraintKind.LONG_TRANSFER,
                severity=Severity.WARN,
                message=(f"transfer {index + 1} takes {minutes:g} min, above the "
                         f"{limits.soft_travel_edge_minutes:g}-minute comfort limit."),
                stop_ids=_edge_stop_ids(stops, index),
                edge_index=index,
            ))
    return found


def _role_order_violation(stops: Sequence[Stop]) -> Optional[ConstraintViolation]:
    mismatched = []
    highest = -1
    for index, stop in enumerate(stops):
        role = resolve_role(stop, index)
        if role is Role.FLEX:
            continue
        rank = _ROLE_RANK[role]
        if rank < highest or (role is Role.START and highest >= 0):
            mismatched.append(stop.id)
        highest = max(highest, rank)
    if not mismatched:
        return None
    return ConstraintViolation(
        kind=ConstraintKind.ROLE_ORDER,
        severity=Severity.CRITICAL,
        message=f"{len(mismatched)} stop(s) sit outside the start, main, windDown order.",
        stop_ids=tuple(mismatched),
    )


def _duplicate_family_violation(stops: Sequence[Stop]) -> Optional[ConstraintViolation]:
    members: dict[str, list[str]] = {}
    for stop in stops:
        family = classify_place_family(stop.types, stop.name)
        members.setdefault(family, []).append(stop.id)
    repeated = sorted(
        ((family, ids) for family, ids in members.items() if family != FAMILY_OTHER and len(ids) > 1),
        key=lambda item: (-len(item[1]), item[0]),
    )
    if not repeated:
        return None
    family, ids = repeated[0]
    return ConstraintViolation(
        kind=ConstraintKind.DUPLICATE_FAMILY,
        severity=Severity.WARN,
        message=f"{len(ids)} stops cluster in the {family} family.",
        stop_ids=tuple(ids),
    )


def evaluate(
    stops: Sequence[Stop],
    travel_edges: Sequence,
    arc_flags: Optional[ArcFlags] = None,
    journey_score: Optional[float] = None,
    limits: Optional[ConstraintLimits] = None,
) -> ConstraintReport:
    """
    Check *stops* (already profiled) against the plan constraints.

    Args:
        stops:         Ordered plan stops.
        travel_edges:  One entry per consecutive pair; TravelEdge objects or
                       plain minute values.
        arc_flags:     Shape flags from build_arc_model().
        journey_score: When given, the journey-score floor is checked too.
        limits:        Threshold overrides.
    """
    limits = limits or ConstraintLimits()
    arc_flags = arc_flags or ArcFlags()
    violations: list[ConstraintViolation] = _travel_violations(stops, travel_edges, limits)

    role_order = _role_order_violation(stops)
    if role_order is not None:
        violations.append(role_order)

    duplicate = _duplicate_family_violation(stops)
    if duplicate is not None:
        violations.append(duplicate)

    if arc_flags.no_taper and stops:
        violations.append(ConstraintViolation(
            kind=ConstraintKind.LATE_SPIKE,
            severity=Severity.WARN,
            message="the final stop is still at peak energy instead of tapering.",
            stop_ids=(stops[-1].id,),
        ))

    if journey_score is not None and stops and journey_score < limits.journey_score_floor:
        violations.append(ConstraintViolation(
            kind=ConstraintKind.JOURNEY_SCORE_FLOOR,
            severity=Severity.CRITICAL,
            message=f"journey score {journey_score:.2f} is below the {limits.journey_score_floor:.2f} floor.",
        ))

    if arc_flags.peak_early or arc_flags.peak_late:
        violations.append(ConstraintViolation(
            kind=ConstraintKind.PEAK_TIMING,
            severity=Severity.INFO,
            message="energy peaks {} than the middle of the plan.".format(
                "earlier" if arc_flags.peak_early else "later"),
        ))

    order = list(_KIND_LABELS)
    violations.sort(key=lambda v: (order.index(v.kind), v.edge_index if v.edge_index is not None else -1))
    return ConstraintReport(
        violations=tuple(violations),
        hard_count=sum(1 for v in violations if v.is_hard),
        soft_count=sum(1 for v in violations if v.is_soft),
        narratives=tuple(v.narrative for v in violations),
    )


# ── Metric violations ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MetricViolation:
    type: str
    severity: Severity
    details: str
    phrase: str = ""


def _metric(kind: str, severity: Severity, details: str) -> MetricViolation:
    return MetricViolation(kind, severity, details, config.CONCIERGE_PHRASES.get(kind, ""))


def build_metric_violations(
    intent_score: float,
    fatigue: FatiguePenalty,
    friction: FrictionPenalty,
    arc: ArcModel,
    travel_edges: Sequence = (),
    thresholds: Optional[dict[str, float]] = None,
) -> list[MetricViolation]:
    t = thresholds or config.VIOLATION_THRESHOLDS
    found: list[MetricViolation] = []

    if intent_score < t["intent_critical"]:
        found.append(_metric("intent_low", Severity.CRITICAL,
                             "Overall stop intent does not align with the selected vibe."))
    elif intent_score < t["intent_warn"]:
        found.append(_metric("intent_low", Severity.WARN,
                             "Intent alignment is below target and may feel inconsistent."))

    if fatigue.penalty >= t["fatigue_critical"]:
        found.append(_metric("fatigue_high", Severity.CRITICAL,
                             "Energy arc is likely to fatigue participants."))
    elif fatigue.penalty >= t["fatigue_warn"]:
        found.append(_metric("fatigue_high", Severity.WARN,
                             "Energy arc may be uneven; consider smoothing the journey."))

    if friction.penalty >= t["friction_critical"]:
        found.append(_metric("friction_high", Severity.CRITICAL,
                             "Travel burden is likely too high for this sequence."))
    elif friction.penalty >= t["friction_warn"]:
        found.append(_metric("friction_high", Severity.WARN,
                             "Travel burden is elevated and may reduce flow."))

    if arc.flags.double_peak:
        found.append(_metric("double_peak", Severity.WARN, "Multiple energy peaks reduce narrative flow."))
    if arc.flags.no_taper:
        found.append(_metric("no_taper", Severity.WARN, "Final stop does not taper energy."))

    limit = config.SOFT_TRAVEL_EDGE_MINUTES
    long_edge = next((m for m in map(_edge_minutes, travel_edges) if m > limit), None)
    if long_edge is not None:
        found.append(_metric("travel_edge_high", Severity.WARN,
                             f"At least one transition exceeds {limit} minutes ({long_edge:g} min)."))
    return found
