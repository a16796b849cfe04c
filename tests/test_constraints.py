"""
tests/test_constraints.py
─────────────────────────────────────────────────────────────────────────────
Plan constraints, metric violations and the before/after constraint delta.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from ideadate import config
from ideadate.modules.scoring.arc_model import ArcFlags, build_arc_model
from ideadate.modules.scoring.scoring import (
    FrictionTransition,
    compute_fatigue_penalty,
    compute_friction_penalty,
)
from ideadate.modules.validation.constraint_evaluator import (
    ConstraintKind,
    Severity,
    build_metric_violations,
    evaluate,
)
from ideadate.modules.validation.constraint_narrative import (
    build_constraint_delta,
    build_constraint_narrative_note,
)
from ideadate.schemas.profile import Role

from conftest import calm_plan, make_stop


def _stops():
    return calm_plan().stops


# ── Constraints ───────────────────────────────────────────────────────────────

def test_clean_plan_passes():
    report = evaluate(_stops(), [5, 6], journey_score=0.8)
    assert report
    assert report.violations == ()
    assert (report.hard_count, report.soft_count) == (0, 0)


def test_transfer_over_the_ceiling_is_hard():
    report = evaluate(_stops(), [5, 30])
    assert not report
    violation = report.violations[0]
    assert violation.kind is ConstraintKind.MAX_TRAVEL_EDGE
    assert violation.edge_index == 1
    assert violation.stop_ids == ("s2", "s3")
    assert violation.narrative.startswith("long transfer risk:")


def test_long_transfer_is_soft():
    report = evaluate(_stops(), [5, 20])
    assert report
    assert report.kinds() == [ConstraintKind.LONG_TRANSFER]
    assert report.soft_count == 1


def test_start_after_main_breaks_role_order():
    s1, s2, s3 = _stops()
    report = evaluate([s2, s1, s3], [5, 5])
    assert report.kinds() == [ConstraintKind.ROLE_ORDER]
    assert report.violations[0].stop_ids == ("s1",)
    assert report.hard_count == 1


def test_several_mains_and_flex_stops_keep_role_order():
    stops = [
        make_stop("a", 37.7769, -122.4236, ("cafe",), role=Role.START, energy=0.3),
        make_stop("b", 37.7773, -122.4229, ("museum",), role=Role.MAIN, energy=0.5),
        make_stop("c", 37.7771, -122.4220, ("park",), role=Role.FLEX, energy=0.6),
        make_stop("d", 37.7775, -122.4225, ("night_club",), role=Role.MAIN, energy=0.7),
        make_stop("e", 37.7772, -122.4231, ("dessert_shop",), role=Role.WIND_DOWN, energy=0.2),
    ]
    assert ConstraintKind.ROLE_ORDER not in evaluate(stops, [4, 4, 4, 4]).kinds()


def test_repeated_family_is_flagged():
    stops = [
        make_stop("a", 37.7769, -122.4236, ("cafe",)),
        make_stop("b", 37.7773, -122.4229, ("restaurant",)),
        make_stop("c", 37.7771, -122.4220, ("bar",)),
    ]
    report = evaluate(stops, [5, 5])
    assert report.kinds() == [ConstraintKind.DUPLICATE_FAMILY]
    assert report.violations[0].message == "2 stops cluster in the food family."
    assert report


def test_arc_flags_and_floor():
    report = evaluate(
        _stops(), [5, 5],
        arc_flags=ArcFlags(no_taper=True, peak_late=True),
        journey_score=0.4,
    )
    assert report.kinds() == [
        ConstraintKind.LATE_SPIKE,
        ConstraintKind.JOURNEY_SCORE_FLOOR,
        ConstraintKind.PEAK_TIMING,
    ]
    assert report.violations[0].stop_ids == ("s3",)
    assert report.violations[2].severity is Severity.INFO
    assert (report.hard_count, report.soft_count) == (1, 1)


def test_peak_timing_alone_is_neither_hard_nor_soft():
    report = evaluate(_stops(), [5, 5], arc_flags=ArcFlags(peak_early=True))
    assert report.kinds() == [ConstraintKind.PEAK_TIMING]
    assert report
    assert (report.hard_count, report.soft_count) == (0, 0)


# ── Metric violations ─────────────────────────────────────────────────────────

def test_metric_violations_carry_concierge_phrases():
    series = [0.9, 0.2, 0.9]
    found = build_metric_violations(
        0.3,
        compute_fatigue_penalty(series),
        compute_friction_penalty([FrictionTransition(5), FrictionTransition(20)], 200),
        build_arc_model(series),
        travel_edges=[5, 20],
    )
    by_type = {v.type: v for v in found}
    assert by_type["intent_low"].severity is Severity.CRITICAL
    assert by_type["intent_low"].phrase == config.CONCIERGE_PHRASES["intent_low"]
    assert {"double_peak", "no_taper", "travel_edge_high"} <= set(by_type)
    assert by_type["travel_edge_high"].details == "At least one transition exceeds 18 minutes (20 min)."


def test_mild_intent_gap_is_a_warning():
    series = [0.3, 0.8, 0.2]
    found = build_metric_violations(
        0.5,
        compute_fatigue_penalty(series),
        compute_friction_penalty([FrictionTransition(5), FrictionTransition(5)], 200),
        build_arc_model(series),
        travel_edges=[5, 5],
    )
    assert [(v.type, v.severity) for v in found] == [("intent_low", Severity.WARN)]


# ── Delta and narrative ───────────────────────────────────────────────────────

def test_fixing_a_long_transfer():
    before = evaluate(_stops(), [5, 30])
    after = evaluate(_stops(), [5, 6])
    delta = build_constraint_delta(before, after)
    assert delta.improved == ("max_travel_edge",)
    assert delta.worsened == ()
    assert (delta.hard_before, delta.hard_after) == (1, 0)
    assert build_constraint_narrative_note(delta) == (
        "Fixes a hard constraint by shortening a too-long transfer."
    )


def test_fixing_role_order():
    s1, s2, s3 = _stops()
    delta = build_constraint_delta(evaluate([s2, s1, s3], [5, 5]), evaluate([s1, s2, s3], [5, 5]))
    assert build_constraint_narrative_note(delta) == "Fixes a hard constraint in the plan structure."


def test_soft_improvement_and_no_change():
    soft = build_constraint_delta(evaluate(_stops(), [5, 20]), evaluate(_stops(), [5, 5]))
    assert build_constraint_narrative_note(soft) == "Improves pacing constraints for a cleaner taper."

    same = build_constraint_delta(evaluate(_stops(), [5, 5]), evaluate(_stops(), [5, 5]))
    assert build_constraint_narrative_note(same) is None

    worse = build_constraint_delta(evaluate(_stops(), [5, 5]), evaluate(_stops(), [5, 20]))
    assert worse.worsened == ("long_transfer",)
