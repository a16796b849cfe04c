"""
tests/test_profile.py
─────────────────────────────────────────────────────────────────────────────
Stop profile hydration, manual overrides and plan-level profile ensuring.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import pytest

from ideadate.errors import ProfileInvariantError
from ideadate.modules.profile.hydrator import (
    default_role_for_index,
    ensure_profiles,
    hydrate,
    rehydrate_for_role_change,
    require_profiles,
    resolve_primary_type,
)
from ideadate.modules.profile.overrides import apply_overrides, clear_overrides
from ideadate.schemas.payloads import parse_plan
from ideadate.schemas.profile import Overrides, Role

from conftest import VIBE_TARGET, make_plan, make_stop, unprofiled_plan


# ── Hydration ─────────────────────────────────────────────────────────────────

def test_hydration_is_deterministic():
    first = hydrate(["cafe", "bakery"], Role.START, VIBE_TARGET)
    second = hydrate(["cafe", "bakery"], Role.START, VIBE_TARGET)
    assert first == second
    assert first.baseline is not None


def test_type_case_and_whitespace_do_not_matter():
    assert hydrate(["  CAFE "], Role.START, VIBE_TARGET) == hydrate(["cafe"], Role.START, VIBE_TARGET)


def test_role_priority_picks_the_primary_type():
    assert resolve_primary_type(["bar", "restaurant"], Role.MAIN) == "restaurant"
    assert resolve_primary_type(["bar", "restaurant"], Role.WIND_DOWN) == "bar"
    assert resolve_primary_type(["spaceport"], Role.START) == "default"


def test_unknown_types_fall_back_to_default_baseline():
    profile = hydrate(["laundromat"], Role.FLEX)
    assert profile.source_type == "default"
    assert 0.0 <= profile.energy_level <= 1.0


def test_roles_shape_energy():
    start = hydrate(["bar"], Role.START)
    main = hydrate(["bar"], Role.MAIN)
    wind_down = hydrate(["bar"], Role.WIND_DOWN)
    assert start.energy_level <= 0.52
    assert main.energy_level > wind_down.energy_level


def test_default_roles_follow_position():
    assert [default_role_for_index(i) for i in range(4)] == [
        Role.START, Role.MAIN, Role.WIND_DOWN, Role.FLEX,
    ]


# ── Overrides ─────────────────────────────────────────────────────────────────

def test_overrides_are_idempotent():
    base = hydrate(["cafe"], Role.START, VIBE_TARGET)
    lively = Overrides(chill_lively=1)
    once = apply_overrides(base, lively)
    assert apply_overrides(once, lively) == once


def test_chill_lively_trades_intimacy_for_energy():
    base = hydrate(["cafe"], Role.START, VIBE_TARGET)
    lively = apply_overrides(base, Overrides(chill_lively=1))
    assert lively.intent.energy > base.intent.energy
    assert lively.intent.intimacy < base.intent.intimacy
    assert lively.energy_level > base.energy_level


def test_lingering_stretches_duration():
    base = hydrate(["museum"], Role.MAIN, VIBE_TARGET)
    lingering = apply_overrides(base, Overrides(quick_lingering=1))
    quick = apply_overrides(base, Overrides(quick_lingering=-1))
    assert quick.duration_min < base.duration_min < lingering.duration_min


def test_clearing_overrides_restores_the_baseline():
    base = hydrate(["bar"], Role.WIND_DOWN, VIBE_TARGET)
    nudged = apply_overrides(base, Overrides(chill_lively=-0.5, relaxed_active=1, quick_lingering=0.3))
    assert clear_overrides(nudged) == base


def test_override_values_are_clamped():
    overrides = Overrides(chill_lively=4, relaxed_active=float("nan"), quick_lingering=-9)
    assert (overrides.chill_lively, overrides.relaxed_active, overrides.quick_lingering) == (1.0, 0.0, -1.0)


def test_role_change_keeps_overrides():
    stop = make_stop("x", 37.7769, -122.4236, ("bar",))
    start = apply_overrides(hydrate(["bar"], Role.START, VIBE_TARGET), Overrides(relaxed_active=0.5))
    main = rehydrate_for_role_change(stop, start, Role.MAIN, VIBE_TARGET)
    assert main.role is Role.MAIN
    assert main.overrides == start.overrides


# ── Plan-level ────────────────────────────────────────────────────────────────

def test_ensure_profiles_fills_every_stop_by_position():
    plan = ensure_profiles(unprofiled_plan())
    assert [stop.profile.role for stop in plan.stops] == [Role.START, Role.MAIN, Role.WIND_DOWN]


def test_ensure_profiles_is_idempotent():
    once = ensure_profiles(unprofiled_plan())
    assert ensure_profiles(once) == once


def test_declared_role_wins_over_position():
    plan = make_plan([
        make_stop("a", 37.7769, -122.4236, ("museum",), role=Role.MAIN),
        make_stop("b", 37.7773, -122.4229, ("cafe",)),
    ])
    ensured = ensure_profiles(plan)
    assert ensured.stops[0].profile.role is Role.MAIN


def test_existing_profile_is_kept():
    plan = make_plan([make_stop("a", 37.7769, -122.4236, energy=0.3, role=Role.START)])
    ensured = ensure_profiles(plan)
    assert ensured.stops[0].profile.energy_level == pytest.approx(0.3)
    assert ensured.stops[0].profile.intent == VIBE_TARGET


def test_missing_profile_raises_in_development(development):
    with pytest.raises(ProfileInvariantError):
        require_profiles(unprofiled_plan())


def test_missing_profile_is_rehydrated_in_production(production):
    profiles = require_profiles(unprofiled_plan())
    assert len(profiles) == 3
    assert profiles[0].role is Role.START


def test_stored_profile_without_baseline_does_not_drift():
    plan = parse_plan({
        "id": "stored",
        "stops": [{
            "id": "a",
            "placeLite": {"placeId": "p-a", "types": ["cafe"]},
            "ideaDate": {
                "role": "start",
                "energyLevel": 0.5,
                "intentVector": {k: 0.5 for k in ("intimacy", "energy", "novelty", "discovery", "pretense", "pressure")},
                "overrides": {"chillLively": 1, "relaxedActive": 1},
            },
        }],
    })
    stored = plan.stops[0].profile
    assert stored.baseline is None

    once = ensure_profiles(plan)
    profile = once.stops[0].profile
    assert profile.energy_level == pytest.approx(0.5)
    assert profile.intent.energy == pytest.approx(0.5)
    assert profile.overrides == Overrides(chill_lively=1, relaxed_active=1)
    assert ensure_profiles(once) == once
