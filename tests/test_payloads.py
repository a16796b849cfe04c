"""
tests/test_payloads.py
─────────────────────────────────────────────────────────────────────────────
Parsing raw plan data: tolerant numbers, structural errors, defaults and the
dump/parse pair.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ideadate import config
from ideadate.schemas.payloads import (
    dump_plan,
    parse_plan,
    parse_plan_profile,
    parse_stop_profile,
    read_number,
)
from ideadate.schemas.plan import PrefTilt
from ideadate.schemas.profile import DEFAULT_DURATION_MIN, DEFAULT_ENERGY_LEVEL, Role, TravelMode

from conftest import calm_plan, make_plan, unprofiled_plan


def test_read_number_accepts_numeric_strings():
    assert read_number("0.7") == 0.7
    assert read_number(" 3 ") == 3.0
    assert read_number("abc", fallback=0.2) == 0.2
    assert read_number(True, fallback=0.1) == 0.1
    assert read_number(float("inf"), fallback=0.5) == 0.5


def test_stop_profile_numbers_are_clamped():
    result = parse_stop_profile({
        "role": "main",
        "energyLevel": "0.7",
        "durationMin": "500",
        "intentVector": {"intimacy": "2", "energy": "abc", "pressure": -1},
        "overrides": {"chillLively": 5},
        "sourceGoogleType": "  cafe ",
    })
    assert result
    profile = result.value
    assert profile.role is Role.MAIN
    assert profile.energy_level == pytest.approx(0.7)
    assert profile.duration_min == 240
    assert profile.intent.intimacy == 1.0
    assert profile.intent.energy == 0.0
    assert profile.intent.pressure == 0.0
    assert profile.overrides.chill_lively == 1.0
    assert profile.source_type == "cafe"


def test_missing_fields_take_defaults():
    result = parse_stop_profile({})
    assert result.ok
    assert result.value.role is Role.FLEX
    assert result.value.energy_level == DEFAULT_ENERGY_LEVEL
    assert result.value.duration_min == DEFAULT_DURATION_MIN
    assert result.value.overrides.is_neutral


def test_unknown_role_is_a_parse_error():
    result = parse_stop_profile({"role": "afterparty"})
    assert not result
    assert result.value is None
    assert any(error.startswith("role") for error in result.errors)


def test_non_mapping_profile_is_a_parse_error():
    result = parse_stop_profile(["start"])
    assert not result.ok
    assert "mapping" in result.errors[0]


def test_plan_profile_never_fails():
    assert parse_plan_profile("nonsense").vibe_id == config.DEFAULT_VIBE_ID
    assert parse_plan_profile({"vibeId": "no_such_vibe"}).vibe_id == config.DEFAULT_VIBE_ID
    assert parse_plan_profile({"travelMode": "teleport"}).travel_mode is TravelMode.WALK
    drive = parse_plan_profile({"vibeId": "anniversary_intimate", "travelMode": "drive"})
    assert drive.vibe_id == "anniversary_intimate"
    assert drive.travel_mode is TravelMode.DRIVE


def test_plan_without_id_is_rejected():
    with pytest.raises(ValidationError):
        parse_plan({"stops": []})


def test_bad_stop_profile_leaves_the_stop_unprofiled():
    plan = parse_plan({
        "id": "p1",
        "stops": [
            {"id": "a", "role": "bogus", "ideaDate": {"role": "nope"}},
            {"id": "b", "ideaDate": {"role": "windDown", "energyLevel": 0.2}},
        ],
        "meta": {"prefTilt": {"vibe": "1", "walking": -7, "peak": None}},
    })
    assert plan.stops[0].profile is None
    assert plan.stops[0].role is None
    assert plan.stops[1].profile.role is Role.WIND_DOWN
    assert plan.meta.pref_tilt == PrefTilt(vibe=1, walking=-1, peak=0)


def test_dump_then_parse_gives_the_same_plan():
    for plan in (calm_plan(), unprofiled_plan(), make_plan([], pref_tilt=PrefTilt(peak=1))):
        assert parse_plan(dump_plan(plan)) == plan


def test_dump_uses_camel_case_keys():
    raw = dump_plan(calm_plan())
    stop = raw["stops"][0]
    assert set(stop) >= {"id", "placeRef", "placeLite", "ideaDate"}
    assert stop["placeRef"]["latLng"] == {"lat": 37.7769, "lng": -122.4236}
    assert raw["meta"]["ideaDate"]["vibeId"] == config.DEFAULT_VIBE_ID
    assert stop["ideaDate"]["energyLevel"] == pytest.approx(0.3)
