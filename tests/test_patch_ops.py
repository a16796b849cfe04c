"""
tests/test_patch_ops.py
─────────────────────────────────────────────────────────────────────────────
moveStop / replaceStop application, role re-labelling and strict invariants.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import pytest

from ideadate.errors import PatchInvariantError
from ideadate.modules.refinement.patch_ops import (
    apply_patch_ops,
    move_ops_for_order,
    restore_stop_op,
    role_for_position,
)
from ideadate.schemas.plan import LatLng, PlaceRef
from ideadate.schemas.profile import Role, StopProfile
from ideadate.schemas.suggestion import MoveStop, NewPlace, ReplaceStop

from conftest import calm_plan


def _replace_op(stop_id: str, place_id: str) -> ReplaceStop:
    return ReplaceStop(
        stop_id=stop_id,
        new_place=NewPlace(
            name="Somewhere New",
            place_ref=PlaceRef(place_id=place_id, lat_lng=LatLng(37.7775, -122.4230)),
        ),
        new_profile=StopProfile(role=Role.MAIN, energy_level=0.5),
    )


def test_role_for_position():
    assert [role_for_position(i, 4) for i in range(4)] == [
        Role.START, Role.MAIN, Role.MAIN, Role.WIND_DOWN,
    ]


def test_move_clamps_the_target_index():
    plan = apply_patch_ops(calm_plan(), [MoveStop("s1", 99)])
    assert plan.stop_ids == ("s2", "s3", "s1")

    plan = apply_patch_ops(calm_plan(), [MoveStop("s3", -4)])
    assert plan.stop_ids == ("s3", "s1", "s2")


def test_moves_relabel_roles_but_keep_profiles():
    plan = apply_patch_ops(calm_plan(), [MoveStop("s1", 2)])
    moved = plan.stops[-1]
    assert moved.id == "s1"
    assert moved.role is Role.WIND_DOWN
    assert moved.profile.role is Role.WIND_DOWN
    assert moved.profile.energy_level == pytest.approx(0.3)
    assert [stop.profile.role for stop in plan.stops] == [Role.START, Role.MAIN, Role.WIND_DOWN]


def test_unknown_stop_id_is_a_no_op():
    original = calm_plan()
    assert apply_patch_ops(original, [MoveStop("ghost", 0)]) == original


def test_replace_keeps_the_stop_id():
    plan = apply_patch_ops(calm_plan(), [_replace_op("s2", "new-place")])
    stop = plan.stops[1]
    assert stop.id == "s2"
    assert stop.place_id == "new-place"
    assert stop.name == "Somewhere New"
    assert stop.profile.energy_level == pytest.approx(0.5)
    assert plan.stop_ids == ("s1", "s2", "s3")


def test_input_plan_is_untouched():
    original = calm_plan()
    apply_patch_ops(original, [MoveStop("s1", 2), _replace_op("s2", "elsewhere")])
    assert original == calm_plan()


def test_strict_mode_rejects_introduced_duplicate_places():
    with pytest.raises(PatchInvariantError):
        apply_patch_ops(calm_plan(), [_replace_op("s2", "p-s1")], strict=True)

    relaxed = apply_patch_ops(calm_plan(), [_replace_op("s2", "p-s1")], strict=False)
    assert [stop.place_id for stop in relaxed.stops] == ["p-s1", "p-s1", "p-s3"]


def test_strictness_follows_the_environment(development):
    with pytest.raises(PatchInvariantError):
        apply_patch_ops(calm_plan(), [_replace_op("s3", "p-s2")])


def test_production_is_lenient(production):
    plan = apply_patch_ops(calm_plan(), [_replace_op("s3", "p-s2")])
    assert plan.stops[2].place_id == "p-s2"


def test_unknown_op_type_raises():
    with pytest.raises(TypeError):
        apply_patch_ops(calm_plan(), ["deleteStop"])


def test_restore_undoes_a_replace():
    original = calm_plan()
    patched = apply_patch_ops(original, [_replace_op("s2", "new-place")])
    restored = apply_patch_ops(patched, [restore_stop_op(original, "s2")])
    assert restored == original

    with pytest.raises(KeyError):
        restore_stop_op(original, "ghost")


def test_move_ops_reach_the_target_order():
    stops = calm_plan().stops
    ops = move_ops_for_order(stops, ["s3", "s1", "s2"])
    assert ops == [MoveStop("s3", 0)]
    assert apply_patch_ops(calm_plan(), ops).stop_ids == ("s3", "s1", "s2")

    ops = move_ops_for_order(stops, ["s2", "s3", "s1"])
    assert apply_patch_ops(calm_plan(), ops).stop_ids == ("s2", "s3", "s1")
    assert move_ops_for_order(stops, ["s1", "s2", "s3"]) == []
