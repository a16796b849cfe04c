"""
modules/refinement/patch_ops.py
-------------------------------
The patch-op applier: ``Plan x [PatchOp] -> Plan``.

Ops are applied in order to a copy of the stop sequence:
  moveStop     move one stop to an index (clamped); unknown ids are a no-op
  replaceStop  swap a stop's place and profile, keeping its id

When the op list only moves stops, roles are re-labelled by position
(start, main..., windDown) so the plan stays role-ordered.

Strict mode (non-production by default) raises PatchInvariantError when a
replace changes the stop count, stop ids collide, or a replace introduces a
duplicate place id that was not already there.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from ideadate import config
from ideadate.errors import PatchInvariantError
from ideadate.modules.profile.hydrator import hydrate_stop, resolve_role
from ideadate.schemas.plan import Plan, Stop
from ideadate.schemas.profile import Role
from ideadate.schemas.suggestion import MoveStop, NewPlace, PatchOp, ReplaceStop


def _move(stops: list[Stop], op: MoveStop) -> list[Stop]:
    ids = [stop.id for stop in stops]
    if op.stop_id not in ids:
        return stops
    from_index = ids.index(op.stop_id)
    to_index = max(0, min(int(op.to_index), len(stops) - 1))
    if from_index == to_index:
        return stops
    moved = list(stops)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


def _replace(stops: list[Stop], op: ReplaceStop) -> list[Stop]:
    place = op.new_place
    return [
        replace(
            stop,
            name=place.name or stop.name,
            place_ref=place.place_ref or stop.place_ref,
            place_lite=place.place_lite or stop.place_lite,
            profile=op.new_profile or stop.profile,
        )
        if stop.id == op.stop_id else stop
        for stop in stops
    ]


def role_for_position(index: int, stop_count: int) -> Role:
    if index <= 0:
        return Role.START
    if index >= stop_count - 1:
        return Role.WIND_DOWN
    return Role.MAIN


def normalize_roles_by_index(stops: Sequence[Stop]) -> list[Stop]:
    """Re-label roles by position, leaving the rest of each profile alone."""
    normalized = []
    for index, stop in enumerate(stops):
        role = role_for_position(index, len(stops))
        if stop.profile is not None and stop.profile.role is not role:
            stop = replace(stop, role=role, profile=replace(stop.profile, role=role))
        elif stop.profile is None and stop.role is not role:
            stop = replace(stop, role=role)
        normalized.append(stop)
    return normalized


def _duplicates(values: Iterable[Optional[str]]) -> set[str]:
    counts = Counter(v for v in values if v)
    return {value for value, count in counts.items() if count > 1}


def apply_patch_ops(plan: Plan, ops: Sequence[PatchOp], strict: Optional[bool] = None) -> Plan:
    """
    Return a new plan with *ops* applied; *plan* is left untouched.

    Raises:
        PatchInvariantError: strict mode only (defaults to
            config.strict_invariants()).
    """
    strict = config.strict_invariants() if strict is None else strict
    stops = list(plan.stops)
    start_count = len(stops)
    start_duplicates = _duplicates(stop.place_id for stop in stops)
    has_move = any(isinstance(op, MoveStop) for op in ops)
    has_replace = any(isinstance(op, ReplaceStop) for op in ops)

    for op in ops:
        if isinstance(op, MoveStop):
            stops = _move(stops, op)
        elif isinstance(op, ReplaceStop):
            stops = _replace(stops, op)
        else:
            raise TypeError(f"unknown patch op: {op!r}")

    if has_move and not has_replace:
        stops = normalize_roles_by_index(stops)

    if strict:
        if has_replace and len(stops) != start_count:
            raise PatchInvariantError(
                f"patch invariant failed: replaceStop changed stop count ({start_count} -> {len(stops)})"
            )
        ids = [stop.id for stop in stops]
        if len(set(ids)) != len(ids):
            raise PatchInvariantError("patch invariant failed: duplicate stop ids after patch application")
        if has_replace:
            introduced = sorted(_duplicates(stop.place_id for stop in stops) - start_duplicates)
            if introduced:
                raise PatchInvariantError(
                    f"patch invariant failed: replacement introduced duplicate place ids ({', '.join(introduced)})"
                )

    return plan.with_stops(stops)


def restore_stop_op(plan: Plan, stop_id: str) -> ReplaceStop:
    """A replaceStop op that puts *stop_id* back to its current place and profile."""
    for index, stop in enumerate(plan.stops):
        if stop.id != stop_id:
            continue
        profile = stop.profile or hydrate_stop(stop, resolve_role(stop, index), plan.profile.vibe_target)
        return ReplaceStop(
            stop_id=stop.id,
            new_place=NewPlace(name=stop.name, place_ref=stop.place_ref, place_lite=stop.place_lite),
            new_profile=profile,
        )
    raise KeyError(stop_id)


def move_ops_for_order(stops: Sequence[Stop], target_order: Sequence[str]) -> list[MoveStop]:
    """moveStop ops that turn the current order into *target_order*."""
    current = [stop.id for stop in stops]
    ops: list[MoveStop] = []
    for index, stop_id in enumerate(target_order):
        if stop_id not in current or current[index] == stop_id:
            continue
        current.remove(stop_id)
        current.insert(index, stop_id)
        ops.append(MoveStop(stop_id=stop_id, to_index=index))
    return ops
