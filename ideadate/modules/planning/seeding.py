"""
modules/planning/seeding.py
---------------------------
Deterministic "random" selection.

String keys are hashed with 32-bit FNV-1a and the hash is used directly as
an index or a sort key, so the same key always picks the same item on every
run and every platform. Nothing here touches the ``random`` module.
"""

from __future__ import annotations

from typing import Callable, Collection, Optional, Sequence, TypeVar

T = TypeVar("T")

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_MASK_32 = 0xFFFFFFFF


def fnv1a_32(text: str) -> int:
    value = FNV_OFFSET_BASIS
    for char in text:
        value ^= ord(char)
        value = (value * FNV_PRIME) & _MASK_32
    return value


def seeded_index(key: str, size: int) -> int:
    if size <= 0:
        return 0
    return fnv1a_32(key) % size


def _place_id(item) -> str:
    return item.place_id


def pick_deterministic_candidate(
    key: str,
    candidates: Sequence[T],
    used_ids: Collection[str] = (),
    id_of: Callable[[T], str] = _place_id,
) -> Optional[T]:
    """First unused candidate scanning forward (with wrap) from the seeded index."""
    if not candidates:
        return None
    start = seeded_index(key, len(candidates))
    for offset in range(len(candidates)):
        candidate = candidates[(start + offset) % len(candidates)]
        if id_of(candidate) not in used_ids:
            return candidate
    return None


def stable_rank_by_seed(
    items: Sequence[T],
    tag: str,
    id_of: Callable[[T], str] = _place_id,
) -> list[T]:
    """Order *items* by hash("<tag>|<id>"), ties broken by id."""
    return sorted(items, key=lambda item: (fnv1a_32(f"{tag}|{id_of(item)}"), id_of(item)))
