"""modules/planning — seeded selection and surprise plans."""

from ideadate.modules.planning.seeding import (
    fnv1a_32,
    pick_deterministic_candidate,
    seeded_index,
    stable_rank_by_seed,
)
from ideadate.modules.planning.surprise import build_surprise_plan

__all__ = [
    "build_surprise_plan",
    "fnv1a_32",
    "pick_deterministic_candidate",
    "seeded_index",
    "stable_rank_by_seed",
]
