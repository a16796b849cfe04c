"""
modules/candidates/diversity.py
-------------------------------
Family-aware candidate ranking with a deterministic tie-break.

Ranking order:
  1. match quality tier (role fit), descending
  2. proximity score minus diversity penalty, descending
  3. distance, ascending
  4. name, then place id (lexical)

Array order never decides a tie.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ideadate import config
from ideadate.modules.candidates.family import classify_place_family
from ideadate.modules.candidates.resolver import Candidate
from ideadate.modules.travel.distance_tool import haversine_m
from ideadate.schemas.plan import LatLng, Stop
from ideadate.schemas.profile import Role, clamp, clamp01

# Types that suit each role when searching for a replacement.
ROLE_TYPE_HINTS: dict[Role, frozenset[str]] = {
    Role.START: frozenset({"cafe", "coffee_shop", "restaurant", "tea_house", "bakery"}),
    Role.MAIN: frozenset({
        "art_gallery", "museum", "tourist_attraction", "amusement_center", "cultural_center",
        "theater", "performing_arts_theater", "historical_landmark", "park",
    }),
    Role.WIND_DOWN: frozenset({"dessert_shop", "bar", "cocktail_bar", "tea_house"}),
}


@dataclass(frozen=True)
class DiversityPolicy:
    enabled: bool = False
    weight: float = 0.0
    near_equal_delta: float = config.NEAR_EQUAL_DELTA

    def __post_init__(self) -> None:
        weight = clamp(self.weight, 0.0, config.MAX_DIVERSITY_WEIGHT, fallback=0.0) if self.enabled else 0.0
        object.__setattr__(self, "weight", weight)
        object.__setattr__(
            self, "near_equal_delta",
            clamp(self.near_equal_delta, 0.0, 1.0, fallback=config.NEAR_EQUAL_DELTA),
        )


def read_diversity_policy() -> DiversityPolicy:
    """Light diversity weighting outside production, off in production."""
    if config.is_production():
        return DiversityPolicy(enabled=False)
    return DiversityPolicy(enabled=True, weight=config.LIGHT_DIVERSITY_WEIGHT)


def role_matches(types: Iterable[str], role: Role) -> bool:
    """Flex takes anything; a candidate without types is never excluded."""
    types = set(types)
    if Role(role) is Role.FLEX or not types:
        return True
    return bool(types & ROLE_TYPE_HINTS[Role(role)])


def match_quality(types: Iterable[str], role: Role) -> int:
    """2 = typed and fits the role, 1 = untyped or flex, 0 = mismatch."""
    types = set(types)
    if not types or Role(role) is Role.FLEX:
        return 1
    return 2 if types & ROLE_TYPE_HINTS[Role(role)] else 0


def plan_family_counts(stops: Sequence[Stop], exclude_stop_id: Optional[str] = None) -> dict[str, int]:
    counts: dict[str, int] = {}
    for stop in stops:
        if stop.id == exclude_stop_id:
            continue
        family = classify_place_family(stop.types, stop.name)
        counts[family] = counts.get(family, 0) + 1
    return counts


def diversity_penalty(policy: DiversityPolicy, counts: dict[str, int], family: str) -> float:
    if not policy.enabled:
        return 0.0
    return policy.weight * counts.get(family, 0)


def near_equal(a: float, b: float, policy: DiversityPolicy) -> bool:
    return abs(a - b) <= policy.near_equal_delta


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Candidate
    family: str
    match_quality: int
    distance_m: float
    proximity: float
    penalty: float

    @property
    def adjusted_score(self) -> float:
        return self.proximity - self.penalty

    def sort_key(self) -> tuple:
        return (
            -self.match_quality,
            -round(self.adjusted_score, 6),
            round(self.distance_m, 3),
            self.candidate.name.lower(),
            self.candidate.place_id,
        )


def rank_candidates(
    candidates: Iterable[Candidate],
    role: Role,
    anchor: Optional[LatLng],
    radius_m: float,
    plan_stops: Sequence[Stop] = (),
    subject_stop_id: Optional[str] = None,
    policy: Optional[DiversityPolicy] = None,
) -> list[RankedCandidate]:
    """
    Rank *candidates* for replacing *subject_stop_id* in a plan.

    The family count excludes the stop being replaced, so a candidate from
    the same family as the stop it replaces is not penalised.
    """
    policy = policy or read_diversity_policy()
    counts = plan_family_counts(plan_stops, exclude_stop_id=subject_stop_id)
    radius_m = max(1.0, float(radius_m))
    ranked = []
    for candidate in candidates:
        distance = haversine_m(anchor, candidate.lat_lng) if anchor is not None else radius_m
        family = classify_place_family(candidate.types, candidate.name)
        ranked.append(RankedCandidate(
            candidate=candidate,
            family=family,
            match_quality=match_quality(candidate.types, role),
            distance_m=distance,
            proximity=clamp01(1 - distance / radius_m),
            penalty=diversity_penalty(policy, counts, family),
        ))
    ranked.sort(key=RankedCandidate.sort_key)
    return ranked
