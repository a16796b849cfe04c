"""
modules/planning/surprise.py
----------------------------
"Surprise me" plan builder over the bundled candidate dataset.

Algorithm:
  1. Role sequence: start, main x (N - 2), windDown  (N >= 3).
  2. Start stop: dataset rows for the start role, narrowed to the vibe and
     to start-type hints when possible, ranked by seed, then the first one
     inside the smallest cluster radius around the centre that has any.
  3. Every later stop: same narrowing for its role, excluding places
     already used, ranked by a per-slot seed and clustered around the start
     stop.

Identical (plan id, vibe, centre, stop count) always produce the same plan.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ideadate import config
from ideadate.modules.candidates.local_resolver import DatasetRow, load_dataset
from ideadate.modules.planning.seeding import fnv1a_32, stable_rank_by_seed
from ideadate.modules.profile.hydrator import ensure_profiles
from ideadate.modules.travel.distance_tool import haversine_m
from ideadate.schemas.plan import LatLng, PlaceLite, PlaceRef, Plan, PlanMeta, ResolverTelemetry, Stop
from ideadate.schemas.profile import PlanProfile, Role

logger = logging.getLogger(__name__)

CLUSTER_RADII_M: tuple[int, ...] = (1200, 2000, 3500)
MIN_STOPS = 3
DEFAULT_CENTER = LatLng(37.7784, -122.4231)

ROLE_TYPE_HINTS: dict[Role, frozenset[str]] = {
    Role.START: frozenset({"restaurant", "cafe", "coffee_shop", "tea_house", "bakery"}),
    Role.MAIN: frozenset({"art_gallery", "museum", "amusement_center", "tourist_attraction"}),
    Role.WIND_DOWN: frozenset({"bar", "cocktail_bar", "dessert_shop", "tea_house"}),
}


def role_sequence(stop_count: int) -> list[Role]:
    count = max(MIN_STOPS, int(stop_count or MIN_STOPS))
    return [Role.START, *([Role.MAIN] * (count - 2)), Role.WIND_DOWN]


def _prefer_vibe(rows: list[DatasetRow], vibe_id: str) -> list[DatasetRow]:
    matching = [row for row in rows if vibe_id in row.vibes]
    return matching or rows


def _prefer_role_types(rows: list[DatasetRow], role: Role) -> list[DatasetRow]:
    hints = ROLE_TYPE_HINTS.get(role, ROLE_TYPE_HINTS[Role.MAIN])
    typed = [row for row in rows if hints & set(row.candidate.types)]
    return typed or rows


def _pick_near(ranked: list[DatasetRow], center: Optional[LatLng]) -> Optional[DatasetRow]:
    if not ranked:
        return None
    if center is not None:
        for radius in CLUSTER_RADII_M:
            for row in ranked:
                if haversine_m(center, row.candidate.lat_lng) <= radius:
                    return row
    return ranked[0]


def _select(
    rows: Sequence[DatasetRow],
    role: Role,
    vibe_id: str,
    center: Optional[LatLng],
    used: set[str],
    seed_tag: str,
) -> Optional[DatasetRow]:
    pool = [row for row in rows if row.place_id not in used and role.value in row.roles]
    if not pool:
        return None
    pool = _prefer_role_types(_prefer_vibe(pool, vibe_id), role)
    return _pick_near(stable_rank_by_seed(pool, seed_tag), center)


def _to_stop(plan_id: str, index: int, role: Role, row: DatasetRow) -> Stop:
    candidate = row.candidate
    return Stop(
        id=f"{plan_id}-stop-{index + 1}",
        name=candidate.name,
        role=role,
        place_ref=PlaceRef(
            place_id=candidate.place_id,
            lat_lng=candidate.lat_lng,
            provider="local",
            label=candidate.name,
        ),
        place_lite=PlaceLite(
            place_id=candidate.place_id,
            name=candidate.name,
            types=candidate.types,
            price_level=candidate.price_level,
            editorial_summary=candidate.editorial_summary,
        ),
    )


def build_surprise_plan(
    plan_id: str,
    vibe_id: Optional[str] = None,
    center: Optional[LatLng] = None,
    stop_count: int = MIN_STOPS,
    rows: Optional[Sequence[DatasetRow]] = None,
) -> Plan:
    """
    Build a deterministic, fully profiled plan from the bundled dataset.

    Args:
        plan_id:    Id of the new plan; also seeds every selection.
        vibe_id:    Target vibe (unknown ids fall back to the default vibe).
        center:     Where the date should happen; defaults to central SF.
        stop_count: Desired number of stops, at least 3.
        rows:       Dataset override (tests).
    """
    vibe_id = vibe_id if vibe_id in config.VIBE_PROFILES else config.DEFAULT_VIBE_ID
    rows = list(rows) if rows is not None else load_dataset()
    center = center or DEFAULT_CENTER
    seed_tag = str(fnv1a_32(f"{plan_id}|{vibe_id}"))

    roles = role_sequence(stop_count)
    used: set[str] = set()
    stops: list[Stop] = []

    start = _select(rows, Role.START, vibe_id, center, used, f"{seed_tag}:start")
    if start is not None:
        used.add(start.place_id)
        stops.append(_to_stop(plan_id, 0, Role.START, start))
        anchor = start.candidate.lat_lng
        for index, role in enumerate(roles[1:], start=1):
            row = _select(rows, role, vibe_id, anchor, used, f"{seed_tag}:{role.value}:{index}")
            if row is None:
                logger.warning("[surprise] no unused %s row for slot %d", role.value, index)
                break
            used.add(row.place_id)
            stops.append(_to_stop(plan_id, index, role, row))

    if len(stops) < MIN_STOPS:
        logger.warning("[surprise] only %d stops available for plan %s", len(stops), plan_id)

    plan = Plan(
        id=plan_id,
        stops=tuple(stops),
        title="Surprise date",
        meta=PlanMeta(
            profile=PlanProfile(vibe_id=vibe_id),
            resolver_telemetry=ResolverTelemetry(used="local", count=len(stops)),
        ),
    )
    logger.info("[surprise] plan %s: %d stops, vibe=%s", plan_id, len(stops), vibe_id)
    return ensure_profiles(plan)
