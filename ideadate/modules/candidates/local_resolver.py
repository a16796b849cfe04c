"""
modules/candidates/local_resolver.py
------------------------------------
Candidate resolver backed by the bundled dataset (data/candidates.json).
Needs no API key and no network; used as the fallback behind the remote
resolver and by the "surprise me" plan builder.

Scoring per row:
    2.0 * role match + 1.0 * vibe match + 0.5 * role type hint - distance / radius
Only rows inside the radius that list the requested role are returned.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from ideadate.modules.candidates.resolver import Candidate, SearchArgs
from ideadate.modules.travel.distance_tool import haversine_m
from ideadate.schemas.plan import LatLng
from ideadate.schemas.profile import Role, round_half_up

logger = logging.getLogger(__name__)

DATASET_PATH = Path(__file__).resolve().parent / "data" / "candidates.json"

ROLE_TYPE_HINTS: dict[Role, tuple[str, ...]] = {
    Role.START:     ("cafe", "coffee_shop", "bakery", "book_store", "tea_house"),
    Role.MAIN:      ("restaurant", "art_gallery", "museum"),
    Role.WIND_DOWN: ("dessert_shop", "tea_house", "bar", "cocktail_bar"),
    Role.FLEX:      ("cafe", "restaurant", "art_gallery", "dessert_shop"),
}


@dataclass(frozen=True)
class DatasetRow:
    candidate: Candidate
    roles: frozenset[str]
    vibes: frozenset[str]

    @property
    def place_id(self) -> str:
        return self.candidate.place_id


def load_dataset(path: Path = DATASET_PATH) -> list[DatasetRow]:
    """Rows sorted by place id so every consumer sees the same order."""
    with open(path, encoding="utf-8") as fh:
        raw_rows = json.load(fh)
    rows = [
        DatasetRow(
            candidate=Candidate(
                place_id=row["placeId"],
                name=row["name"],
                lat=float(row["lat"]),
                lng=float(row["lng"]),
                types=tuple(t.lower() for t in row.get("types", [])),
                price_level=row.get("priceLevel"),
                editorial_summary=row.get("editorialSummary"),
            ),
            roles=frozenset(row.get("roles", [])),
            vibes=frozenset(row.get("vibes", [])),
        )
        for row in raw_rows
    ]
    rows.sort(key=lambda r: r.place_id)
    return rows


class LocalCandidateResolver:
    """Async resolver over an in-memory copy of the dataset."""

    def __init__(self, rows: Optional[Sequence[DatasetRow]] = None) -> None:
        self.rows: list[DatasetRow] = list(rows) if rows is not None else load_dataset()

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        return self.search(args)

    def search(self, args: SearchArgs) -> list[Candidate]:
        anchor: Optional[LatLng] = args.stop.lat_lng
        if anchor is None:
            return []
        role = Role(args.role)
        radius = max(1, round_half_up(args.radius_meters))
        hints = set(ROLE_TYPE_HINTS[role])

        scored = []
        for row in self.rows:
            if role.value not in row.roles:
                continue
            distance = haversine_m(anchor, row.candidate.lat_lng)
            if distance > radius:
                continue
            score = (
                2.0
                + (1.0 if args.vibe_id in row.vibes else 0.0)
                + (0.5 if hints & set(row.candidate.types) else 0.0)
                - distance / radius
            )
            scored.append((score, distance, row.candidate))

        scored.sort(key=lambda item: (-item[0], item[1], item[2].name, item[2].place_id))
        results = [candidate for _, _, candidate in scored[: max(1, args.limit)]]
        logger.debug("[LocalCandidateResolver] role=%s radius=%dm -> %d", role.value, radius, len(results))
        return results
