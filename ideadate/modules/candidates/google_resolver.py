"""
modules/candidates/google_resolver.py
-------------------------------------
Candidate resolver backed by Google Places API (New).

Real API:  POST https://places.googleapis.com/v1/places:searchNearby
Auth:      X-Goog-Api-Key header  (config.GOOGLE_PLACES_API_KEY)

Each role has a query template (included types, radius bias, per-role
radius cap). The stop's own types are merged in front of the template's.
HTTP and decoding failures are raised; the ResolverChain turns them into
telemetry and an empty candidate set.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ideadate import config
from ideadate.modules.candidates.resolver import Candidate, SearchArgs
from ideadate.schemas.plan import Stop
from ideadate.schemas.profile import Role, round_half_up

logger = logging.getLogger(__name__)

_FIELD_MASK = (
    "places.id,"
    "places.displayName,"
    "places.location,"
    "places.types,"
    "places.priceLevel,"
    "places.editorialSummary"
)

# Places API (New) reports price as an enum string.
_PRICE_LEVELS: dict[str, int] = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}

DEFAULT_RADIUS_M = 1200
MIN_RADIUS_M = 250
MAX_RADIUS_M = 8000


@dataclass(frozen=True)
class RoleQueryTemplate:
    included_types: tuple[str, ...]
    radius_bias: float
    max_radius_m: int


ROLE_QUERY_TEMPLATES: dict[str, RoleQueryTemplate] = {
    "start": RoleQueryTemplate(("cafe", "coffee_shop", "bakery", "tea_house"), 0.8, 3000),
    "main": RoleQueryTemplate(("art_gallery", "museum", "tourist_attraction", "performing_arts_theater"), 1.0, 6000),
    "windDown": RoleQueryTemplate(("dessert_shop", "bar", "cocktail_bar", "tea_house"), 1.0, 6000),
    "generic": RoleQueryTemplate(("cafe", "restaurant", "art_gallery", "dessert_shop"), 1.0, 6000),
}


@dataclass(frozen=True)
class RoleShapedQuery:
    template_used: str
    included_types: tuple[str, ...]
    radius_m: int


def _dedupe_types(values) -> list[str]:
    seen: list[str] = []
    for value in values:
        normalized = value.strip().lower() if isinstance(value, str) else ""
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


def _clamp_radius(value: float) -> int:
    if not math.isfinite(value):
        return DEFAULT_RADIUS_M
    return max(MIN_RADIUS_M, min(MAX_RADIUS_M, round_half_up(value)))


def build_role_shaped_query(role: Role, stop: Stop, radius_m: float) -> RoleShapedQuery:
    role = Role(role)
    key = role.value if role is not Role.FLEX else "generic"
    template = ROLE_QUERY_TEMPLATES[key]
    types = _dedupe_types([*stop.types, *template.included_types])
    if not types:
        types = list(ROLE_QUERY_TEMPLATES["generic"].included_types)
    radius = radius_m if math.isfinite(radius_m) else DEFAULT_RADIUS_M
    return RoleShapedQuery(
        template_used=key,
        included_types=tuple(types),
        radius_m=_clamp_radius(min(radius * template.radius_bias, template.max_radius_m)),
    )


def parse_google_place(place: dict[str, Any]) -> Optional[Candidate]:
    """Convert one Places API 'place' dict; None when id, name or location is unusable."""
    place_id = str(place.get("id") or "").strip()
    name = str((place.get("displayName") or {}).get("text") or "").strip()
    location = place.get("location") or {}
    lat, lng = location.get("latitude"), location.get("longitude")
    if not place_id or not name:
        return None
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    summary = str((place.get("editorialSummary") or {}).get("text") or "").strip()
    price = place.get("priceLevel")
    return Candidate(
        place_id=place_id,
        name=name,
        lat=float(lat),
        lng=float(lng),
        types=tuple(_dedupe_types(place.get("types") or [])),
        price_level=_PRICE_LEVELS.get(price) if isinstance(price, str) else price,
        editorial_summary=summary or None,
    )


class GoogleCandidateResolver:
    """
    Async resolver calling Places API (New) Nearby Search.

    An httpx.AsyncClient may be injected (tests pass one with a
    MockTransport); otherwise one is opened per call.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.GOOGLE_PLACES_API_KEY
        self.url = url or config.GOOGLE_PLACES_NEARBY_URL
        self.timeout = timeout if timeout is not None else config.GOOGLE_PLACES_TIMEOUT_S
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": _FIELD_MASK,
        }

    async def _post(self, payload: dict) -> dict:
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload, headers=self._headers())
            response.raise_for_status()
            return response.json()

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        anchor = args.stop.lat_lng
        if anchor is None or not (math.isfinite(anchor.lat) and math.isfinite(anchor.lng)):
            return []
        if not self.api_key:
            raise RuntimeError("GOOGLE_PLACES_API_KEY is not set")

        query = build_role_shaped_query(args.role, args.stop, args.radius_meters)
        limit = max(1, min(20, int(args.limit)))
        data = await self._post({
            "includedTypes": list(query.included_types),
            "maxResultCount": limit,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": anchor.lat, "longitude": anchor.lng},
                    "radius": float(query.radius_m),
                }
            },
        })

        by_id: dict[str, Candidate] = {}
        for place in data.get("places", []) or []:
            candidate = parse_google_place(place)
            if candidate is not None and candidate.place_id not in by_id:
                by_id[candidate.place_id] = candidate
        results = sorted(by_id.values(), key=lambda c: (c.place_id, c.name))[:limit]
        logger.debug(
            "[GoogleCandidateResolver] template=%s types=%d radius=%dm -> %d",
            query.template_used, len(query.included_types), query.radius_m, len(results),
        )
        return results
