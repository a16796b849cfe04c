"""
modules/candidates/place_details.py
-----------------------------------
Batched lookup of lite place details (address, rating, price tier, photo).

Details only enrich stops; scoring never waits on them. Lookups run in
batches of config.DETAIL_BATCH_SIZE concurrent requests. A failed lookup is
logged and skipped, the rest of the batch still lands.

Real API:  GET https://places.googleapis.com/v1/places/{place_id}
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Iterable, Optional

import httpx

from ideadate import config
from ideadate.schemas.plan import PlaceLite, Plan

logger = logging.getLogger(__name__)

DetailFetcher = Callable[[str], Awaitable[Optional[PlaceLite]]]

_DETAIL_FIELD_MASK = "id,displayName,types,formattedAddress,rating,priceLevel,photos"

_PRICE_LEVELS: dict[str, int] = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def parse_place_details(place_id: str, data: dict) -> PlaceLite:
    photos = data.get("photos") or []
    price = data.get("priceLevel")
    rating = data.get("rating")
    return PlaceLite(
        place_id=str(data.get("id") or place_id),
        name=(data.get("displayName") or {}).get("text"),
        types=tuple(str(t).lower() for t in data.get("types") or ()),
        price_level=_PRICE_LEVELS.get(price) if isinstance(price, str) else price,
        formatted_address=data.get("formattedAddress"),
        rating=float(rating) if isinstance(rating, (int, float)) else None,
        photo_ref=photos[0].get("name") if photos and isinstance(photos[0], dict) else None,
    )


class GooglePlaceDetailsFetcher:
    """DetailFetcher backed by Places API (New) Place Details."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.api_key = api_key if api_key is not None else config.GOOGLE_PLACES_API_KEY
        self._client = client

    async def __call__(self, place_id: str) -> Optional[PlaceLite]:
        if not self.api_key:
            raise RuntimeError("GOOGLE_PLACES_API_KEY is not set")
        url = config.GOOGLE_PLACES_DETAILS_URL.format(place_id=place_id)
        headers = {"X-Goog-Api-Key": self.api_key, "X-Goog-FieldMask": _DETAIL_FIELD_MASK}
        if self._client is not None:
            response = await self._client.get(url, headers=headers)
            response.raise_for_status()
            return parse_place_details(place_id, response.json())
        async with httpx.AsyncClient(timeout=config.GOOGLE_PLACES_TIMEOUT_S) as client:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            return parse_place_details(place_id, response.json())


async def _fetch_one(place_id: str, fetch: DetailFetcher) -> Optional[PlaceLite]:
    try:
        return await fetch(place_id)
    except Exception as exc:
        logger.warning("[place_details] lookup failed for %s: %s", place_id, exc)
        return None


async def fetch_place_details_batched(
    place_ids: Iterable[str],
    fetch: DetailFetcher,
    batch_size: Optional[int] = None,
) -> dict[str, PlaceLite]:
    """
    Look up details for each distinct place id, *batch_size* at a time.

    Returns:
        place id -> PlaceLite for every lookup that succeeded.
    """
    size = max(1, int(batch_size if batch_size is not None else config.DETAIL_BATCH_SIZE))
    unique = list(dict.fromkeys(pid for pid in place_ids if pid))
    details: dict[str, PlaceLite] = {}
    for start in range(0, len(unique), size):
        batch = unique[start:start + size]
        results = await asyncio.gather(*(_fetch_one(pid, fetch) for pid in batch))
        for place_id, lite in zip(batch, results):
            if lite is not None:
                details[place_id] = lite
    logger.debug("[place_details] %d/%d lookups succeeded", len(details), len(unique))
    return details


def _merge_lite(existing: Optional[PlaceLite], fetched: PlaceLite) -> PlaceLite:
    if existing is None:
        return fetched
    return replace(
        existing,
        formatted_address=existing.formatted_address or fetched.formatted_address,
        rating=existing.rating if existing.rating is not None else fetched.rating,
        price_level=existing.price_level if existing.price_level is not None else fetched.price_level,
        photo_ref=existing.photo_ref or fetched.photo_ref,
        types=existing.types or fetched.types,
        name=existing.name or fetched.name,
    )


async def enrich_plan_with_details(
    plan: Plan,
    fetch: DetailFetcher,
    batch_size: Optional[int] = None,
) -> Plan:
    """Fill missing lite details on every stop that has a place id."""
    details = await fetch_place_details_batched(
        (stop.place_id for stop in plan.stops if stop.place_id), fetch, batch_size
    )
    if not details:
        return plan
    stops = [
        replace(stop, place_lite=_merge_lite(stop.place_lite, details[stop.place_id]))
        if stop.place_id in details else stop
        for stop in plan.stops
    ]
    return plan.with_stops(stops)
