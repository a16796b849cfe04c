"""
modules/travel/travel_cache.py
------------------------------
Memoised travel edges between consecutive stops.

A TravelCache belongs to one engine invocation or one refine session; it is
never shared process-wide, so coordinates that change between plans cannot
leak stale edges. Same inputs always yield the same edge.

Node keys, in order of preference:
    place id  ->  "latlng:<lat 5dp>,<lng 5dp>"  ->  stop id  ->  "unknown"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ideadate import config
from ideadate.modules.travel.distance_tool import estimate_travel_minutes, haversine_m
from ideadate.schemas.plan import Stop
from ideadate.schemas.profile import TravelMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TravelEdge:
    key: str
    from_key: str
    to_key: str
    mode: TravelMode
    distance_m: float
    minutes: int
    cached: bool = False


@dataclass(frozen=True)
class TravelSummary:
    mode: TravelMode
    edges: tuple[TravelEdge, ...] = ()
    total_distance_m: float = 0.0
    total_minutes: int = 0


def node_key(stop: Optional[Stop]) -> str:
    if stop is None:
        return "unknown"
    if stop.place_id:
        return stop.place_id
    if stop.lat_lng is not None:
        return f"latlng:{stop.lat_lng.lat:.5f},{stop.lat_lng.lng:.5f}"
    if stop.id and stop.id.strip():
        return stop.id.strip()
    return "unknown"


def estimate_distance_m(from_stop: Stop, to_stop: Stop) -> float:
    if from_stop.lat_lng is not None and to_stop.lat_lng is not None:
        return haversine_m(from_stop.lat_lng, to_stop.lat_lng)
    if from_stop.place_id and from_stop.place_id == to_stop.place_id:
        return config.SAME_PLACE_FALLBACK_M
    return config.UNKNOWN_DISTANCE_FALLBACK_M


class TravelCache:
    """Unbounded edge memo keyed by (from key, to key, mode)."""

    def __init__(self) -> None:
        self._edges: dict[str, tuple[float, int]] = {}

    def __len__(self) -> int:
        return len(self._edges)

    def clear(self) -> None:
        self._edges.clear()

    def get_edge(self, from_stop: Stop, to_stop: Stop, mode: TravelMode = TravelMode.WALK) -> TravelEdge:
        mode = TravelMode(mode)
        from_key = node_key(from_stop)
        to_key = node_key(to_stop)
        key = f"{from_key}::{to_key}::{mode.value}"

        hit = self._edges.get(key)
        if hit is not None:
            return TravelEdge(key, from_key, to_key, mode, hit[0], hit[1], cached=True)

        distance_m = estimate_distance_m(from_stop, to_stop)
        minutes = estimate_travel_minutes(mode, distance_m)
        self._edges[key] = (distance_m, minutes)
        logger.debug("[TravelCache] miss %s -> %.0fm / %d min", key, distance_m, minutes)
        return TravelEdge(key, from_key, to_key, mode, distance_m, minutes, cached=False)

    def summarize(self, stops: Sequence[Stop], mode: TravelMode = TravelMode.WALK) -> TravelSummary:
        """Edges between consecutive stops plus totals."""
        edges = tuple(
            self.get_edge(stops[i], stops[i + 1], mode) for i in range(len(stops) - 1)
        )
        return TravelSummary(
            mode=TravelMode(mode),
            edges=edges,
            total_distance_m=sum(e.distance_m for e in edges),
            total_minutes=sum(e.minutes for e in edges),
        )
