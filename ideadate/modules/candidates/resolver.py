"""
modules/candidates/resolver.py
------------------------------
The candidate-resolver boundary.

A resolver is any async callable taking SearchArgs and returning a list of
Candidate. The engine does not care whether it is backed by the remote
place provider, the bundled dataset or nothing at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ideadate.schemas.plan import LatLng, PlaceLite, PlaceRef, Stop
from ideadate.schemas.profile import Role
from ideadate.schemas.suggestion import NewPlace


@dataclass(frozen=True)
class SearchArgs:
    role: Role
    stop: Stop
    radius_meters: float
    vibe_id: str
    limit: int = 8


@dataclass(frozen=True)
class Candidate:
    place_id: str
    name: str
    lat: float
    lng: float
    types: tuple[str, ...] = ()
    price_level: Optional[int] = None
    editorial_summary: Optional[str] = None

    @property
    def lat_lng(self) -> LatLng:
        return LatLng(self.lat, self.lng)

    def to_new_place(self) -> NewPlace:
        return NewPlace(
            name=self.name,
            place_ref=PlaceRef(
                place_id=self.place_id,
                lat_lng=self.lat_lng,
                provider="google",
                label=self.name,
            ),
            place_lite=PlaceLite(
                place_id=self.place_id,
                name=self.name,
                types=self.types,
                price_level=self.price_level,
                editorial_summary=self.editorial_summary,
            ),
        )


CandidateResolver = Callable[[SearchArgs], Awaitable[list[Candidate]]]
