"""
schemas/plan.py
---------------
Plan and Stop value types.

Plans are immutable: every engine operation returns a new Plan built with
``dataclasses.replace``. Place data (PlaceRef / PlaceLite) belongs to the
external place provider and is carried through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from ideadate.schemas.profile import PlanProfile, Role, StopProfile


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True)
class PlaceRef:
    place_id: Optional[str] = None
    lat_lng: Optional[LatLng] = None
    provider: str = "google"
    label: Optional[str] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class PlaceLite:
    place_id: Optional[str] = None
    name: Optional[str] = None
    types: tuple[str, ...] = ()
    price_level: Optional[int] = None
    editorial_summary: Optional[str] = None
    formatted_address: Optional[str] = None
    rating: Optional[float] = None
    photo_ref: Optional[str] = None


@dataclass(frozen=True)
class Stop:
    id: str
    name: str = ""
    role: Optional[Role] = None          # caller-declared role; profile role wins
    place_ref: Optional[PlaceRef] = None
    place_lite: Optional[PlaceLite] = None
    profile: Optional[StopProfile] = None

    @property
    def place_id(self) -> Optional[str]:
        for candidate in (
            self.place_ref.place_id if self.place_ref else None,
            self.place_lite.place_id if self.place_lite else None,
        ):
            if candidate and candidate.strip():
                return candidate.strip()
        return None

    @property
    def lat_lng(self) -> Optional[LatLng]:
        return self.place_ref.lat_lng if self.place_ref else None

    @property
    def types(self) -> tuple[str, ...]:
        return self.place_lite.types if self.place_lite else ()


@dataclass(frozen=True)
class PrefTilt:
    """Three -1/0/+1 sliders that reshape arc-contribution weights."""

    vibe: int = 0
    walking: int = 0
    peak: int = 0

    def __post_init__(self) -> None:
        for name in ("vibe", "walking", "peak"):
            object.__setattr__(self, name, _normalize_tilt_value(getattr(self, name)))

    @property
    def is_neutral(self) -> bool:
        return self.vibe == 0 and self.walking == 0 and self.peak == 0


def _normalize_tilt_value(value) -> int:
    try:
        number = round(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(-1, min(1, number))


@dataclass(frozen=True)
class ResolverTelemetry:
    """Which candidate source answered the last refine cycle."""

    used: str = "none"            # "remote" | "local" | "none"
    count: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class PlanMeta:
    profile: Optional[PlanProfile] = None
    pref_tilt: Optional[PrefTilt] = None
    mode: str = "default"
    resolver_telemetry: Optional[ResolverTelemetry] = None


@dataclass(frozen=True)
class Plan:
    id: str
    stops: tuple[Stop, ...] = ()
    meta: PlanMeta = field(default_factory=PlanMeta)
    title: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "stops", tuple(self.stops))

    @property
    def profile(self) -> PlanProfile:
        return self.meta.profile if self.meta.profile is not None else PlanProfile()

    @property
    def stop_ids(self) -> tuple[str, ...]:
        return tuple(stop.id for stop in self.stops)

    def with_stops(self, stops) -> "Plan":
        return replace(self, stops=tuple(stops))

    def with_meta(self, **changes) -> "Plan":
        return replace(self, meta=replace(self.meta, **changes))
