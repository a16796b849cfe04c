"""
schemas/payloads.py
-------------------
Parse boundary for raw plan data (persisted JSON, API bodies).

pydantic models validate the camelCase wire shape; the parse functions turn
them into the frozen dataclasses the engine works with. Numeric fields are
tolerant (numbers or numeric strings, clamped); structural problems such as
an unknown role are reported as parse errors, and the caller recovers by
re-hydrating the stop.

Usage:
    result = parse_stop_profile(raw_stop.get("ideaDate"))
    if not result:
        log.warning(result.errors)

    plan = parse_plan(raw_plan)
    raw_again = dump_plan(plan)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ideadate import config
from ideadate.schemas.plan import (
    LatLng,
    PlaceLite,
    PlaceRef,
    Plan,
    PlanMeta,
    PrefTilt,
    ResolverTelemetry,
    Stop,
)
from ideadate.schemas.profile import (
    DEFAULT_DURATION_MIN,
    DEFAULT_ENERGY_LEVEL,
    IntentVector,
    Overrides,
    PlanProfile,
    ProfileBaseline,
    Role,
    StopProfile,
    TravelMode,
    clamp,
    clamp_duration,
)

T = TypeVar("T")


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ParseResult(Generic[T]):
    """
    Outcome of a single parse.

    Attributes:
        ok:     True iff there are zero errors.
        value:  The parsed value, or None on failure.
        errors: Human-readable list of failure reasons.
    """
    ok: bool
    value: Optional[T] = None
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok


def read_number(value: Any, fallback: float = 0.0) -> float:
    """Numbers and numeric strings pass through; anything else is *fallback*."""
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else fallback
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return fallback
        return number if math.isfinite(number) else fallback
    return fallback


def _errors_of(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


# ── Wire models ───────────────────────────────────────────────────────────────

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class IntentVectorPayload(_WireModel):
    intimacy: float = 0.0
    energy: float = 0.0
    novelty: float = 0.0
    discovery: float = 0.0
    pretense: float = 0.0
    pressure: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _unit(cls, value: Any) -> float:
        return clamp(read_number(value, 0.0), 0.0, 1.0)

    def to_vector(self) -> IntentVector:
        return IntentVector(**self.model_dump())


class OverridesPayload(_WireModel):
    chill_lively: float = Field(0.0, alias="chillLively")
    relaxed_active: float = Field(0.0, alias="relaxedActive")
    quick_lingering: float = Field(0.0, alias="quickLingering")

    @field_validator("*", mode="before")
    @classmethod
    def _signed(cls, value: Any) -> float:
        return clamp(read_number(value, 0.0), -1.0, 1.0)

    def to_overrides(self) -> Overrides:
        return Overrides(**self.model_dump())


class BaselinePayload(_WireModel):
    intent_vector: IntentVectorPayload = Field(default_factory=IntentVectorPayload, alias="intentVector")
    energy_level: float = Field(DEFAULT_ENERGY_LEVEL, alias="energyLevel")
    duration_min: int = Field(DEFAULT_DURATION_MIN, alias="durationMin")

    @field_validator("energy_level", mode="before")
    @classmethod
    def _energy(cls, value: Any) -> float:
        return clamp(read_number(value, DEFAULT_ENERGY_LEVEL), 0.0, 1.0)

    @field_validator("duration_min", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> int:
        return clamp_duration(read_number(value, DEFAULT_DURATION_MIN))


class StopProfilePayload(BaselinePayload):
    role: Literal["start", "main", "windDown", "flex"] = "flex"
    source_google_type: Optional[str] = Field(None, alias="sourceGoogleType", max_length=128)
    overrides: OverridesPayload = Field(default_factory=OverridesPayload)
    baseline: Optional[BaselinePayload] = None

    @field_validator("intent_vector", "overrides", mode="before")
    @classmethod
    def _none_is_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("source_google_type", mode="before")
    @classmethod
    def _strip_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class PlanProfilePayload(_WireModel):
    vibe_id: str = Field(config.DEFAULT_VIBE_ID, alias="vibeId")
    vibe_target: Optional[IntentVectorPayload] = Field(None, alias="vibeTarget")
    vibe_importance: Optional[IntentVectorPayload] = Field(None, alias="vibeImportance")
    travel_mode: Literal["walk", "drive"] = Field("walk", alias="travelMode")


class LatLngPayload(_WireModel):
    lat: float
    lng: float


class PlaceRefPayload(_WireModel):
    place_id: Optional[str] = Field(None, alias="placeId")
    lat_lng: Optional[LatLngPayload] = Field(None, alias="latLng")
    provider: str = "google"
    label: Optional[str] = None
    query: Optional[str] = None


class PlaceLitePayload(_WireModel):
    place_id: Optional[str] = Field(None, alias="placeId")
    name: Optional[str] = None
    types: list[str] = Field(default_factory=list)
    price_level: Optional[int] = Field(None, alias="priceLevel")
    editorial_summary: Optional[str] = Field(None, alias="editorialSummary")
    formatted_address: Optional[str] = Field(None, alias="formattedAddress")
    rating: Optional[float] = None
    photo_ref: Optional[str] = Field(None, alias="photoRef")


class StopPayload(_WireModel):
    id: str
    name: str = ""
    role: Optional[str] = None
    place_ref: Optional[PlaceRefPayload] = Field(None, alias="placeRef")
    place_lite: Optional[PlaceLitePayload] = Field(None, alias="placeLite")
    idea_date: Any = Field(None, alias="ideaDate")


class PrefTiltPayload(_WireModel):
    vibe: Any = 0
    walking: Any = 0
    peak: Any = 0


class ResolverTelemetryPayload(_WireModel):
    used: Literal["remote", "local", "none"] = "none"
    count: int = 0
    error: Optional[str] = None


class PlanMetaPayload(_WireModel):
    idea_date: Any = Field(None, alias="ideaDate")
    pref_tilt: Optional[PrefTiltPayload] = Field(None, alias="prefTilt")
    mode: str = "default"
    resolver_telemetry: Optional[ResolverTelemetryPayload] = Field(None, alias="resolverTelemetry")


class PlanPayload(_WireModel):
    id: str
    title: str = ""
    stops: list[StopPayload] = Field(default_factory=list)
    meta: PlanMetaPayload = Field(default_factory=PlanMetaPayload)


# ── Parse functions ───────────────────────────────────────────────────────────

def parse_stop_profile(raw: Any) -> ParseResult[StopProfile]:
    """Fallible parse of a stored stop profile."""
    if not isinstance(raw, Mapping):
        return ParseResult(ok=False, errors=[f"stop profile must be a mapping (got {type(raw).__name__})"])
    try:
        payload = StopProfilePayload.model_validate(dict(raw))
    except ValidationError as exc:
        return ParseResult(ok=False, errors=_errors_of(exc))

    baseline = None
    if payload.baseline is not None:
        baseline = ProfileBaseline(
            intent=payload.baseline.intent_vector.to_vector(),
            energy_level=payload.baseline.energy_level,
            duration_min=payload.baseline.duration_min,
        )
    profile = StopProfile(
        role=Role(payload.role),
        intent=payload.intent_vector.to_vector(),
        energy_level=payload.energy_level,
        duration_min=payload.duration_min,
        source_type=payload.source_google_type,
        overrides=payload.overrides.to_overrides(),
        baseline=baseline,
    )
    return ParseResult(ok=True, value=profile)


def parse_plan_profile(raw: Any) -> PlanProfile:
    """Never fails: invalid input falls back to the default vibe."""
    if not isinstance(raw, Mapping):
        return PlanProfile()
    try:
        payload = PlanProfilePayload.model_validate(dict(raw))
    except ValidationError:
        return PlanProfile()
    return PlanProfile(
        vibe_id=payload.vibe_id,
        vibe_target=payload.vibe_target.to_vector() if payload.vibe_target else None,
        vibe_importance=payload.vibe_importance.to_vector() if payload.vibe_importance else None,
        travel_mode=TravelMode(payload.travel_mode),
    )


def _parse_stop(payload: StopPayload) -> Stop:
    place_ref = None
    if payload.place_ref is not None:
        lat_lng = payload.place_ref.lat_lng
        place_ref = PlaceRef(
            place_id=payload.place_ref.place_id,
            lat_lng=LatLng(lat_lng.lat, lat_lng.lng) if lat_lng else None,
            provider=payload.place_ref.provider,
            label=payload.place_ref.label,
            query=payload.place_ref.query,
        )
    place_lite = None
    if payload.place_lite is not None:
        lite = payload.place_lite
        place_lite = PlaceLite(
            place_id=lite.place_id,
            name=lite.name,
            types=tuple(lite.types),
            price_level=lite.price_level,
            editorial_summary=lite.editorial_summary,
            formatted_address=lite.formatted_address,
            rating=lite.rating,
            photo_ref=lite.photo_ref,
        )
    role = payload.role if payload.role in {r.value for r in Role} else None
    profile = None
    if payload.idea_date is not None:
        profile = parse_stop_profile(payload.idea_date).value
    return Stop(
        id=payload.id,
        name=payload.name,
        role=Role(role) if role else None,
        place_ref=place_ref,
        place_lite=place_lite,
        profile=profile,
    )


def parse_plan(raw: Mapping[str, Any]) -> Plan:
    """
    Parse a raw plan. Stops whose profile fails to parse carry no profile and
    are re-hydrated on the next recompute.

    Raises:
        pydantic.ValidationError: the plan itself is malformed (no id, stops
            not a list, ...).
    """
    payload = PlanPayload.model_validate(raw)
    meta = PlanMeta(
        profile=parse_plan_profile(payload.meta.idea_date),
        pref_tilt=PrefTilt(**payload.meta.pref_tilt.model_dump()) if payload.meta.pref_tilt else None,
        mode=payload.meta.mode,
        resolver_telemetry=(
            ResolverTelemetry(**payload.meta.resolver_telemetry.model_dump())
            if payload.meta.resolver_telemetry else None
        ),
    )
    return Plan(
        id=payload.id,
        title=payload.title,
        stops=tuple(_parse_stop(stop) for stop in payload.stops),
        meta=meta,
    )


# ── Dump ──────────────────────────────────────────────────────────────────────

def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}


def dump_stop_profile(profile: StopProfile) -> dict:
    out = {
        "role": profile.role.value,
        "intentVector": profile.intent.as_dict(),
        "energyLevel": profile.energy_level,
        "durationMin": profile.duration_min,
        "sourceGoogleType": profile.source_type,
        "overrides": {
            "chillLively": profile.overrides.chill_lively,
            "relaxedActive": profile.overrides.relaxed_active,
            "quickLingering": profile.overrides.quick_lingering,
        },
    }
    if profile.baseline is not None:
        out["baseline"] = {
            "intentVector": profile.baseline.intent.as_dict(),
            "energyLevel": profile.baseline.energy_level,
            "durationMin": profile.baseline.duration_min,
        }
    return out


def _dump_stop(stop: Stop) -> dict:
    out: dict[str, Any] = {"id": stop.id, "name": stop.name}
    if stop.role is not None:
        out["role"] = stop.role.value
    if stop.place_ref is not None:
        ref = stop.place_ref
        out["placeRef"] = _drop_none({
            "placeId": ref.place_id,
            "latLng": {"lat": ref.lat_lng.lat, "lng": ref.lat_lng.lng} if ref.lat_lng else None,
            "provider": ref.provider,
            "label": ref.label,
            "query": ref.query,
        })
    if stop.place_lite is not None:
        lite = stop.place_lite
        out["placeLite"] = _drop_none({
            "placeId": lite.place_id,
            "name": lite.name,
            "types": list(lite.types),
            "priceLevel": lite.price_level,
            "editorialSummary": lite.editorial_summary,
            "formattedAddress": lite.formatted_address,
            "rating": lite.rating,
            "photoRef": lite.photo_ref,
        })
    if stop.profile is not None:
        out["ideaDate"] = dump_stop_profile(stop.profile)
    return out


def dump_plan(plan: Plan) -> dict:
    """Inverse of parse_plan; camelCase keys, JSON-safe values."""
    profile = plan.profile
    meta: dict[str, Any] = {
        "ideaDate": {
            "vibeId": profile.vibe_id,
            "vibeTarget": profile.vibe_target.as_dict(),
            "vibeImportance": profile.vibe_importance.as_dict(),
            "travelMode": profile.travel_mode.value,
        },
        "mode": plan.meta.mode,
    }
    if plan.meta.pref_tilt is not None:
        tilt = plan.meta.pref_tilt
        meta["prefTilt"] = {"vibe": tilt.vibe, "walking": tilt.walking, "peak": tilt.peak}
    if plan.meta.resolver_telemetry is not None:
        telemetry = plan.meta.resolver_telemetry
        meta["resolverTelemetry"] = _drop_none({
            "used": telemetry.used,
            "count": telemetry.count,
            "error": telemetry.error,
        })
    return {
        "id": plan.id,
        "title": plan.title,
        "stops": [_dump_stop(stop) for stop in plan.stops],
        "meta": meta,
    }
