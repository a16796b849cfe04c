"""
tests/conftest.py
─────────────────────────────────────────────────────────────────────────────
Shared plan builders and fake resolvers.

Stops are placed around Hayes Valley, San Francisco, so they sit inside the
bundled candidate dataset. Profiles are given explicitly where a test needs
exact numbers; otherwise they are left to hydration.
─────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import pytest

from ideadate import config
from ideadate.modules.candidates.local_resolver import LocalCandidateResolver
from ideadate.modules.candidates.resolver import Candidate, SearchArgs
from ideadate.schemas.plan import LatLng, PlaceLite, PlaceRef, Plan, PlanMeta, PrefTilt, Stop
from ideadate.schemas.profile import IntentVector, PlanProfile, Role, StopProfile

VIBE_TARGET = IntentVector.from_values(config.VIBE_PROFILES[config.DEFAULT_VIBE_ID]["target"])


def make_stop(
    stop_id: str,
    lat: float,
    lng: float,
    types: Sequence[str] = ("cafe",),
    place_id: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[Role] = None,
    energy: Optional[float] = None,
    intent: Optional[IntentVector] = None,
    duration: int = 60,
) -> Stop:
    """A stop; passing *energy* attaches an explicit profile."""
    place_id = place_id or f"p-{stop_id}"
    name = name or f"Place {stop_id}"
    profile = None
    if energy is not None:
        profile = StopProfile(
            role=role or Role.FLEX,
            intent=intent or VIBE_TARGET,
            energy_level=energy,
            duration_min=duration,
            source_type=types[0] if types else None,
        )
    return Stop(
        id=stop_id,
        name=name,
        role=role,
        place_ref=PlaceRef(place_id=place_id, lat_lng=LatLng(lat, lng), label=name),
        place_lite=PlaceLite(place_id=place_id, name=name, types=tuple(types)),
        profile=profile,
    )


def make_plan(
    stops: Sequence[Stop],
    plan_id: str = "plan-test",
    vibe_id: str = config.DEFAULT_VIBE_ID,
    pref_tilt: Optional[PrefTilt] = None,
    mode: str = "default",
) -> Plan:
    return Plan(
        id=plan_id,
        stops=tuple(stops),
        meta=PlanMeta(profile=PlanProfile(vibe_id=vibe_id), pref_tilt=pref_tilt, mode=mode),
        title="Test date",
    )


def calm_plan() -> Plan:
    """Three close stops, on-vibe intents, a mid-plan peak and a soft finish."""
    return make_plan([
        make_stop("s1", 37.7769, -122.4236, ("cafe",), role=Role.START, energy=0.3),
        make_stop("s2", 37.7773, -122.4229, ("museum",), role=Role.MAIN, energy=0.6),
        make_stop("s3", 37.7771, -122.4220, ("bar",), role=Role.WIND_DOWN, energy=0.2),
    ], plan_id="plan-calm")


def messy_plan() -> Plan:
    """Off-vibe intents everywhere and a final stop at peak energy."""
    loud = IntentVector(1, 1, 1, 1, 1, 1)
    return make_plan([
        make_stop("m1", 37.7769, -122.4236, ("cafe",), role=Role.START, energy=0.2, intent=loud),
        make_stop("m2", 37.7790, -122.4180, ("museum",), role=Role.MAIN, energy=0.4, intent=loud),
        make_stop("m3", 37.7771, -122.4213, ("bar",), role=Role.WIND_DOWN, energy=0.95, intent=loud),
    ], plan_id="plan-messy")


def unprofiled_plan() -> Plan:
    return make_plan([
        make_stop("u1", 37.7769, -122.4236, ("cafe",)),
        make_stop("u2", 37.7793, -122.4178, ("art_gallery",)),
        make_stop("u3", 37.7761, -122.4249, ("dessert_shop",)),
    ], plan_id="plan-unprofiled")


class YieldingResolver:
    """Wraps a resolver and yields to the event loop before every search."""

    def __init__(self, inner=None) -> None:
        self.inner = inner or LocalCandidateResolver()
        self.calls: list[SearchArgs] = []

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        self.calls.append(args)
        await asyncio.sleep(0)
        return await self.inner(args)


class FailingResolver:
    def __init__(self, message: str = "upstream   exploded\n(503)") -> None:
        self.message = message
        self.calls = 0

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        self.calls += 1
        raise ConnectionError(self.message)


class StaticResolver:
    def __init__(self, candidates: Sequence[Candidate]) -> None:
        self.candidates = list(candidates)

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        return list(self.candidates)


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(config, "IDEADATE_ENV", "production")


@pytest.fixture
def development(monkeypatch):
    monkeypatch.setattr(config, "IDEADATE_ENV", "development")
