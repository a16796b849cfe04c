"""
modules/profile/hydrator.py
---------------------------
Derives a stop's IdeaDate profile from its place data, its role in the plan
and the plan's vibe target.

Pipeline (deterministic, no randomness):
  1. Pick the primary place type, preferring the role's priority list.
  2. Blend the type baseline intent 75/25 with the role's intent baseline.
  3. Blend that 70/30 with the vibe target.
  4. Adjust energy and duration for the role.
  5. Apply the stop's overrides on top (modules/profile/overrides.py).

ensure_profiles() runs this over a whole plan before scoring.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from ideadate import config
from ideadate.errors import ProfileInvariantError
from ideadate.modules.profile.overrides import apply_overrides
from ideadate.modules.profile.place_baselines import PLACE_TYPE_BASELINES, get_place_type_baseline
from ideadate.schemas.plan import Plan, Stop
from ideadate.schemas.profile import (
    IntentVector,
    NEUTRAL_OVERRIDES,
    PlanProfile,
    Role,
    StopProfile,
    clamp01,
    round_half_up,
)

logger = logging.getLogger(__name__)


# ── Role tables ───────────────────────────────────────────────────────────────

ROLE_TYPE_PRIORITY: dict[Role, tuple[str, ...]] = {
    Role.START:     ("cafe", "park", "bookstore", "art_gallery", "restaurant"),
    Role.MAIN:      ("restaurant", "museum", "tourist_attraction", "live_music_venue", "bar"),
    Role.WIND_DOWN: ("dessert_shop", "bar", "park", "movie_theater", "cafe"),
    Role.FLEX:      ("restaurant", "cafe", "park", "museum", "bar"),
}

ROLE_INTENT_BASELINES: dict[Role, IntentVector] = {
    Role.START:     IntentVector(0.68, 0.34, 0.45, 0.52, 0.14, 0.10),
    Role.MAIN:      IntentVector(0.74, 0.58, 0.56, 0.54, 0.28, 0.24),
    Role.WIND_DOWN: IntentVector(0.82, 0.28, 0.38, 0.38, 0.18, 0.10),
    Role.FLEX:      IntentVector(0.60, 0.50, 0.50, 0.50, 0.20, 0.20),
}

_INDEX_ROLES = (Role.START, Role.MAIN, Role.WIND_DOWN)


def default_role_for_index(index: int) -> Role:
    return _INDEX_ROLES[index] if 0 <= index < len(_INDEX_ROLES) else Role.FLEX


def resolve_role(stop: Stop, index: int) -> Role:
    """Profile role, else the stop's declared role, else by position."""
    if stop.profile is not None:
        return stop.profile.role
    if stop.role is not None:
        return Role(stop.role)
    return default_role_for_index(index)


# ── Hydration ─────────────────────────────────────────────────────────────────

def normalize_types(types: Optional[Iterable[str]]) -> list[str]:
    return [t.strip().lower() for t in (types or ()) if isinstance(t, str) and t.strip()]


def resolve_primary_type(types: Iterable[str], role: Role) -> str:
    types = list(types)
    for preferred in ROLE_TYPE_PRIORITY.get(role, ROLE_TYPE_PRIORITY[Role.FLEX]):
        if preferred in types and preferred in PLACE_TYPE_BASELINES:
            return preferred
    for candidate in types:
        if candidate in PLACE_TYPE_BASELINES:
            return candidate
    return "default"


def _role_energy(energy: float, role: Role) -> float:
    if role is Role.START:
        return clamp01(min(energy, 0.52))
    if role is Role.MAIN:
        return clamp01(energy + 0.08)
    if role is Role.WIND_DOWN:
        return clamp01(energy - 0.12)
    return clamp01(energy)


def _role_duration(duration: int, role: Role) -> int:
    factor = {Role.START: 0.85, Role.MAIN: 1.1, Role.WIND_DOWN: 0.9}.get(role, 1.0)
    return round_half_up(duration * factor)


def hydrate(
    types: Optional[Iterable[str]],
    role: Role,
    blend: Optional[IntentVector] = None,
) -> StopProfile:
    """
    Build an override-free profile for a place with *types* playing *role*.

    Args:
        types: Place types from the place provider (any case, may be empty).
        role:  Stop role in the plan.
        blend: Vibe target to pull the intent toward (zero vector if None).
    """
    role = Role(role)
    blend = blend or IntentVector()
    primary = resolve_primary_type(normalize_types(types), role)
    baseline = get_place_type_baseline(primary)
    role_vector = ROLE_INTENT_BASELINES[role]

    intent = {}
    for key in config.INTENT_KEYS:
        role_adjusted = clamp01(baseline.intent.get(key) * 0.75 + role_vector.get(key) * 0.25)
        intent[key] = clamp01(role_adjusted * 0.7 + blend.get(key) * 0.3)

    profile = StopProfile(
        role=role,
        intent=IntentVector(**intent),
        energy_level=_role_energy(baseline.energy_level, role),
        duration_min=_role_duration(baseline.duration_min, role),
        source_type=baseline.place_type,
        overrides=NEUTRAL_OVERRIDES,
    )
    return replace(profile, baseline=profile.as_baseline())


def hydrate_stop(stop: Stop, role: Role, blend: Optional[IntentVector] = None) -> StopProfile:
    return hydrate(stop.types, role, blend)


def rehydrate_for_role_change(
    stop: Stop,
    previous: StopProfile,
    new_role: Role,
    blend: Optional[IntentVector] = None,
) -> StopProfile:
    """Re-derive the profile for *new_role*, keeping the manual overrides."""
    return apply_overrides(hydrate_stop(stop, new_role, blend), previous.overrides)


# ── Plan-level ────────────────────────────────────────────────────────────────

def ensure_stop_profile(stop: Stop, index: int, plan_profile: PlanProfile) -> StopProfile:
    desired = resolve_role(stop, index)
    blend = plan_profile.vibe_target
    existing = stop.profile
    if existing is None:
        return hydrate_stop(stop, desired, blend)
    if existing.role is not desired:
        return rehydrate_for_role_change(stop, existing, desired, blend)
    if existing.baseline is None:
        # Stored without a baseline: the values already carry their overrides.
        return existing
    return apply_overrides(existing)


def ensure_profiles(plan: Plan) -> Plan:
    """Return *plan* with every stop carrying a role-consistent profile."""
    plan_profile = plan.profile
    stops = [
        replace(stop, profile=ensure_stop_profile(stop, index, plan_profile))
        for index, stop in enumerate(plan.stops)
    ]
    return plan.with_stops(stops).with_meta(profile=plan_profile)


def require_profiles(plan: Plan) -> list[StopProfile]:
    """
    Profiles for every stop of an already-ensured plan.

    Raises:
        ProfileInvariantError: a stop has no profile and invariants are
            strict. In production the stop is re-hydrated instead.
    """
    profiles: list[StopProfile] = []
    for index, stop in enumerate(plan.stops):
        if stop.profile is not None:
            profiles.append(stop.profile)
            continue
        if config.strict_invariants():
            raise ProfileInvariantError(
                f"recompute invariant failed: stop {stop.id!r} at index {index} has no profile"
            )
        logger.warning("[hydrator] stop %r missing profile, re-hydrating", stop.id)
        profiles.append(hydrate_stop(stop, resolve_role(stop, index), plan.profile.vibe_target))
    return profiles
