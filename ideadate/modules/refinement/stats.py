"""
modules/refinement/stats.py
---------------------------
Bookkeeping for one refine cycle: why candidates were dropped, which
passes ran, and what the candidate source reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ideadate.schemas.plan import ResolverTelemetry

# Preference when several searches in one cycle report different sources.
_SOURCE_RANK = {"none": 0, "local": 1, "remote": 2}


class DiscardReason(str, Enum):
    DUPLICATE_PLACE_ID = "duplicate_placeId"
    ROLE_MISMATCH = "role_mismatch"
    MISSING_STOP_PROFILE = "missing_stop_profile"
    INVARIANT_VIOLATION = "invariant_violation"
    INCREASES_HARD_CONSTRAINTS = "increases_hard_constraints"
    INCREASES_VIOLATIONS = "increases_violations"
    WORSENS_JOURNEY_SCORE = "worsens_journeyScore"
    NO_ARC_IMPROVEMENT = "no_arc_improvement"


@dataclass
class RefineStats:
    candidates_seen: int = 0
    candidates_evaluated: int = 0
    passes: list[str] = field(default_factory=list)
    discards: dict[str, int] = field(default_factory=dict)
    resolver_used: str = "none"
    resolver_count: int = 0
    resolver_error: Optional[str] = None

    def discard(self, reason: DiscardReason) -> None:
        key = DiscardReason(reason).value
        self.discards[key] = self.discards.get(key, 0) + 1

    @property
    def discarded_total(self) -> int:
        return sum(self.discards.values())

    def record_search(self, telemetry: ResolverTelemetry) -> None:
        self.resolver_count += telemetry.count
        if _SOURCE_RANK.get(telemetry.used, 0) > _SOURCE_RANK.get(self.resolver_used, 0):
            self.resolver_used = telemetry.used
        if telemetry.error:
            self.resolver_error = telemetry.error

    def telemetry(self) -> ResolverTelemetry:
        return ResolverTelemetry(used=self.resolver_used, count=self.resolver_count, error=self.resolver_error)

    def as_dict(self) -> dict:
        return {
            "candidates_seen": self.candidates_seen,
            "candidates_evaluated": self.candidates_evaluated,
            "passes": list(self.passes),
            "discards": dict(sorted(self.discards.items())),
            "discarded_total": self.discarded_total,
        }
