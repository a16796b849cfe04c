"""
modules/refinement/session.py
-----------------------------
RefineSession: the stateful driver around generate_suggestions().

Owns the live baseline, one undo snapshot, the current suggestion pack and
a per-session TravelCache.

Lifecycle:
    session = RefineSession(plan, resolver=build_default_chain())

    outcome = await session.refine()       # searching -> previewing -> ready | empty
    preview = session.preview(outcome.pack.suggestions[0].id)
    live    = session.apply(outcome.pack.suggestions[0].id)   # -> applied
    live    = session.undo()                                   # back to the prior baseline

Concurrency:
    A refine() issued while one is in flight is rejected as busy unless
    supersede=True, in which case the older result is discarded when it
    lands. The busy check runs before the first await, so two back-to-back
    calls can never both start a cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ideadate.errors import SuggestionNotFoundError, UndoUnavailableError
from ideadate.modules.candidates.diversity import DiversityPolicy
from ideadate.modules.candidates.resolver import CandidateResolver
from ideadate.modules.observability.logger import StructuredLogger
from ideadate.modules.refinement.patch_ops import apply_patch_ops
from ideadate.modules.refinement.recompute import LiveResult, recompute
from ideadate.modules.refinement.suggestion_pack import SuggestionPack, generate_suggestions
from ideadate.modules.travel.travel_cache import TravelCache
from ideadate.schemas.plan import Plan
from ideadate.schemas.suggestion import Suggestion

logger = logging.getLogger(__name__)


class RefineState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    PREVIEWING = "previewing"
    READY = "ready"
    EMPTY = "empty"
    APPLIED = "applied"


class RefineStatus(str, Enum):
    READY = "ready"
    EMPTY = "empty"
    BUSY = "busy"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class RefineOutcome:
    status: RefineStatus
    pack: Optional[SuggestionPack] = None

    @property
    def busy(self) -> bool:
        return self.status is RefineStatus.BUSY

    @property
    def superseded(self) -> bool:
        return self.status is RefineStatus.SUPERSEDED

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self.pack.suggestions if self.pack is not None else ()


class RefineSession:
    """
    Single source of truth for one plan being refined:
      - the live baseline (plan + metrics)
      - at most one undo snapshot
      - the latest suggestion pack
    """

    def __init__(
        self,
        plan: Plan,
        resolver: Optional[CandidateResolver] = None,
        mode: Optional[str] = None,
        policy: Optional[DiversityPolicy] = None,
        events: Optional[StructuredLogger] = None,
    ) -> None:
        self.resolver          = resolver
        self.mode              = mode
        self.policy            = policy
        self.events            = events
        self.travel_cache      = TravelCache()

        self._live             = recompute(plan, self.travel_cache)
        self._snapshot: Optional[LiveResult] = None
        self._pack: Optional[SuggestionPack] = None
        self._state            = RefineState.IDLE
        self._generation       = 0
        self._in_flight        = False

    # ── Read-only views ───────────────────────────────────────────────────────

    @property
    def live(self) -> LiveResult:
        return self._live

    @property
    def plan(self) -> Plan:
        return self._live.plan

    @property
    def state(self) -> RefineState:
        return self._state

    @property
    def pack(self) -> Optional[SuggestionPack]:
        return self._pack

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self._pack.suggestions if self._pack is not None else ()

    @property
    def can_undo(self) -> bool:
        return self._snapshot is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ── Refine cycle ──────────────────────────────────────────────────────────

    async def refine(self, supersede: bool = False) -> RefineOutcome:
        """
        Run one refine cycle against the current baseline.

        Returns a busy outcome (without starting anything) when a cycle is
        already running and *supersede* is False.
        """
        if self._in_flight and not supersede:
            logger.info("[RefineSession] refine rejected, cycle %d in flight", self._generation)
            self._event("refine_rejected_busy", {"generation": self._generation})
            return RefineOutcome(RefineStatus.BUSY)

        self._generation += 1
        generation = self._generation
        self._in_flight = True
        self._state = RefineState.SEARCHING
        self._event("refine_started", {"generation": generation, "supersede": supersede})

        def on_phase(phase: str) -> None:
            if generation == self._generation and phase == "previewing":
                self._state = RefineState.PREVIEWING

        try:
            pack = await generate_suggestions(
                self._live.plan,
                resolver=self.resolver,
                travel_cache=self.travel_cache,
                mode=self.mode,
                policy=self.policy,
                on_phase=on_phase,
            )
        finally:
            if generation == self._generation:
                self._in_flight = False

        if generation != self._generation:
            logger.info("[RefineSession] cycle %d superseded by %d", generation, self._generation)
            self._event("refine_superseded", {"generation": generation, "current": self._generation})
            return RefineOutcome(RefineStatus.SUPERSEDED, pack)

        self._pack = pack
        self._live = pack.live
        self._state = RefineState.EMPTY if pack.empty else RefineState.READY
        self._event("refine_completed", {
            "generation": generation,
            "suggestions": [s.id for s in pack.suggestions],
            "resolver": {"used": pack.telemetry.used, "count": pack.telemetry.count,
                         "error": pack.telemetry.error},
            "stats": pack.stats.as_dict(),
        })
        return RefineOutcome(RefineStatus.EMPTY if pack.empty else RefineStatus.READY, pack)

    def cancel(self) -> bool:
        """Drop any in-flight cycle; its result is discarded when it lands."""
        if not self._in_flight:
            return False
        self._generation += 1
        self._in_flight = False
        self._state = RefineState.IDLE
        return True

    # ── Suggestions ───────────────────────────────────────────────────────────

    def _find(self, suggestion_id: str) -> Suggestion:
        suggestion = self._pack.get(suggestion_id) if self._pack is not None else None
        if suggestion is None:
            raise SuggestionNotFoundError(f"unknown suggestion id: {suggestion_id!r}")
        return suggestion

    def preview(self, suggestion_id: str) -> LiveResult:
        """Metrics the plan would have after *suggestion_id*; nothing changes."""
        suggestion = self._find(suggestion_id)
        return recompute(apply_patch_ops(self._live.plan, suggestion.patch_ops), self.travel_cache)

    def apply(self, suggestion_id: str) -> LiveResult:
        """Apply a suggestion, keeping the previous baseline as the undo snapshot."""
        suggestion = self._find(suggestion_id)
        before = self._live
        after = recompute(apply_patch_ops(before.plan, suggestion.patch_ops), self.travel_cache)

        self._snapshot = before
        self._live = after
        self._pack = None
        self._generation += 1
        self._in_flight = False
        self._state = RefineState.APPLIED
        logger.info("[RefineSession] applied %s: journey %.4f -> %.4f",
                    suggestion.id, before.computed.journey_score, after.computed.journey_score)
        self._event("suggestion_applied", {
            "suggestion_id": suggestion.id,
            "journey_before": before.computed.journey_score,
            "journey_after": after.computed.journey_score,
        })
        return after

    def undo(self) -> LiveResult:
        """Restore the baseline from before the last apply()."""
        if self._snapshot is None:
            self._event("undo_unavailable", {})
            raise UndoUnavailableError("no applied suggestion to undo")
        self._live = self._snapshot
        self._snapshot = None
        self._pack = None
        self._generation += 1
        self._in_flight = False
        self._state = RefineState.IDLE
        self._event("undo_applied", {"journey": self._live.computed.journey_score})
        return self._live

    def set_plan(self, plan: Plan) -> LiveResult:
        """Replace the baseline outright (e.g. after a manual edit); clears undo."""
        self.travel_cache.clear()
        self._live = recompute(plan, self.travel_cache)
        self._snapshot = None
        self._pack = None
        self._generation += 1
        self._in_flight = False
        self._state = RefineState.IDLE
        return self._live

    # ── internals ─────────────────────────────────────────────────────────────

    def _event(self, event_type: str, payload: dict) -> None:
        if self.events is not None:
            self.events.log(self._live.plan.id, event_type, payload)
