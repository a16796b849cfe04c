"""
schemas/suggestion.py
---------------------
Patch ops and suggestions.

A Suggestion is a previewed, score-improving list of PatchOps. PatchOps are
the only sanctioned way to change a Plan's stop sequence; see
modules/refinement/patch_ops.py for the applier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ideadate.schemas.plan import PlaceLite, PlaceRef
from ideadate.schemas.profile import StopProfile


class SuggestionKind(str, Enum):
    REPLACEMENT = "replacement"
    REORDER = "reorder"


# ── Patch ops ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NewPlace:
    name: Optional[str] = None
    place_ref: Optional[PlaceRef] = None
    place_lite: Optional[PlaceLite] = None

    @property
    def place_id(self) -> Optional[str]:
        if self.place_ref and self.place_ref.place_id:
            return self.place_ref.place_id
        if self.place_lite and self.place_lite.place_id:
            return self.place_lite.place_id
        return None


@dataclass(frozen=True)
class MoveStop:
    stop_id: str
    to_index: int
    op: str = field(default="moveStop", init=False)


@dataclass(frozen=True)
class ReplaceStop:
    stop_id: str
    new_place: NewPlace
    new_profile: StopProfile
    op: str = field(default="replaceStop", init=False)


PatchOp = Union[MoveStop, ReplaceStop]


# ── Impact ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Impact:
    before: float
    after: float
    delta: float
    before100: int
    after100: int


@dataclass(frozen=True)
class ArcImpact:
    before_total: float
    after_total: float
    delta_total: float


@dataclass(frozen=True)
class ConstraintDelta:
    """Constraint kinds a suggestion fixes or introduces."""

    improved: tuple[str, ...] = ()
    worsened: tuple[str, ...] = ()
    hard_before: int = 0
    hard_after: int = 0
    soft_before: int = 0
    soft_after: int = 0


@dataclass(frozen=True)
class SuggestionMeta:
    original_place_name: Optional[str] = None
    concierge_tilt_note: Optional[str] = None
    constraint_narrative_note: Optional[str] = None
    constraint_delta: Optional[ConstraintDelta] = None
    candidate_family: Optional[str] = None
    diversity_penalty: float = 0.0


@dataclass(frozen=True)
class Suggestion:
    id: str
    kind: SuggestionKind
    reason_code: str
    patch_ops: tuple[PatchOp, ...]
    impact: Impact
    new_place: Optional[NewPlace] = None
    arc_impact: Optional[ArcImpact] = None
    meta: SuggestionMeta = field(default_factory=SuggestionMeta)
    subject_stop_id: Optional[str] = None
    preview: bool = True
