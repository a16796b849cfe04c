"""modules/refinement — recompute, patch ops, suggestion passes and the refine session."""

from ideadate.modules.refinement.patch_ops import (
    apply_patch_ops,
    move_ops_for_order,
    normalize_roles_by_index,
    restore_stop_op,
)
from ideadate.modules.refinement.recompute import ComputedMetrics, LiveResult, recompute
from ideadate.modules.refinement.reorder import generate_reorder_repairs, generate_reorder_suggestion
from ideadate.modules.refinement.replacement import generate_replacement_suggestions
from ideadate.modules.refinement.session import RefineOutcome, RefineSession, RefineState, RefineStatus
from ideadate.modules.refinement.stats import DiscardReason, RefineStats
from ideadate.modules.refinement.suggestion_pack import (
    SuggestionPack,
    generate_suggestions,
    select_suggestions,
)

__all__ = [
    "ComputedMetrics",
    "DiscardReason",
    "LiveResult",
    "RefineOutcome",
    "RefineSession",
    "RefineState",
    "RefineStats",
    "RefineStatus",
    "SuggestionPack",
    "apply_patch_ops",
    "generate_reorder_repairs",
    "generate_reorder_suggestion",
    "generate_replacement_suggestions",
    "generate_suggestions",
    "move_ops_for_order",
    "normalize_roles_by_index",
    "recompute",
    "restore_stop_op",
    "select_suggestions",
]
