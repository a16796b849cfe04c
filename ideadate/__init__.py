"""
ideadate
--------
Plan-quality scoring and suggestion engine for short multi-stop date plans.

    from ideadate import RefineSession, build_default_chain, parse_plan

    session = RefineSession(parse_plan(payload), resolver=build_default_chain())
    outcome = await session.refine()
"""

from ideadate.errors import (
    PatchInvariantError,
    ProfileInvariantError,
    SuggestionNotFoundError,
    UndoUnavailableError,
)
from ideadate.modules.candidates.resolver_chain import build_default_chain
from ideadate.modules.planning.surprise import build_surprise_plan
from ideadate.modules.refinement import (
    LiveResult,
    RefineSession,
    SuggestionPack,
    apply_patch_ops,
    generate_suggestions,
    recompute,
)
from ideadate.schemas.payloads import dump_plan, parse_plan

__version__ = "0.1.0"

__all__ = [
    "LiveResult",
    "PatchInvariantError",
    "ProfileInvariantError",
    "RefineSession",
    "SuggestionNotFoundError",
    "SuggestionPack",
    "UndoUnavailableError",
    "apply_patch_ops",
    "build_default_chain",
    "build_surprise_plan",
    "dump_plan",
    "generate_suggestions",
    "parse_plan",
    "recompute",
]
