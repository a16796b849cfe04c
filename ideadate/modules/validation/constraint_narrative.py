"""
modules/validation/constraint_narrative.py
------------------------------------------
Before/after comparison of two constraint reports, used to annotate a
suggestion with the constraint kinds it fixes or introduces.
"""

from __future__ import annotations

from collections import Counter
from typing import Optional

from ideadate.modules.validation.constraint_evaluator import ConstraintReport
from ideadate.schemas.suggestion import ConstraintDelta


def build_constraint_delta(baseline: ConstraintReport, after: ConstraintReport) -> ConstraintDelta:
    before_counts = Counter(v.kind.value for v in baseline.violations)
    after_counts = Counter(v.kind.value for v in after.violations)
    improved, worsened = [], []
    for kind in sorted(set(before_counts) | set(after_counts)):
        if after_counts[kind] < before_counts[kind]:
            improved.append(kind)
        elif after_counts[kind] > before_counts[kind]:
            worsened.append(kind)
    return ConstraintDelta(
        improved=tuple(improved),
        worsened=tuple(worsened),
        hard_before=max(0, baseline.hard_count),
        hard_after=max(0, after.hard_count),
        soft_before=max(0, baseline.soft_count),
        soft_after=max(0, after.soft_count),
    )


def build_constraint_narrative_note(delta: ConstraintDelta) -> Optional[str]:
    if delta.hard_after < delta.hard_before:
        if "max_travel_edge" in delta.improved:
            return "Fixes a hard constraint by shortening a too-long transfer."
        return "Fixes a hard constraint in the plan structure."
    if delta.soft_after < delta.soft_before:
        return "Improves pacing constraints for a cleaner taper."
    return None
