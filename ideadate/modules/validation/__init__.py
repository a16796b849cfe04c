"""modules/validation — plan constraints and metric violations."""

from ideadate.modules.validation.constraint_evaluator import (
    ConstraintKind,
    ConstraintLimits,
    ConstraintReport,
    ConstraintViolation,
    MetricViolation,
    Severity,
    build_metric_violations,
    evaluate,
)
from ideadate.modules.validation.constraint_narrative import (
    build_constraint_delta,
    build_constraint_narrative_note,
)

__all__ = [
    "ConstraintKind",
    "ConstraintLimits",
    "ConstraintReport",
    "ConstraintViolation",
    "MetricViolation",
    "Severity",
    "build_constraint_delta",
    "build_constraint_narrative_note",
    "build_metric_violations",
    "evaluate",
]
