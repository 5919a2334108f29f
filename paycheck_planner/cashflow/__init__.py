"""Cash-flow warnings package."""

from paycheck_planner.cashflow.evaluator import (
    WarningDismissals,
    evaluate_warnings,
    filter_dismissed,
    warning_key,
)

__all__ = [
    "WarningDismissals",
    "evaluate_warnings",
    "filter_dismissed",
    "warning_key",
]
