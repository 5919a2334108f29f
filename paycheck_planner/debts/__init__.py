"""Monthly debt instances: population and visibility."""

from paycheck_planner.debts.populator import (
    MonthlyDebtInstancePopulator,
    plan_missing_instances,
    validate_planning_window,
)
from paycheck_planner.debts.visibility import DebtVisibility, to_debt_entries

__all__ = [
    "DebtVisibility",
    "MonthlyDebtInstancePopulator",
    "plan_missing_instances",
    "to_debt_entries",
    "validate_planning_window",
]
