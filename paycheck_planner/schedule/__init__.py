"""Date arithmetic and paycheck projection."""

from paycheck_planner.schedule.cursor import (
    add_months,
    advance,
    month_bounds,
    parse_date_string,
    shift_month,
    to_date_string,
    window_bounds,
)
from paycheck_planner.schedule.projector import (
    estimate_monthly_income,
    paycheck_id,
    project_paychecks,
)

__all__ = [
    "add_months",
    "advance",
    "estimate_monthly_income",
    "month_bounds",
    "parse_date_string",
    "paycheck_id",
    "project_paychecks",
    "shift_month",
    "to_date_string",
    "window_bounds",
]
