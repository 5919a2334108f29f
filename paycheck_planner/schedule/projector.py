"""
Paycheck Projector

Turns income sources into dated paychecks for a target month plus a
lookahead window.

DESIGN DECISION: Paychecks are never stored. They are recomputed on every
request, and their ids are derived from (income source id, pay date) so an
allocation that references a paycheck keeps pointing at the same paycheck
across requests.

CRITICAL: paycheck_id() is a stored contract. Allocations hold these ids
with no backing row, so the format must never change.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from paycheck_planner.config import get_settings
from paycheck_planner.models.planning import (
    Frequency,
    IncomeSource,
    Paycheck,
    PaycheckProjection,
)
from paycheck_planner.schedule.cursor import (
    add_months,
    advance,
    first_on_or_after,
    month_bounds,
    to_date_string,
)


CENTS = Decimal("0.01")
WEEKS_PER_YEAR = Decimal("52")
MONTHS_PER_YEAR = Decimal("12")


def paycheck_id(income_source_id: str, pay_date: date) -> str:
    """Deterministic paycheck id: {incomeSourceId}-{YYYY-MM-DD}."""
    return f"{income_source_id}-{to_date_string(pay_date)}"


def iter_pay_dates(source: IncomeSource, window_start: date, window_end: date):
    """
    Pay dates of one source in [window_start, window_end).

    Monthly schedules stay anchored to the start day, so a source paid on
    the 31st is paid on the last day of short months and on the 31st again
    afterwards. Dates after the source's end_date are not produced.
    """
    anchor_day = source.start_date.day
    cursor = first_on_or_after(source.start_date, source.frequency, window_start)
    while cursor < window_end:
        if source.end_date and cursor > source.end_date:
            return
        yield cursor
        cursor = advance(cursor, source.frequency, anchor_day)


def project_paychecks(
    income_sources: Iterable[IncomeSource],
    target_year: int,
    target_month: int,
    lookahead_months: Optional[int] = None,
) -> PaycheckProjection:
    """
    Project paychecks for a target month and the months after it.

    Args:
        income_sources: Sources to project (inactive ones are skipped)
        target_year: Year of the target month
        target_month: Target month (1-12)
        lookahead_months: Months covered, counting the target month.
            Defaults to the configured default_lookahead_months.

    Returns:
        Paychecks in the target month and paychecks after it, each list
        ordered by date, ties broken by income source id.

    Raises:
        ValueError: If the month or the lookahead is invalid
    """
    if lookahead_months is None:
        lookahead_months = get_settings().planning.default_lookahead_months
    if lookahead_months < 1:
        raise ValueError(f"Lookahead must cover at least one month, got {lookahead_months}")

    month_start, month_end = month_bounds(target_year, target_month)
    window_end = add_months(month_start, lookahead_months)

    paychecks = []
    for source in income_sources:
        if not source.is_active:
            continue
        for pay_date in iter_pay_dates(source, month_start, window_end):
            paychecks.append(
                Paycheck(
                    id=paycheck_id(source.id, pay_date),
                    income_source_id=source.id,
                    name=source.name,
                    amount=source.amount,
                    frequency=source.frequency,
                    user_id=source.user_id,
                    date=pay_date,
                )
            )

    paychecks.sort(key=lambda p: (p.date, p.income_source_id))

    return PaycheckProjection(
        current_month=[p for p in paychecks if p.date <= month_end],
        future=[p for p in paychecks if p.date > month_end],
    )


def estimate_monthly_income(
    income_sources: Iterable[IncomeSource],
    year: int,
    month: int,
) -> Decimal:
    """
    Monthly income equivalent of a set of income sources.

    Weekly sources count 52/12 paychecks a month. Bi-weekly sources count
    the pay dates that actually fall in the month, since a month holds
    either two or three of them. Monthly sources count once.
    """
    month_start, month_end = month_bounds(year, month)
    next_month = add_months(month_start, 1)

    total = Decimal("0")
    for source in income_sources:
        if not source.is_active:
            continue

        if source.frequency == Frequency.WEEKLY:
            total += source.amount * WEEKS_PER_YEAR / MONTHS_PER_YEAR
        elif source.frequency == Frequency.BI_WEEKLY:
            pay_periods = sum(1 for _ in iter_pay_dates(source, month_start, next_month))
            total += source.amount * pay_periods
        else:
            total += source.amount

    return total.quantize(CENTS, rounding=ROUND_HALF_UP)
