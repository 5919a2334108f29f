"""
Monthly Debt Instance Populator

Expands every debt template of an account into one instance per month of
the planning window.

CRITICAL: (budget_account_id, debt_id, year, month) is unique and this is
the only writer of monthly debt instances. Population must be safe to run
repeatedly and concurrently:
- The existing-key set is built from ALL instances of the account, not
  just the window, so an instance created by an earlier run with a
  different window still suppresses a duplicate.
- Inserts are attempted, not pre-locked. A DuplicateError means another
  request inserted the same key first; that is success, not failure.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from paycheck_planner.config import get_settings
from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.planning import Debt, MonthlyDebtInstance
from paycheck_planner.schedule.cursor import clip_day, shift_month, validate_month
from paycheck_planner.services.storage import DuplicateError, PlanningStorageInterface


logger = structlog.get_logger()


def validate_planning_window(window: int, max_window: Optional[int] = None) -> int:
    """
    Raises:
        ValueError: If the window is negative or above the configured maximum
    """
    if max_window is None:
        max_window = get_settings().planning.max_planning_window_months
    if window < 0:
        raise ValueError(f"Planning window cannot be negative, got {window}")
    if window > max_window:
        raise ValueError(
            f"Planning window of {window} months exceeds the maximum of {max_window}"
        )
    return window


def plan_missing_instances(
    budget_account_id: str,
    debts: Iterable[Debt],
    existing_keys: set[tuple[str, int, int]],
    year: int,
    month: int,
    planning_window_months: int = 0,
) -> list[MonthlyDebtInstance]:
    """
    Instances the window needs that don't exist yet.

    Months before a debt's own due-date month are skipped: a debt due
    2025-03-15 never gets a January or February instance.
    """
    validate_month(month)

    missing = []
    planned = set(existing_keys)
    for debt in debts:
        first_month = (debt.due_date.year, debt.due_date.month)
        for offset in range(planning_window_months + 1):
            target_year, target_month = shift_month(year, month, offset)
            if (target_year, target_month) < first_month:
                continue

            key = (debt.id, target_year, target_month)
            if key in planned:
                continue

            planned.add(key)
            missing.append(
                MonthlyDebtInstance(
                    budget_account_id=budget_account_id,
                    debt_id=debt.id,
                    year=target_year,
                    month=target_month,
                    due_date=clip_day(target_year, target_month, debt.due_date.day),
                )
            )
    return missing


class MonthlyDebtInstancePopulator:
    """
    Idempotent, race-tolerant population of monthly debt instances.

    Usage:
        populator = MonthlyDebtInstancePopulator(storage, audit_logger)
        created = await populator.populate("acct-1", 2025, 2, planning_window_months=2)
    """

    def __init__(
        self,
        storage: PlanningStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def populate(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        planning_window_months: int = 0,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Create the missing monthly debt instances of a planning window.

        Returns:
            Number of instances this call created

        Raises:
            ValueError: If the month or window is invalid
            StorageError: Any storage failure other than a duplicate key
        """
        validate_month(month)
        validate_planning_window(planning_window_months)

        debts = await self._storage.list_debts(budget_account_id)
        existing = await self._storage.list_monthly_debt_instances(budget_account_id)
        existing_keys = {instance.key for instance in existing}

        created = 0
        for instance in plan_missing_instances(
            budget_account_id,
            debts,
            existing_keys,
            year,
            month,
            planning_window_months,
        ):
            try:
                await self._storage.insert_monthly_debt_instance(instance)
            except DuplicateError:
                logger.info(
                    "monthly_debt_instance_race",
                    budget_account_id=budget_account_id,
                    debt_id=instance.debt_id,
                    year=instance.year,
                    month=instance.month,
                )
                if self._audit_logger:
                    await self._audit_logger.log_instance_insert_race(
                        budget_account_id=budget_account_id,
                        debt_id=instance.debt_id,
                        year=instance.year,
                        month=instance.month,
                        correlation_id=correlation_id,
                    )
                continue
            created += 1

        logger.debug(
            "monthly_debt_instances_populated",
            budget_account_id=budget_account_id,
            year=year,
            month=month,
            planning_window_months=planning_window_months,
            created=created,
        )
        return created
