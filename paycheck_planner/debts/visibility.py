"""
Visibility Toggle

Monthly debt instances are never deleted. Hiding one flips is_active so
it drops out of planning while keeping its allocations and history.

The hidden-instances query and the planning query are the same query
with the flag inverted, so both go through list_debt_entries().
"""

from typing import Optional
from uuid import UUID

import structlog

from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.planning import Debt, DebtEntry, MonthlyDebtInstance
from paycheck_planner.schedule.cursor import window_bounds
from paycheck_planner.services.storage import PlanningStorageInterface


logger = structlog.get_logger()


def to_debt_entries(
    instances: list[MonthlyDebtInstance],
    debts: list[Debt],
) -> list[DebtEntry]:
    """
    Join instances with their templates.

    Instances whose template no longer exists are skipped.
    """
    debts_by_id = {debt.id: debt for debt in debts}

    entries = []
    for instance in instances:
        debt = debts_by_id.get(instance.debt_id)
        if debt is None:
            logger.warning(
                "monthly_debt_instance_orphaned",
                budget_account_id=instance.budget_account_id,
                instance_id=instance.id,
                debt_id=instance.debt_id,
            )
            continue

        entries.append(
            DebtEntry(
                id=instance.id,
                debt_id=debt.id,
                name=debt.name,
                amount=debt.payment_amount,
                due_date=instance.due_date,
                original_due_date=debt.due_date,
                description=debt.name,
                category_id=debt.category_id,
            )
        )
    return entries


class DebtVisibility:
    """Soft delete of monthly debt instances, and the windowed instance query."""

    def __init__(
        self,
        storage: PlanningStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def set_active(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        is_active: bool,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Hide or restore an instance.

        Returns:
            False when the instance doesn't exist (nothing to do)
        """
        instance = await self._storage.get_monthly_debt_instance(
            budget_account_id,
            instance_id,
        )
        if instance is None:
            logger.info(
                "monthly_debt_instance_missing",
                budget_account_id=budget_account_id,
                instance_id=instance_id,
            )
            return False

        instance.is_active = is_active
        await self._storage.update_monthly_debt_instance(instance)

        if self._audit_logger:
            await self._audit_logger.log_instance_visibility_changed(
                budget_account_id=budget_account_id,
                user_id=user_id,
                instance_id=instance_id,
                is_active=is_active,
                correlation_id=correlation_id,
            )
        return True

    async def list_debt_entries(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        window: int = 0,
        is_active: bool = True,
    ) -> list[DebtEntry]:
        """
        Instances due inside the planning window, joined with their templates.

        Args:
            is_active: True for the planning view, False for hidden instances
        """
        start, end = window_bounds(year, month, window)
        instances = await self._storage.list_monthly_debt_instances(
            budget_account_id,
            due_from=start,
            due_to=end,
            is_active=is_active,
        )
        debts = await self._storage.list_debts(budget_account_id)
        return to_debt_entries(instances, debts)
