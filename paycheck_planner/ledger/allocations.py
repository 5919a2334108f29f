"""
Allocation Ledger

Assigns monthly debt instances to paychecks.

CRITICAL: at most one allocation exists per (account, instance, paycheck).
allocate() never creates a second row for a pair: it updates the existing
one, and when its insert loses a race to a concurrent allocate it falls
back to updating the row the other request created.

Payment amounts are not bounded by the debt amount. Partial payments and
over-payments are both accepted.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.planning import (
    AllocatedDebt,
    Debt,
    DebtAllocation,
    MonthlyDebtInstance,
    Paycheck,
    PaycheckAllocation,
    utcnow,
)
from paycheck_planner.schedule.cursor import to_date_string
from paycheck_planner.services.storage import (
    DuplicateError,
    NotFoundError,
    PlanningStorageInterface,
)


logger = structlog.get_logger()


def _scheduled_note(payment_date: Optional[date]) -> Optional[str]:
    if payment_date is None:
        return None
    return f"Scheduled payment from paycheck allocation on {to_date_string(payment_date)}"


def _updated_note(payment_date: Optional[date]) -> Optional[str]:
    if payment_date is None:
        return None
    return f"Updated payment from paycheck allocation on {to_date_string(payment_date)}"


def validate_payment_amount(amount: Optional[Decimal]) -> None:
    """
    Raises:
        ValueError: If the amount is negative
    """
    if amount is not None and amount < 0:
        raise ValueError(f"Payment amount cannot be negative, got {amount}")


def build_paycheck_allocations(
    paychecks: Iterable[Paycheck],
    allocations: Iterable[DebtAllocation],
    instances: Iterable[MonthlyDebtInstance],
    debts: Iterable[Debt],
) -> list[PaycheckAllocation]:
    """
    Per-paycheck view of the ledger.

    remaining_amount = paycheck amount - sum(payment_amount or debt amount).
    A negative remaining amount means the paycheck is over-allocated.
    Allocations whose instance or template no longer exists are skipped.
    """
    instances_by_id = {instance.id: instance for instance in instances}
    debts_by_id = {debt.id: debt for debt in debts}

    allocations_by_paycheck: dict[str, list[DebtAllocation]] = {}
    for allocation in allocations:
        allocations_by_paycheck.setdefault(allocation.paycheck_id, []).append(allocation)

    views = []
    for paycheck in paychecks:
        allocated_debts = []
        for allocation in allocations_by_paycheck.get(paycheck.id, []):
            instance = instances_by_id.get(allocation.monthly_debt_instance_id)
            if instance is None:
                continue
            debt = debts_by_id.get(instance.debt_id)
            if debt is None:
                continue

            allocated_debts.append(
                AllocatedDebt(
                    debt_id=instance.id,
                    debt_name=debt.name,
                    amount=debt.payment_amount,
                    due_date=instance.due_date,
                    original_due_date=debt.due_date,
                    payment_date=allocation.payment_date,
                    payment_amount=allocation.payment_amount,
                    payment_id=allocation.id,
                    is_paid=allocation.is_paid,
                )
            )

        total_allocated = sum(
            (debt.effective_amount for debt in allocated_debts),
            Decimal("0"),
        )
        views.append(
            PaycheckAllocation(
                paycheck_id=paycheck.id,
                paycheck_date=paycheck.date,
                paycheck_amount=paycheck.amount,
                allocated_debts=allocated_debts,
                remaining_amount=paycheck.amount - total_allocated,
            )
        )
    return views


class AllocationLedger:
    """
    Ledger of (monthly debt instance, paycheck) assignments.

    Callers authenticate and authorize before calling in; every method
    receives the already-verified user id.
    """

    def __init__(
        self,
        storage: PlanningStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def allocate(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DebtAllocation:
        """
        Allocate an instance to a paycheck, or update the existing allocation.

        Returns:
            The created or updated allocation
        """
        validate_payment_amount(amount)

        existing = await self._storage.find_debt_allocation(
            budget_account_id,
            instance_id,
            paycheck_id,
        )
        if existing is not None:
            return await self._apply_update(
                existing, user_id, amount, payment_date, correlation_id
            )

        allocation = DebtAllocation(
            budget_account_id=budget_account_id,
            monthly_debt_instance_id=instance_id,
            paycheck_id=paycheck_id,
            user_id=user_id,
            payment_amount=amount,
            payment_date=payment_date,
            note=_scheduled_note(payment_date),
        )
        try:
            stored = await self._storage.insert_debt_allocation(allocation)
        except DuplicateError:
            logger.info(
                "debt_allocation_race",
                budget_account_id=budget_account_id,
                instance_id=instance_id,
                paycheck_id=paycheck_id,
            )
            winner = await self._storage.find_debt_allocation(
                budget_account_id,
                instance_id,
                paycheck_id,
            )
            if winner is None:
                raise
            return await self._apply_update(
                winner, user_id, amount, payment_date, correlation_id
            )

        if self._audit_logger:
            await self._audit_logger.log_allocation_created(
                budget_account_id=budget_account_id,
                user_id=user_id,
                allocation_id=stored.id,
                instance_id=instance_id,
                paycheck_id=paycheck_id,
                correlation_id=correlation_id,
            )
        return stored

    async def update(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[DebtAllocation]:
        """
        Overwrite amount, date and note of an existing allocation.

        Returns:
            The updated allocation, or None when the pair isn't allocated
        """
        validate_payment_amount(amount)

        existing = await self._storage.find_debt_allocation(
            budget_account_id,
            instance_id,
            paycheck_id,
        )
        if existing is None:
            return None
        return await self._apply_update(
            existing, user_id, amount, payment_date, correlation_id
        )

    async def _apply_update(
        self,
        allocation: DebtAllocation,
        user_id: str,
        amount: Optional[Decimal],
        payment_date: Optional[date],
        correlation_id: Optional[UUID],
    ) -> DebtAllocation:
        changed = allocation.model_copy(
            update={
                "payment_amount": amount,
                "payment_date": payment_date,
                "note": _updated_note(payment_date),
            }
        )
        stored = await self._storage.update_debt_allocation(changed)

        if self._audit_logger:
            await self._audit_logger.log_allocation_updated(
                budget_account_id=allocation.budget_account_id,
                user_id=user_id,
                allocation_id=allocation.id,
                instance_id=allocation.monthly_debt_instance_id,
                paycheck_id=allocation.paycheck_id,
                correlation_id=correlation_id,
            )
        return stored

    async def unallocate(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        paycheck_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Remove the allocation of an instance on a paycheck.

        Returns:
            Number of rows removed (0 is not an error)
        """
        removed = await self._storage.delete_debt_allocations(
            budget_account_id,
            instance_id,
            paycheck_id,
        )
        if removed and self._audit_logger:
            await self._audit_logger.log_allocation_removed(
                budget_account_id=budget_account_id,
                user_id=user_id,
                instance_id=instance_id,
                paycheck_id=paycheck_id,
                removed=removed,
                correlation_id=correlation_id,
            )
        return removed

    async def move(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        from_paycheck_id: str,
        to_paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DebtAllocation:
        """
        Unallocate at from_paycheck_id, then allocate at to_paycheck_id.

        An allocation already present at the destination is updated, never
        duplicated. Moving onto the same paycheck is an update.
        """
        validate_payment_amount(amount)

        if from_paycheck_id != to_paycheck_id:
            await self.unallocate(
                budget_account_id,
                user_id,
                instance_id,
                from_paycheck_id,
                correlation_id=correlation_id,
            )

        moved = await self.allocate(
            budget_account_id,
            user_id,
            instance_id,
            to_paycheck_id,
            amount=amount,
            payment_date=payment_date,
            correlation_id=correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_allocation_moved(
                budget_account_id=budget_account_id,
                user_id=user_id,
                instance_id=instance_id,
                from_paycheck_id=from_paycheck_id,
                to_paycheck_id=to_paycheck_id,
                correlation_id=correlation_id,
            )
        return moved

    async def mark_paid(
        self,
        budget_account_id: str,
        user_id: str,
        instance_id: str,
        allocation_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DebtAllocation:
        """
        Mark an allocation as paid.

        The payment date defaults to today. The amount is only replaced
        when one is given. Marking an allocation that is already paid
        updates the date and amount but leaves the note alone.

        Raises:
            NotFoundError: If the allocation doesn't exist for this instance
        """
        validate_payment_amount(amount)

        allocation = await self._storage.get_debt_allocation(
            budget_account_id,
            allocation_id,
        )
        if allocation is None or allocation.monthly_debt_instance_id != instance_id:
            raise NotFoundError(
                f"Allocation {allocation_id} not found for instance {instance_id}"
            )

        paid_on = payment_date or date.today()
        if allocation.is_paid:
            # Already paid: the note keeps the first paid line only
            note = allocation.note
        else:
            paid_note = f"Payment marked as paid on {to_date_string(paid_on)}"
            note = f"{allocation.note}\n{paid_note}" if allocation.note else paid_note
        changed = allocation.model_copy(
            update={
                "is_paid": True,
                "paid_at": utcnow(),
                "payment_date": paid_on,
                "payment_amount": amount if amount is not None else allocation.payment_amount,
                "note": note,
            }
        )
        stored = await self._storage.update_debt_allocation(changed)

        if self._audit_logger:
            await self._audit_logger.log_payment_marked_paid(
                budget_account_id=budget_account_id,
                user_id=user_id,
                allocation_id=allocation_id,
                amount=str(stored.payment_amount) if stored.payment_amount is not None else None,
                payment_date=to_date_string(paid_on),
                correlation_id=correlation_id,
            )
        return stored

    async def list_allocations(self, budget_account_id: str) -> list[DebtAllocation]:
        """Raw ledger rows of an account."""
        return await self._storage.list_debt_allocations(budget_account_id)

    async def list_for_paychecks(
        self,
        budget_account_id: str,
        paychecks: list[Paycheck],
    ) -> list[PaycheckAllocation]:
        """Join the given paychecks with stored allocations, instances and templates."""
        allocations = await self._storage.list_debt_allocations(
            budget_account_id,
            paycheck_ids=[paycheck.id for paycheck in paychecks],
        )
        instances = await self._storage.list_monthly_debt_instances(budget_account_id)
        debts = await self._storage.list_debts(budget_account_id)
        return build_paycheck_allocations(paychecks, allocations, instances, debts)
