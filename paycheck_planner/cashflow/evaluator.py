"""
Warning Evaluator

Derives cash-flow warnings from a planning result.

DESIGN DECISION: Warnings are never stored. Only dismissals are. A warning
is recomputed on every request and matched to dismissals by (type, key),
so a dismissed warning stays dismissed however often it is recomputed,
and a warning whose cause disappears simply stops being produced.

CRITICAL: warning_key() is a versioned contract. Changing a key format
un-dismisses every stored dismissal of that type.
    late_payment       -> {debtId}:{paycheckId}
    insufficient_funds -> {paycheckId}
    debt_unpaid        -> {debtId}
debtId is the monthly debt instance id.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.planning import (
    DebtAllocation,
    DebtEntry,
    DismissedWarning,
    Paycheck,
    PaycheckAllocation,
    PlanningWarning,
    WarningSeverity,
    WarningType,
)
from paycheck_planner.schedule.cursor import to_date_string
from paycheck_planner.services.storage import (
    DuplicateError,
    PlanningStorageInterface,
)


logger = structlog.get_logger()


def warning_key(
    warning_type: WarningType,
    debt_id: Optional[str] = None,
    paycheck_id: Optional[str] = None,
) -> str:
    """
    Dismissal key of a warning.

    Raises:
        ValueError: If an id the key is built from is missing
    """
    warning_type = WarningType(warning_type)
    if warning_type == WarningType.LATE_PAYMENT:
        if not debt_id or not paycheck_id:
            raise ValueError("late_payment keys need both a debt id and a paycheck id")
        return f"{debt_id}:{paycheck_id}"
    if warning_type == WarningType.INSUFFICIENT_FUNDS:
        if not paycheck_id:
            raise ValueError("insufficient_funds keys need a paycheck id")
        return paycheck_id
    if not debt_id:
        raise ValueError("debt_unpaid keys need a debt id")
    return debt_id


def _insufficient_funds(
    paychecks: list[Paycheck],
    debts: list[DebtEntry],
    paycheck_allocations: list[PaycheckAllocation],
    period_key: Optional[str],
) -> Optional[PlanningWarning]:
    total_income = sum((p.amount for p in paychecks), Decimal("0"))
    total_debts = sum((d.amount for d in debts), Decimal("0"))
    if total_debts <= total_income:
        return None

    # Point at the first paycheck that is actually short, if any
    over_allocated = sorted(
        (view for view in paycheck_allocations if view.is_over_allocated),
        key=lambda view: (view.paycheck_date, view.paycheck_id),
    )
    if over_allocated:
        paycheck_id = over_allocated[0].paycheck_id
    elif paychecks:
        paycheck_id = min(paychecks, key=lambda p: (p.date, p.income_source_id)).id
    else:
        paycheck_id = None

    return PlanningWarning(
        type=WarningType.INSUFFICIENT_FUNDS,
        message=(
            f"Total debts (${total_debts:.2f}) exceed total income (${total_income:.2f})"
        ),
        severity=WarningSeverity.HIGH,
        key=warning_key(WarningType.INSUFFICIENT_FUNDS, paycheck_id=paycheck_id or period_key),
        paycheck_id=paycheck_id,
    )


def evaluate_warnings(
    paychecks: Iterable[Paycheck],
    debts: Iterable[DebtEntry],
    allocations: Iterable[DebtAllocation],
    paycheck_allocations: Iterable[PaycheckAllocation] = (),
    period_key: Optional[str] = None,
) -> list[PlanningWarning]:
    """
    Derive warnings for a planning window.

    Args:
        paychecks: Paychecks dated inside the window
        debts: Active debt entries due inside the window
        allocations: Ledger rows of the account
        paycheck_allocations: Per-paycheck views, used to point the
            insufficient-funds warning at an over-allocated paycheck
        period_key: Target month (YYYY-MM), the insufficient-funds key
            when the window has no paycheck at all

    Returns:
        insufficient_funds first, then late_payment, then debt_unpaid
    """
    paychecks = list(paychecks)
    debts = list(debts)
    allocations = list(allocations)
    debts_by_id = {debt.id: debt for debt in debts}

    warnings = []

    shortfall = _insufficient_funds(paychecks, debts, list(paycheck_allocations), period_key)
    if shortfall:
        warnings.append(shortfall)

    window_allocations = [
        a for a in allocations if a.monthly_debt_instance_id in debts_by_id
    ]

    for allocation in window_allocations:
        debt = debts_by_id[allocation.monthly_debt_instance_id]
        if allocation.payment_date and allocation.payment_date > debt.due_date:
            warnings.append(
                PlanningWarning(
                    type=WarningType.LATE_PAYMENT,
                    message=(
                        f"{debt.name} is scheduled for {to_date_string(allocation.payment_date)}, "
                        f"after its due date {to_date_string(debt.due_date)}"
                    ),
                    severity=WarningSeverity.MEDIUM,
                    key=warning_key(
                        WarningType.LATE_PAYMENT,
                        debt_id=debt.id,
                        paycheck_id=allocation.paycheck_id,
                    ),
                    debt_id=debt.id,
                    paycheck_id=allocation.paycheck_id,
                )
            )

    # Unpaid debts only count once the user has started allocating
    if window_allocations:
        allocated = {a.monthly_debt_instance_id for a in window_allocations}
        for debt in debts:
            if debt.id in allocated:
                continue
            warnings.append(
                PlanningWarning(
                    type=WarningType.DEBT_UNPAID,
                    message=(
                        f"{debt.name} (due {to_date_string(debt.due_date)}) "
                        "is not allocated to any paycheck"
                    ),
                    severity=WarningSeverity.HIGH,
                    key=warning_key(WarningType.DEBT_UNPAID, debt_id=debt.id),
                    debt_id=debt.id,
                )
            )

    return warnings


def filter_dismissed(
    warnings: Iterable[PlanningWarning],
    dismissals: Iterable[DismissedWarning],
) -> list[PlanningWarning]:
    """Drop warnings matching a dismissal by (type, key)."""
    dismissed = {(d.warning_type, d.warning_key) for d in dismissals}
    return [w for w in warnings if (w.type, w.key) not in dismissed]


class WarningDismissals:
    """Per-user warning dismissal."""

    def __init__(
        self,
        storage: PlanningStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def dismiss(
        self,
        budget_account_id: str,
        user_id: str,
        warning_type: WarningType,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Record a dismissal. Idempotent per (account, user, type, key).

        Returns:
            True if a new dismissal was stored
        """
        warning_type = WarningType(warning_type)
        if not key:
            raise ValueError("Warning key cannot be empty")

        existing = await self._storage.find_dismissed_warning(
            budget_account_id,
            user_id,
            warning_type,
            key,
        )
        if existing is not None:
            return False

        try:
            await self._storage.insert_dismissed_warning(
                DismissedWarning(
                    budget_account_id=budget_account_id,
                    user_id=user_id,
                    warning_type=warning_type,
                    warning_key=key,
                )
            )
        except DuplicateError:
            logger.info(
                "warning_dismissal_race",
                budget_account_id=budget_account_id,
                user_id=user_id,
                warning_type=warning_type.value,
                warning_key=key,
            )
            return False

        if self._audit_logger:
            await self._audit_logger.log_warning_dismissed(
                budget_account_id=budget_account_id,
                user_id=user_id,
                warning_type=warning_type.value,
                warning_key=key,
                correlation_id=correlation_id,
            )
        return True

    async def list_dismissed(
        self,
        budget_account_id: str,
        user_id: str,
    ) -> list[DismissedWarning]:
        return await self._storage.list_dismissed_warnings(budget_account_id, user_id)
