"""
In-Memory Storage Implementation

Dict-backed storage used for local runs and tests. It enforces the same
uniqueness keys as the Google Sheets backend and hands out copies, so
callers can never mutate stored records behind the store's back.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from paycheck_planner.models.planning import (
    Debt,
    DebtAllocation,
    DismissedWarning,
    IncomeSource,
    MonthlyDebtInstance,
    WarningType,
    utcnow,
)
from paycheck_planner.models.audit import AuditEvent
from paycheck_planner.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PlanningStorageInterface,
)


def _copy(record):
    return record.model_copy(deep=True)


class InMemoryPlanningStorage(PlanningStorageInterface):
    """
    In-memory implementation of planning storage.

    Records are kept per type in dicts keyed by record id.
    """

    def __init__(self):
        self._income_sources: dict[str, IncomeSource] = {}
        self._debts: dict[str, Debt] = {}
        self._instances: dict[str, MonthlyDebtInstance] = {}
        self._allocations: dict[str, DebtAllocation] = {}
        self._dismissals: dict[str, DismissedWarning] = {}

    # -------------------------------------------------------------------------
    # Income sources
    # -------------------------------------------------------------------------

    async def insert_income_source(self, source: IncomeSource) -> IncomeSource:
        if source.id in self._income_sources:
            raise DuplicateError(f"Income source already exists: {source.id}")
        self._income_sources[source.id] = _copy(source)
        return _copy(source)

    async def list_income_sources(
        self,
        user_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[IncomeSource]:
        sources = [
            _copy(s) for s in self._income_sources.values()
            if (user_id is None or s.user_id == user_id)
            and (not active_only or s.is_active)
        ]
        sources.sort(key=lambda s: s.id)
        return sources

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def insert_debt(self, debt: Debt) -> Debt:
        if debt.id in self._debts:
            raise DuplicateError(f"Debt already exists: {debt.id}")
        self._debts[debt.id] = _copy(debt)
        return _copy(debt)

    async def list_debts(self, budget_account_id: str) -> list[Debt]:
        return [
            _copy(d) for d in self._debts.values()
            if d.budget_account_id == budget_account_id
        ]

    # -------------------------------------------------------------------------
    # Monthly debt instances
    # -------------------------------------------------------------------------

    async def insert_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        if instance.id in self._instances:
            raise DuplicateError(f"Monthly debt instance already exists: {instance.id}")
        for existing in self._instances.values():
            if (
                existing.budget_account_id == instance.budget_account_id
                and existing.key == instance.key
            ):
                raise DuplicateError(
                    f"Monthly debt instance already exists for debt {instance.debt_id} "
                    f"in {instance.year:04d}-{instance.month:02d}"
                )
        self._instances[instance.id] = _copy(instance)
        return _copy(instance)

    async def get_monthly_debt_instance(
        self,
        budget_account_id: str,
        instance_id: str,
    ) -> Optional[MonthlyDebtInstance]:
        instance = self._instances.get(instance_id)
        if instance is None or instance.budget_account_id != budget_account_id:
            return None
        return _copy(instance)

    async def list_monthly_debt_instances(
        self,
        budget_account_id: str,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        is_active: Optional[bool] = None,
    ) -> list[MonthlyDebtInstance]:
        instances = []
        for instance in self._instances.values():
            if instance.budget_account_id != budget_account_id:
                continue
            if due_from and instance.due_date < due_from:
                continue
            if due_to and instance.due_date > due_to:
                continue
            if is_active is not None and instance.is_active != is_active:
                continue
            instances.append(_copy(instance))

        instances.sort(key=lambda i: (i.due_date, i.id))
        return instances

    async def update_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        stored = self._instances.get(instance.id)
        if stored is None or stored.budget_account_id != instance.budget_account_id:
            raise NotFoundError(f"Monthly debt instance not found: {instance.id}")
        updated = instance.model_copy(update={"updated_at": utcnow()})
        self._instances[instance.id] = updated
        return _copy(updated)

    # -------------------------------------------------------------------------
    # Allocations
    # -------------------------------------------------------------------------

    async def insert_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        if allocation.id in self._allocations:
            raise DuplicateError(f"Allocation already exists: {allocation.id}")
        for existing in self._allocations.values():
            if (
                existing.budget_account_id == allocation.budget_account_id
                and existing.key == allocation.key
            ):
                raise DuplicateError(
                    f"Instance {allocation.monthly_debt_instance_id} is already "
                    f"allocated to paycheck {allocation.paycheck_id}"
                )
        self._allocations[allocation.id] = _copy(allocation)
        return _copy(allocation)

    async def get_debt_allocation(
        self,
        budget_account_id: str,
        allocation_id: str,
    ) -> Optional[DebtAllocation]:
        allocation = self._allocations.get(allocation_id)
        if allocation is None or allocation.budget_account_id != budget_account_id:
            return None
        return _copy(allocation)

    async def find_debt_allocation(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> Optional[DebtAllocation]:
        for allocation in self._allocations.values():
            if (
                allocation.budget_account_id == budget_account_id
                and allocation.key == (monthly_debt_instance_id, paycheck_id)
            ):
                return _copy(allocation)
        return None

    async def list_debt_allocations(
        self,
        budget_account_id: str,
        paycheck_ids: Optional[Iterable[str]] = None,
    ) -> list[DebtAllocation]:
        wanted = set(paycheck_ids) if paycheck_ids is not None else None
        allocations = [
            _copy(a) for a in self._allocations.values()
            if a.budget_account_id == budget_account_id
            and (wanted is None or a.paycheck_id in wanted)
        ]
        allocations.sort(key=lambda a: (a.allocated_at, a.id))
        return allocations

    async def update_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        stored = self._allocations.get(allocation.id)
        if stored is None or stored.budget_account_id != allocation.budget_account_id:
            raise NotFoundError(f"Allocation not found: {allocation.id}")
        updated = allocation.model_copy(update={"updated_at": utcnow()})
        self._allocations[allocation.id] = updated
        return _copy(updated)

    async def delete_debt_allocations(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> int:
        doomed = [
            a.id for a in self._allocations.values()
            if a.budget_account_id == budget_account_id
            and a.key == (monthly_debt_instance_id, paycheck_id)
        ]
        for allocation_id in doomed:
            del self._allocations[allocation_id]
        return len(doomed)

    # -------------------------------------------------------------------------
    # Dismissed warnings
    # -------------------------------------------------------------------------

    async def insert_dismissed_warning(
        self,
        dismissal: DismissedWarning,
    ) -> DismissedWarning:
        existing = await self.find_dismissed_warning(
            dismissal.budget_account_id,
            dismissal.user_id,
            dismissal.warning_type,
            dismissal.warning_key,
        )
        if existing is not None or dismissal.id in self._dismissals:
            raise DuplicateError(
                f"Warning already dismissed: {dismissal.warning_type.value} {dismissal.warning_key}"
            )
        self._dismissals[dismissal.id] = _copy(dismissal)
        return _copy(dismissal)

    async def find_dismissed_warning(
        self,
        budget_account_id: str,
        user_id: str,
        warning_type: WarningType,
        warning_key: str,
    ) -> Optional[DismissedWarning]:
        for dismissal in self._dismissals.values():
            if (
                dismissal.budget_account_id == budget_account_id
                and dismissal.user_id == user_id
                and dismissal.warning_type == warning_type
                and dismissal.warning_key == warning_key
            ):
                return _copy(dismissal)
        return None

    async def list_dismissed_warnings(
        self,
        budget_account_id: str,
        user_id: str,
    ) -> list[DismissedWarning]:
        return [
            _copy(d) for d in self._dismissals.values()
            if d.budget_account_id == budget_account_id and d.user_id == user_id
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-memory audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
