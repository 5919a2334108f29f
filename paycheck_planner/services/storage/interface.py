"""
Storage Interfaces

DESIGN DECISION: Planning components only ever see these abstract
interfaces. The worksheet backend and the in-memory backend used by tests
implement them, and the service factory picks one from settings.

Each interface covers the handful of queries the engine runs against one
record type. Filtering beyond them happens in the callers.

CRITICAL: Implementations must signal a uniqueness conflict with
DuplicateError, distinct from every other failure. The populator and the
allocation ledger rely on that signal to converge under concurrent requests.
"""

from abc import ABC, abstractmethod
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
)
from paycheck_planner.models.audit import AuditEvent


class IncomeSourceStorageInterface(ABC):
    """Read access to income sources (plus insert for seeding)."""

    @abstractmethod
    async def insert_income_source(self, source: IncomeSource) -> IncomeSource:
        """
        Store a new income source.

        Raises:
            DuplicateError: If a source with the same id exists
        """
        pass

    @abstractmethod
    async def list_income_sources(
        self,
        user_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[IncomeSource]:
        """
        List income sources.

        Args:
            user_id: Only sources owned by this user
            active_only: Skip deactivated sources

        Returns:
            Matching sources ordered by id
        """
        pass


class DebtStorageInterface(ABC):
    """Debt template storage."""

    @abstractmethod
    async def insert_debt(self, debt: Debt) -> Debt:
        """
        Store a new debt template.

        Raises:
            DuplicateError: If a debt with the same id exists
        """
        pass

    @abstractmethod
    async def list_debts(self, budget_account_id: str) -> list[Debt]:
        """List every debt template of an account."""
        pass


class MonthlyDebtInstanceStorageInterface(ABC):
    """
    Monthly debt instance storage.

    (budget_account_id, debt_id, year, month) is unique.
    """

    @abstractmethod
    async def insert_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        """
        Store a new monthly debt instance.

        Args:
            instance: The instance to insert

        Returns:
            The stored instance

        Raises:
            DuplicateError: If an instance with the same
                (budget_account_id, debt_id, year, month) exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_monthly_debt_instance(
        self,
        budget_account_id: str,
        instance_id: str,
    ) -> Optional[MonthlyDebtInstance]:
        """
        Retrieve an instance by its ID.

        Returns:
            The instance if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_monthly_debt_instances(
        self,
        budget_account_id: str,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        is_active: Optional[bool] = None,
    ) -> list[MonthlyDebtInstance]:
        """
        List instances of an account with optional filters.

        Args:
            budget_account_id: Owning account
            due_from: Instances due on or after this date
            due_to: Instances due on or before this date
            is_active: Filter by the visibility flag

        Returns:
            Matching instances ordered by due date
        """
        pass

    @abstractmethod
    async def update_monthly_debt_instance(
        self,
        instance: MonthlyDebtInstance,
    ) -> MonthlyDebtInstance:
        """
        Replace a stored instance.

        Raises:
            NotFoundError: If the instance doesn't exist
        """
        pass


class DebtAllocationStorageInterface(ABC):
    """
    Allocation ledger storage.

    (budget_account_id, monthly_debt_instance_id, paycheck_id) is unique.
    """

    @abstractmethod
    async def insert_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        """
        Store a new allocation.

        Raises:
            DuplicateError: If the (instance, paycheck) pair is already
                allocated in the account
        """
        pass

    @abstractmethod
    async def get_debt_allocation(
        self,
        budget_account_id: str,
        allocation_id: str,
    ) -> Optional[DebtAllocation]:
        """Retrieve an allocation by its ID."""
        pass

    @abstractmethod
    async def find_debt_allocation(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> Optional[DebtAllocation]:
        """Retrieve the allocation of an instance on a paycheck, if any."""
        pass

    @abstractmethod
    async def list_debt_allocations(
        self,
        budget_account_id: str,
        paycheck_ids: Optional[Iterable[str]] = None,
    ) -> list[DebtAllocation]:
        """
        List allocations of an account.

        Args:
            budget_account_id: Owning account
            paycheck_ids: Only allocations on these paychecks

        Returns:
            Matching allocations ordered by allocation time
        """
        pass

    @abstractmethod
    async def update_debt_allocation(
        self,
        allocation: DebtAllocation,
    ) -> DebtAllocation:
        """
        Replace a stored allocation.

        Raises:
            NotFoundError: If the allocation doesn't exist
        """
        pass

    @abstractmethod
    async def delete_debt_allocations(
        self,
        budget_account_id: str,
        monthly_debt_instance_id: str,
        paycheck_id: str,
    ) -> int:
        """
        Delete the allocations of an instance on a paycheck.

        Returns:
            Number of rows deleted (0 when none matched)
        """
        pass


class DismissedWarningStorageInterface(ABC):
    """
    Warning dismissal storage.

    (budget_account_id, user_id, warning_type, warning_key) is unique.
    """

    @abstractmethod
    async def insert_dismissed_warning(
        self,
        dismissal: DismissedWarning,
    ) -> DismissedWarning:
        """
        Store a dismissal.

        Raises:
            DuplicateError: If the user already dismissed this warning
        """
        pass

    @abstractmethod
    async def find_dismissed_warning(
        self,
        budget_account_id: str,
        user_id: str,
        warning_type: WarningType,
        warning_key: str,
    ) -> Optional[DismissedWarning]:
        pass

    @abstractmethod
    async def list_dismissed_warnings(
        self,
        budget_account_id: str,
        user_id: str,
    ) -> list[DismissedWarning]:
        pass


class PlanningStorageInterface(
    IncomeSourceStorageInterface,
    DebtStorageInterface,
    MonthlyDebtInstanceStorageInterface,
    DebtAllocationStorageInterface,
    DismissedWarningStorageInterface,
):
    """
    Everything the planning engine reads and writes.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement all of these methods.
    """


class AuditStorageInterface(ABC):
    """
    Append-only store of audit events.

    Events are never updated or deleted.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Persist one audit event.

        Args:
            event: Event to store

        Returns:
            True once the event is stored

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one planning request).

        Returns:
            Events sharing the id, oldest first
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Events about one record.

        Args:
            entity_type: Type of entity (e.g., 'allocation')
            entity_id: Id of that record

        Returns:
            Matching events, oldest first
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Latest events across all accounts.

        Returns:
            Up to limit events, newest first
        """
        pass


class StorageError(Exception):
    """Any failure reported by a storage backend."""
    pass


class NotFoundError(StorageError):
    """The record to update or read does not exist."""
    pass


class DuplicateError(StorageError):
    """A record with the same unique key already exists."""
    pass


class ConnectionError(StorageError):
    """The backend could not be reached."""
    pass
