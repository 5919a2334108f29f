"""
Main Orchestrator for Paycheck Planner

This module ties together all the components and defines the public
operations of the planning engine. A planning request runs:

    authenticate -> authorize -> populate monthly debt instances
    -> project paychecks -> join allocations -> evaluate warnings
    -> drop warnings the user dismissed

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is read or written before authentication AND membership pass
- Invalid arguments are rejected before any storage call
- Every write is audited
- There is no transaction across steps: a storage failure aborts the
  remaining steps and the caller re-issues the whole operation
"""

from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from paycheck_planner.audit import AuditLogger, configure_logging, create_correlation_id
from paycheck_planner.cashflow import WarningDismissals, evaluate_warnings, filter_dismissed
from paycheck_planner.config import Settings, get_settings
from paycheck_planner.debts import (
    DebtVisibility,
    MonthlyDebtInstancePopulator,
    validate_planning_window,
)
from paycheck_planner.ledger import AllocationLedger, validate_payment_amount
from paycheck_planner.models.planning import (
    DebtAllocation,
    DebtEntry,
    OperationResult,
    PaycheckAllocation,
    PaycheckProjection,
    PlanningData,
    WarningType,
)
from paycheck_planner.schedule.cursor import (
    to_month_string,
    validate_month,
    window_bounds,
)
from paycheck_planner.schedule.projector import estimate_monthly_income, project_paychecks
from paycheck_planner.services.auth import (
    AccessDeniedError,
    AuthorizationError,
    AuthorizationInterface,
    require_member,
)
from paycheck_planner.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlanningStorage,
    InMemoryAuditStorage,
    InMemoryPlanningStorage,
    NotFoundError,
    PlanningStorageInterface,
    StorageError,
)


logger = structlog.get_logger()


class PaycheckPlanningService:
    """
    Public operation surface of the planning engine.

    Every operation authenticates, then checks account membership, before
    touching storage. Every write returns an OperationResult.
    """

    def __init__(
        self,
        authorization: AuthorizationInterface,
        storage: PlanningStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._authorization = authorization
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()  # Local-only logging
        self._planning_settings = (settings or get_settings()).planning

        self._populator = MonthlyDebtInstancePopulator(storage, self._audit_logger)
        self._visibility = DebtVisibility(storage, self._audit_logger)
        self._ledger = AllocationLedger(storage, self._audit_logger)
        self._dismissals = WarningDismissals(storage, self._audit_logger)

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    async def _authorize(
        self,
        budget_account_id: str,
        operation: str,
        correlation_id: UUID,
    ) -> str:
        """Authenticate then authorize, auditing a refusal before re-raising."""
        try:
            return await require_member(self._authorization, budget_account_id)
        except AuthorizationError as e:
            await self._audit_logger.log_access_denied(
                budget_account_id=budget_account_id,
                user_id=e.user_id if isinstance(e, AccessDeniedError) else None,
                operation=operation,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

    @asynccontextmanager
    async def _storage_errors(
        self,
        operation: str,
        budget_account_id: str,
        correlation_id: UUID,
    ):
        """Audit storage failures before they propagate."""
        try:
            yield
        except NotFoundError:
            raise
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(e),
                budget_account_id=budget_account_id,
                correlation_id=correlation_id,
            )
            raise

    def _window(self, planning_window_months: Optional[int]) -> int:
        if planning_window_months is None:
            planning_window_months = self._planning_settings.default_planning_window_months
        return validate_planning_window(
            planning_window_months,
            self._planning_settings.max_planning_window_months,
        )

    async def _project(
        self,
        user_id: str,
        year: int,
        month: int,
        lookahead_months: Optional[int] = None,
    ) -> PaycheckProjection:
        sources = await self._storage.list_income_sources(
            user_id=user_id,
            active_only=True,
        )
        return project_paychecks(
            sources,
            year,
            month,
            lookahead_months or self._planning_settings.default_lookahead_months,
        )

    # -------------------------------------------------------------------------
    # Projection and population
    # -------------------------------------------------------------------------

    async def project_paychecks(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        lookahead_months: Optional[int] = None,
    ) -> PaycheckProjection:
        """Project the caller's paychecks for a month and the months after it."""
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "project_paychecks", correlation_id)
        validate_month(month)
        if lookahead_months is not None and lookahead_months < 1:
            raise ValueError(f"Lookahead must cover at least one month, got {lookahead_months}")

        async with self._storage_errors("project_paychecks", budget_account_id, correlation_id):
            return await self._project(user_id, year, month, lookahead_months)

    async def populate_monthly_debt_instances(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        planning_window_months: Optional[int] = None,
    ) -> OperationResult:
        """
        Make sure every debt has an instance in each month of the window.

        Returns:
            OperationResult whose `affected` is the number of instances created
        """
        correlation_id = create_correlation_id()
        user_id = await self._authorize(
            budget_account_id, "populate_monthly_debt_instances", correlation_id
        )
        validate_month(month)
        window = self._window(planning_window_months)

        async with self._storage_errors(
            "populate_monthly_debt_instances", budget_account_id, correlation_id
        ):
            created = await self._populator.populate(
                budget_account_id,
                year,
                month,
                window,
                correlation_id=correlation_id,
            )

        await self._audit_logger.log_instances_populated(
            budget_account_id=budget_account_id,
            user_id=user_id,
            year=year,
            month=month,
            window=window,
            created=created,
            correlation_id=correlation_id,
        )
        return OperationResult(affected=created)

    # -------------------------------------------------------------------------
    # Planning queries
    # -------------------------------------------------------------------------

    async def get_planning_data(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        planning_window_months: Optional[int] = None,
    ) -> PlanningData:
        """
        Full planning view of a window.

        Populates missing instances first, so a freshly added debt shows up
        on the first request that covers its month.
        """
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "get_planning_data", correlation_id)
        validate_month(month)
        window = self._window(planning_window_months)

        async with self._storage_errors("get_planning_data", budget_account_id, correlation_id):
            created = await self._populator.populate(
                budget_account_id,
                year,
                month,
                window,
                correlation_id=correlation_id,
            )
            if created:
                await self._audit_logger.log_instances_populated(
                    budget_account_id=budget_account_id,
                    user_id=user_id,
                    year=year,
                    month=month,
                    window=window,
                    created=created,
                    correlation_id=correlation_id,
                )

            # Paychecks must cover every month the debts can fall in
            lookahead = max(self._planning_settings.default_lookahead_months, window + 1)
            projection = await self._project(user_id, year, month, lookahead)

            debts = await self._visibility.list_debt_entries(
                budget_account_id, year, month, window, is_active=True
            )

            window_start, window_end = window_bounds(year, month, window)
            window_paychecks = [
                p for p in projection.all if window_start <= p.date <= window_end
            ]
            paycheck_allocations = await self._ledger.list_for_paychecks(
                budget_account_id, window_paychecks
            )
            allocations = await self._ledger.list_allocations(budget_account_id)
            dismissals = await self._dismissals.list_dismissed(budget_account_id, user_id)

        warnings = evaluate_warnings(
            window_paychecks,
            debts,
            allocations,
            paycheck_allocations,
            period_key=to_month_string(year, month),
        )

        logger.debug(
            "planning_data_built",
            budget_account_id=budget_account_id,
            year=year,
            month=month,
            window=window,
            paychecks=len(window_paychecks),
            debts=len(debts),
            warnings=len(warnings),
        )

        return PlanningData(
            paychecks=projection.current_month,
            future_paychecks=projection.future,
            debts=debts,
            allocations=paycheck_allocations,
            warnings=filter_dismissed(warnings, dismissals),
        )

    async def get_current_month_planning(self, budget_account_id: str) -> PlanningData:
        today = date.today()
        return await self.get_planning_data(budget_account_id, today.year, today.month)

    async def get_hidden_instances(
        self,
        budget_account_id: str,
        year: int,
        month: int,
        planning_window_months: int = 0,
    ) -> list[DebtEntry]:
        """Hidden instances due inside the window."""
        correlation_id = create_correlation_id()
        await self._authorize(budget_account_id, "get_hidden_instances", correlation_id)
        validate_month(month)
        window = self._window(planning_window_months)

        async with self._storage_errors("get_hidden_instances", budget_account_id, correlation_id):
            return await self._visibility.list_debt_entries(
                budget_account_id, year, month, window, is_active=False
            )

    async def list_allocations_for_month(
        self,
        budget_account_id: str,
        year: int,
        month: int,
    ) -> list[PaycheckAllocation]:
        """Allocation view of every paycheck in the month."""
        correlation_id = create_correlation_id()
        user_id = await self._authorize(
            budget_account_id, "list_allocations_for_month", correlation_id
        )
        validate_month(month)

        async with self._storage_errors(
            "list_allocations_for_month", budget_account_id, correlation_id
        ):
            projection = await self._project(user_id, year, month, 1)
            return await self._ledger.list_for_paychecks(
                budget_account_id, projection.current_month
            )

    async def get_current_month_allocations(
        self,
        budget_account_id: str,
    ) -> list[PaycheckAllocation]:
        today = date.today()
        return await self.list_allocations_for_month(budget_account_id, today.year, today.month)

    async def list_allocations(self, budget_account_id: str) -> list[DebtAllocation]:
        """Raw ledger rows of the account."""
        correlation_id = create_correlation_id()
        await self._authorize(budget_account_id, "list_allocations", correlation_id)

        async with self._storage_errors("list_allocations", budget_account_id, correlation_id):
            return await self._ledger.list_allocations(budget_account_id)

    async def calculate_monthly_income(
        self,
        budget_account_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Decimal:
        """
        Monthly income of every member of the account.

        Defaults to the current month.
        """
        correlation_id = create_correlation_id()
        await self._authorize(budget_account_id, "calculate_monthly_income", correlation_id)
        today = date.today()
        if year is None:
            year = today.year
        if month is None:
            month = today.month
        validate_month(month)

        async with self._storage_errors(
            "calculate_monthly_income", budget_account_id, correlation_id
        ):
            member_ids = set(await self._authorization.list_member_ids(budget_account_id))
            sources = await self._storage.list_income_sources(active_only=True)

        return estimate_monthly_income(
            [s for s in sources if s.user_id in member_ids],
            year,
            month,
        )

    # -------------------------------------------------------------------------
    # Ledger writes
    # -------------------------------------------------------------------------

    async def allocate(
        self,
        budget_account_id: str,
        instance_id: str,
        paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
    ) -> OperationResult:
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "allocate", correlation_id)
        validate_payment_amount(amount)

        async with self._storage_errors("allocate", budget_account_id, correlation_id):
            await self._ledger.allocate(
                budget_account_id,
                user_id,
                instance_id,
                paycheck_id,
                amount=amount,
                payment_date=payment_date,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1)

    async def update_allocation(
        self,
        budget_account_id: str,
        instance_id: str,
        paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
    ) -> OperationResult:
        """Update an allocation. Updating a pair that isn't allocated is a no-op."""
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "update_allocation", correlation_id)
        validate_payment_amount(amount)

        async with self._storage_errors("update_allocation", budget_account_id, correlation_id):
            updated = await self._ledger.update(
                budget_account_id,
                user_id,
                instance_id,
                paycheck_id,
                amount=amount,
                payment_date=payment_date,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1 if updated else 0)

    async def unallocate(
        self,
        budget_account_id: str,
        instance_id: str,
        paycheck_id: str,
    ) -> OperationResult:
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "unallocate", correlation_id)

        async with self._storage_errors("unallocate", budget_account_id, correlation_id):
            removed = await self._ledger.unallocate(
                budget_account_id,
                user_id,
                instance_id,
                paycheck_id,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=removed)

    async def move_allocation(
        self,
        budget_account_id: str,
        instance_id: str,
        from_paycheck_id: str,
        to_paycheck_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
    ) -> OperationResult:
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "move_allocation", correlation_id)
        validate_payment_amount(amount)

        async with self._storage_errors("move_allocation", budget_account_id, correlation_id):
            await self._ledger.move(
                budget_account_id,
                user_id,
                instance_id,
                from_paycheck_id,
                to_paycheck_id,
                amount=amount,
                payment_date=payment_date,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1)

    async def mark_paid(
        self,
        budget_account_id: str,
        instance_id: str,
        allocation_id: str,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
    ) -> OperationResult:
        """
        Mark an allocation as paid.

        Raises:
            NotFoundError: If the allocation doesn't exist
        """
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "mark_paid", correlation_id)
        validate_payment_amount(amount)

        async with self._storage_errors("mark_paid", budget_account_id, correlation_id):
            await self._ledger.mark_paid(
                budget_account_id,
                user_id,
                instance_id,
                allocation_id,
                amount=amount,
                payment_date=payment_date,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1)

    # -------------------------------------------------------------------------
    # Warnings and visibility
    # -------------------------------------------------------------------------

    async def dismiss_warning(
        self,
        budget_account_id: str,
        warning_type: Union[WarningType, str],
        warning_key: str,
    ) -> OperationResult:
        """Dismiss a warning for the caller. Dismissing twice stores one row."""
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "dismiss_warning", correlation_id)
        warning_type = WarningType(warning_type)
        if not warning_key:
            raise ValueError("Warning key cannot be empty")

        async with self._storage_errors("dismiss_warning", budget_account_id, correlation_id):
            created = await self._dismissals.dismiss(
                budget_account_id,
                user_id,
                warning_type,
                warning_key,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1 if created else 0)

    async def set_instance_active(
        self,
        budget_account_id: str,
        instance_id: str,
        is_active: bool,
    ) -> OperationResult:
        """Hide or restore a monthly debt instance. A missing instance is a no-op."""
        correlation_id = create_correlation_id()
        user_id = await self._authorize(budget_account_id, "set_instance_active", correlation_id)

        async with self._storage_errors("set_instance_active", budget_account_id, correlation_id):
            changed = await self._visibility.set_active(
                budget_account_id,
                user_id,
                instance_id,
                is_active,
                correlation_id=correlation_id,
            )
        return OperationResult(affected=1 if changed else 0)


def create_planning_service(
    authorization: AuthorizationInterface,
    settings: Optional[Settings] = None,
) -> tuple[PaycheckPlanningService, PlanningStorageInterface, AuditStorageInterface]:
    """
    Factory function to create the planning service from settings.

    Args:
        authorization: Session and membership collaborator
        settings: Settings to use (defaults to get_settings())

    Returns:
        (planning_service, planning_storage, audit_storage)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    if app_settings.storage_backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        storage = GoogleSheetsPlanningStorage(sheets_client)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        storage = InMemoryPlanningStorage()
        audit_storage = InMemoryAuditStorage()

    logger.info(
        "planning_service_created",
        storage_backend=app_settings.storage_backend,
        environment=app_settings.app_environment,
    )

    service = PaycheckPlanningService(
        authorization=authorization,
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
    )
    return service, storage, audit_storage
