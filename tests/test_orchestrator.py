"""
Flow tests for the planning service

Every test drives the public service surface against in-memory storage,
the way a request handler would.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.audit import AuditEventType
from paycheck_planner.models.planning import Frequency, OperationResult, WarningType
from paycheck_planner.orchestrator import PaycheckPlanningService, create_planning_service
from paycheck_planner.config import Settings
from paycheck_planner.services.auth import AccessDeniedError, NotAuthenticatedError
from paycheck_planner.services.storage import (
    InMemoryAuditStorage,
    InMemoryPlanningStorage,
    NotFoundError,
    StorageError,
)


ACCOUNT_ID = "acct-1"
USER_ID = "user-1"


class BrokenDebtStorage(InMemoryPlanningStorage):
    """Storage that fails every debt read."""

    async def list_debts(self, budget_account_id):
        raise StorageError("sheet unavailable")


def events_of(audit_storage, event_type):
    return [e for e in audit_storage.events if e.event_type == event_type]


class TestPlanningFlow:
    """End-to-end planning requests."""

    def test_income_covers_debts(self, service, add_income, add_debt):
        """Test a month with enough income: one paycheck, one debt, no warnings."""
        add_income(amount="5000.00", frequency=Frequency.MONTHLY, start_date=date(2025, 1, 1))
        add_debt(amount="1000.00", due_date=date(2025, 1, 15))

        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))

        assert len(data.paychecks) == 1
        assert len(data.debts) == 1
        assert data.warnings == []
        assert data.allocations[0].remaining_amount == Decimal("5000.00")

    def test_insufficient_income(self, service, add_income, add_debt):
        """Test the shortfall warning of a month with too little income."""
        add_income(amount="2000.00", frequency=Frequency.MONTHLY, start_date=date(2025, 1, 1))
        add_debt(amount="3000.00", due_date=date(2025, 1, 15))

        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))

        assert len(data.warnings) == 1
        warning = data.warnings[0]
        assert warning.type == WarningType.INSUFFICIENT_FUNDS
        assert "3000.00" in warning.message
        assert "2000.00" in warning.message
        assert warning.key == data.paychecks[0].id

    def test_planning_populates_instances(self, service, storage, add_debt, audit_storage):
        """Test that the first planning request creates the window's instances."""
        add_debt(due_date=date(2025, 1, 15))

        asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1, planning_window_months=2))
        asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1, planning_window_months=2))

        assert len(asyncio.run(storage.list_monthly_debt_instances(ACCOUNT_ID))) == 3
        assert len(events_of(audit_storage, AuditEventType.INSTANCES_POPULATED)) == 1

    def test_window_paychecks_cover_every_month(self, service, add_income, add_debt):
        """Test that a long window projects paychecks past the default lookahead."""
        add_income(amount="1000.00", frequency=Frequency.MONTHLY, start_date=date(2025, 1, 1))
        add_debt(amount="100.00", due_date=date(2025, 1, 15))

        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1, planning_window_months=5))

        assert len(data.paychecks) + len(data.future_paychecks) == 6
        assert len(data.debts) == 6
        assert len(data.allocations) == 6
        assert data.warnings == []

    def test_only_caller_income_is_projected(self, service, authorization, add_income):
        authorization.add_member(ACCOUNT_ID, "user-2")
        add_income(source_id="mine", start_date=date(2025, 1, 1))
        add_income(source_id="theirs", user_id="user-2", start_date=date(2025, 1, 1))

        projection = asyncio.run(service.project_paychecks(ACCOUNT_ID, 2025, 1, lookahead_months=1))

        assert [p.income_source_id for p in projection.current_month] == ["mine"]

    def test_hidden_instances_stay_out_of_planning(self, service, add_income, add_debt):
        """Test that hiding an instance removes it from planning and lists it as hidden."""
        add_income(amount="5000.00", start_date=date(2025, 1, 1))
        add_debt(name="Gym", amount="40.00", due_date=date(2025, 1, 3))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))
        gym = data.debts[0]

        result = asyncio.run(service.set_instance_active(ACCOUNT_ID, gym.id, False))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))
        hidden = asyncio.run(service.get_hidden_instances(ACCOUNT_ID, 2025, 1))

        assert result == OperationResult(affected=1)
        assert data.debts == []
        assert [e.id for e in hidden] == [gym.id]

    def test_set_missing_instance_is_noop(self, service):
        result = asyncio.run(service.set_instance_active(ACCOUNT_ID, "no-such-instance", False))
        assert result.success is True
        assert result.affected == 0

    def test_dismissed_warning_is_hidden(self, service, add_income, add_debt):
        """Test that a dismissal hides the warning on the next request."""
        add_income(amount="2000.00", start_date=date(2025, 1, 1))
        add_debt(amount="3000.00", due_date=date(2025, 1, 15))
        warning = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1)).warnings[0]

        first = asyncio.run(service.dismiss_warning(ACCOUNT_ID, warning.type, warning.key))
        second = asyncio.run(service.dismiss_warning(ACCOUNT_ID, warning.type.value, warning.key))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))

        assert first.affected == 1
        assert second.affected == 0
        assert data.warnings == []

    def test_invalid_month_rejected(self, service):
        with pytest.raises(ValueError, match="Month must be between 1 and 12"):
            asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 13))

    def test_negative_window_rejected(self, service, storage, add_debt):
        add_debt()
        with pytest.raises(ValueError):
            asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1, planning_window_months=-1))
        assert asyncio.run(storage.list_monthly_debt_instances(ACCOUNT_ID)) == []


class TestLedgerFlow:
    """Allocation writes through the service."""

    def test_allocate_move_and_pay(self, service, storage, add_income, add_debt):
        """Test a full allocation lifecycle."""
        add_income(amount="1500.00", frequency=Frequency.BI_WEEKLY, start_date=date(2025, 1, 3))
        add_debt(amount="1000.00", due_date=date(2025, 1, 15))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))
        rent = data.debts[0]
        first, second = data.paychecks[0], data.paychecks[1]

        assert asyncio.run(service.allocate(ACCOUNT_ID, rent.id, first.id)).affected == 1
        assert asyncio.run(service.move_allocation(ACCOUNT_ID, rent.id, first.id, second.id)).affected == 1

        allocations = asyncio.run(service.list_allocations(ACCOUNT_ID))
        assert [a.paycheck_id for a in allocations] == [second.id]

        result = asyncio.run(service.mark_paid(
            ACCOUNT_ID, rent.id, allocations[0].id, payment_date=date(2025, 1, 17)
        ))
        assert result.affected == 1
        assert asyncio.run(service.list_allocations(ACCOUNT_ID))[0].is_paid is True

        removed = asyncio.run(service.unallocate(ACCOUNT_ID, rent.id, second.id))
        assert removed.affected == 1
        assert asyncio.run(service.list_allocations(ACCOUNT_ID)) == []

    def test_update_allocation(self, service, add_debt):
        add_debt()
        asyncio.run(service.populate_monthly_debt_instances(ACCOUNT_ID, 2025, 1))
        rent = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1)).debts[0]

        missing = asyncio.run(service.update_allocation(
            ACCOUNT_ID, rent.id, "src-1-2025-01-01", amount=Decimal("10.00")
        ))
        asyncio.run(service.allocate(ACCOUNT_ID, rent.id, "src-1-2025-01-01"))
        updated = asyncio.run(service.update_allocation(
            ACCOUNT_ID, rent.id, "src-1-2025-01-01", amount=Decimal("10.00")
        ))

        assert missing.affected == 0
        assert updated.affected == 1
        assert asyncio.run(service.list_allocations(ACCOUNT_ID))[0].payment_amount == Decimal("10.00")

    def test_late_payment_and_unpaid_warnings(self, service, add_income, add_debt):
        """Test warnings that appear once allocating has started."""
        add_income(amount="5000.00", start_date=date(2025, 1, 1))
        add_debt(name="Rent", due_date=date(2025, 1, 15))
        add_debt(name="Phone", amount="60.00", due_date=date(2025, 1, 2))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))
        phone, rent = data.debts
        paycheck = data.paychecks[0]

        asyncio.run(service.allocate(
            ACCOUNT_ID, rent.id, paycheck.id, payment_date=date(2025, 1, 20)
        ))
        warnings = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1)).warnings

        assert [(w.type, w.key) for w in warnings] == [
            (WarningType.LATE_PAYMENT, f"{rent.id}:{paycheck.id}"),
            (WarningType.DEBT_UNPAID, phone.id),
        ]

    def test_mark_paid_missing_allocation(self, service):
        with pytest.raises(NotFoundError):
            asyncio.run(service.mark_paid(ACCOUNT_ID, "inst-1", "no-such-allocation"))

    def test_list_allocations_for_month(self, service, add_income, add_debt):
        add_income(amount="1000.00", frequency=Frequency.WEEKLY, start_date=date(2025, 1, 1))
        add_debt(amount="250.00", due_date=date(2025, 1, 15))
        data = asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))
        asyncio.run(service.allocate(ACCOUNT_ID, data.debts[0].id, data.paychecks[2].id))

        views = asyncio.run(service.list_allocations_for_month(ACCOUNT_ID, 2025, 1))

        assert len(views) == 5
        assert [v.remaining_amount for v in views] == [
            Decimal("1000.00"), Decimal("1000.00"), Decimal("750.00"),
            Decimal("1000.00"), Decimal("1000.00"),
        ]


class TestMonthlyIncome:
    """Tests for the account-wide monthly income equivalent."""

    def test_counts_every_member(self, service, authorization, add_income):
        """Test that income of all members, and only members, is counted."""
        authorization.add_member(ACCOUNT_ID, "user-2")
        add_income(amount="3000.00", start_date=date(2025, 1, 1))
        add_income(amount="1000.00", user_id="user-2", start_date=date(2025, 1, 1))
        add_income(amount="9999.00", user_id="outsider", start_date=date(2025, 1, 1))
        add_income(amount="500.00", start_date=date(2025, 1, 1), is_active=False)

        income = asyncio.run(service.calculate_monthly_income(ACCOUNT_ID, 2025, 1))

        assert income == Decimal("4000.00")

    def test_month_zero_rejected(self, service):
        with pytest.raises(ValueError, match="Month must be between 1 and 12"):
            asyncio.run(service.calculate_monthly_income(ACCOUNT_ID, 2025, 0))


class TestAccessControl:
    """Authentication and membership checks."""

    def test_unauthenticated_request_rejected(self, service, authorization, storage, add_debt, audit_storage):
        """Test that nothing is written before authentication."""
        add_debt()
        authorization.sign_out()

        with pytest.raises(NotAuthenticatedError):
            asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))

        assert asyncio.run(storage.list_monthly_debt_instances(ACCOUNT_ID)) == []
        denied = events_of(audit_storage, AuditEventType.ACCESS_DENIED)
        assert len(denied) == 1
        assert denied[0].user_id is None

    def test_non_member_rejected(self, service, authorization, storage, audit_storage):
        """Test that a signed-in non-member cannot write."""
        authorization.sign_in("intruder")

        with pytest.raises(AccessDeniedError):
            asyncio.run(service.allocate(ACCOUNT_ID, "inst-1", "src-1-2025-01-01"))

        assert asyncio.run(storage.list_debt_allocations(ACCOUNT_ID)) == []
        denied = events_of(audit_storage, AuditEventType.ACCESS_DENIED)
        assert denied[0].user_id == "intruder"
        assert denied[0].details["operation"] == "allocate"

    def test_authentication_checked_before_arguments(self, service, authorization, audit_storage):
        """Test that a signed-out caller is refused even with bad input."""
        authorization.sign_out()

        with pytest.raises(NotAuthenticatedError):
            asyncio.run(service.allocate(
                ACCOUNT_ID, "inst-1", "src-1-2025-01-01", amount=Decimal("-5.00")
            ))
        with pytest.raises(NotAuthenticatedError):
            asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 13))
        with pytest.raises(NotAuthenticatedError):
            asyncio.run(service.dismiss_warning(ACCOUNT_ID, WarningType.DEBT_UNPAID, ""))

        assert len(events_of(audit_storage, AuditEventType.ACCESS_DENIED)) == 3

    def test_non_member_refused_before_arguments(self, service):
        with pytest.raises(AccessDeniedError):
            asyncio.run(service.mark_paid("acct-2", "inst-1", "alloc-1", amount=Decimal("-1")))

    def test_member_gets_argument_errors(self, service):
        with pytest.raises(ValueError, match="cannot be negative"):
            asyncio.run(service.allocate(
                ACCOUNT_ID, "inst-1", "src-1-2025-01-01", amount=Decimal("-5.00")
            ))
        with pytest.raises(ValueError, match="cannot be empty"):
            asyncio.run(service.dismiss_warning(ACCOUNT_ID, WarningType.DEBT_UNPAID, ""))

    def test_other_account_rejected(self, service):
        with pytest.raises(AccessDeniedError):
            asyncio.run(service.list_allocations("acct-2"))


class TestErrorsAndFactory:
    """Storage failures and service construction."""

    def test_storage_error_is_audited_and_raised(self, authorization):
        audit_storage = InMemoryAuditStorage()
        service = PaycheckPlanningService(
            authorization=authorization,
            storage=BrokenDebtStorage(),
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(StorageError, match="sheet unavailable"):
            asyncio.run(service.get_planning_data(ACCOUNT_ID, 2025, 1))

        errors = events_of(audit_storage, AuditEventType.STORAGE_ERROR)
        assert len(errors) == 1
        assert errors[0].details["operation"] == "get_planning_data"

    def test_factory_builds_memory_backend(self, authorization, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        service, storage, audit_storage = create_planning_service(authorization, Settings())

        assert isinstance(storage, InMemoryPlanningStorage)
        assert isinstance(audit_storage, InMemoryAuditStorage)
        result = asyncio.run(service.populate_monthly_debt_instances(ACCOUNT_ID, 2025, 1))
        assert result == OperationResult(affected=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
