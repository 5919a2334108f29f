"""
Tests for Paycheck Planner models

Test strategy:
1. Unit tests for individual components (models, pure functions)
2. Flow tests for the planning service (with in-memory storage)
3. No real API calls in tests (fake worksheets instead)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from paycheck_planner.models.planning import (
    AllocatedDebt,
    Debt,
    DebtAllocation,
    Frequency,
    IncomeSource,
    MonthlyDebtInstance,
    OperationResult,
    Paycheck,
    PaycheckAllocation,
    PaycheckProjection,
    WarningType,
)
from paycheck_planner.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestPlanningModels:
    """Tests for planning Pydantic models."""

    def test_income_source_creation(self):
        """Test IncomeSource model creation."""
        source = IncomeSource(
            user_id="user-1",
            name="  Acme Corp  ",
            amount=Decimal("2500.00"),
            frequency=Frequency.BI_WEEKLY,
            start_date=date(2025, 1, 3),
        )
        assert source.name == "Acme Corp"
        assert source.is_active is True
        assert source.id

    def test_income_source_end_date_validation(self):
        """Test that end date before start date is rejected."""
        with pytest.raises(ValueError, match="End date cannot be before start date"):
            IncomeSource(
                user_id="user-1",
                name="Acme Corp",
                amount=Decimal("2500.00"),
                frequency="weekly",
                start_date=date(2025, 3, 1),
                end_date=date(2025, 2, 1),
            )

    def test_income_source_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            IncomeSource(
                user_id="user-1",
                name="Acme Corp",
                amount=Decimal("-1.00"),
                frequency="monthly",
                start_date=date(2025, 1, 1),
            )

    def test_frequency_values(self):
        """Test frequency string values."""
        assert Frequency("weekly") == Frequency.WEEKLY
        assert Frequency("bi-weekly") == Frequency.BI_WEEKLY
        assert Frequency("monthly") == Frequency.MONTHLY
        with pytest.raises(ValueError):
            Frequency("daily")

    def test_debt_defaults(self):
        """Test Debt model defaults."""
        debt = Debt(
            budget_account_id="acct-1",
            name="Car Loan",
            payment_amount=Decimal("350.00"),
            due_date=date(2025, 1, 20),
        )
        assert debt.interest_rate == Decimal("0")
        assert debt.category_id is None
        assert debt.has_balance is False

    def test_monthly_instance_due_date_must_match_month(self):
        """Test that an instance's due date falls in its own month."""
        with pytest.raises(ValueError, match="Due date must fall inside the instance month"):
            MonthlyDebtInstance(
                budget_account_id="acct-1",
                debt_id="debt-1",
                year=2025,
                month=2,
                due_date=date(2025, 3, 1),
            )

    def test_monthly_instance_rejects_invalid_month(self):
        """Test month bounds."""
        with pytest.raises(ValidationError):
            MonthlyDebtInstance(
                budget_account_id="acct-1",
                debt_id="debt-1",
                year=2025,
                month=13,
                due_date=date(2025, 12, 1),
            )

    def test_uniqueness_keys(self):
        """Test the key properties used for uniqueness checks."""
        instance = MonthlyDebtInstance(
            budget_account_id="acct-1",
            debt_id="debt-1",
            year=2025,
            month=2,
            due_date=date(2025, 2, 15),
        )
        allocation = DebtAllocation(
            budget_account_id="acct-1",
            monthly_debt_instance_id=instance.id,
            paycheck_id="src-1-2025-02-01",
            user_id="user-1",
        )
        assert instance.key == ("debt-1", 2025, 2)
        assert allocation.key == (instance.id, "src-1-2025-02-01")
        assert allocation.is_paid is False

    def test_allocation_accepts_overpayment(self):
        """Test that payment amounts are not capped."""
        allocation = DebtAllocation(
            budget_account_id="acct-1",
            monthly_debt_instance_id="inst-1",
            paycheck_id="src-1-2025-02-01",
            user_id="user-1",
            payment_amount=Decimal("99999.99"),
        )
        assert allocation.payment_amount == Decimal("99999.99")

    def test_allocated_debt_effective_amount(self):
        """Test that the payment amount overrides the debt amount."""
        base = dict(
            debt_id="inst-1",
            debt_name="Rent",
            amount=Decimal("1200.00"),
            due_date=date(2025, 2, 1),
            original_due_date=date(2024, 11, 1),
            payment_id="alloc-1",
        )
        assert AllocatedDebt(**base).effective_amount == Decimal("1200.00")
        assert AllocatedDebt(**base, payment_amount=Decimal("600.00")).effective_amount == Decimal("600.00")

    def test_paycheck_allocation_over_allocated(self):
        """Test the sign of the remaining amount."""
        view = PaycheckAllocation(
            paycheck_id="src-1-2025-02-01",
            paycheck_date=date(2025, 2, 1),
            paycheck_amount=Decimal("2000"),
            remaining_amount=Decimal("-500"),
        )
        assert view.is_over_allocated is True

    def test_paycheck_is_immutable(self):
        """Test that projected paychecks are frozen."""
        paycheck = Paycheck(
            id="src-1-2025-02-01",
            income_source_id="src-1",
            name="Acme Corp",
            amount=Decimal("2000"),
            frequency=Frequency.MONTHLY,
            user_id="user-1",
            date=date(2025, 2, 1),
        )
        with pytest.raises(ValidationError):
            paycheck.amount = Decimal("1")

    def test_projection_all_keeps_order(self):
        """Test that `all` lists current month before future paychecks."""
        make = lambda day, month: Paycheck(
            id=f"src-1-2025-{month:02d}-{day:02d}",
            income_source_id="src-1",
            name="Acme Corp",
            amount=Decimal("100"),
            frequency=Frequency.WEEKLY,
            user_id="user-1",
            date=date(2025, month, day),
        )
        projection = PaycheckProjection(
            current_month=[make(7, 1)],
            future=[make(4, 2)],
        )
        assert [p.id for p in projection.all] == ["src-1-2025-01-07", "src-1-2025-02-04"]

    def test_operation_result_defaults_to_success(self):
        assert OperationResult().success is True

    def test_warning_type_values(self):
        """Test warning type string values (part of the dismissal contract)."""
        assert WarningType.DEBT_UNPAID.value == "debt_unpaid"
        assert WarningType.INSUFFICIENT_FUNDS.value == "insufficient_funds"
        assert WarningType.LATE_PAYMENT.value == "late_payment"


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.ALLOCATION_CREATED,
            description="Debt allocated",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.WARNING_DISMISSED,
            description="Warning dismissed",
            budget_account_id="acct-1",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "warning_dismissed"
        assert log_dict["budget_account_id"] == "acct-1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.ALLOCATION_REMOVED,
            description="Allocation removed",
            entity_type="monthly_debt_instance",
            entity_id="inst-1",
            details={"removed": 1},
        )
        row = event.to_sheets_row()

        assert len(row) == 13
        assert row[2] == "allocation_removed"
        assert row[7] == "inst-1"
        assert row[10] == '{"removed": 1}'

    def test_audit_event_builder_allocation_created(self):
        """Test AuditEventBuilder for allocations."""
        correlation_id = uuid4()
        event = AuditEventBuilder.allocation_created(
            budget_account_id="acct-1",
            user_id="user-1",
            allocation_id="alloc-1",
            instance_id="inst-1",
            paycheck_id="src-1-2025-02-01",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.ALLOCATION_CREATED
        assert event.entity_id == "alloc-1"
        assert event.is_user_action is True
        assert event.details["paycheck_id"] == "src-1-2025-02-01"

    def test_audit_event_builder_access_denied(self):
        """Test AuditEventBuilder for refused requests."""
        event = AuditEventBuilder.access_denied(
            budget_account_id="acct-1",
            user_id="intruder",
            operation="allocate",
            reason="not a member",
        )

        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "not a member"
        assert event.is_user_action is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
