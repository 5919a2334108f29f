"""
Tests for hiding and restoring monthly debt instances
"""

import asyncio
import pytest
from datetime import date

from paycheck_planner.debts import DebtVisibility, MonthlyDebtInstancePopulator, to_debt_entries
from paycheck_planner.models.audit import AuditEventType
from paycheck_planner.models.planning import MonthlyDebtInstance


ACCOUNT_ID = "acct-1"
USER_ID = "user-1"


@pytest.fixture
def visibility(storage, audit_logger):
    return DebtVisibility(storage, audit_logger)


@pytest.fixture
def populated(storage, add_debt):
    """Rent and Phone instances for January and February 2025."""
    add_debt(name="Rent", due_date=date(2025, 1, 15))
    add_debt(name="Phone", amount="60.00", due_date=date(2025, 1, 2))
    asyncio.run(MonthlyDebtInstancePopulator(storage).populate(ACCOUNT_ID, 2025, 1, 1))
    return asyncio.run(storage.list_monthly_debt_instances(ACCOUNT_ID))


class TestDebtVisibility:
    """Tests for the visibility toggle."""

    def test_hide_and_restore(self, visibility, populated, audit_storage):
        """Test that a hidden instance leaves the active list and comes back."""
        target = populated[0]

        assert asyncio.run(visibility.set_active(ACCOUNT_ID, USER_ID, target.id, False)) is True
        active = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 1))
        hidden = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 1, is_active=False))
        assert target.id not in [e.id for e in active]
        assert [e.id for e in hidden] == [target.id]

        assert asyncio.run(visibility.set_active(ACCOUNT_ID, USER_ID, target.id, True)) is True
        active = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 1))
        assert target.id in [e.id for e in active]

        events = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.INSTANCE_VISIBILITY_CHANGED
        ]
        assert [e.details["is_active"] for e in events] == [False, True]

    def test_hiding_keeps_the_row(self, visibility, populated, storage):
        """Test that hiding is a soft delete."""
        asyncio.run(visibility.set_active(ACCOUNT_ID, USER_ID, populated[0].id, False))

        stored = asyncio.run(storage.get_monthly_debt_instance(ACCOUNT_ID, populated[0].id))
        assert stored is not None
        assert stored.is_active is False

    def test_missing_instance_is_noop(self, visibility, audit_storage):
        assert asyncio.run(visibility.set_active(ACCOUNT_ID, USER_ID, "no-such-instance", False)) is False
        assert audit_storage.events == []

    def test_other_account_instance_is_not_found(self, visibility, populated):
        assert asyncio.run(visibility.set_active("acct-2", USER_ID, populated[0].id, False)) is False

    def test_window_filters_by_due_date(self, visibility, populated):
        """Test that a window of 0 only lists the target month."""
        january = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 1))
        both = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 1, window=1))

        assert len(january) == 2
        assert len(both) == 4
        assert [e.name for e in january] == ["Phone", "Rent"]

    def test_entries_carry_both_due_dates(self, visibility, populated):
        february = asyncio.run(visibility.list_debt_entries(ACCOUNT_ID, 2025, 2))
        rent = next(e for e in february if e.name == "Rent")

        assert rent.due_date == date(2025, 2, 15)
        assert rent.original_due_date == date(2025, 1, 15)


class TestToDebtEntries:
    """Tests for joining instances with templates."""

    def test_orphaned_instance_skipped(self, add_debt):
        """Test that an instance whose template is gone is left out."""
        debt = add_debt()
        instances = [
            MonthlyDebtInstance(
                budget_account_id=ACCOUNT_ID,
                debt_id=debt.id,
                year=2025,
                month=1,
                due_date=date(2025, 1, 15),
            ),
            MonthlyDebtInstance(
                budget_account_id=ACCOUNT_ID,
                debt_id="deleted-debt",
                year=2025,
                month=1,
                due_date=date(2025, 1, 20),
            ),
        ]

        entries = to_debt_entries(instances, [debt])

        assert [e.debt_id for e in entries] == [debt.id]
        assert entries[0].amount == debt.payment_amount


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
