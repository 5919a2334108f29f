"""
Tests for the in-memory storage backend
"""

import asyncio
import pytest
from datetime import date
from uuid import uuid4

from paycheck_planner.models.audit import AuditEvent, AuditEventType
from paycheck_planner.models.planning import DebtAllocation, MonthlyDebtInstance
from paycheck_planner.services.storage import (
    DuplicateError,
    InMemoryAuditStorage,
    NotFoundError,
)


ACCOUNT_ID = "acct-1"


def make_instance(account_id=ACCOUNT_ID, debt_id="debt-1", month=2):
    return MonthlyDebtInstance(
        budget_account_id=account_id,
        debt_id=debt_id,
        year=2025,
        month=month,
        due_date=date(2025, month, 10),
    )


class TestInMemoryPlanningStorage:
    """Tests for uniqueness and isolation of the memory backend."""

    def test_instance_key_unique_per_account(self, storage):
        asyncio.run(storage.insert_monthly_debt_instance(make_instance()))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_monthly_debt_instance(make_instance()))

        # The same key in another account is fine
        asyncio.run(storage.insert_monthly_debt_instance(make_instance(account_id="acct-2")))

    def test_returned_records_are_copies(self, storage):
        """Test that mutating a returned record doesn't change storage."""
        stored = asyncio.run(storage.insert_monthly_debt_instance(make_instance()))
        stored.is_active = False

        reloaded = asyncio.run(storage.get_monthly_debt_instance(ACCOUNT_ID, stored.id))
        assert reloaded.is_active is True

    def test_get_respects_account(self, storage):
        stored = asyncio.run(storage.insert_monthly_debt_instance(make_instance()))
        assert asyncio.run(storage.get_monthly_debt_instance("acct-2", stored.id)) is None

    def test_list_sorted_by_due_date(self, storage):
        later = asyncio.run(storage.insert_monthly_debt_instance(make_instance(month=3)))
        earlier = asyncio.run(storage.insert_monthly_debt_instance(make_instance(month=2)))

        instances = asyncio.run(storage.list_monthly_debt_instances(ACCOUNT_ID))
        assert [i.id for i in instances] == [earlier.id, later.id]

    def test_update_unknown_instance(self, storage):
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update_monthly_debt_instance(make_instance()))

    def test_update_bumps_updated_at(self, storage):
        stored = asyncio.run(storage.insert_monthly_debt_instance(make_instance()))
        updated = asyncio.run(storage.update_monthly_debt_instance(stored))
        assert updated.updated_at >= stored.updated_at

    def test_allocation_pair_unique(self, storage):
        """Test at most one allocation per (instance, paycheck)."""
        allocation = DebtAllocation(
            budget_account_id=ACCOUNT_ID,
            monthly_debt_instance_id="inst-1",
            paycheck_id="src-1-2025-02-01",
            user_id="user-1",
        )
        asyncio.run(storage.insert_debt_allocation(allocation))

        with pytest.raises(DuplicateError):
            asyncio.run(storage.insert_debt_allocation(
                allocation.model_copy(update={"id": str(uuid4())})
            ))

    def test_list_allocations_by_paycheck(self, storage):
        for paycheck_id in ("src-1-2025-02-01", "src-1-2025-02-15"):
            asyncio.run(storage.insert_debt_allocation(
                DebtAllocation(
                    budget_account_id=ACCOUNT_ID,
                    monthly_debt_instance_id="inst-1",
                    paycheck_id=paycheck_id,
                    user_id="user-1",
                )
            ))

        selected = asyncio.run(storage.list_debt_allocations(
            ACCOUNT_ID, paycheck_ids=["src-1-2025-02-15"]
        ))
        assert [a.paycheck_id for a in selected] == ["src-1-2025-02-15"]
        assert asyncio.run(storage.list_debt_allocations(ACCOUNT_ID, paycheck_ids=[])) == []


class TestInMemoryAuditStorage:
    """Tests for the append-only audit log."""

    def test_queries(self):
        audit_storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        first = AuditEvent(
            event_type=AuditEventType.ALLOCATION_CREATED,
            description="created",
            entity_type="allocation",
            entity_id="alloc-1",
            correlation_id=correlation_id,
        )
        second = AuditEvent(
            event_type=AuditEventType.PAYMENT_MARKED_PAID,
            description="paid",
            entity_type="allocation",
            entity_id="alloc-1",
        )
        asyncio.run(audit_storage.append_event(first))
        asyncio.run(audit_storage.append_event(second))

        assert asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id)) == [first]
        assert len(asyncio.run(audit_storage.get_events_by_entity("allocation", "alloc-1"))) == 2
        assert asyncio.run(audit_storage.get_recent_events(limit=1)) == [second]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
