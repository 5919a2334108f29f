"""
Shared fixtures for Paycheck Planner tests

Everything runs against in-memory storage and static authorization.
No test touches the network.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from paycheck_planner.audit import AuditLogger
from paycheck_planner.models.planning import Debt, Frequency, IncomeSource
from paycheck_planner.orchestrator import PaycheckPlanningService
from paycheck_planner.services.auth import StaticAuthorization
from paycheck_planner.services.storage import (
    InMemoryAuditStorage,
    InMemoryPlanningStorage,
)


ACCOUNT_ID = "acct-1"
USER_ID = "user-1"


@pytest.fixture
def storage():
    return InMemoryPlanningStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def authorization():
    return StaticAuthorization(USER_ID, {ACCOUNT_ID: [USER_ID]})


@pytest.fixture
def service(authorization, storage, audit_logger):
    return PaycheckPlanningService(
        authorization=authorization,
        storage=storage,
        audit_logger=audit_logger,
    )


@pytest.fixture
def add_debt(storage):
    """Store a debt template and return it."""
    def _add(
        name="Rent",
        amount="1000.00",
        due_date=date(2025, 1, 15),
        debt_id=None,
        account_id=ACCOUNT_ID,
    ) -> Debt:
        fields = dict(
            budget_account_id=account_id,
            created_by_user_id=USER_ID,
            name=name,
            payment_amount=Decimal(amount),
            due_date=due_date,
        )
        if debt_id:
            fields["id"] = debt_id
        debt = Debt(**fields)
        return asyncio.run(storage.insert_debt(debt))
    return _add


@pytest.fixture
def add_income(storage):
    """Store an income source and return it."""
    def _add(
        amount="5000.00",
        frequency=Frequency.MONTHLY,
        start_date=date(2025, 1, 1),
        source_id=None,
        user_id=USER_ID,
        name="Employer",
        **extra,
    ) -> IncomeSource:
        fields = dict(
            user_id=user_id,
            name=name,
            amount=Decimal(amount),
            frequency=frequency,
            start_date=start_date,
            **extra,
        )
        if source_id:
            fields["id"] = source_id
        source = IncomeSource(**fields)
        return asyncio.run(storage.insert_income_source(source))
    return _add
