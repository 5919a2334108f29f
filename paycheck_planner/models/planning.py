"""
Core Data Models for Paycheck Planner

These models define the strict schemas for all data flowing through the
planning engine. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep derived identifiers (paycheck ids, warning keys) in one place

DESIGN DECISION: Paychecks and warnings are derived values. They are modeled
here so callers get typed results, but they never reach storage.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def new_record_id() -> str:
    """Identifier for a newly stored record."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """Pay schedule of an income source."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"


class WarningType(str, Enum):
    """
    Cash-flow warnings derived from a plan.

    CRITICAL: The string values are part of the dismissal key contract.
    Renaming one un-dismisses every stored dismissal of that type.
    """
    DEBT_UNPAID = "debt_unpaid"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    LATE_PAYMENT = "late_payment"


class WarningSeverity(str, Enum):
    """Severity shown next to a warning."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# STORED RECORDS
# =============================================================================

class IncomeSource(BaseModel):
    """
    A recurring pay schedule belonging to a user.

    The planning engine reads income sources but never mutates them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    user_id: str = Field(..., min_length=1)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name (e.g., employer)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount of one paycheck"
    )
    frequency: Frequency
    start_date: date = Field(
        ...,
        description="First pay date"
    )
    end_date: Optional[date] = Field(
        default=None,
        description="Last possible pay date"
    )
    is_active: bool = True
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_dates(self) -> 'IncomeSource':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class Debt(BaseModel):
    """
    A recurring bill definition.

    Only the day-of-month of due_date recurs. Its (year, month) is the
    first month in which a monthly instance may exist.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    budget_account_id: str = Field(..., min_length=1)
    created_by_user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    payment_amount: Decimal = Field(..., ge=0, decimal_places=2)
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    due_date: date
    category_id: Optional[str] = None
    has_balance: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MonthlyDebtInstance(BaseModel):
    """
    One month's occurrence of a debt.

    CRITICAL: (budget_account_id, debt_id, year, month) is unique.
    Instances are hidden with is_active=False, never deleted.
    """

    id: str = Field(default_factory=new_record_id)
    budget_account_id: str = Field(..., min_length=1)
    debt_id: str = Field(..., min_length=1)
    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)
    due_date: date
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, int, int]:
        """Uniqueness key within an account."""
        return (self.debt_id, self.year, self.month)

    @model_validator(mode='after')
    def validate_due_date_month(self) -> 'MonthlyDebtInstance':
        if (self.due_date.year, self.due_date.month) != (self.year, self.month):
            raise ValueError("Due date must fall inside the instance month")
        return self


class DebtAllocation(BaseModel):
    """
    Assignment of a monthly debt instance to a paycheck.

    paycheck_id is the derived paycheck id, not a foreign key:
    paychecks are never stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id)
    budget_account_id: str = Field(..., min_length=1)
    monthly_debt_instance_id: str = Field(..., min_length=1)
    paycheck_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)

    # Overrides the debt amount when present. No upper bound:
    # partial and over-payments are accepted.
    payment_amount: Optional[Decimal] = Field(default=None, ge=0)
    payment_date: Optional[date] = None
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    note: Optional[str] = Field(default=None, max_length=2000)

    allocated_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str]:
        """Uniqueness key within an account."""
        return (self.monthly_debt_instance_id, self.paycheck_id)


class DismissedWarning(BaseModel):
    """A user's dismissal of one derived warning."""

    id: str = Field(default_factory=new_record_id)
    budget_account_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    warning_type: WarningType
    warning_key: str = Field(..., min_length=1)
    dismissed_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# DERIVED VALUES
# =============================================================================

class Paycheck(BaseModel):
    """
    One projected occurrence of an income source.

    Ephemeral: recomputed on every request. The id is derived from the
    income source id and the pay date so it is stable across requests.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    income_source_id: str
    name: str
    amount: Decimal
    frequency: Frequency
    user_id: str
    date: date


class PaycheckProjection(BaseModel):
    """Projected paychecks split at the end of the target month."""

    current_month: list[Paycheck] = Field(default_factory=list)
    future: list[Paycheck] = Field(default_factory=list)

    @property
    def all(self) -> list[Paycheck]:
        return [*self.current_month, *self.future]


class DebtEntry(BaseModel):
    """A monthly debt instance joined with its template, as planners see it."""

    id: str = Field(..., description="Monthly debt instance id")
    debt_id: str = Field(..., description="Debt template id")
    name: str
    amount: Decimal
    due_date: date = Field(..., description="Due date in the instance month")
    original_due_date: date = Field(..., description="Due date of the template")
    frequency: str = "monthly"
    description: Optional[str] = None
    is_recurring: bool = True
    category_id: Optional[str] = None


class AllocatedDebt(BaseModel):
    """
    A debt shown inside a paycheck allocation view.

    due_date and original_due_date are different fields: the first is the
    instance's due date, the second the template's (month indicator).
    """

    debt_id: str = Field(..., description="Monthly debt instance id")
    debt_name: str
    amount: Decimal
    due_date: date
    original_due_date: date
    payment_date: Optional[date] = None
    payment_amount: Optional[Decimal] = None
    payment_id: str = Field(..., description="Allocation id")
    is_paid: bool = False

    @property
    def effective_amount(self) -> Decimal:
        """Amount counted against the paycheck."""
        if self.payment_amount is not None:
            return self.payment_amount
        return self.amount


class PaycheckAllocation(BaseModel):
    """Allocations of one paycheck and what is left of it."""

    paycheck_id: str
    paycheck_date: date
    paycheck_amount: Decimal
    allocated_debts: list[AllocatedDebt] = Field(default_factory=list)
    remaining_amount: Decimal = Field(
        ...,
        description="Negative when the paycheck is over-allocated"
    )

    @property
    def is_over_allocated(self) -> bool:
        return self.remaining_amount < 0


class PlanningWarning(BaseModel):
    """A derived cash-flow risk signal."""

    type: WarningType
    message: str
    severity: WarningSeverity
    key: str = Field(..., description="Dismissal key for this warning")
    debt_id: Optional[str] = None
    paycheck_id: Optional[str] = None


class PlanningData(BaseModel):
    """Result of a planning request."""

    paychecks: list[Paycheck] = Field(
        default_factory=list,
        description="Paychecks in the target month"
    )
    future_paychecks: list[Paycheck] = Field(default_factory=list)
    debts: list[DebtEntry] = Field(
        default_factory=list,
        description="Active debt instances in the planning window"
    )
    allocations: list[PaycheckAllocation] = Field(default_factory=list)
    warnings: list[PlanningWarning] = Field(default_factory=list)


class OperationResult(BaseModel):
    """Acknowledgement returned by every write operation."""

    success: bool = True
    affected: Optional[int] = Field(
        default=None,
        description="Rows created or changed, when meaningful"
    )
