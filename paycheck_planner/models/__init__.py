"""
Data Models Package

This package contains all Pydantic models used by the planning engine.
All data flowing through the system must conform to these schemas.
"""

from paycheck_planner.models.planning import (
    AllocatedDebt,
    Debt,
    DebtAllocation,
    DebtEntry,
    DismissedWarning,
    Frequency,
    IncomeSource,
    MonthlyDebtInstance,
    OperationResult,
    Paycheck,
    PaycheckAllocation,
    PaycheckProjection,
    PlanningData,
    PlanningWarning,
    WarningSeverity,
    WarningType,
)
from paycheck_planner.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Planning models
    "AllocatedDebt",
    "Debt",
    "DebtAllocation",
    "DebtEntry",
    "DismissedWarning",
    "Frequency",
    "IncomeSource",
    "MonthlyDebtInstance",
    "OperationResult",
    "Paycheck",
    "PaycheckAllocation",
    "PaycheckProjection",
    "PlanningData",
    "PlanningWarning",
    "WarningSeverity",
    "WarningType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
