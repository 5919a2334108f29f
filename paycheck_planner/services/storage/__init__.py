"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Ships an in-memory backend and a Google Sheets backend, both swappable.
"""

from paycheck_planner.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DebtAllocationStorageInterface,
    DebtStorageInterface,
    DismissedWarningStorageInterface,
    DuplicateError,
    IncomeSourceStorageInterface,
    MonthlyDebtInstanceStorageInterface,
    NotFoundError,
    PlanningStorageInterface,
    StorageError,
)
from paycheck_planner.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPlanningStorage,
)
from paycheck_planner.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlanningStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DebtAllocationStorageInterface",
    "DebtStorageInterface",
    "DismissedWarningStorageInterface",
    "IncomeSourceStorageInterface",
    "MonthlyDebtInstanceStorageInterface",
    "PlanningStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPlanningStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPlanningStorage",
]
