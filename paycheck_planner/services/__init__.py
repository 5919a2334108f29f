"""Services package."""

from paycheck_planner.services.auth import (
    AccessDeniedError,
    AuthorizationError,
    AuthorizationInterface,
    NotAuthenticatedError,
    StaticAuthorization,
    require_member,
)
from paycheck_planner.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsPlanningStorage,
    InMemoryAuditStorage,
    InMemoryPlanningStorage,
    NotFoundError,
    PlanningStorageInterface,
    StorageError,
)

__all__ = [
    # Authorization
    "AccessDeniedError",
    "AuthorizationError",
    "AuthorizationInterface",
    "NotAuthenticatedError",
    "StaticAuthorization",
    "require_member",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsPlanningStorage",
    "InMemoryAuditStorage",
    "InMemoryPlanningStorage",
    "NotFoundError",
    "PlanningStorageInterface",
    "StorageError",
]
