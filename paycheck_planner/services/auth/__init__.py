"""Authorization services package."""

from paycheck_planner.services.auth.interface import (
    AccessDeniedError,
    AuthorizationError,
    AuthorizationInterface,
    NotAuthenticatedError,
    require_member,
)
from paycheck_planner.services.auth.memory import StaticAuthorization

__all__ = [
    "AccessDeniedError",
    "AuthorizationError",
    "AuthorizationInterface",
    "NotAuthenticatedError",
    "StaticAuthorization",
    "require_member",
]
