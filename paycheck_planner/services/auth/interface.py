"""
Authorization Interface

Session resolution and account membership live outside the planning
engine. The engine only consumes this interface.

CRITICAL: Every public operation calls require_member() before it touches
storage. Authentication comes first, membership second.
"""

from abc import ABC, abstractmethod


class AuthorizationInterface(ABC):
    """Who is calling, and may they touch this budget account?"""

    @abstractmethod
    async def get_authenticated_user_id(self) -> str:
        """
        Resolve the calling user.

        Returns:
            The authenticated user's ID

        Raises:
            NotAuthenticatedError: If there is no valid session
        """
        pass

    @abstractmethod
    async def is_member(self, budget_account_id: str, user_id: str) -> bool:
        """
        Check budget account membership.

        Args:
            budget_account_id: The account being accessed
            user_id: The authenticated user

        Returns:
            True if the user belongs to the account
        """
        pass

    @abstractmethod
    async def list_member_ids(self, budget_account_id: str) -> list[str]:
        """IDs of every member of a budget account."""
        pass


async def require_member(
    authorization: AuthorizationInterface,
    budget_account_id: str,
) -> str:
    """
    Authenticate, then authorize.

    Returns:
        The authenticated user's ID

    Raises:
        NotAuthenticatedError: If there is no valid session
        AccessDeniedError: If the user is not a member of the account
    """
    user_id = await authorization.get_authenticated_user_id()
    if not await authorization.is_member(budget_account_id, user_id):
        raise AccessDeniedError(
            f"User {user_id} is not a member of budget account {budget_account_id}",
            user_id=user_id,
        )
    return user_id


class AuthorizationError(Exception):
    """Base exception for authorization failures."""
    pass


class NotAuthenticatedError(AuthorizationError):
    """No valid session."""
    pass


class AccessDeniedError(AuthorizationError):
    """Authenticated, but not a member of the target account."""

    def __init__(self, message: str, user_id: str):
        super().__init__(message)
        self.user_id = user_id
