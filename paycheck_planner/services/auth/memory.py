"""
Static Authorization

In-process authorization for local runs and tests: the calling user and
the account memberships are fixed at construction time.
"""

from typing import Optional

from paycheck_planner.services.auth.interface import (
    AuthorizationInterface,
    NotAuthenticatedError,
)


class StaticAuthorization(AuthorizationInterface):
    """
    Authorization with a fixed session.

    Usage:
        auth = StaticAuthorization("user-1", {"acct-1": ["user-1", "user-2"]})
        auth.sign_out()  # subsequent calls raise NotAuthenticatedError
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        memberships: Optional[dict[str, list[str]]] = None,
    ):
        self._user_id = user_id
        self._memberships: dict[str, list[str]] = {
            account_id: list(members)
            for account_id, members in (memberships or {}).items()
        }

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None

    def add_member(self, budget_account_id: str, user_id: str) -> None:
        members = self._memberships.setdefault(budget_account_id, [])
        if user_id not in members:
            members.append(user_id)

    async def get_authenticated_user_id(self) -> str:
        if not self._user_id:
            raise NotAuthenticatedError("No authenticated user")
        return self._user_id

    async def is_member(self, budget_account_id: str, user_id: str) -> bool:
        return user_id in self._memberships.get(budget_account_id, [])

    async def list_member_ids(self, budget_account_id: str) -> list[str]:
        return list(self._memberships.get(budget_account_id, []))
