from __future__ import annotations

from typing import Protocol


class AuditSink(Protocol):
    """Fire-and-forget audit events.

    Implementations must not raise: a failed audit write is logged by the
    sink and the caller's decision stands.
    """

    async def log_authorization_attempt(
        self, email: str, resource: str, authorized: bool, reason: str = ""
    ) -> None:
        ...

    async def log_role_assignment(
        self,
        assigner_email: str,
        target_email: str,
        previous_role: str | None,
        new_role: str,
        reason: str = "",
    ) -> None:
        ...

    async def log_user_management(
        self, manager_email: str, target_email: str, management_action: str, reason: str = ""
    ) -> None:
        ...
