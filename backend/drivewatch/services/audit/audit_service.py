import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...crud.audit_log import AuditLogRepository

logger = logging.getLogger("drivewatch.audit")

AUDIT_ACTIONS = frozenset(
    {
        "authorization_attempt",
        "role_assignment",
        "user_management",
    }
)


class AuditService:
    """Writes access-control events to the audit_logs table.

    Implements the audit sink used by the access services. Every public
    ``log_*`` method is best-effort: a failed write is logged and dropped,
    so an authorization decision or a stored role change is never undone by
    the audit trail.
    """

    def __init__(self, repository: AuditLogRepository):
        self.audit_repo = repository

    @classmethod
    def for_session(cls, session: AsyncSession) -> "AuditService":
        return cls(AuditLogRepository(session))

    def _validate_action(self, action: str) -> None:
        """
        Reject actions outside the known audit vocabulary.

        Raises:
            ValueError: If action is unknown
        """
        if action not in AUDIT_ACTIONS:
            raise ValueError(
                f"Invalid audit action '{action}'. "
                f"Must be one of: {', '.join(sorted(AUDIT_ACTIONS))}"
            )

    async def log(
        self,
        action: str,
        actor_email: str,
        entity_type: str,
        entity_id: str,
        result: str,
        details: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> None:
        """Record one audit event.

        Args:
            action: One of AUDIT_ACTIONS
            actor_email: The user performing the action
            entity_type: The kind of thing acted on (e.g. 'resource', 'user')
            entity_id: Resource key or target email
            result: 'success', 'denied' or 'failure'
            details: Extra structured data for the event
            reason: Free-text reason shown in the audit trail

        Raises:
            ValueError: If action is unknown. Repository errors are not raised.
        """
        self._validate_action(action)

        try:
            await self.audit_repo.create(
                actor_email=actor_email,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                result=result,
                details=details,
                reason=reason or None,
            )
        except Exception:
            logger.exception(
                "audit_write_failed action=%s actor=%s entity=%s",
                action,
                actor_email,
                entity_id,
            )

    async def log_authorization_attempt(
        self, email: str, resource: str, authorized: bool, reason: str = ""
    ) -> None:
        await self.log(
            action="authorization_attempt",
            actor_email=email,
            entity_type="resource",
            entity_id=resource,
            result="success" if authorized else "denied",
            details={"resource": resource, "authorized": authorized},
            reason=reason,
        )

    async def log_role_assignment(
        self,
        assigner_email: str,
        target_email: str,
        previous_role: str | None,
        new_role: str,
        reason: str = "",
    ) -> None:
        await self.log(
            action="role_assignment",
            actor_email=assigner_email,
            entity_type="user",
            entity_id=target_email,
            result="success",
            details={"previous_role": previous_role, "new_role": new_role},
            reason=reason,
        )

    async def log_user_management(
        self,
        manager_email: str,
        target_email: str,
        management_action: str,
        reason: str = "",
    ) -> None:
        await self.log(
            action="user_management",
            actor_email=manager_email,
            entity_type="user",
            entity_id=target_email,
            result="success",
            details={"action": management_action},
            reason=reason,
        )
