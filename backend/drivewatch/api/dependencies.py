"""
Request-scoped wiring for the access-control HTTP layer.

The caller identity comes from the identity-aware proxy in front of the
service; this layer only reads the header it sets.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Callable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..crud.user import UserRepository
from ..database import get_session, get_session_factory
from ..domain.ports.admin_emails import SettingsAdminEmailSource
from ..services.access import AccessControlService, build_access_control
from ..services.audit import AuditService

logger = logging.getLogger("drivewatch.api")

IDENTITY_HEADER = "X-Goog-Authenticated-User-Email"
IDENTITY_PREFIX = "accounts.google.com:"


async def get_audit_session() -> AsyncGenerator[AsyncSession, None]:
    """Separate session for audit writes so they never share the business transaction."""
    async with get_session_factory()() as session:
        yield session


def get_access_control(
    session: AsyncSession = Depends(get_session),
    audit_session: AsyncSession = Depends(get_audit_session),
) -> AccessControlService:
    return build_access_control(
        user_store=UserRepository(session),
        audit_sink=AuditService.for_session(audit_session),
        admin_email_source=SettingsAdminEmailSource(),
        approved_domains=get_settings().approved_domains,
    )


def get_current_email(
    identity: str | None = Header(default=None, alias=IDENTITY_HEADER),
) -> str:
    if identity is None or not identity.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated user header",
        )
    email = identity.strip()
    if email.startswith(IDENTITY_PREFIX):
        email = email[len(IDENTITY_PREFIX):]
    return email


def require_access(resource: str) -> Callable:
    """
    Enforce an authorization check on a resource key.

    The façade writes the audit event for both outcomes; a denial becomes
    a 403 with the decision's reason.

    Args:
        resource: Resource key such as 'users.list'

    Returns:
        Dependency returning the caller's email when access is granted
    """
    async def dependency(
        email: str = Depends(get_current_email),
        access_control: AccessControlService = Depends(get_access_control),
    ) -> str:
        outcome = await access_control.authorize(email, resource)
        decision = outcome.data
        if decision is None or not decision.authorized:
            reason = decision.reason if decision is not None else outcome.message
            logger.info("access_denied email=%s resource=%s reason=%s", email, resource, reason)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {reason}",
            )
        return email

    return dependency
