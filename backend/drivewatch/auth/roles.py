"""
Role catalog - role lookups, hierarchy comparisons and admin-email policy.

The catalog is read-only after construction and safe to share between
concurrent callers. The admin-email list is read from its source on every
call, so an explicit configuration refresh takes effect on the next call.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ..domain.ports.admin_emails import AdminEmailSource, StaticAdminEmailSource
from .access_contract import DEFAULT_ROLES, RoleDefinition, RoleName, validate_role_catalog

logger = logging.getLogger("drivewatch.access")


def normalize_admin_emails(raw: Iterable[str] | str | None) -> tuple[str, ...]:
    """Accept a comma-separated string or an iterable; trim and drop blanks."""
    if raw is None:
        return ()
    items = raw.split(",") if isinstance(raw, str) else raw
    return tuple(item.strip() for item in items if isinstance(item, str) and item.strip())


class RoleCatalog:
    def __init__(
        self,
        admin_email_source: AdminEmailSource | None = None,
        roles: Mapping[str, RoleDefinition] = DEFAULT_ROLES,
    ):
        validate_role_catalog(roles)
        self._roles: dict[str, RoleDefinition] = dict(roles)
        self._admin_email_source = admin_email_source or StaticAdminEmailSource()
        logger.debug("role_catalog_initialized roles=%s", ",".join(self._roles))

    def get_roles(self) -> dict[str, RoleDefinition]:
        return dict(self._roles)

    def get_role(self, role_id: str | None) -> RoleDefinition | None:
        if role_id is None:
            return None
        return self._roles.get(role_id)

    def role_exists(self, role_id: str | None) -> bool:
        return role_id is not None and role_id in self._roles

    def get_role_permissions(self, role_id: str | None) -> frozenset[str]:
        # Unknown roles have no permissions; that is the deny state, not an error
        role = self.get_role(role_id)
        return role.permission_set if role else frozenset()

    def role_has_permission(self, role_id: str | None, permission: str) -> bool:
        return permission in self.get_role_permissions(role_id)

    def get_role_level(self, role_id: str | None) -> int:
        role = self.get_role(role_id)
        return role.level if role else 0

    def can_manage_role(self, manager_role: str | None, target_role: str | None) -> bool:
        """True when the manager's level is at least the target's.

        The comparison is non-strict: a role can manage its own level.
        """
        return self.get_role_level(manager_role) >= self.get_role_level(target_role)

    def get_role_hierarchy(self) -> list[RoleDefinition]:
        return sorted(self._roles.values(), key=lambda role: role.level, reverse=True)

    def get_admin_emails(self) -> tuple[str, ...]:
        try:
            return normalize_admin_emails(self._admin_email_source.get_admin_emails())
        except Exception:
            # Advisory lookup: a broken source means nobody is an admin by email
            logger.exception("admin_emails_unavailable")
            return ()

    def is_admin_email(self, email: str | None) -> bool:
        if not email:
            return False
        return email in self.get_admin_emails()

    def determine_initial_role(self, email: str, context: Mapping[str, Any] | None = None) -> str:
        """
        Pick the role for a newly registered user.

        Admin-list emails become admins, users arriving from an approved SSO
        domain become standard users, everybody else starts as a guest.
        """
        context = context or {}
        if self.is_admin_email(email):
            return RoleName.ADMIN.value
        if context.get("domain") and context.get("is_approved_domain"):
            return RoleName.USER.value
        return RoleName.GUEST.value
