"""
Role assignment rules.

A single-shot decision: may a user holding ``assigner_role`` give
``target_role`` to ``target_email``? Rules are evaluated in a fixed order and
the first one that decides wins:

1. the assigner role must exist
2. the target role must exist
3. only owners may hand out the owner role
4. an admin-list email may always be given the admin role
5. the assigner needs ``roles.assign``
6. the assigner's level must be at least the target role's level

``can_assign`` and ``can_manage`` are reported whenever both roles exist, even
when an earlier rule already decided.
"""
from __future__ import annotations

import logging

from ..domain.access import RoleAssignmentValidation
from .access_contract import ROLES_ASSIGN, RoleName
from .roles import RoleCatalog

logger = logging.getLogger("drivewatch.access")


class RoleAssignmentValidator:
    def __init__(self, role_catalog: RoleCatalog):
        self._role_catalog = role_catalog

    def validate_role_assignment(
        self,
        assigner_role: str | None,
        target_role: str | None,
        target_email: str | None,
    ) -> RoleAssignmentValidation:
        catalog = self._role_catalog

        if not catalog.role_exists(assigner_role):
            return RoleAssignmentValidation(valid=False, reason="Assigner role does not exist")

        if not catalog.role_exists(target_role):
            return RoleAssignmentValidation(valid=False, reason="Target role does not exist")

        can_manage = catalog.can_manage_role(assigner_role, target_role)
        can_assign = catalog.role_has_permission(assigner_role, ROLES_ASSIGN)

        def decide(valid: bool, reason: str) -> RoleAssignmentValidation:
            return RoleAssignmentValidation(
                valid=valid, reason=reason, can_assign=can_assign, can_manage=can_manage
            )

        if target_role == RoleName.OWNER.value and assigner_role != RoleName.OWNER.value:
            logger.info(
                "role_assignment_owner_blocked assigner_role=%s target_email=%s",
                assigner_role,
                target_email,
            )
            return decide(False, "Only owners can assign owner role")

        if target_role == RoleName.ADMIN.value and catalog.is_admin_email(target_email):
            return decide(True, "Admin email automatically gets admin role")

        if not can_assign:
            return decide(False, "Insufficient permissions to assign roles")

        # can_manage is non-strict, so this only fires for a strictly higher target
        if not can_manage:
            return decide(False, "Cannot manage role of equal or higher level")

        return decide(True, "Role assignment is valid")
