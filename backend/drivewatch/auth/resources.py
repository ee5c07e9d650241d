"""
Permission catalog - resource requirements and authorization decisions.

Every resource requires exactly one permission and is looked up by exact key
match; there are no wildcards. Decisions depend only on the role's permission
set from the role catalog, so identical inputs always give identical results.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping

from ..domain.access import AccessContext, AuthorizationResult
from .access_contract import (
    DEFAULT_RESOURCES,
    USERS_MANAGE,
    ResourceDefinition,
    resource_key,
    validate_resource_catalog,
)
from .roles import RoleCatalog

logger = logging.getLogger("drivewatch.access")

PROFILE_PREFIX = "profile."


class PermissionCatalog:
    def __init__(
        self,
        role_catalog: RoleCatalog | None,
        resources: Mapping[str, ResourceDefinition] = DEFAULT_RESOURCES,
    ):
        validate_resource_catalog(resources)
        self._role_catalog = role_catalog
        self._resources: dict[str, ResourceDefinition] = dict(resources)
        logger.debug("permission_catalog_initialized resources=%d", len(self._resources))

    def get_all_resources(self) -> dict[str, ResourceDefinition]:
        return dict(self._resources)

    def resource_exists(self, resource: str) -> bool:
        return resource in self._resources

    def get_resource_requirements(self, resource: str) -> ResourceDefinition | None:
        return self._resources.get(resource)

    def check_permission(self, role_id: str | None, resource: str) -> AuthorizationResult:
        definition = self._resources.get(resource)
        if definition is None:
            return AuthorizationResult.deny("Resource not found")

        if self._role_catalog is None:
            return AuthorizationResult.deny(
                "RoleManager not available", required_permission=definition.permission
            )

        user_permissions = self._role_catalog.get_role_permissions(role_id)
        if definition.permission in user_permissions:
            return AuthorizationResult(
                authorized=True,
                reason="Permission granted",
                required_permission=definition.permission,
                user_permissions=user_permissions,
            )
        return AuthorizationResult.deny(
            f"Missing required permission: {definition.permission}",
            required_permission=definition.permission,
            user_permissions=user_permissions,
        )

    def is_authorized(self, role_id: str | None, action: str, resource: str) -> bool:
        try:
            key = resource_key(resource, action)
        except ValueError:
            return False
        return self.check_permission(role_id, key).authorized

    def get_accessible_resources(self, role_id: str | None) -> list[dict[str, str]]:
        if self._role_catalog is None:
            return []
        user_permissions = self._role_catalog.get_role_permissions(role_id)
        return [
            {
                "resource": definition.resource,
                "permission": definition.permission,
                "description": definition.description,
            }
            for definition in self._resources.values()
            if definition.permission in user_permissions
        ]

    def get_resources_by_permission(self, permission: str) -> list[dict[str, str]]:
        return [
            {"resource": definition.resource, "description": definition.description}
            for definition in self._resources.values()
            if definition.permission == permission
        ]

    def validate_access(
        self,
        role_id: str | None,
        resource: str,
        context: AccessContext | dict[str, Any] | None = None,
    ) -> AuthorizationResult:
        """
        Permission check plus contextual overlays.

        Overlays only run on an already-authorized decision and never turn a
        denial into a grant:

        1. Profile resources: touching your own profile keeps the grant; touching
           somebody else's requires ``users.manage`` as well.
        2. Admin-list emails get ``admin_privilege`` set and the reason annotated.
        """
        ctx = AccessContext.from_mapping(context)
        result = self.check_permission(role_id, resource)
        if not result.authorized:
            return result

        if resource.startswith(PROFILE_PREFIX) and ctx.user_email and ctx.target_email:
            if ctx.user_email == ctx.target_email:
                result = dataclasses.replace(result, reason="Accessing own profile - allowed")
            elif not self._role_catalog.role_has_permission(role_id, USERS_MANAGE):
                result = dataclasses.replace(
                    result, authorized=False, reason="Cannot access other user profiles"
                )

        if (
            result.authorized
            and ctx.user_email
            and self._role_catalog is not None
            and self._role_catalog.is_admin_email(ctx.user_email)
        ):
            result = dataclasses.replace(
                result, admin_privilege=True, reason="Admin email privilege granted"
            )

        return result

