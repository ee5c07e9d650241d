"""
Access-control contract - the role and resource catalogs.

This module is the single source of truth for:
- which roles exist, their display metadata, permissions and hierarchy level
- which resources exist and the one permission each of them requires
- the ``<domain>.<action>`` resource key convention

The catalogs are immutable and validated at import time (fail-fast). Alternate
catalogs passed to ``RoleCatalog``/``PermissionCatalog`` go through the same
validation at construction.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Final, Mapping


class CatalogError(ValueError):
    """Raised when a role or resource catalog violates the contract."""


# ============================================================================
# ROLES
# ============================================================================

class RoleName(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


# Permission that lets a role hand out roles at all
ROLES_ASSIGN: Final[str] = "roles.assign"
# Permission that lets a role look at and manage other users
USERS_MANAGE: Final[str] = "users.manage"


@dataclass(frozen=True)
class RoleDefinition:
    role_id: str
    name: str
    description: str
    permissions: tuple[str, ...]
    level: int

    @property
    def permission_set(self) -> frozenset[str]:
        return frozenset(self.permissions)


_ADMIN_PERMISSIONS: Final[tuple[str, ...]] = (
    "users.manage",
    "users.create",
    "users.update",
    "users.suspend",
    "users.activate",
    "config.manage",
    "config.update",
    "config.reset",
    "triggers.manage",
    "triggers.create",
    "triggers.update",
    "notifications.send",
    "notifications.manage",
    "audit.view",
    "roles.assign",
)

_OWNER_PERMISSIONS: Final[tuple[str, ...]] = (
    "system.manage",
    "users.manage",
    "users.create",
    "users.update",
    "users.delete",
    "users.suspend",
    "users.activate",
    "config.manage",
    "config.update",
    "config.reset",
    "triggers.manage",
    "triggers.create",
    "triggers.update",
    "triggers.delete",
    "notifications.send",
    "notifications.manage",
    "audit.view",
    "audit.export",
    "roles.manage",
    "roles.assign",
)

DEFAULT_ROLES: Final[Mapping[str, RoleDefinition]] = MappingProxyType({
    RoleName.OWNER.value: RoleDefinition(
        role_id=RoleName.OWNER.value,
        name="Owner",
        description="Full system control and management",
        permissions=_OWNER_PERMISSIONS,
        level=4,
    ),
    RoleName.ADMIN.value: RoleDefinition(
        role_id=RoleName.ADMIN.value,
        name="Administrator",
        description="Administrative access to manage users and configuration",
        permissions=_ADMIN_PERMISSIONS,
        level=3,
    ),
    RoleName.USER.value: RoleDefinition(
        role_id=RoleName.USER.value,
        name="User",
        description="Standard user with basic operational access",
        permissions=(
            "notifications.send",
            "profile.view",
            "profile.update",
            "dashboard.view",
            "help.access",
        ),
        level=2,
    ),
    RoleName.GUEST.value: RoleDefinition(
        role_id=RoleName.GUEST.value,
        name="Guest",
        description="Limited read-only access",
        permissions=(
            "dashboard.view",
            "help.access",
        ),
        level=1,
    ),
})


# ============================================================================
# RESOURCES
# ============================================================================

@dataclass(frozen=True)
class ResourceDefinition:
    resource: str
    permission: str
    description: str


_KEY_PART = re.compile(r"^[a-z][a-z0-9_]*$")


def parse_resource_key(key: str) -> tuple[str, str]:
    """
    Split a ``<domain>.<action>`` resource key.

    Raises:
        ValueError: If the key is not exactly two lowercase identifier parts
    """
    if not isinstance(key, str) or not key:
        raise ValueError("Resource key must be a non-empty string")
    parts = key.split(".")
    if len(parts) != 2:
        raise ValueError(f"Resource key '{key}' must have the form '<domain>.<action>'")
    domain, action = parts
    for part in parts:
        if not _KEY_PART.match(part):
            raise ValueError(f"Resource key '{key}' has an invalid part '{part}'")
    return domain, action


def resource_key(domain: str, action: str) -> str:
    """Build a resource key from its parts, validating the result."""
    key = f"{domain}.{action}"
    parse_resource_key(key)
    return key


def _resource(key: str, permission: str, description: str) -> tuple[str, ResourceDefinition]:
    return key, ResourceDefinition(resource=key, permission=permission, description=description)


# Definition order is significant: accessible-resource listings follow it.
DEFAULT_RESOURCES: Final[Mapping[str, ResourceDefinition]] = MappingProxyType(dict([
    # User management
    _resource("users.list", "users.manage", "List all users"),
    _resource("users.create", "users.create", "Create new users"),
    _resource("users.update", "users.update", "Update user information"),
    _resource("users.delete", "users.delete", "Delete users"),
    _resource("users.suspend", "users.suspend", "Suspend user accounts"),
    _resource("users.activate", "users.activate", "Activate user accounts"),
    # Configuration management
    _resource("config.view", "config.manage", "View system configuration"),
    _resource("config.update", "config.update", "Update system configuration"),
    _resource("config.reset", "config.reset", "Reset configuration to defaults"),
    # Trigger management
    _resource("triggers.list", "triggers.manage", "List all triggers"),
    _resource("triggers.create", "triggers.create", "Create new triggers"),
    _resource("triggers.update", "triggers.update", "Update existing triggers"),
    _resource("triggers.delete", "triggers.delete", "Delete triggers"),
    # Notification management
    _resource("notifications.send", "notifications.send", "Send notifications"),
    _resource("notifications.manage", "notifications.manage", "Manage notification settings"),
    # Audit and logging
    _resource("audit.view", "audit.view", "View audit logs"),
    _resource("audit.export", "audit.export", "Export audit logs"),
    # Role management
    _resource("roles.assign", "roles.assign", "Assign roles to users"),
    _resource("roles.manage", "roles.manage", "Manage role definitions"),
    # System management
    _resource("system.manage", "system.manage", "Full system management"),
    # User profile
    _resource("profile.view", "profile.view", "View own profile"),
    _resource("profile.update", "profile.update", "Update own profile"),
    # Dashboard and help
    _resource("dashboard.view", "dashboard.view", "View dashboard"),
    _resource("help.access", "help.access", "Access help documentation"),
]))


# ============================================================================
# CONTRACT VALIDATION - FAIL-FAST
# ============================================================================

def validate_permission_token(permission: str) -> None:
    """
    Permissions are explicit tokens. Wildcards are never allowed.

    Raises:
        CatalogError: If the permission is empty or contains a wildcard
    """
    if not isinstance(permission, str) or not permission.strip():
        raise CatalogError("Permission must be a non-empty string")
    if "*" in permission:
        raise CatalogError(f"Wildcard permission '{permission}' is not allowed")


def validate_role_catalog(roles: Mapping[str, RoleDefinition]) -> None:
    """
    Check role catalog invariants.

    - every key maps to a definition carrying the same role id
    - levels are positive and unique, so the hierarchy is a total order
    - permissions are explicit tokens

    Raises:
        CatalogError: Listing every violation found
    """
    errors: list[str] = []
    if not roles:
        errors.append("Role catalog is empty")

    seen_levels: dict[int, str] = {}
    for role_id, definition in roles.items():
        if definition.role_id != role_id:
            errors.append(f"Role key '{role_id}' does not match definition id '{definition.role_id}'")
        if definition.level <= 0:
            errors.append(f"Role '{role_id}' must have a level greater than 0")
        elif definition.level in seen_levels:
            errors.append(
                f"Roles '{seen_levels[definition.level]}' and '{role_id}' share level {definition.level}"
            )
        else:
            seen_levels[definition.level] = role_id
        for permission in definition.permissions:
            try:
                validate_permission_token(permission)
            except CatalogError as exc:
                errors.append(f"Role '{role_id}': {exc}")

    if errors:
        raise CatalogError(
            "Role catalog validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


def validate_resource_catalog(resources: Mapping[str, ResourceDefinition]) -> None:
    """
    Check resource catalog invariants.

    - every key is a well-formed ``<domain>.<action>`` key
    - every key maps to a definition carrying the same key
    - every resource requires exactly one explicit permission

    Raises:
        CatalogError: Listing every violation found
    """
    errors: list[str] = []
    for key, definition in resources.items():
        try:
            parse_resource_key(key)
        except ValueError as exc:
            errors.append(str(exc))
        if definition.resource != key:
            errors.append(f"Resource key '{key}' does not match definition '{definition.resource}'")
        try:
            validate_permission_token(definition.permission)
        except CatalogError as exc:
            errors.append(f"Resource '{key}': {exc}")

    if errors:
        raise CatalogError(
            "Resource catalog validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


validate_role_catalog(DEFAULT_ROLES)
validate_resource_catalog(DEFAULT_RESOURCES)
