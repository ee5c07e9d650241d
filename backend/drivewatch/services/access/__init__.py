from typing import Iterable, Mapping

from ...auth.access_contract import (
    DEFAULT_RESOURCES,
    DEFAULT_ROLES,
    ResourceDefinition,
    RoleDefinition,
)
from ...auth.resources import PermissionCatalog
from ...auth.role_assignment import RoleAssignmentValidator
from ...auth.roles import RoleCatalog
from ...domain.ports.admin_emails import AdminEmailSource
from ...domain.ports.audit_sink import AuditSink
from ...domain.ports.user_store import UserStore
from .access_control_service import AccessControlService
from .user_role_service import UserRoleService


def build_access_control(
    user_store: UserStore,
    audit_sink: AuditSink | None = None,
    admin_email_source: AdminEmailSource | None = None,
    approved_domains: Iterable[str] = (),
    roles: Mapping[str, RoleDefinition] = DEFAULT_ROLES,
    resources: Mapping[str, ResourceDefinition] = DEFAULT_RESOURCES,
) -> AccessControlService:
    """Wire the catalogs, validator, coordinator and façade together."""
    role_catalog = RoleCatalog(admin_email_source, roles=roles)
    permission_catalog = PermissionCatalog(role_catalog, resources=resources)
    user_role_service = UserRoleService(
        user_store=user_store,
        role_catalog=role_catalog,
        permission_catalog=permission_catalog,
        assignment_validator=RoleAssignmentValidator(role_catalog),
        audit_sink=audit_sink,
    )
    return AccessControlService(
        user_role_service=user_role_service,
        role_catalog=role_catalog,
        user_store=user_store,
        audit_sink=audit_sink,
        approved_domains=approved_domains,
    )


__all__ = [
    "AccessControlService",
    "UserRoleService",
    "build_access_control",
]
