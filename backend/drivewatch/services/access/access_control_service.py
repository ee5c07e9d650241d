import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from ...auth.access_contract import USERS_MANAGE, RoleName, resource_key
from ...auth.roles import RoleCatalog
from ...domain.access import AccessContext
from ...domain.ports.audit_sink import AuditSink
from ...domain.ports.user_store import UserStore
from ...errors import (
    AppError,
    MisconfigurationError,
    NotFoundError,
    PermissionError,
    StoreError,
    ValidationError,
)
from ...schemas.access import (
    AuthorizationDecision,
    Result,
    RoleAssignmentOutcome,
    RoleChangeValidation,
    RoleHierarchy,
    RoleInfo,
    SystemAccessSummary,
    UserListing,
    UserManagementCheck,
    UserRoleInfo,
    UsersByRole,
    UserStatusChange,
    UserSummary,
)
from .user_role_service import ACTIVE_STATUS, INACTIVE_REASON, UserRoleService

PENDING_STATUS = "pending"
SUSPENDED_STATUS = "suspended"

logger = logging.getLogger("drivewatch.access")


class AccessControlService:
    """Single entry point for access-control questions.

    All components are passed in explicitly; see ``build_access_control`` for
    the standard wiring. Authorization audit events are written here and only
    here.
    """

    def __init__(
        self,
        user_role_service: UserRoleService,
        role_catalog: RoleCatalog,
        user_store: UserStore,
        audit_sink: AuditSink | None = None,
        approved_domains: Iterable[str] = (),
    ):
        if user_role_service is None:
            raise MisconfigurationError("AccessControlService requires a user role service")
        if role_catalog is None:
            raise MisconfigurationError("AccessControlService requires a role catalog")
        if user_store is None:
            raise MisconfigurationError("AccessControlService requires a user store")

        self.user_role_service = user_role_service
        self.role_catalog = role_catalog
        self.user_store = user_store
        self.audit_sink = audit_sink
        self.approved_domains = frozenset(domain.strip().lower() for domain in approved_domains if domain.strip())

    def describe_components(self) -> dict[str, bool]:
        return {
            "role_catalog": self.role_catalog is not None,
            "permission_catalog": self.user_role_service.permission_catalog is not None,
            "user_role_service": self.user_role_service is not None,
            "user_store": self.user_store is not None,
            "audit_sink": self.audit_sink is not None,
        }

    async def authorize(
        self,
        email: str,
        resource: str,
        context: AccessContext | dict[str, Any] | None = None,
    ) -> Result[AuthorizationDecision]:
        """Decide whether ``email`` may access ``resource`` and audit the attempt.

        The audit event is written for grants and denials alike. The returned
        result always carries a decision; ``success`` is False only when the
        decision could not be computed (unknown user, store failure).
        """
        ctx = AccessContext.from_mapping(context)
        logger.debug("authorization_requested email=%s resource=%s", email, resource)

        result = await self.user_role_service.check_user_access(email, resource, ctx)
        await self._audit_authorization(email, resource, result.authorized, result.reason)

        decision = AuthorizationDecision(
            authorized=result.authorized,
            reason=result.reason,
            user_role=result.user_role,
            resource=resource,
            required_permission=result.required_permission,
            admin_privilege=result.admin_privilege,
            context=ctx.with_user_email(email).as_dict(),
        )
        if not result.authorized:
            logger.info(
                "authorization_denied email=%s resource=%s reason=%s",
                email,
                resource,
                result.reason,
            )
        if result.error is not None:
            code = NotFoundError.code if result.error == "User not found" else StoreError.code
            return Result.fail(result.error, code=code, data=decision)
        return Result.ok(decision)

    async def _audit_authorization(
        self, email: str, resource: str, authorized: bool, reason: str
    ) -> None:
        if self.audit_sink is None:
            return
        try:
            await self.audit_sink.log_authorization_attempt(email, resource, authorized, reason)
        except Exception:
            logger.exception("authorization_audit_failed email=%s resource=%s", email, resource)

    async def can_perform_action(
        self,
        email: str,
        action: str,
        resource: str,
        context: AccessContext | dict[str, Any] | None = None,
    ) -> Result[AuthorizationDecision]:
        try:
            key = resource_key(resource, action)
        except ValueError as exc:
            reason = f"Invalid resource key: {exc}"
            decision = AuthorizationDecision(
                authorized=False,
                reason=reason,
                resource=f"{resource}.{action}",
                context=AccessContext.from_mapping(context).with_user_email(email).as_dict(),
            )
            return Result.fail(reason, code=ValidationError.code, data=decision)
        return await self.authorize(email, key, context)

    async def get_user_accessible_resources(self, email: str) -> Result[UserRoleInfo]:
        return await self.user_role_service.get_user_role_info(email)

    async def assign_role(
        self, assigner_email: str, target_email: str, new_role: str, reason: str = ""
    ) -> Result[RoleAssignmentOutcome]:
        return await self.user_role_service.assign_role(assigner_email, target_email, new_role, reason)

    async def promote_user(
        self, promoter_email: str, target_email: str, new_role: str, reason: str = ""
    ) -> Result[RoleAssignmentOutcome]:
        return await self.user_role_service.promote_user(promoter_email, target_email, new_role, reason)

    async def demote_user(
        self, demoter_email: str, target_email: str, new_role: str, reason: str = ""
    ) -> Result[RoleAssignmentOutcome]:
        return await self.user_role_service.demote_user(demoter_email, target_email, new_role, reason)

    async def get_users_with_roles(self, requester_email: str) -> Result[UserListing]:
        return await self.user_role_service.get_users_with_roles(requester_email)

    def get_role_hierarchy(self) -> Result[RoleHierarchy]:
        return self.user_role_service.get_role_hierarchy()

    async def get_users_by_role(self, role: str, requester_email: str) -> Result[UsersByRole]:
        return await self.user_role_service.get_users_by_role(role, requester_email)

    async def validate_role_change(
        self, requester_email: str, target_email: str, new_role: str
    ) -> Result[RoleChangeValidation]:
        return await self.user_role_service.validate_role_change(requester_email, target_email, new_role)

    async def is_admin(self, email: str) -> bool:
        """Stored admin/owner role, or membership in the admin-email list.

        The list check does not depend on the stored role.
        """
        try:
            user = await self.user_store.get_user_by_email(email)
        except Exception:
            logger.exception("admin_check_failed email=%s", email)
            return False
        if user is None:
            return False
        return (
            user.role in (RoleName.ADMIN.value, RoleName.OWNER.value)
            or self.role_catalog.is_admin_email(email)
        )

    async def is_owner(self, email: str) -> bool:
        try:
            user = await self.user_store.get_user_by_email(email)
        except Exception:
            logger.exception("owner_check_failed email=%s", email)
            return False
        return user is not None and user.role == RoleName.OWNER.value

    async def get_user_role_level(self, email: str) -> int:
        try:
            user = await self.user_store.get_user_by_email(email)
        except Exception:
            logger.exception("role_level_lookup_failed email=%s", email)
            return 0
        if user is None:
            return 0
        return self.role_catalog.get_role_level(user.role)

    async def can_manage_user(self, manager_email: str, target_email: str) -> Result[UserManagementCheck]:
        try:
            manager = await self.user_store.get_user_by_email(manager_email)
            if target_email == manager_email:
                target = manager
            else:
                target = await self.user_store.get_user_by_email(target_email)
        except Exception as exc:
            logger.exception("manage_check_failed manager=%s target=%s", manager_email, target_email)
            return Result.fail(str(exc), code=StoreError.code)

        if manager is None or target is None:
            return Result.fail("User not found", code=NotFoundError.code)
        if manager.status != ACTIVE_STATUS:
            return Result.fail(INACTIVE_REASON, code=PermissionError.code)

        # Both the hierarchy and the users.manage permission are required
        allowed = self.role_catalog.can_manage_role(
            manager.role, target.role
        ) and self.role_catalog.role_has_permission(manager.role, USERS_MANAGE)

        return Result.ok(
            UserManagementCheck(
                can_manage=allowed,
                reason="Can manage user" if allowed else "Insufficient permissions",
                manager_role=manager.role,
                target_role=target.role,
                manager_level=self.role_catalog.get_role_level(manager.role),
                target_level=self.role_catalog.get_role_level(target.role),
            )
        )

    async def get_system_access_summary(self, requester_email: str) -> Result[SystemAccessSummary]:
        access = await self.authorize(requester_email, "system.manage")
        if access.data is None or not access.data.authorized:
            return Result.fail(
                "Insufficient permissions to view system summary", code=PermissionError.code
            )

        try:
            users = list(await self.user_store.get_all_users())
        except Exception as exc:
            logger.exception("system_summary_failed requester=%s", requester_email)
            return Result.fail(str(exc), code=StoreError.code)

        hierarchy = self.role_catalog.get_role_hierarchy()
        users_by_role = {
            role.role_id: sum(1 for user in users if user.role == role.role_id)
            for role in hierarchy
        }
        return Result.ok(
            SystemAccessSummary(
                total_users=len(users),
                users_by_role=users_by_role,
                role_hierarchy=[RoleInfo.from_definition(role) for role in hierarchy],
                admin_emails=list(self.role_catalog.get_admin_emails()),
                total_roles=len(hierarchy),
            )
        )

    def determine_initial_role(self, email: str) -> str:
        """Initial role for a newly registered email, using the approved-domain list."""
        domain = email.rpartition("@")[2].strip().lower() if "@" in email else ""
        context = {
            "domain": domain or None,
            "is_approved_domain": bool(domain) and domain in self.approved_domains,
        }
        return self.role_catalog.determine_initial_role(email, context)

    async def ensure_user(self, email: str) -> Result[UserSummary]:
        """Return the stored user for ``email``, creating the record on first sight.

        New users get their role from ``determine_initial_role``. Users who
        start above guest (admin-list emails, approved domains) are active at
        once; everybody else waits as ``pending`` until an admin activates them.
        Known users only get ``last_login`` refreshed.
        """
        try:
            user = await self.user_store.get_user_by_email(email)
            now = datetime.now(timezone.utc)
            if user is not None:
                user = await self.user_store.update_user(email, {"last_login": now})
                return Result.ok(self.user_role_service.summarize_user(user))

            role = self.determine_initial_role(email)
            status = ACTIVE_STATUS if role != RoleName.GUEST.value else PENDING_STATUS
            user = await self.user_store.create_user(
                email=email,
                role=role,
                status=status,
                name=email.partition("@")[0] or None,
                source="sso",
            )
            logger.info("user_provisioned email=%s role=%s status=%s", email, role, status)
            return Result.ok(
                self.user_role_service.summarize_user(user),
                message=f"User {email} registered as {role}",
            )
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("ensure_user_failed email=%s", email)
            return Result.fail(str(exc), code=StoreError.code)

    async def activate_user(
        self, manager_email: str, target_email: str, reason: str = ""
    ) -> Result[UserStatusChange]:
        return await self._change_user_status(
            manager_email, target_email, ACTIVE_STATUS, "activate", reason
        )

    async def suspend_user(
        self, manager_email: str, target_email: str, reason: str = ""
    ) -> Result[UserStatusChange]:
        return await self._change_user_status(
            manager_email, target_email, SUSPENDED_STATUS, "suspend", reason
        )

    async def _change_user_status(
        self,
        manager_email: str,
        target_email: str,
        new_status: str,
        management_action: str,
        reason: str,
    ) -> Result[UserStatusChange]:
        if target_email == manager_email:
            return Result.fail("Cannot change your own account status", code=PermissionError.code)

        access = await self.authorize(manager_email, f"users.{management_action}")
        if access.data is None or not access.data.authorized:
            if not access.success:
                return Result.fail(access.message or "User not found", code=access.code)
            return Result.fail(
                f"Access denied: {access.data.reason}", code=PermissionError.code
            )

        management = await self.can_manage_user(manager_email, target_email)
        if not management.success:
            return Result.fail(management.message or "User not found", code=management.code)
        if not management.data.can_manage:
            return Result.fail(
                f"Cannot manage user: {management.data.reason}", code=PermissionError.code
            )

        try:
            target = await self.user_store.get_user_by_email(target_email)
            if target is None:
                return Result.fail("User not found", code=NotFoundError.code)
            previous_status = target.status
            updated = await self.user_store.update_user(
                target_email,
                {
                    "status": new_status,
                    "updated_at": datetime.now(timezone.utc),
                    "updated_by": manager_email,
                },
            )
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("user_status_change_failed manager=%s target=%s", manager_email, target_email)
            return Result.fail(str(exc), code=StoreError.code)

        await self._audit_user_management(manager_email, target_email, management_action, reason)
        logger.info(
            "user_status_changed manager=%s target=%s previous=%s new=%s",
            manager_email,
            target_email,
            previous_status,
            new_status,
        )
        return Result.ok(
            UserStatusChange(
                previous_status=previous_status,
                new_status=new_status,
                user=self.user_role_service.summarize_user(updated),
            ),
            message=f"User {target_email} is now {new_status}",
        )

    async def _audit_user_management(
        self, manager_email: str, target_email: str, action: str, reason: str
    ) -> None:
        if self.audit_sink is None:
            return
        try:
            await self.audit_sink.log_user_management(manager_email, target_email, action, reason)
        except Exception:
            logger.exception("user_management_audit_failed target=%s", target_email)
