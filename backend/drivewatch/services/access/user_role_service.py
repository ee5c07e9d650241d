import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any

from ...auth.role_assignment import RoleAssignmentValidator
from ...auth.resources import PermissionCatalog
from ...auth.roles import RoleCatalog
from ...domain.access import AccessContext, AuthorizationResult
from ...domain.ports.audit_sink import AuditSink
from ...domain.ports.user_store import UserRecord, UserStore
from ...errors import AppError, MisconfigurationError, NotFoundError, PermissionError, StoreError
from ...schemas.access import (
    ResourceInfo,
    Result,
    RoleAssignmentOutcome,
    RoleChangeValidation,
    RoleHierarchy,
    RoleInfo,
    UserListing,
    UserRoleInfo,
    UsersByRole,
    UserSummary,
)

logger = logging.getLogger("drivewatch.access")

ACTIVE_STATUS = "active"
INACTIVE_REASON = "User account is not active"


class UserRoleService:
    """Turns catalog answers into user-specific answers.

    Every call re-reads the users it needs from the user store; nothing is
    cached between calls, so a role change applies from the next call on.

    This service never writes authorization audit events; the façade owns
    those. It does write role-assignment events.
    """

    def __init__(
        self,
        user_store: UserStore,
        role_catalog: RoleCatalog,
        permission_catalog: PermissionCatalog,
        assignment_validator: RoleAssignmentValidator | None = None,
        audit_sink: AuditSink | None = None,
    ):
        if user_store is None:
            raise MisconfigurationError("UserRoleService requires a user store")
        if role_catalog is None:
            raise MisconfigurationError("UserRoleService requires a role catalog")
        if permission_catalog is None:
            raise MisconfigurationError("UserRoleService requires a permission catalog")

        self.user_store = user_store
        self.role_catalog = role_catalog
        self.permission_catalog = permission_catalog
        self.assignment_validator = assignment_validator or RoleAssignmentValidator(role_catalog)
        self.audit_sink = audit_sink

    def summarize_user(self, user: UserRecord) -> UserSummary:
        role = self.role_catalog.get_role(user.role)
        return UserSummary(
            email=user.email,
            name=getattr(user, "name", None),
            role=user.role,
            status=user.status,
            created_at=getattr(user, "created_at", None),
            last_login=getattr(user, "last_login", None),
            role_info=RoleInfo.from_definition(role) if role else None,
        )

    async def _require_user(self, email: str, missing_message: str) -> UserRecord:
        user = await self.user_store.get_user_by_email(email)
        if user is None:
            raise NotFoundError(missing_message)
        return user

    @staticmethod
    def _require_active(user: UserRecord) -> None:
        if user.status != ACTIVE_STATUS:
            raise PermissionError(INACTIVE_REASON)

    async def assign_role(
        self,
        assigner_email: str,
        target_email: str,
        new_role: str,
        reason: str = "",
    ) -> Result[RoleAssignmentOutcome]:
        """Validate and persist a role change, then record it in the audit trail.

        Validation failures, unknown users and store errors come back as a
        failed result; nothing is raised to the caller.
        """
        logger.info(
            "role_assignment_requested assigner=%s target=%s new_role=%s",
            assigner_email,
            target_email,
            new_role,
        )
        try:
            assigner = await self._require_user(assigner_email, "Assigner user not found")
            self._require_active(assigner)
            if target_email == assigner_email:
                target = assigner
            else:
                target = await self._require_user(target_email, "Target user not found")

            validation = self.assignment_validator.validate_role_assignment(
                assigner.role, new_role, target_email
            )
            if not validation.valid:
                raise PermissionError(f"Role assignment validation failed: {validation.reason}")

            previous_role = target.role
            updated = await self.user_store.update_user(
                target_email,
                {
                    "role": new_role,
                    "updated_at": datetime.now(timezone.utc),
                    "updated_by": assigner_email,
                },
            )

            await self._audit_role_assignment(
                assigner_email, target_email, previous_role, new_role, reason
            )

            logger.info(
                "role_assigned assigner=%s target=%s previous_role=%s new_role=%s",
                assigner_email,
                target_email,
                previous_role,
                new_role,
            )
            return Result.ok(
                RoleAssignmentOutcome(
                    previous_role=previous_role,
                    new_role=new_role,
                    user=self.summarize_user(updated),
                ),
                message=f"Role '{new_role}' assigned to {target_email}",
            )
        except AppError as exc:
            logger.warning(
                "role_assignment_failed assigner=%s target=%s reason=%s",
                assigner_email,
                target_email,
                exc.message,
            )
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("role_assignment_error assigner=%s target=%s", assigner_email, target_email)
            return Result.fail(str(exc), code=StoreError.code)

    async def promote_user(
        self, promoter_email: str, target_email: str, new_role: str, reason: str = ""
    ) -> Result[RoleAssignmentOutcome]:
        return await self.assign_role(promoter_email, target_email, new_role, reason)

    async def demote_user(
        self, demoter_email: str, target_email: str, new_role: str, reason: str = ""
    ) -> Result[RoleAssignmentOutcome]:
        return await self.assign_role(demoter_email, target_email, new_role, reason)

    async def _audit_role_assignment(
        self,
        assigner_email: str,
        target_email: str,
        previous_role: str | None,
        new_role: str,
        reason: str,
    ) -> None:
        if self.audit_sink is None:
            return
        try:
            await self.audit_sink.log_role_assignment(
                assigner_email, target_email, previous_role, new_role, reason
            )
        except Exception:
            # The role change is already stored; a lost audit row must not undo it
            logger.exception("role_assignment_audit_failed target=%s", target_email)

    async def get_user_role_info(self, email: str) -> Result[UserRoleInfo]:
        try:
            user = await self._require_user(email, "User not found")
            role = self.role_catalog.get_role(user.role)
            return Result.ok(
                UserRoleInfo(
                    user=self.summarize_user(user),
                    role=RoleInfo.from_definition(role) if role else None,
                    permissions=sorted(self.role_catalog.get_role_permissions(user.role)),
                    accessible_resources=[
                        ResourceInfo(**item)
                        for item in self.permission_catalog.get_accessible_resources(user.role)
                    ],
                    is_admin_email=self.role_catalog.is_admin_email(email),
                )
            )
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("user_role_info_error email=%s", email)
            return Result.fail(str(exc), code=StoreError.code)

    async def check_user_access(
        self,
        email: str,
        resource: str,
        context: AccessContext | dict[str, Any] | None = None,
    ) -> AuthorizationResult:
        try:
            user = await self.user_store.get_user_by_email(email)
        except Exception as exc:
            logger.exception("user_lookup_failed email=%s", email)
            return AuthorizationResult.deny(str(exc), error=str(exc))

        if user is None:
            return AuthorizationResult.deny("User not found", error="User not found")

        # Status gate comes before any permission lookup
        if user.status != ACTIVE_STATUS:
            return AuthorizationResult.deny(INACTIVE_REASON, user_role=user.role)

        ctx = AccessContext.from_mapping(context).with_user_email(email)
        result = self.permission_catalog.validate_access(user.role, resource, ctx)
        return dataclasses.replace(result, user_role=user.role)

    async def _require_listing_access(self, requester_email: str) -> None:
        access = await self.check_user_access(requester_email, "users.list")
        if not access.authorized:
            raise PermissionError(f"Access denied: {access.reason}")

    async def get_users_with_roles(self, requester_email: str) -> Result[UserListing]:
        try:
            await self._require_listing_access(requester_email)
            users = [self.summarize_user(user) for user in await self.user_store.get_all_users()]
            return Result.ok(UserListing(users=users, total=len(users)))
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("list_users_error requester=%s", requester_email)
            return Result.fail(str(exc), code=StoreError.code)

    async def get_users_by_role(self, role: str, requester_email: str) -> Result[UsersByRole]:
        try:
            await self._require_listing_access(requester_email)
            users = [
                self.summarize_user(user)
                for user in await self.user_store.get_all_users()
                if user.role == role
            ]
            return Result.ok(UsersByRole(role=role, users=users, count=len(users)))
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("users_by_role_error role=%s requester=%s", role, requester_email)
            return Result.fail(str(exc), code=StoreError.code)

    def get_role_hierarchy(self) -> Result[RoleHierarchy]:
        hierarchy = [RoleInfo.from_definition(role) for role in self.role_catalog.get_role_hierarchy()]
        return Result.ok(RoleHierarchy(hierarchy=hierarchy, total_roles=len(hierarchy)))

    async def validate_role_change(
        self, requester_email: str, target_email: str, new_role: str
    ) -> Result[RoleChangeValidation]:
        """Read-only counterpart of ``assign_role`` for pre-flight checks."""
        try:
            requester = await self._require_user(requester_email, "Requester user not found")
            self._require_active(requester)
            if target_email == requester_email:
                target = requester
            else:
                target = await self._require_user(target_email, "Target user not found")

            validation = self.assignment_validator.validate_role_assignment(
                requester.role, new_role, target_email
            )
            return Result.ok(
                RoleChangeValidation(
                    valid=validation.valid,
                    reason=validation.reason,
                    can_assign=validation.can_assign,
                    can_manage=validation.can_manage,
                    current_role=target.role,
                    new_role=new_role,
                    requester_role=requester.role,
                )
            )
        except AppError as exc:
            return Result.fail(exc.message, code=exc.code)
        except Exception as exc:
            logger.exception("validate_role_change_error requester=%s target=%s", requester_email, target_email)
            return Result.fail(str(exc), code=StoreError.code)
