"""
Access-control API endpoints.

Thin HTTP binding over AccessControlService. Operations return a Result;
failed results are raised as AppError subclasses and rendered by the
application's error handler.
"""
from fastapi import APIRouter, Depends

from ..errors import AppError, NotFoundError, PermissionError, StoreError, ValidationError
from ..schemas.access import (
    ResourceInfo,
    Result,
    RoleAssignmentOutcome,
    RoleAssignmentRequest,
    RoleChangeRequest,
    RoleChangeValidation,
    RoleHierarchy,
    SystemAccessSummary,
    UserListing,
    UserManagementCheck,
    UserRoleInfo,
    UsersByRole,
    UserStatusChange,
    UserStatusRequest,
)
from ..services.access import AccessControlService
from .dependencies import get_access_control, get_current_email, require_access

router = APIRouter(prefix="/access", tags=["access"])

_ERRORS_BY_CODE: dict[str, type[AppError]] = {
    error.code: error for error in (NotFoundError, PermissionError, StoreError, ValidationError)
}


def unwrap(result: Result):
    """Return the result's data, or raise the AppError matching its code."""
    if result.success:
        return result.data
    error_cls = _ERRORS_BY_CODE.get(result.code or "", ValidationError)
    raise error_cls(result.message)


@router.get("/roles", response_model=RoleHierarchy)
async def get_roles(
    _: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    return unwrap(access_control.get_role_hierarchy())


@router.get("/resources", response_model=list[ResourceInfo])
async def list_resources(
    _: str = Depends(require_access("system.manage")),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Full resource catalog. Requires: system.manage"""
    catalog = access_control.user_role_service.permission_catalog
    return [
        ResourceInfo(resource=key, permission=definition.permission, description=definition.description)
        for key, definition in catalog.get_all_resources().items()
    ]


@router.get("/me", response_model=UserRoleInfo)
async def get_me(
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Registers the caller on first sight, then reports their role and resources."""
    unwrap(await access_control.ensure_user(email))
    return unwrap(await access_control.get_user_accessible_resources(email))


@router.get("/users", response_model=UserListing)
async def list_users(
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Requires: users.list"""
    return unwrap(await access_control.get_users_with_roles(email))


@router.get("/users/by-role/{role}", response_model=UsersByRole)
async def list_users_by_role(
    role: str,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Requires: users.list"""
    return unwrap(await access_control.get_users_by_role(role, email))


@router.get("/users/{target_email}/manageable", response_model=UserManagementCheck)
async def get_manageable(
    target_email: str,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    return unwrap(await access_control.can_manage_user(email, target_email))


@router.post("/users/{target_email}/activate", response_model=UserStatusChange)
async def activate_user(
    target_email: str,
    payload: UserStatusRequest | None = None,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Requires: users.activate"""
    reason = payload.reason if payload else ""
    return unwrap(await access_control.activate_user(email, target_email, reason))


@router.post("/users/{target_email}/suspend", response_model=UserStatusChange)
async def suspend_user(
    target_email: str,
    payload: UserStatusRequest | None = None,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Requires: users.suspend"""
    reason = payload.reason if payload else ""
    return unwrap(await access_control.suspend_user(email, target_email, reason))


@router.post("/roles/assign", response_model=RoleAssignmentOutcome)
async def assign_role(
    payload: RoleAssignmentRequest,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    return unwrap(
        await access_control.assign_role(email, payload.target_email, payload.new_role, payload.reason)
    )


@router.post("/roles/validate", response_model=RoleChangeValidation)
async def validate_role(
    payload: RoleChangeRequest,
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    return unwrap(
        await access_control.validate_role_change(email, payload.target_email, payload.new_role)
    )


@router.get("/summary", response_model=SystemAccessSummary)
async def get_summary(
    email: str = Depends(get_current_email),
    access_control: AccessControlService = Depends(get_access_control),
):
    """Requires: system.manage"""
    return unwrap(await access_control.get_system_access_summary(email))
