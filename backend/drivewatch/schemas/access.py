from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..auth.access_contract import RoleDefinition

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Outcome of a public access-control operation.

    ``success`` is False when the operation could not produce its answer
    (unknown user, denied listing, store failure). ``code`` carries the
    ``AppError`` code of the failure so callers can map it without parsing
    ``message``.
    """

    success: bool
    message: str | None = None
    error: str | None = None
    code: str | None = None
    data: T | None = None

    @classmethod
    def ok(cls, data: T | None = None, message: str | None = None) -> "Result[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        *,
        code: str | None = None,
        error: str | None = None,
        data: T | None = None,
    ) -> "Result[T]":
        return cls(success=False, message=message, error=error or message, code=code, data=data)


class RoleInfo(BaseModel):
    role_id: str
    name: str
    description: str
    permissions: list[str]
    level: int

    @classmethod
    def from_definition(cls, definition: RoleDefinition) -> "RoleInfo":
        return cls(
            role_id=definition.role_id,
            name=definition.name,
            description=definition.description,
            permissions=list(definition.permissions),
            level=definition.level,
        )


class ResourceInfo(BaseModel):
    resource: str
    permission: str
    description: str


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    name: str | None = None
    role: str
    status: str
    created_at: datetime | None = None
    last_login: datetime | None = None
    role_info: RoleInfo | None = None


class UserRoleInfo(BaseModel):
    user: UserSummary
    role: RoleInfo | None
    permissions: list[str]
    accessible_resources: list[ResourceInfo]
    is_admin_email: bool


class RoleAssignmentOutcome(BaseModel):
    previous_role: str | None
    new_role: str
    user: UserSummary


class RoleChangeValidation(BaseModel):
    valid: bool
    reason: str
    can_assign: bool
    can_manage: bool
    current_role: str | None
    new_role: str
    requester_role: str | None


class UserListing(BaseModel):
    users: list[UserSummary]
    total: int


class UsersByRole(BaseModel):
    role: str
    users: list[UserSummary]
    count: int


class RoleHierarchy(BaseModel):
    hierarchy: list[RoleInfo]
    total_roles: int


class AuthorizationDecision(BaseModel):
    authorized: bool
    reason: str
    user_role: str | None = None
    resource: str
    required_permission: str | None = None
    admin_privilege: bool = False
    context: dict[str, Any] = Field(default_factory=dict)


class UserManagementCheck(BaseModel):
    can_manage: bool
    reason: str
    manager_role: str
    target_role: str
    manager_level: int
    target_level: int


class UserStatusChange(BaseModel):
    previous_status: str
    new_status: str
    user: UserSummary


class SystemAccessSummary(BaseModel):
    total_users: int
    users_by_role: dict[str, int]
    role_hierarchy: list[RoleInfo]
    admin_emails: list[str]
    total_roles: int


class RoleAssignmentRequest(BaseModel):
    target_email: str = Field(..., min_length=3, max_length=320)
    new_role: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(default="", max_length=1000)


class RoleChangeRequest(BaseModel):
    target_email: str = Field(..., min_length=3, max_length=320)
    new_role: str = Field(..., min_length=1, max_length=50)


class UserStatusRequest(BaseModel):
    reason: str = Field(default="", max_length=1000)
