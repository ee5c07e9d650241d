"""
Access-control value objects.

These are transient, immutable values created per call. Overlays on an
authorization decision produce a new value via ``dataclasses.replace``
instead of mutating the base decision.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AccessContext:
    """Caller-supplied context for contextual authorization rules.

    ``user_email`` is the acting user; ``target_email`` is the user whose data
    is being touched (profile resources). ``extra`` carries anything else the
    caller passed and is echoed back untouched.
    """

    user_email: str | None = None
    target_email: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, context: "AccessContext | dict[str, Any] | None") -> "AccessContext":
        if context is None:
            return cls()
        if isinstance(context, AccessContext):
            return context
        values = dict(context)
        snake_user, camel_user = values.pop("user_email", None), values.pop("userEmail", None)
        snake_target, camel_target = values.pop("target_email", None), values.pop("targetEmail", None)
        return cls(
            user_email=snake_user or camel_user,
            target_email=snake_target or camel_target,
            extra=values,
        )

    def with_user_email(self, email: str) -> "AccessContext":
        return AccessContext(user_email=email, target_email=self.target_email, extra=dict(self.extra))

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        if self.user_email is not None:
            data["user_email"] = self.user_email
        if self.target_email is not None:
            data["target_email"] = self.target_email
        return data


@dataclass(frozen=True)
class AuthorizationResult:
    authorized: bool
    reason: str
    required_permission: str | None = None
    user_role: str | None = None
    admin_privilege: bool = False
    user_permissions: frozenset[str] = frozenset()
    # Set when the decision could not be computed (unknown user, store failure)
    error: str | None = None

    @classmethod
    def deny(cls, reason: str, **kwargs: Any) -> "AuthorizationResult":
        return cls(authorized=False, reason=reason, **kwargs)


@dataclass(frozen=True)
class RoleAssignmentValidation:
    valid: bool
    reason: str
    can_assign: bool = False
    can_manage: bool = False
