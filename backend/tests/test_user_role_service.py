"""Tests for UserRoleService: user-aware role and access answers."""
import pytest

from drivewatch.errors import MisconfigurationError
from drivewatch.services.access import UserRoleService


@pytest.fixture
def service(user_store, role_catalog, permission_catalog, audit_sink):
    return UserRoleService(
        user_store=user_store,
        role_catalog=role_catalog,
        permission_catalog=permission_catalog,
        audit_sink=audit_sink,
    )


class TestConstruction:
    def test_requires_user_store(self, role_catalog, permission_catalog):
        with pytest.raises(MisconfigurationError, match="user store"):
            UserRoleService(None, role_catalog, permission_catalog)

    def test_requires_permission_catalog(self, user_store, role_catalog):
        with pytest.raises(MisconfigurationError, match="permission catalog"):
            UserRoleService(user_store, role_catalog, None)


class TestAssignRole:
    @pytest.mark.anyio
    async def test_admin_cannot_assign_owner(self, service, user_store, audit_sink):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="user")

        result = await service.assign_role("a@co", "b@co", "owner")

        assert result.success is False
        assert result.message == "Role assignment validation failed: Only owners can assign owner role"
        assert result.code == "PERMISSION_DENIED"
        assert user_store.updates == []
        assert audit_sink.role_assignments == []

    @pytest.mark.anyio
    async def test_admin_assigns_user_role(self, service, user_store, audit_sink):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="guest")

        result = await service.assign_role("a@co", "b@co", "user", reason="onboarding")

        assert result.success is True
        assert result.message == "Role 'user' assigned to b@co"
        assert result.data.previous_role == "guest"
        assert result.data.new_role == "user"
        assert result.data.user.role == "user"
        assert user_store.users["b@co"].updated_by == "a@co"
        assert user_store.users["b@co"].updated_at is not None
        assert audit_sink.role_assignments == [("a@co", "b@co", "guest", "user", "onboarding")]

    @pytest.mark.anyio
    async def test_suspended_assigner_is_refused(self, service, user_store, audit_sink):
        user_store.add("gone@co", role="admin", status="suspended")
        user_store.add("guest@co", role="guest")

        result = await service.assign_role("gone@co", "guest@co", "admin")

        assert result.success is False
        assert result.message == "User account is not active"
        assert result.code == "PERMISSION_DENIED"
        assert user_store.users["guest@co"].role == "guest"
        assert user_store.updates == []
        assert audit_sink.role_assignments == []

    @pytest.mark.anyio
    async def test_pending_owner_cannot_promote(self, service, user_store):
        user_store.add("o@co", role="owner", status="pending")
        user_store.add("u@co", role="user")

        result = await service.promote_user("o@co", "u@co", "admin")

        assert result.success is False
        assert result.message == "User account is not active"
        assert user_store.users["u@co"].role == "user"

    @pytest.mark.anyio
    async def test_missing_assigner(self, service, user_store):
        user_store.add("b@co", role="guest")

        result = await service.assign_role("nobody@co", "b@co", "user")

        assert result.success is False
        assert result.message == "Assigner user not found"
        assert result.code == "NOT_FOUND"

    @pytest.mark.anyio
    async def test_missing_target(self, service, user_store):
        user_store.add("a@co", role="owner")

        result = await service.assign_role("a@co", "nobody@co", "user")

        assert result.success is False
        assert result.message == "Target user not found"

    @pytest.mark.anyio
    async def test_self_assignment_reads_user_once(self, service, user_store):
        user_store.add("a@co", role="owner")

        result = await service.assign_role("a@co", "a@co", "admin")

        assert result.success is True
        assert user_store.lookups == ["a@co"]

    @pytest.mark.anyio
    async def test_store_failure_is_a_failed_result(self, service, user_store):
        user_store.fail_with = RuntimeError("connection reset")

        result = await service.assign_role("a@co", "b@co", "user")

        assert result.success is False
        assert result.message == "connection reset"
        assert result.code == "STORE_FAILURE"

    @pytest.mark.anyio
    async def test_audit_failure_keeps_the_change(self, service, user_store, audit_sink):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="guest")
        audit_sink.fail = True

        result = await service.assign_role("a@co", "b@co", "user")

        assert result.success is True
        assert user_store.users["b@co"].role == "user"

    @pytest.mark.anyio
    async def test_promote_and_demote_follow_the_same_rules(self, service, user_store):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="guest")

        promoted = await service.promote_user("a@co", "b@co", "user")
        demoted = await service.demote_user("a@co", "b@co", "guest")

        assert promoted.success is True
        assert demoted.success is True
        assert demoted.data.previous_role == "user"
        assert user_store.users["b@co"].role == "guest"


class TestCheckUserAccess:
    @pytest.mark.anyio
    async def test_suspended_user_is_denied_everything(self, service, user_store, monkeypatch):
        user_store.add("s@co", role="owner", status="suspended")

        def fail_if_called(*args, **kwargs):
            raise AssertionError("permission lookup must not run")

        monkeypatch.setattr(service.permission_catalog, "validate_access", fail_if_called)

        result = await service.check_user_access("s@co", "help.access")

        assert result.authorized is False
        assert result.reason == "User account is not active"
        assert result.user_role == "owner"
        assert result.error is None

    @pytest.mark.anyio
    async def test_unknown_user(self, service):
        result = await service.check_user_access("ghost@co", "help.access")
        assert result.authorized is False
        assert result.reason == "User not found"
        assert result.error == "User not found"

    @pytest.mark.anyio
    async def test_store_failure(self, service, user_store):
        user_store.fail_with = RuntimeError("timeout")
        result = await service.check_user_access("a@co", "help.access")
        assert result.authorized is False
        assert result.error == "timeout"

    @pytest.mark.anyio
    async def test_active_user_gets_role_decision(self, service, user_store):
        user_store.add("a@co", role="user")
        result = await service.check_user_access("a@co", "dashboard.view")
        assert result.authorized is True
        assert result.user_role == "user"

    @pytest.mark.anyio
    async def test_acting_email_is_injected_into_context(self, service, user_store):
        user_store.add("a@co", role="user")
        result = await service.check_user_access(
            "a@co", "profile.view", {"target_email": "b@co"}
        )
        assert result.authorized is False
        assert result.reason == "Cannot access other user profiles"

    @pytest.mark.anyio
    async def test_role_change_applies_on_next_call(self, service, user_store):
        user = user_store.add("a@co", role="guest")
        assert (await service.check_user_access("a@co", "profile.view")).authorized is False

        user.role = "user"

        assert (await service.check_user_access("a@co", "profile.view")).authorized is True


class TestListings:
    @pytest.mark.anyio
    async def test_admin_lists_users(self, service, user_store):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="guest")

        result = await service.get_users_with_roles("a@co")

        assert result.success is True
        assert result.data.total == 2
        emails = {user.email for user in result.data.users}
        assert emails == {"a@co", "b@co"}

    @pytest.mark.anyio
    async def test_user_cannot_list(self, service, user_store):
        user_store.add("u@co", role="user")

        result = await service.get_users_with_roles("u@co")

        assert result.success is False
        assert result.message == "Access denied: Missing required permission: users.manage"
        assert result.code == "PERMISSION_DENIED"

    @pytest.mark.anyio
    async def test_users_by_role(self, service, user_store):
        user_store.add("a@co", role="owner")
        user_store.add("b@co", role="guest")
        user_store.add("c@co", role="guest")

        result = await service.get_users_by_role("guest", "a@co")

        assert result.success is True
        assert result.data.count == 2
        assert result.data.role == "guest"

    def test_role_hierarchy(self, service):
        result = service.get_role_hierarchy()
        assert result.success is True
        assert result.data.total_roles == 4
        assert [role.role_id for role in result.data.hierarchy] == ["owner", "admin", "user", "guest"]


class TestUserRoleInfo:
    @pytest.mark.anyio
    async def test_info_for_admin_email(self, service, user_store):
        user_store.add("boss@co.com", role="guest")

        result = await service.get_user_role_info("boss@co.com")

        assert result.success is True
        assert result.data.is_admin_email is True
        assert result.data.permissions == ["dashboard.view", "help.access"]
        assert [item.resource for item in result.data.accessible_resources] == [
            "dashboard.view",
            "help.access",
        ]

    @pytest.mark.anyio
    async def test_info_for_unknown_user(self, service):
        result = await service.get_user_role_info("ghost@co")
        assert result.success is False
        assert result.message == "User not found"


class TestValidateRoleChange:
    @pytest.mark.anyio
    async def test_reports_current_role_without_writing(self, service, user_store):
        user_store.add("a@co", role="admin")
        user_store.add("b@co", role="guest")

        result = await service.validate_role_change("a@co", "b@co", "user")

        assert result.success is True
        assert result.data.valid is True
        assert result.data.current_role == "guest"
        assert result.data.requester_role == "admin"
        assert user_store.updates == []

    @pytest.mark.anyio
    async def test_invalid_change_is_still_a_successful_answer(self, service, user_store):
        user_store.add("a@co", role="user")
        user_store.add("b@co", role="guest")

        result = await service.validate_role_change("a@co", "b@co", "user")

        assert result.success is True
        assert result.data.valid is False
        assert result.data.reason == "Insufficient permissions to assign roles"

    @pytest.mark.anyio
    async def test_missing_requester(self, service):
        result = await service.validate_role_change("ghost@co", "b@co", "user")
        assert result.success is False
        assert result.message == "Requester user not found"

    @pytest.mark.anyio
    async def test_suspended_requester_is_refused(self, service, user_store):
        user_store.add("gone@co", role="owner", status="suspended")
        user_store.add("b@co", role="guest")

        result = await service.validate_role_change("gone@co", "b@co", "user")

        assert result.success is False
        assert result.message == "User account is not active"
        assert result.code == "PERMISSION_DENIED"
