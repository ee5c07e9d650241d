"""
Tests for AuditService.

These tests validate the event shapes written for access-control events and
that a failing audit store never reaches the caller.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from drivewatch.services.audit import AUDIT_ACTIONS, AuditService


@pytest.fixture
def audit_repo():
    repo = MagicMock()
    repo.create = AsyncMock()
    return repo


@pytest.fixture
def audit_service(audit_repo):
    return AuditService(audit_repo)


class TestAuditEvents:
    """Each log_* method writes one row with the expected shape."""

    @pytest.mark.anyio
    async def test_authorization_grant(self, audit_service, audit_repo):
        await audit_service.log_authorization_attempt("a@co", "audit.view", True, "Permission granted")

        audit_repo.create.assert_awaited_once_with(
            actor_email="a@co",
            action="authorization_attempt",
            entity_type="resource",
            entity_id="audit.view",
            result="success",
            details={"resource": "audit.view", "authorized": True},
            reason="Permission granted",
        )

    @pytest.mark.anyio
    async def test_authorization_denial(self, audit_service, audit_repo):
        await audit_service.log_authorization_attempt("a@co", "users.delete", False)

        kwargs = audit_repo.create.await_args.kwargs
        assert kwargs["result"] == "denied"
        assert kwargs["reason"] is None

    @pytest.mark.anyio
    async def test_role_assignment(self, audit_service, audit_repo):
        await audit_service.log_role_assignment("a@co", "b@co", "guest", "user", "onboarding")

        kwargs = audit_repo.create.await_args.kwargs
        assert kwargs["action"] == "role_assignment"
        assert kwargs["entity_type"] == "user"
        assert kwargs["entity_id"] == "b@co"
        assert kwargs["details"] == {"previous_role": "guest", "new_role": "user"}
        assert kwargs["reason"] == "onboarding"

    @pytest.mark.anyio
    async def test_user_management(self, audit_service, audit_repo):
        await audit_service.log_user_management("a@co", "b@co", "suspend", "spam")

        kwargs = audit_repo.create.await_args.kwargs
        assert kwargs["action"] == "user_management"
        assert kwargs["details"] == {"action": "suspend"}


class TestAuditFailures:
    """Audit writes are best-effort."""

    @pytest.mark.anyio
    async def test_repository_error_is_logged_not_raised(self, audit_service, audit_repo, caplog):
        audit_repo.create.side_effect = RuntimeError("disk full")

        with caplog.at_level("ERROR", logger="drivewatch.audit"):
            await audit_service.log_authorization_attempt("a@co", "help.access", True)

        assert "audit_write_failed" in caplog.text

    @pytest.mark.anyio
    async def test_unknown_action_is_rejected(self, audit_service, audit_repo):
        with pytest.raises(ValueError, match="Invalid audit action"):
            await audit_service.log(
                action="login",
                actor_email="a@co",
                entity_type="user",
                entity_id="a@co",
                result="success",
            )
        audit_repo.create.assert_not_awaited()

    def test_known_actions(self):
        assert AUDIT_ACTIONS == {
            "authorization_attempt",
            "role_assignment",
            "user_management",
        }
