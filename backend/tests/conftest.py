"""Shared test fixtures and configuration."""
import os

import pytest

# Settings are read lazily; point them at an in-memory database for every test
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from drivewatch.auth.access_contract import DEFAULT_ROLES  # noqa: E402
from drivewatch.auth.resources import PermissionCatalog  # noqa: E402
from drivewatch.auth.roles import RoleCatalog  # noqa: E402
from drivewatch.domain.ports.admin_emails import StaticAdminEmailSource  # noqa: E402
from tests.access_fakes import FakeAuditSink, FakeUserStore  # noqa: E402

ADMIN_EMAIL = "boss@co.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def admin_emails():
    return StaticAdminEmailSource([ADMIN_EMAIL])


@pytest.fixture
def role_catalog(admin_emails):
    return RoleCatalog(admin_emails, roles=DEFAULT_ROLES)


@pytest.fixture
def permission_catalog(role_catalog):
    return PermissionCatalog(role_catalog)


@pytest.fixture
def user_store():
    return FakeUserStore()


@pytest.fixture
def audit_sink():
    return FakeAuditSink()
