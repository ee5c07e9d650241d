from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, Sequence


class UserRecord(Protocol):
    email: str
    name: str | None
    role: str
    status: str
    created_at: datetime | None
    last_login: datetime | None


class UserStore(Protocol):
    async def get_user_by_email(self, email: str) -> UserRecord | None:
        ...

    async def create_user(
        self,
        email: str,
        role: str = "guest",
        status: str = "active",
        name: str | None = None,
        organization: str | None = None,
        source: str | None = None,
    ) -> UserRecord:
        ...

    async def update_user(self, email: str, patch: dict[str, Any]) -> UserRecord:
        ...

    async def get_all_users(self) -> Sequence[UserRecord]:
        ...
