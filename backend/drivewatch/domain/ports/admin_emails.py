from __future__ import annotations

from typing import Iterable, Protocol

from ...config import get_settings


class AdminEmailSource(Protocol):
    def get_admin_emails(self) -> Iterable[str] | str:
        ...


class StaticAdminEmailSource:
    def __init__(self, emails: Iterable[str] | str = ()) -> None:
        self._emails = emails

    def get_admin_emails(self) -> Iterable[str] | str:
        return self._emails


class SettingsAdminEmailSource:
    """Reads ADMIN_EMAILS from process settings on every call."""

    def get_admin_emails(self) -> Iterable[str]:
        return tuple(get_settings().admin_emails)
