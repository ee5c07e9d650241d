import json
import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()

SUPPORTED_DATABASE_SCHEMES = frozenset({"postgresql+asyncpg", "sqlite+aiosqlite"})


def parse_list_setting(name: str, raw_value: str) -> list[str]:
    """Parse a list-valued env var given either as CSV or as a JSON array.

    Entries are trimmed and blank entries are dropped.

    Raises:
        ValueError: If the JSON form is malformed or not an array
    """
    raw_value = raw_value.strip()
    if not raw_value:
        return []

    if raw_value.startswith("["):
        # JSON array format: ["a@example.com", "b@example.com"]
        try:
            parsed_list = json.loads(raw_value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{name} JSON is malformed: {exc}") from exc
        if not isinstance(parsed_list, list):
            raise ValueError(f"{name} JSON must be an array")
        return [
            item.strip() for item in parsed_list if isinstance(item, str) and item.strip()
        ]

    # CSV format: a@example.com,b@example.com
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _parse_bool(name: str, raw_value: str) -> bool:
    value = raw_value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value")


class Settings(BaseModel):
    app_name: str = Field(default="Drivewatch")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    admin_emails: list[str] = Field(default_factory=list)
    approved_domains: list[str] = Field(default_factory=list)

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme not in SUPPORTED_DATABASE_SCHEMES:
            raise ValueError(
                "DATABASE_URL must start with one of: "
                + ", ".join(f"'{scheme}://'" for scheme in sorted(SUPPORTED_DATABASE_SCHEMES))
            )
        if parsed_db.scheme == "postgresql+asyncpg" and not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        db_pool_size = int(os.getenv("DB_POOL_SIZE", cls.model_fields["db_pool_size"].default))
        if db_pool_size <= 0:
            raise ValueError("DB_POOL_SIZE must be greater than 0")

        db_max_overflow = int(
            os.getenv("DB_MAX_OVERFLOW", cls.model_fields["db_max_overflow"].default)
        )
        if db_max_overflow < 0:
            raise ValueError("DB_MAX_OVERFLOW must be greater than or equal to 0")

        db_pool_recycle = int(
            os.getenv("DB_POOL_RECYCLE", cls.model_fields["db_pool_recycle"].default)
        )
        if db_pool_recycle <= 0:
            raise ValueError("DB_POOL_RECYCLE must be greater than 0")

        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(cls.model_fields["db_pool_pre_ping"].default)),
        )

        # Admin emails are matched exactly, so only whitespace is normalized
        admin_emails = parse_list_setting("ADMIN_EMAILS", os.getenv("ADMIN_EMAILS", ""))

        approved_domains = [
            domain.lower()
            for domain in parse_list_setting("APPROVED_DOMAINS", os.getenv("APPROVED_DOMAINS", ""))
        ]

        return cls(
            app_name=os.getenv("APP_NAME", cls.model_fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
            admin_emails=admin_emails,
            approved_domains=approved_domains,
        )


# Settings are created on first access so the module can be imported without
# a configured environment. The lock makes first access safe from threads and tasks.
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first calls build a single instance.

    Returns:
        Settings instance

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings_instance

    with _settings_lock:
        _settings_instance = None


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
