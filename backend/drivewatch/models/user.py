import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base

USER_STATUSES = frozenset({"active", "pending", "suspended"})


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    organization: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="guest", server_default="guest", index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", server_default="active"
    )
    source: Mapped[str | None] = mapped_column(String(50))  # e.g. 'iap', 'manual', 'seed'
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_by: Mapped[str | None] = mapped_column(String(320))

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'pending', 'suspended')",
            name="valid_user_status",
        ),
    )

    @validates("status")
    def validate_status(self, key: str, value: str) -> str:
        if value not in USER_STATUSES:
            raise ValueError(
                f"Invalid status '{value}'. "
                f"Must be one of: {', '.join(sorted(USER_STATUSES))}"
            )
        return value
