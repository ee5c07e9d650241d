import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base

AUDIT_RESULTS = frozenset({"success", "denied", "failure"})


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    action: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )  # e.g. 'authorization_attempt', 'role_assignment'
    entity_type: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )  # e.g. 'resource', 'user', 'permission'
    entity_id: Mapped[str] = mapped_column(
        String(320), nullable=False, index=True
    )  # resource key or target email
    result: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON)
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "result IN ('success', 'denied', 'failure')",
            name="valid_audit_result",
        ),
    )

    @validates("result")
    def validate_result(self, key: str, value: str) -> str:
        if value not in AUDIT_RESULTS:
            raise ValueError(
                f"Invalid result '{value}'. "
                f"Must be one of: {', '.join(sorted(AUDIT_RESULTS))}"
            )
        return value
