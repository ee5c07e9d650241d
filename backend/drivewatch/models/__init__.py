from .base import Base
from .user import User
from .audit_log import AuditLog

__all__ = [
    "Base",
    "User",
    "AuditLog",
]
