from .audit_service import AUDIT_ACTIONS, AuditService

__all__ = ["AUDIT_ACTIONS", "AuditService"]
