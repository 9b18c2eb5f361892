"""Database models for exitflow."""

from exitflow.db.models.audit import ExitAuditLog, ImmutableAuditLogError
from exitflow.db.models.exit_request import ExitRequestRecord

__all__ = [
    "ExitAuditLog",
    "ExitRequestRecord",
    "ImmutableAuditLogError",
]
