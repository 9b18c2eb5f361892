"""Exit workflow audit log table.

This table is IMMUTABLE - ORM hooks refuse UPDATE and DELETE of rows.
Entries are permanent so that approvals and overrides stay traceable.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, String, Text, event

from exitflow.core.audit import AuditEntry
from exitflow.db.base import Base
from exitflow.schemas.exit_request import AuditEntrySchema


class ImmutableAuditLogError(RuntimeError):
    """Raised on an attempt to modify or delete an audit row."""


class ExitAuditLog(Base):
    """Immutable audit log entry for an exit request."""
    __tablename__ = "exit_audit_logs"

    id = Column(String(64), primary_key=True)
    exit_request_id = Column(String(64), nullable=False, index=True)

    # Actor information
    actor_id = Column(String(64), nullable=False, index=True)
    actor_name = Column(String(255), nullable=False)
    actor_role = Column(String(30), nullable=False)
    ip_address = Column(String(45), nullable=True)
    device_info = Column(Text, nullable=True)

    # Action details
    action = Column(String(50), nullable=False, index=True)
    description = Column(Text, nullable=False)
    previous_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=True)
    remarks = Column(Text, nullable=True)
    justification = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    severity = Column(String(20), nullable=False, default="INFO", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ExitAuditLog {self.action} on {self.exit_request_id} by {self.actor_id}>"

    @classmethod
    def create_entry(cls, entry: AuditEntry) -> "ExitAuditLog":
        """Factory method to create a row from a computed audit entry."""
        payload: Dict[str, Any] = AuditEntrySchema.from_domain(entry).model_dump(mode="json")
        return cls(
            id=entry.id,
            exit_request_id=entry.exit_request_id,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            actor_role=entry.actor_role.value,
            ip_address=entry.ip_address,
            device_info=entry.device_info,
            action=entry.action.value,
            description=entry.description,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            remarks=entry.remarks,
            justification=entry.justification,
            details=payload["details"],
            severity=entry.severity.value,
            created_at=entry.timestamp,
        )

    def to_domain(self) -> AuditEntry:
        return AuditEntrySchema(
            id=self.id,
            exit_request_id=self.exit_request_id,
            action=self.action,
            severity=self.severity,
            description=self.description,
            actor_id=self.actor_id,
            actor_name=self.actor_name,
            actor_role=self.actor_role,
            timestamp=self.created_at,
            previous_status=self.previous_status,
            new_status=self.new_status,
            remarks=self.remarks,
            justification=self.justification,
            device_info=self.device_info,
            ip_address=self.ip_address,
            details=self.details or {},
        ).to_domain()


@event.listens_for(ExitAuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableAuditLogError(f"Audit entry {target.id} cannot be modified")


@event.listens_for(ExitAuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditLogError(f"Audit entry {target.id} cannot be deleted")
