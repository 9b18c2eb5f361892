"""Audit entries computed by every exit workflow mutation.

The engine builds the entry; persisting it is the repository's job.
Entries are immutable once created.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from exitflow.core.rbac.roles import Actor, Role


class AuditAction(str, Enum):
    """Audited exit workflow actions."""
    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    WITHDRAWN = "WITHDRAWN"
    CLEARANCE_STARTED = "CLEARANCE_STARTED"
    ITEM_STATUS_CHANGED = "ITEM_STATUS_CHANGED"
    FINANCIAL_UPDATED = "FINANCIAL_UPDATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    OVERRIDDEN = "OVERRIDDEN"
    CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED"


class AuditSeverity(str, Enum):
    """Severity levels for audit entries."""
    DEBUG = "DEBUG"         # Low-level detail
    INFO = "INFO"           # Standard operations
    WARNING = "WARNING"     # Rejections and other adverse decisions
    ERROR = "ERROR"         # Failed operations
    CRITICAL = "CRITICAL"   # Overrides of approved decisions


@dataclass(frozen=True)
class AuditEntry:
    """One audit record, ready for external persistence."""
    exit_request_id: str
    action: AuditAction
    description: str
    actor_id: str
    actor_name: str
    actor_role: Role
    timestamp: datetime
    severity: AuditSeverity = AuditSeverity.INFO
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    remarks: Optional[str] = None
    justification: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def create_entry(
        cls,
        exit_request_id: str,
        action: AuditAction,
        actor: Actor,
        timestamp: datetime,
        *,
        description: Optional[str] = None,
        previous_status: Optional[str] = None,
        new_status: Optional[str] = None,
        remarks: Optional[str] = None,
        justification: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> "AuditEntry":
        """
        Factory method to create an audit entry for an actor.

        Args:
            exit_request_id: Affected exit request
            action: Action performed
            actor: Who performed it (device and network context are taken from here)
            timestamp: When it happened
            description: Human-readable summary (derived from the action when omitted)
            previous_status: Status before the change
            new_status: Status after the change
            remarks: Free-text remarks
            justification: Justification for reversals and overrides
            details: Additional context
            severity: Entry severity
        """
        if description is None:
            description = f"{action.value.replace('_', ' ').capitalize()} by {actor.name}"
        return cls(
            exit_request_id=exit_request_id,
            action=action,
            description=description,
            actor_id=actor.actor_id,
            actor_name=actor.name,
            actor_role=actor.role,
            timestamp=timestamp,
            severity=severity,
            previous_status=previous_status,
            new_status=new_status,
            remarks=remarks,
            justification=justification,
            device_info=actor.device_info,
            ip_address=actor.ip_address,
            details=dict(details or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "exit_request_id": self.exit_request_id,
            "action": self.action.value,
            "severity": self.severity.value,
            "description": self.description,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.isoformat(),
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "remarks": self.remarks,
            "justification": self.justification,
            "device_info": self.device_info,
            "ip_address": self.ip_address,
            "details": dict(self.details),
        }
