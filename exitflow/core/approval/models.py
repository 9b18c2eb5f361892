"""Approval data: financial summary, blockers, approval and override records."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from exitflow.core.rbac.roles import Actor, Role
from exitflow.core.request.states import ExitRequestState


class BlockerType(str, Enum):
    """Source of an approval blocker."""
    MANDATORY_ITEM = "MANDATORY_ITEM"
    FINANCIAL = "FINANCIAL"
    SYSTEM = "SYSTEM"


class Severity(str, Enum):
    """ERROR blockers gate approval, WARNING blockers are advisory."""
    ERROR = "ERROR"
    WARNING = "WARNING"


class OverrideReason(str, Enum):
    """Reasons accepted for overriding an approved decision."""
    DATA_ERROR = "DATA_ERROR"
    EMERGENCY = "EMERGENCY"
    POLICY_EXCEPTION = "POLICY_EXCEPTION"
    TECHNICAL_ISSUE = "TECHNICAL_ISSUE"
    OTHER = "OTHER"


@dataclass
class FinancialSummary:
    """Deposit, dues and refund position of a resident."""
    security_deposit: float = 0.0
    pending_dues: float = 0.0
    refund_amount: float = 0.0
    mess_dues: Optional[float] = None
    library_dues: Optional[float] = None
    other_charges: Optional[float] = None
    clearance_remarks: Optional[str] = None

    @property
    def is_clearance_complete(self) -> bool:
        return self.pending_dues == 0

    @classmethod
    def from_charges(
        cls,
        security_deposit: float,
        mess_dues: float = 0.0,
        library_dues: float = 0.0,
        other_charges: float = 0.0,
        clearance_remarks: Optional[str] = None,
    ) -> "FinancialSummary":
        """Build a summary from itemized dues; the refund never goes negative."""
        pending = mess_dues + library_dues + other_charges
        return cls(
            security_deposit=security_deposit,
            pending_dues=pending,
            refund_amount=max(security_deposit - pending, 0.0),
            mess_dues=mess_dues,
            library_dues=library_dues,
            other_charges=other_charges,
            clearance_remarks=clearance_remarks,
        )


@dataclass(frozen=True)
class ApprovalBlocker:
    """A derived reason approval is or is not currently permitted."""
    id: str
    type: BlockerType
    severity: Severity
    title: str
    description: str
    item_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "item_id": self.item_id,
        }


@dataclass(frozen=True)
class ApprovalMetadata:
    """Who made a decision, when, and from where. Never mutated once recorded."""
    approver_role: Role
    approver_name: str
    approver_id: str
    timestamp: datetime
    remarks: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    approval_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_actor(
        cls, actor: Actor, timestamp: datetime, remarks: Optional[str] = None
    ) -> "ApprovalMetadata":
        return cls(
            approver_role=actor.role,
            approver_name=actor.name,
            approver_id=actor.actor_id,
            timestamp=timestamp,
            remarks=remarks,
            device_info=actor.device_info,
            ip_address=actor.ip_address,
        )


@dataclass(frozen=True)
class OverrideRecord:
    """Structured record of an override; references the approval it reversed."""
    metadata: ApprovalMetadata
    reason: OverrideReason
    justification: str
    referenced_approval_id: str
    referenced_approval_timestamp: datetime
    target_state: ExitRequestState = ExitRequestState.UNDER_CLEARANCE
