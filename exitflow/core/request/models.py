"""Exit request aggregate and submission draft."""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from exitflow.core.approval.blockers import BlockerResolution, resolve_blockers
from exitflow.core.approval.models import ApprovalMetadata, FinancialSummary, OverrideRecord
from exitflow.core.approval.policy import ApprovalPolicy
from exitflow.core.certificate import CertificateData
from exitflow.core.checklist.models import ExitClearanceChecklist

from .machine import ExitRequestStateMachine, TransitionRecord
from .states import LOCKED_STATES, ExitRequestState


class HostelVertical(str, Enum):
    """Hostel divisions used for scoping and filtering."""
    BOYS = "BOYS"
    GIRLS = "GIRLS"
    DHARAMSHALA = "DHARAMSHALA"


@dataclass
class ForwardingAddress:
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


@dataclass
class ContactDetails:
    phone: str = ""
    email: str = ""


@dataclass
class ExitRequestDraft:
    """What a student fills in before submitting an exit request."""
    student_id: str
    student_name: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    reason: str = ""
    forwarding_address: ForwardingAddress = field(default_factory=ForwardingAddress)
    preferred_contact: ContactDetails = field(default_factory=ContactDetails)
    admission_date: Optional[date] = None


@dataclass
class ExitApprovalData:
    """
    The exit request aggregate.

    Holds identity, dates, lifecycle state, the clearance checklist, the
    financial summary and the approval history (most recent first).
    Blockers and can_approve are never stored; call evaluate() to derive
    them from the current checklist and financial summary.
    """
    id: str
    student_id: str
    student_name: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    reason: str = ""
    forwarding_address: ForwardingAddress = field(default_factory=ForwardingAddress)
    preferred_contact: ContactDetails = field(default_factory=ContactDetails)
    admission_date: Optional[date] = None
    current_status: ExitRequestState = ExitRequestState.DRAFT
    created_at: Optional[datetime] = None
    submitted_date: Optional[datetime] = None
    checklist: Optional[ExitClearanceChecklist] = None
    financial_summary: FinancialSummary = field(default_factory=FinancialSummary)
    approval_history: List[ApprovalMetadata] = field(default_factory=list)
    last_override: Optional[OverrideRecord] = None
    override_history: List[OverrideRecord] = field(default_factory=list)
    rejection_remarks: Optional[str] = None
    state_history: List[TransitionRecord] = field(default_factory=list)
    certificate: Optional[CertificateData] = None

    @classmethod
    def from_draft(
        cls, exit_request_id: str, draft: ExitRequestDraft, created_at: datetime
    ) -> "ExitApprovalData":
        return cls(
            id=exit_request_id,
            student_id=draft.student_id,
            student_name=draft.student_name,
            room_number=draft.room_number,
            vertical=draft.vertical,
            requested_exit_date=draft.requested_exit_date,
            reason=draft.reason,
            forwarding_address=copy.deepcopy(draft.forwarding_address),
            preferred_contact=copy.deepcopy(draft.preferred_contact),
            admission_date=draft.admission_date,
            created_at=created_at,
        )

    def to_draft(self) -> ExitRequestDraft:
        return ExitRequestDraft(
            student_id=self.student_id,
            student_name=self.student_name,
            room_number=self.room_number,
            vertical=self.vertical,
            requested_exit_date=self.requested_exit_date,
            reason=self.reason,
            forwarding_address=copy.deepcopy(self.forwarding_address),
            preferred_contact=copy.deepcopy(self.preferred_contact),
            admission_date=self.admission_date,
        )

    @property
    def is_locked(self) -> bool:
        """Checklist and financial data are read-only once decided or withdrawn."""
        return self.current_status in LOCKED_STATES

    @property
    def latest_approval(self) -> Optional[ApprovalMetadata]:
        return self.approval_history[0] if self.approval_history else None

    def evaluate(self, policy: Optional[ApprovalPolicy] = None) -> BlockerResolution:
        """Derive blockers and can_approve from the current state."""
        checklist = self.checklist or ExitClearanceChecklist(exit_request_id=self.id)
        return resolve_blockers(checklist, self.financial_summary, policy)

    def state_machine(self) -> ExitRequestStateMachine:
        return ExitRequestStateMachine(self.id, self.current_status)

    def apply(self, record: TransitionRecord) -> None:
        """Record a transition performed by a state machine on this request."""
        self.current_status = record.to_state
        self.state_history.append(record)

    def copy(self) -> "ExitApprovalData":
        return copy.deepcopy(self)
