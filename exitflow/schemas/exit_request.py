"""Exit request schemas.

Plain-data records exchanged with persistence and transport layers.
Each schema converts to and from its domain object.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from exitflow.core.approval.blockers import BlockerResolution
from exitflow.core.approval.models import (
    ApprovalBlocker,
    ApprovalMetadata,
    BlockerType,
    FinancialSummary,
    OverrideReason,
    OverrideRecord,
    Severity,
)
from exitflow.core.approval.policy import ApprovalPolicy
from exitflow.core.audit import AuditAction, AuditEntry, AuditSeverity
from exitflow.core.certificate import CertificateData, ConductRating, ConductStatement
from exitflow.core.checklist.models import (
    ClearanceItem,
    ClearanceItemHistoryEntry,
    ClearanceItemStatus,
    ClearanceItemType,
    ExitClearanceChecklist,
)
from exitflow.core.rbac.roles import Role
from exitflow.core.request.machine import TransitionRecord
from exitflow.core.request.models import (
    ContactDetails,
    ExitApprovalData,
    ExitRequestDraft,
    ForwardingAddress,
    HostelVertical,
)
from exitflow.core.request.states import ExitRequestState, ExitTransition

from .common import CamelModel


class ClearanceItemHistoryEntrySchema(CamelModel):
    id: str
    previous_status: Optional[ClearanceItemStatus] = None
    new_status: ClearanceItemStatus
    actor: str
    actor_role: Role
    timestamp: datetime
    remarks: Optional[str] = None
    justification: Optional[str] = None

    @classmethod
    def from_domain(cls, entry: ClearanceItemHistoryEntry) -> "ClearanceItemHistoryEntrySchema":
        return cls(**vars(entry))

    def to_domain(self) -> ClearanceItemHistoryEntry:
        return ClearanceItemHistoryEntry(**self.model_dump())


class ClearanceItemSchema(CamelModel):
    id: str
    type: ClearanceItemType
    title: str
    description: str = ""
    owner_role: Role
    status: ClearanceItemStatus = ClearanceItemStatus.PENDING
    is_mandatory: bool = True
    last_updated_at: Optional[datetime] = None
    last_updated_by: Optional[str] = None
    remarks: Optional[str] = None
    student_instructions: Optional[str] = None
    history: List[ClearanceItemHistoryEntrySchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, item: ClearanceItem) -> "ClearanceItemSchema":
        fields = {k: v for k, v in vars(item).items() if k != "history"}
        return cls(
            **fields,
            history=[ClearanceItemHistoryEntrySchema.from_domain(e) for e in item.history],
        )

    def to_domain(self) -> ClearanceItem:
        fields = self.model_dump(exclude={"history"})
        return ClearanceItem(**fields, history=[e.to_domain() for e in self.history])


class ChecklistSchema(CamelModel):
    exit_request_id: str
    items: List[ClearanceItemSchema] = Field(default_factory=list)
    # Derived on output, ignored on input
    all_mandatory_completed: Optional[bool] = None
    blocking_items: Optional[List[str]] = None
    completion_percentage: Optional[int] = None

    @classmethod
    def from_domain(cls, checklist: ExitClearanceChecklist) -> "ChecklistSchema":
        return cls(
            exit_request_id=checklist.exit_request_id,
            items=[ClearanceItemSchema.from_domain(i) for i in checklist.items],
            all_mandatory_completed=checklist.all_mandatory_completed,
            blocking_items=checklist.blocking_items,
            completion_percentage=checklist.completion_percentage,
        )

    def to_domain(self) -> ExitClearanceChecklist:
        return ExitClearanceChecklist(
            exit_request_id=self.exit_request_id,
            items=[i.to_domain() for i in self.items],
        )


class FinancialSummarySchema(CamelModel):
    security_deposit: float = 0.0
    pending_dues: float = 0.0
    refund_amount: float = 0.0
    mess_dues: Optional[float] = None
    library_dues: Optional[float] = None
    other_charges: Optional[float] = None
    is_clearance_complete: Optional[bool] = None
    clearance_remarks: Optional[str] = None

    @classmethod
    def from_domain(cls, summary: FinancialSummary) -> "FinancialSummarySchema":
        return cls(**vars(summary), is_clearance_complete=summary.is_clearance_complete)

    def to_domain(self) -> FinancialSummary:
        return FinancialSummary(**self.model_dump(exclude={"is_clearance_complete"}))


class ApprovalBlockerSchema(CamelModel):
    id: str
    type: BlockerType
    severity: Severity
    title: str
    description: str
    item_id: Optional[str] = None

    @classmethod
    def from_domain(cls, blocker: ApprovalBlocker) -> "ApprovalBlockerSchema":
        return cls(**vars(blocker))


class ApprovalMetadataSchema(CamelModel):
    approval_id: str
    approver_role: Role
    approver_name: str
    approver_id: str
    timestamp: datetime
    remarks: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None

    @classmethod
    def from_domain(cls, metadata: ApprovalMetadata) -> "ApprovalMetadataSchema":
        return cls(**vars(metadata))

    def to_domain(self) -> ApprovalMetadata:
        return ApprovalMetadata(**self.model_dump())


class OverrideRecordSchema(CamelModel):
    metadata: ApprovalMetadataSchema
    reason: OverrideReason
    justification: str
    referenced_approval_id: str
    referenced_approval_timestamp: datetime
    target_state: ExitRequestState = ExitRequestState.UNDER_CLEARANCE

    @classmethod
    def from_domain(cls, record: OverrideRecord) -> "OverrideRecordSchema":
        fields = {k: v for k, v in vars(record).items() if k != "metadata"}
        return cls(**fields, metadata=ApprovalMetadataSchema.from_domain(record.metadata))

    def to_domain(self) -> OverrideRecord:
        fields = self.model_dump(exclude={"metadata"})
        return OverrideRecord(**fields, metadata=self.metadata.to_domain())


class TransitionRecordSchema(CamelModel):
    id: str
    exit_request_id: str
    from_state: ExitRequestState
    to_state: ExitRequestState
    transition: ExitTransition
    actor_id: str
    actor_role: Role
    timestamp: datetime
    comment: Optional[str] = None

    @classmethod
    def from_domain(cls, record: TransitionRecord) -> "TransitionRecordSchema":
        return cls(**vars(record))

    def to_domain(self) -> TransitionRecord:
        return TransitionRecord(**self.model_dump())


class ConductStatementSchema(CamelModel):
    rating: ConductRating
    issued_by: str
    issued_by_role: Role
    remarks: Optional[str] = None

    @classmethod
    def from_domain(cls, statement: ConductStatement) -> "ConductStatementSchema":
        return cls(**vars(statement))

    def to_domain(self) -> ConductStatement:
        return ConductStatement(**self.model_dump())


class CertificateSchema(CamelModel):
    certificate_id: str
    version_id: str
    version: int
    student_id: str
    student_name: str
    vertical: HostelVertical
    room_number: str
    admission_date: Optional[date] = None
    exit_date: date
    stay_duration: Optional[str] = None
    approval_date: datetime
    approved_by: str
    approved_by_role: Role
    generated_at: datetime
    generated_by: str
    generated_by_role: Role
    conduct_statement: Optional[ConductStatementSchema] = None
    previous_version_id: Optional[str] = None
    reissue_reason: Optional[str] = None
    version_hash: str

    @classmethod
    def from_domain(cls, certificate: CertificateData) -> "CertificateSchema":
        fields = {k: v for k, v in vars(certificate).items() if k != "conduct_statement"}
        statement = certificate.conduct_statement
        return cls(
            **fields,
            conduct_statement=ConductStatementSchema.from_domain(statement) if statement else None,
        )

    def to_domain(self) -> CertificateData:
        fields = self.model_dump(exclude={"conduct_statement", "vertical"})
        return CertificateData(
            **fields,
            vertical=self.vertical.value,
            conduct_statement=self.conduct_statement.to_domain() if self.conduct_statement else None,
        )


class ForwardingAddressSchema(CamelModel):
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class ContactDetailsSchema(CamelModel):
    phone: str = ""
    email: str = ""


class ExitRequestDraftSchema(CamelModel):
    """Submission form payload."""
    student_id: str
    student_name: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    reason: str = ""
    forwarding_address: ForwardingAddressSchema = Field(default_factory=ForwardingAddressSchema)
    preferred_contact: ContactDetailsSchema = Field(default_factory=ContactDetailsSchema)
    admission_date: Optional[date] = None

    def to_domain(self) -> ExitRequestDraft:
        return ExitRequestDraft(
            student_id=self.student_id,
            student_name=self.student_name,
            room_number=self.room_number,
            vertical=self.vertical,
            requested_exit_date=self.requested_exit_date,
            reason=self.reason,
            forwarding_address=ForwardingAddress(**self.forwarding_address.model_dump()),
            preferred_contact=ContactDetails(**self.preferred_contact.model_dump()),
            admission_date=self.admission_date,
        )


class ExitApprovalDataSchema(CamelModel):
    """
    Full exit request record.

    blockers, can_approve and is_locked are derived when serializing and
    ignored when loading; they are never stored as truth.
    """
    id: str
    student_id: str
    student_name: str
    room_number: str
    vertical: HostelVertical
    requested_exit_date: date
    reason: str = ""
    forwarding_address: ForwardingAddressSchema = Field(default_factory=ForwardingAddressSchema)
    preferred_contact: ContactDetailsSchema = Field(default_factory=ContactDetailsSchema)
    admission_date: Optional[date] = None
    current_status: ExitRequestState = ExitRequestState.DRAFT
    created_at: Optional[datetime] = None
    submitted_date: Optional[datetime] = None
    checklist: Optional[ChecklistSchema] = None
    financial_summary: FinancialSummarySchema = Field(default_factory=FinancialSummarySchema)
    approval_history: List[ApprovalMetadataSchema] = Field(default_factory=list)
    last_override: Optional[OverrideRecordSchema] = None
    override_history: List[OverrideRecordSchema] = Field(default_factory=list)
    rejection_remarks: Optional[str] = None
    state_history: List[TransitionRecordSchema] = Field(default_factory=list)
    certificate: Optional[CertificateSchema] = None
    blockers: Optional[List[ApprovalBlockerSchema]] = None
    can_approve: Optional[bool] = None
    is_locked: Optional[bool] = None

    @classmethod
    def from_domain(
        cls, data: ExitApprovalData, policy: Optional[ApprovalPolicy] = None
    ) -> "ExitApprovalDataSchema":
        resolution: BlockerResolution = data.evaluate(policy)
        return cls(
            id=data.id,
            student_id=data.student_id,
            student_name=data.student_name,
            room_number=data.room_number,
            vertical=data.vertical,
            requested_exit_date=data.requested_exit_date,
            reason=data.reason,
            forwarding_address=ForwardingAddressSchema(**vars(data.forwarding_address)),
            preferred_contact=ContactDetailsSchema(**vars(data.preferred_contact)),
            admission_date=data.admission_date,
            current_status=data.current_status,
            created_at=data.created_at,
            submitted_date=data.submitted_date,
            checklist=ChecklistSchema.from_domain(data.checklist) if data.checklist else None,
            financial_summary=FinancialSummarySchema.from_domain(data.financial_summary),
            approval_history=[ApprovalMetadataSchema.from_domain(m) for m in data.approval_history],
            last_override=(
                OverrideRecordSchema.from_domain(data.last_override) if data.last_override else None
            ),
            override_history=[OverrideRecordSchema.from_domain(o) for o in data.override_history],
            rejection_remarks=data.rejection_remarks,
            state_history=[TransitionRecordSchema.from_domain(r) for r in data.state_history],
            certificate=CertificateSchema.from_domain(data.certificate) if data.certificate else None,
            blockers=[ApprovalBlockerSchema.from_domain(b) for b in resolution.blockers],
            can_approve=resolution.can_approve,
            is_locked=data.is_locked,
        )

    def to_domain(self) -> ExitApprovalData:
        return ExitApprovalData(
            id=self.id,
            student_id=self.student_id,
            student_name=self.student_name,
            room_number=self.room_number,
            vertical=self.vertical,
            requested_exit_date=self.requested_exit_date,
            reason=self.reason,
            forwarding_address=ForwardingAddress(**self.forwarding_address.model_dump()),
            preferred_contact=ContactDetails(**self.preferred_contact.model_dump()),
            admission_date=self.admission_date,
            current_status=self.current_status,
            created_at=self.created_at,
            submitted_date=self.submitted_date,
            checklist=self.checklist.to_domain() if self.checklist else None,
            financial_summary=self.financial_summary.to_domain(),
            approval_history=[m.to_domain() for m in self.approval_history],
            last_override=self.last_override.to_domain() if self.last_override else None,
            override_history=[o.to_domain() for o in self.override_history],
            rejection_remarks=self.rejection_remarks,
            state_history=[r.to_domain() for r in self.state_history],
            certificate=self.certificate.to_domain() if self.certificate else None,
        )


class AuditEntrySchema(CamelModel):
    id: str
    exit_request_id: str
    action: AuditAction
    severity: AuditSeverity = AuditSeverity.INFO
    description: str
    actor_id: str
    actor_name: str
    actor_role: Role
    timestamp: datetime
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    remarks: Optional[str] = None
    justification: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> "AuditEntrySchema":
        return cls(**vars(entry))

    def to_domain(self) -> AuditEntry:
        return AuditEntry(**self.model_dump())
