"""Exit workflow service.

High-level API over the exit request engine:
- Creating, submitting and withdrawing requests
- Instantiating the clearance checklist
- Item and financial updates
- Approve, reject and override decisions
- Certificate issue and the dashboard

Every mutation runs inside the repository's per-request transaction and
notifies after commit.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Union

from exitflow.common.config import WorkflowConfig
from exitflow.common.timeutils import utc_now
from exitflow.core.approval.authority import ApprovalAuthority
from exitflow.core.approval.blockers import BlockerResolution
from exitflow.core.approval.models import ApprovalBlocker, FinancialSummary, OverrideReason
from exitflow.core.audit import AuditAction, AuditEntry
from exitflow.core.certificate import ConductStatement, build_certificate
from exitflow.core.checklist.engine import update_item_status
from exitflow.core.checklist.models import ClearanceItemStatus
from exitflow.core.checklist.templates import instantiate_checklist
from exitflow.core.dashboard.aggregator import build_dashboard
from exitflow.core.dashboard.models import DEFAULT_SORT, DashboardFilters, DashboardView, SortOption
from exitflow.core.dashboard.projection import summarize_exit_requests
from exitflow.core.errors import ChecklistLockedError, UnauthorizedError, ValidationError
from exitflow.core.rbac.checker import PermissionChecker
from exitflow.core.rbac.permissions import Action, Permission, Resource
from exitflow.core.rbac.roles import SYSTEM_ACTOR, Actor, Role
from exitflow.core.request.machine import TransitionRecord
from exitflow.core.request.models import ExitApprovalData, ExitRequestDraft
from exitflow.core.request.states import ExitRequestState, ExitTransition
from exitflow.core.request.validation import validate_submission
from exitflow.db.repository import ExitRequestRepository, UnitOfWork
from exitflow.services.notifications import NotificationDispatcher, TransitionEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowResult:
    """Committed state of a request after a mutation, with its derived fields."""
    data: ExitApprovalData
    resolution: BlockerResolution
    audit_entries: List[AuditEntry] = field(default_factory=list)
    transition: Optional[TransitionRecord] = None

    @property
    def blockers(self) -> List[ApprovalBlocker]:
        return self.resolution.blockers

    @property
    def can_approve(self) -> bool:
        return self.resolution.can_approve

    @property
    def all_mandatory_completed(self) -> bool:
        return bool(self.data.checklist and self.data.checklist.all_mandatory_completed)

    @property
    def blocking_items(self) -> List[str]:
        return self.data.checklist.blocking_items if self.data.checklist else []


class ExitWorkflowService:
    """Orchestrates exit requests over a repository."""

    def __init__(
        self,
        repository: ExitRequestRepository,
        config: Optional[WorkflowConfig] = None,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the workflow service.

        Args:
            repository: Persistence collaborator
            config: Workflow configuration (defaults when omitted)
            notifier: Dispatcher receiving committed transitions
            clock: Source of the current time
        """
        self.repository = repository
        self.config = config or WorkflowConfig()
        self.notifier = notifier or NotificationDispatcher()
        self.clock = clock
        self.authority = ApprovalAuthority(self.config.policy)

    # Queries

    def get(self, exit_request_id: str) -> ExitApprovalData:
        return self.repository.get(exit_request_id)

    def evaluate(self, exit_request_id: str) -> BlockerResolution:
        return self.get(exit_request_id).evaluate(self.config.policy)

    def audit_log(self, exit_request_id: str) -> List[AuditEntry]:
        return self.repository.audit_log(exit_request_id)

    def dashboard(
        self,
        viewer_role: Role,
        as_of: Optional[datetime] = None,
        filters: Optional[DashboardFilters] = None,
        sort_option: SortOption = DEFAULT_SORT,
    ) -> DashboardView:
        """Dashboard of all tracked requests as seen by a role."""
        summaries = summarize_exit_requests(
            self.repository.list_all(),
            viewer_role,
            as_of or self.clock(),
            self.config.dashboard,
        )
        return build_dashboard(summaries, filters, sort_option)

    # Student lifecycle

    def create_draft(
        self,
        draft: ExitRequestDraft,
        actor: Actor,
        exit_request_id: Optional[str] = None,
    ) -> ExitApprovalData:
        """Store a new DRAFT exit request."""
        self._require_student(actor, draft.student_id)
        now = self.clock()
        data = ExitApprovalData.from_draft(
            exit_request_id or f"EXIT-{uuid.uuid4().hex[:12].upper()}", draft, now
        )
        entry = AuditEntry.create_entry(
            data.id, AuditAction.CREATED, actor, now,
            new_status=data.current_status.value,
        )
        self.repository.add(data, [entry])
        logger.info("Exit request %s drafted for %s", data.id, data.student_id)
        self._notify(entry)
        return data

    def submit(self, exit_request_id: str, actor: Actor) -> WorkflowResult:
        """
        Submit a draft.

        Raises:
            InvalidTransitionError: If the request is not a draft
            UnauthorizedError: If the actor is not the owning student
            ValidationError: If the form fails validation (errors in ``errors``)
        """
        with self.repository.transaction(exit_request_id) as unit:
            data = unit.data
            self._require_student(actor, data.student_id)
            machine = data.state_machine()
            machine.validate_transition(ExitTransition.SUBMIT, actor.role)

            now = self.clock()
            errors = validate_submission(data.to_draft(), now, self.config.policy)
            if errors:
                raise ValidationError("Exit request is incomplete", errors=errors)

            record = self._transition(unit, ExitTransition.SUBMIT, actor, now)
            data.submitted_date = now
            unit.record(self._entry(data, AuditAction.SUBMITTED, actor, record))
        return self._finish(unit, record)

    def withdraw(
        self, exit_request_id: str, actor: Actor, remarks: Optional[str] = None
    ) -> WorkflowResult:
        """Withdraw a submitted request; refused once clearance has begun."""
        with self.repository.transaction(exit_request_id) as unit:
            self._require_student(actor, unit.data.student_id)
            record = self._transition(
                unit, ExitTransition.WITHDRAW, actor, self.clock(), comment=remarks
            )
            unit.record(self._entry(unit.data, AuditAction.WITHDRAWN, actor, record, remarks=remarks))
        return self._finish(unit, record)

    # Clearance

    def begin_clearance(
        self, exit_request_id: str, actor: Actor = SYSTEM_ACTOR
    ) -> WorkflowResult:
        """Bind the vertical's checklist to a submitted request and start clearance."""
        with self.repository.transaction(exit_request_id) as unit:
            data = unit.data
            data.state_machine().validate_transition(ExitTransition.BEGIN_CLEARANCE, actor.role)

            now = self.clock()
            data.checklist = instantiate_checklist(
                data.id, self.config.templates_for(data.vertical), now
            )
            record = self._transition(unit, ExitTransition.BEGIN_CLEARANCE, actor, now)
            unit.record(self._entry(
                data, AuditAction.CLEARANCE_STARTED, actor, record,
                details={"items": [i.id for i in data.checklist.items]},
            ))
        return self._finish(unit, record)

    def update_item_status(
        self,
        exit_request_id: str,
        item_id: str,
        new_status: Union[ClearanceItemStatus, str],
        actor: Actor,
        *,
        remarks: Optional[str] = None,
        justification: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Change a clearance item's status.

        Raises:
            ChecklistLockedError: If the request is not under clearance
            UnauthorizedError: If the actor does not own the item
            InvalidTransitionError: If a reversal lacks a justification
            ValidationError: If the status or item is unknown, or WAIVED lacks remarks
        """
        try:
            new_status = ClearanceItemStatus(new_status)
        except ValueError as exc:
            raise ValidationError(f"Invalid item status: {new_status}", field="status") from exc

        with self.repository.transaction(exit_request_id) as unit:
            data = unit.data
            now = self.clock()
            update = update_item_status(
                data.checklist,
                item_id,
                new_status,
                actor.actor_id,
                actor.role,
                remarks=remarks,
                justification=justification,
                can_override=actor.can_override,
                locked=not self._accepts_clearance_updates(data),
                timestamp=now,
            )
            entry = update.entry
            unit.record(AuditEntry.create_entry(
                data.id, AuditAction.ITEM_STATUS_CHANGED, actor, now,
                description=f"{update.item.title}: {entry.previous_status.value} -> {new_status.value}",
                previous_status=entry.previous_status.value,
                new_status=new_status.value,
                remarks=remarks,
                justification=justification,
                details={"item_id": item_id, "is_reversal": entry.is_reversal},
            ))
        return self._finish(unit)

    def update_financial_summary(
        self, exit_request_id: str, summary: FinancialSummary, actor: Actor
    ) -> WorkflowResult:
        """Replace the financial summary of a request under clearance."""
        required = Permission(Resource.FINANCIALS, Action.UPDATE)
        if not PermissionChecker(actor.permissions).has_permission(required):
            raise UnauthorizedError(
                f"{actor.name} cannot update financials",
                actor_role=actor.role.value,
                required=str(required),
            )

        with self.repository.transaction(exit_request_id) as unit:
            data = unit.data
            if not self._accepts_clearance_updates(data):
                raise ChecklistLockedError(
                    f"Financial data of {data.id} is read-only in {data.current_status.value}",
                    from_state=data.current_status.value,
                )
            previous = data.financial_summary
            data.financial_summary = summary
            unit.record(AuditEntry.create_entry(
                data.id, AuditAction.FINANCIAL_UPDATED, actor, self.clock(),
                remarks=summary.clearance_remarks,
                details={
                    "previous_pending_dues": previous.pending_dues,
                    "pending_dues": summary.pending_dues,
                    "refund_amount": summary.refund_amount,
                },
            ))
        return self._finish(unit)

    # Decisions

    def approve(
        self, exit_request_id: str, actor: Actor, remarks: Optional[str] = None
    ) -> WorkflowResult:
        with self.repository.transaction(exit_request_id) as unit:
            decision = self.authority.approve(unit.data, actor, remarks=remarks, now=self.clock())
            unit.record(decision.audit_entry)
        return self._finish(unit, decision.transition)

    def reject(self, exit_request_id: str, actor: Actor, remarks: str) -> WorkflowResult:
        with self.repository.transaction(exit_request_id) as unit:
            decision = self.authority.reject(unit.data, actor, remarks, now=self.clock())
            unit.record(decision.audit_entry)
        return self._finish(unit, decision.transition)

    def override(
        self,
        exit_request_id: str,
        actor: Actor,
        reason: Union[OverrideReason, str],
        justification: str,
        target_state: ExitRequestState = ExitRequestState.UNDER_CLEARANCE,
    ) -> WorkflowResult:
        """Reverse an approval; the capability comes from the actor's permissions."""
        with self.repository.transaction(exit_request_id) as unit:
            decision = self.authority.override(
                unit.data,
                actor,
                reason,
                justification,
                can_override=actor.can_override,
                target_state=target_state,
                now=self.clock(),
            )
            unit.record(decision.audit_entry)
        return self._finish(unit, decision.transition)

    def issue_certificate(
        self,
        exit_request_id: str,
        actor: Actor,
        conduct_statement: Optional[ConductStatement] = None,
        reissue_reason: Optional[str] = None,
    ) -> WorkflowResult:
        """Generate the certificate of an approved request, or re-issue it."""
        required = Permission(Resource.CERTIFICATES, Action.ISSUE)
        if not PermissionChecker(actor.permissions).has_permission(required):
            raise UnauthorizedError(
                f"{actor.name} cannot issue certificates",
                actor_role=actor.role.value,
                required=str(required),
            )

        with self.repository.transaction(exit_request_id) as unit:
            data = unit.data
            now = self.clock()
            certificate = build_certificate(
                data,
                actor,
                conduct_statement=conduct_statement,
                previous=data.certificate,
                reissue_reason=reissue_reason,
                now=now,
            )
            data.certificate = certificate
            unit.record(AuditEntry.create_entry(
                data.id, AuditAction.CERTIFICATE_ISSUED, actor, now,
                remarks=certificate.reissue_reason,
                details={
                    "certificate_id": certificate.certificate_id,
                    "version": certificate.version,
                    "version_hash": certificate.version_hash,
                },
            ))
        return self._finish(unit)

    # Helpers

    @staticmethod
    def _accepts_clearance_updates(data: ExitApprovalData) -> bool:
        return data.current_status == ExitRequestState.UNDER_CLEARANCE and data.checklist is not None

    @staticmethod
    def _require_student(actor: Actor, student_id: str) -> None:
        if actor.role != Role.STUDENT or actor.actor_id != student_id:
            raise UnauthorizedError(
                "Only the requesting student may do this",
                actor_role=actor.role.value,
                required=Role.STUDENT.value,
            )

    @staticmethod
    def _transition(
        unit: UnitOfWork,
        transition: ExitTransition,
        actor: Actor,
        now: datetime,
        comment: Optional[str] = None,
    ) -> TransitionRecord:
        record = unit.data.state_machine().transition(
            transition,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            comment=comment,
            timestamp=now,
        )
        unit.data.apply(record)
        return record

    @staticmethod
    def _entry(
        data: ExitApprovalData,
        action: AuditAction,
        actor: Actor,
        record: TransitionRecord,
        **kwargs,
    ) -> AuditEntry:
        return AuditEntry.create_entry(
            data.id, action, actor, record.timestamp,
            previous_status=record.from_state.value,
            new_status=record.to_state.value,
            **kwargs,
        )

    def _finish(
        self, unit: UnitOfWork, transition: Optional[TransitionRecord] = None
    ) -> WorkflowResult:
        for entry in unit.audit_entries:
            self._notify(entry)
        return WorkflowResult(
            data=unit.data,
            resolution=unit.data.evaluate(self.config.policy),
            audit_entries=list(unit.audit_entries),
            transition=transition,
        )

    def _notify(self, entry: AuditEntry) -> None:
        self.notifier.dispatch(TransitionEvent(
            exit_request_id=entry.exit_request_id,
            action=entry.action,
            old_status=entry.previous_status,
            new_status=entry.new_status,
            actor_id=entry.actor_id,
            actor_role=entry.actor_role,
            timestamp=entry.timestamp,
        ))
