"""Approval and override authority.

Executes the decision transitions of an exit request:
- approve: gated by the blocker resolver, records approval metadata
- reject: requires remarks
- override: privileged reversal of an approval, additive to the history

Each call validates everything before touching the aggregate, then
applies the transition and returns the computed audit entry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from exitflow.common.timeutils import utc_now
from exitflow.core.audit import AuditAction, AuditEntry, AuditSeverity
from exitflow.core.errors import (
    BlockedByMandatoryItemsError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidationError,
)
from exitflow.core.rbac.roles import Actor
from exitflow.core.request.machine import TransitionRecord
from exitflow.core.request.models import ExitApprovalData
from exitflow.core.request.states import (
    OVERRIDE_TRANSITIONS,
    ExitRequestState,
    ExitTransition,
)

from .blockers import BlockerResolution
from .models import ApprovalMetadata, OverrideReason, OverrideRecord
from .policy import DEFAULT_POLICY, ApprovalPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecisionResult:
    """Outcome of a successful decision."""
    data: ExitApprovalData
    transition: TransitionRecord
    audit_entry: AuditEntry
    resolution: BlockerResolution


class ApprovalAuthority:
    """Applies approve, reject and override decisions to an exit request."""

    def __init__(self, policy: Optional[ApprovalPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def approve(
        self,
        data: ExitApprovalData,
        actor: Actor,
        *,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DecisionResult:
        """
        Approve an exit request under clearance.

        Raises:
            InvalidTransitionError: If the request is not under clearance
            UnauthorizedError: If the actor's role may not approve
            BlockedByMandatoryItemsError: If ERROR blockers exist
        """
        machine = data.state_machine()
        machine.validate_transition(ExitTransition.APPROVE, actor.role)
        if data.checklist is None:
            raise InvalidTransitionError(
                f"Exit request {data.id} has no clearance checklist bound",
                from_state=data.current_status.value,
                to_state=ExitRequestState.APPROVED.value,
            )

        resolution = data.evaluate(self.policy)
        if not resolution.can_approve:
            logger.warning(
                "Approval of %s blocked by %d error(s)", data.id, len(resolution.errors)
            )
            raise BlockedByMandatoryItemsError(resolution.blockers)

        now = now or utc_now()
        metadata = ApprovalMetadata.from_actor(actor, now, remarks)
        record = machine.transition(
            ExitTransition.APPROVE,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            comment=remarks,
            timestamp=now,
        )
        data.apply(record)
        data.approval_history.insert(0, metadata)

        entry = AuditEntry.create_entry(
            data.id,
            AuditAction.APPROVED,
            actor,
            now,
            previous_status=record.from_state.value,
            new_status=record.to_state.value,
            remarks=remarks,
            details={
                "approval_id": metadata.approval_id,
                "warnings": [b.id for b in resolution.warnings],
            },
        )
        return DecisionResult(data, record, entry, resolution)

    def reject(
        self,
        data: ExitApprovalData,
        actor: Actor,
        remarks: str,
        *,
        now: Optional[datetime] = None,
    ) -> DecisionResult:
        """
        Reject an exit request under clearance.

        Raises:
            ValidationError: If remarks are empty
            InvalidTransitionError: If the request is not under clearance
            UnauthorizedError: If the actor's role may not reject
        """
        if not (remarks and remarks.strip()):
            raise ValidationError("Rejection requires remarks", field="remarks")

        now = now or utc_now()
        record = data.state_machine().transition(
            ExitTransition.REJECT,
            actor_id=actor.actor_id,
            actor_role=actor.role,
            comment=remarks,
            timestamp=now,
        )
        data.apply(record)
        data.rejection_remarks = remarks

        entry = AuditEntry.create_entry(
            data.id,
            AuditAction.REJECTED,
            actor,
            now,
            previous_status=record.from_state.value,
            new_status=record.to_state.value,
            remarks=remarks,
            severity=AuditSeverity.WARNING,
        )
        return DecisionResult(data, record, entry, data.evaluate(self.policy))

    def override(
        self,
        data: ExitApprovalData,
        actor: Actor,
        reason: Union[OverrideReason, str],
        justification: str,
        *,
        can_override: bool,
        target_state: ExitRequestState = ExitRequestState.UNDER_CLEARANCE,
        now: Optional[datetime] = None,
    ) -> DecisionResult:
        """
        Reverse an approved decision.

        The original approval stays in approval_history untouched; the
        override is prepended and referenced from last_override.

        Args:
            data: The exit request
            actor: Who overrides
            reason: Structured override reason
            justification: Free-text explanation, at least the policy minimum
            can_override: Override capability supplied by the authorization layer
            target_state: UNDER_CLEARANCE (default) or REJECTED
            now: When the override happened

        Raises:
            UnauthorizedError: If the capability is missing
            InvalidTransitionError: If the request is not APPROVED
            ValidationError: If the reason, target or justification is invalid
        """
        if not can_override:
            raise UnauthorizedError(
                f"{actor.name} does not hold the override capability",
                actor_role=actor.role.value,
                required="override",
            )

        if data.current_status != ExitRequestState.APPROVED or not data.approval_history:
            raise InvalidTransitionError(
                f"Only approved requests can be overridden, {data.id} is {data.current_status.value}",
                from_state=data.current_status.value,
                to_state=target_state.value,
            )

        try:
            reason = OverrideReason(reason)
        except ValueError as exc:
            raise ValidationError(f"Invalid override reason: {reason}", field="reason") from exc

        if target_state not in OVERRIDE_TRANSITIONS:
            raise ValidationError(
                f"Override cannot move a request to {target_state.value}", field="target_state"
            )

        minimum = self.policy.override_min_justification_length
        if len((justification or "").strip()) < minimum:
            raise ValidationError(
                f"Override justification must be at least {minimum} characters",
                field="justification",
            )

        original = data.approval_history[0]
        now = now or utc_now()
        record = data.state_machine().transition(
            OVERRIDE_TRANSITIONS[target_state],
            actor_id=actor.actor_id,
            actor_role=actor.role,
            comment=justification,
            can_override=True,
            timestamp=now,
        )

        metadata = ApprovalMetadata.from_actor(actor, now, justification)
        override = OverrideRecord(
            metadata=metadata,
            reason=reason,
            justification=justification,
            referenced_approval_id=original.approval_id,
            referenced_approval_timestamp=original.timestamp,
            target_state=target_state,
        )
        data.apply(record)
        data.approval_history.insert(0, metadata)
        data.last_override = override
        data.override_history.append(override)
        if target_state == ExitRequestState.REJECTED:
            data.rejection_remarks = justification

        logger.warning(
            "Approval %s of %s overridden by %s (%s) -> %s",
            original.approval_id,
            data.id,
            actor.actor_id,
            reason.value,
            target_state.value,
        )

        entry = AuditEntry.create_entry(
            data.id,
            AuditAction.OVERRIDDEN,
            actor,
            now,
            previous_status=record.from_state.value,
            new_status=record.to_state.value,
            justification=justification,
            severity=AuditSeverity.CRITICAL,
            details={
                "reason": reason.value,
                "referenced_approval_id": original.approval_id,
                "referenced_approval_timestamp": original.timestamp.isoformat(),
                "referenced_approver_id": original.approver_id,
            },
        )
        return DecisionResult(data, record, entry, data.evaluate(self.policy))
