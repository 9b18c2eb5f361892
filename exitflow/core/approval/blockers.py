"""Approval blocker resolution.

Pure derivation from a checklist and a financial summary. Every rule is
evaluated; each condition that holds yields its own blocker. Only ERROR
blockers affect can_approve.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from exitflow.core.checklist.models import ExitClearanceChecklist

from .models import ApprovalBlocker, BlockerType, FinancialSummary, Severity
from .policy import DEFAULT_POLICY, ApprovalPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockerResolution:
    """Blockers and the approval verdict derived from them."""
    blockers: List[ApprovalBlocker] = field(default_factory=list)

    @property
    def can_approve(self) -> bool:
        return not any(b.is_error for b in self.blockers)

    @property
    def errors(self) -> List[ApprovalBlocker]:
        return [b for b in self.blockers if b.is_error]

    @property
    def warnings(self) -> List[ApprovalBlocker]:
        return [b for b in self.blockers if not b.is_error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockers": [b.to_dict() for b in self.blockers],
            "can_approve": self.can_approve,
        }


def _financial_severity(summary: FinancialSummary, policy: ApprovalPolicy) -> Severity:
    threshold = policy.dues_hard_block_threshold
    if threshold is not None and summary.pending_dues > threshold:
        return Severity.ERROR
    return Severity.WARNING


def resolve_blockers(
    checklist: ExitClearanceChecklist,
    financial_summary: FinancialSummary,
    policy: Optional[ApprovalPolicy] = None,
) -> BlockerResolution:
    """
    Derive approval blockers.

    Rules:
    1. One MANDATORY_ITEM ERROR per mandatory item not completed or waived
    2. One FINANCIAL blocker when dues are pending or clearance is incomplete;
       WARNING unless dues exceed the configured hard-block threshold
    3. One SYSTEM WARNING when the checklist has no items at all

    Args:
        checklist: The request's clearance checklist
        financial_summary: The request's financial position
        policy: Approval policy (defaults apply when omitted)

    Returns:
        BlockerResolution with the blockers and can_approve
    """
    policy = policy or DEFAULT_POLICY
    blockers: List[ApprovalBlocker] = []

    for item_id in checklist.blocking_items:
        item = checklist.get_item(item_id)
        blockers.append(ApprovalBlocker(
            id=f"mandatory-{item_id}",
            type=BlockerType.MANDATORY_ITEM,
            severity=Severity.ERROR,
            title=f"{item.title} pending",
            description=(
                f"Mandatory clearance '{item.title}' owned by {item.owner_role.value} "
                f"is {item.status.value}"
            ),
            item_id=item_id,
        ))

    if financial_summary.pending_dues > 0 or not financial_summary.is_clearance_complete:
        blockers.append(ApprovalBlocker(
            id="financial-dues",
            type=BlockerType.FINANCIAL,
            severity=_financial_severity(financial_summary, policy),
            title="Pending dues",
            description=f"Outstanding dues of {financial_summary.pending_dues:.2f}",
        ))

    if not checklist.items:
        blockers.append(ApprovalBlocker(
            id="system-empty-checklist",
            type=BlockerType.SYSTEM,
            severity=Severity.WARNING,
            title="Empty checklist",
            description="No clearance items are configured for this request",
        ))

    resolution = BlockerResolution(blockers)
    logger.debug(
        "Resolved %d blocker(s) for %s, can_approve=%s",
        len(blockers),
        checklist.exit_request_id,
        resolution.can_approve,
    )
    return resolution
