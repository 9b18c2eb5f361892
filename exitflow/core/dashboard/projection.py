"""Projection of exit request aggregates onto dashboard summaries.

Everything time-dependent is computed against an explicit ``as_of``
instant so the projection stays deterministic.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from exitflow.common.timeutils import parse_iso, whole_days_between
from exitflow.core.rbac.roles import Role
from exitflow.core.request.models import ExitApprovalData
from exitflow.core.request.states import TRACKED_STATES

from .models import (
    ClearanceProgress,
    DashboardPolicy,
    ExitRequestSummary,
    LastActivity,
    OwnedItems,
)


def _last_activity(data: ExitApprovalData) -> Optional[LastActivity]:
    entries = [e for item in (data.checklist.items if data.checklist else []) for e in item.history]
    if not entries:
        return None
    latest = max(entries, key=lambda e: e.timestamp)
    return LastActivity(
        timestamp=latest.timestamp,
        actor=latest.actor,
        action=latest.new_status.value,
    )


def summarize_exit_request(
    data: ExitApprovalData,
    viewer_role: Role,
    as_of: datetime,
    policy: Optional[DashboardPolicy] = None,
) -> ExitRequestSummary:
    """
    Derive the dashboard summary of one exit request.

    Args:
        data: The exit request aggregate (must have been submitted)
        viewer_role: Role whose owned items are counted
        as_of: Reference instant for aging and overdue calculation
        policy: Dashboard thresholds

    Returns:
        ExitRequestSummary
    """
    policy = policy or DashboardPolicy()
    items = data.checklist.items if data.checklist else []
    submitted_at = parse_iso(data.submitted_date or data.created_at)
    as_of = parse_iso(as_of)

    open_items = [i for i in items if not i.is_closed]
    completed = len(items) - len(open_items)
    # Decided requests no longer accrue overdue items
    past_sla = as_of > submitted_at + timedelta(days=policy.item_sla_days)
    overdue = len(open_items) if past_sla and not data.is_locked else 0

    owned = [i for i in items if i.owner_role == viewer_role]
    owned_completed = sum(1 for i in owned if i.is_closed)

    days_to_exit = whole_days_between(as_of, parse_iso(data.requested_exit_date))
    mandatory_open = not data.is_locked and any(i.is_blocking for i in items)
    is_high_risk = overdue > 0 or (
        days_to_exit <= policy.high_risk_exit_window_days and mandatory_open
    )

    return ExitRequestSummary(
        id=data.id,
        student_name=data.student_name,
        student_id=data.student_id,
        room_number=data.room_number,
        vertical=data.vertical,
        requested_exit_date=data.requested_exit_date,
        submitted_date=submitted_at,
        current_status=data.current_status,
        clearance_progress=ClearanceProgress(
            total=len(items),
            completed=completed,
            pending=len(items) - completed,
            overdue=overdue,
        ),
        owned_items=OwnedItems(
            total=len(owned),
            completed=owned_completed,
            pending=len(owned) - owned_completed,
        ),
        aging_days=max(whole_days_between(submitted_at, as_of), 0),
        is_high_risk=is_high_risk,
        last_activity=_last_activity(data),
    )


def summarize_exit_requests(
    requests: Iterable[ExitApprovalData],
    viewer_role: Role,
    as_of: datetime,
    policy: Optional[DashboardPolicy] = None,
) -> List[ExitRequestSummary]:
    """Summaries of every tracked request; drafts and withdrawn requests are skipped."""
    return [
        summarize_exit_request(data, viewer_role, as_of, policy)
        for data in requests
        if data.current_status in TRACKED_STATES
    ]
