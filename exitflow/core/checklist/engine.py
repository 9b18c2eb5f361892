"""Clearance checklist engine.

Applies item status changes after validating ownership, direction and
required remarks. Validation runs to completion before anything is
mutated, so a failed update leaves the item and its history untouched.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from exitflow.common.timeutils import utc_now
from exitflow.core.errors import (
    ChecklistLockedError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidationError,
)
from exitflow.core.rbac.roles import Role

from .models import (
    STATUS_RANK,
    ClearanceItem,
    ClearanceItemHistoryEntry,
    ClearanceItemStatus,
    ExitClearanceChecklist,
)

logger = logging.getLogger(__name__)

# Roles that may act on items they do not own when holding the override capability
OVERRIDING_ROLES = frozenset({Role.ADMIN, Role.TRUSTEE})


@dataclass(frozen=True)
class ItemUpdate:
    """Result of a successful item status change."""
    item: ClearanceItem
    entry: ClearanceItemHistoryEntry
    all_mandatory_completed: bool
    blocking_items: tuple


def _is_reversal(current: ClearanceItemStatus, new: ClearanceItemStatus) -> bool:
    return current == ClearanceItemStatus.COMPLETED and new != ClearanceItemStatus.COMPLETED


def check_item_update(
    item: ClearanceItem,
    new_status: ClearanceItemStatus,
    actor_role: Role,
    *,
    remarks: Optional[str] = None,
    justification: Optional[str] = None,
    can_override: bool = False,
) -> None:
    """
    Validate an item status change without applying it.

    Raises:
        UnauthorizedError: If the actor does not own the item
        InvalidTransitionError: If the item would move backwards other than by a
            justified reversal from COMPLETED
        ValidationError: If WAIVED is requested without remarks
    """
    if actor_role != item.owner_role and not (can_override and actor_role in OVERRIDING_ROLES):
        raise UnauthorizedError(
            f"Role {actor_role.value} cannot update '{item.title}'",
            actor_role=actor_role.value,
            required=item.owner_role.value,
        )

    if _is_reversal(item.status, new_status):
        if not (justification and justification.strip()):
            raise InvalidTransitionError(
                f"Reverting '{item.title}' from {item.status.value} to {new_status.value} "
                "requires a justification",
                from_state=item.status.value,
                to_state=new_status.value,
            )
    elif STATUS_RANK[new_status] < STATUS_RANK[item.status]:
        raise InvalidTransitionError(
            f"'{item.title}' cannot move back from {item.status.value} to {new_status.value}; "
            "only completed items may be reverted",
            from_state=item.status.value,
            to_state=new_status.value,
        )

    if new_status == ClearanceItemStatus.WAIVED and not (remarks and remarks.strip()):
        raise ValidationError("Waiving an item requires remarks", field="remarks")


def update_item_status(
    checklist: ExitClearanceChecklist,
    item_id: str,
    new_status: ClearanceItemStatus,
    actor_id: str,
    actor_role: Role,
    *,
    remarks: Optional[str] = None,
    justification: Optional[str] = None,
    can_override: bool = False,
    locked: bool = False,
    timestamp: Optional[datetime] = None,
) -> ItemUpdate:
    """
    Change the status of one clearance item.

    Args:
        checklist: Checklist owning the item
        item_id: ID of the item to update
        new_status: Requested status
        actor_id: Who is making the change
        actor_role: Role of the actor
        remarks: Free-text remarks (required for WAIVED)
        justification: Required when reverting a COMPLETED item
        can_override: Whether the actor holds the override capability
        locked: Whether the owning request is decided
        timestamp: When the change happened (defaults to now)

    Returns:
        ItemUpdate with the appended history entry and recomputed gate

    Raises:
        ChecklistLockedError: If the checklist is read-only
        ValidationError: If the item is unknown or remarks are missing
        UnauthorizedError: If the actor does not own the item
        InvalidTransitionError: If the move is backwards and not a justified reversal
    """
    if locked:
        raise ChecklistLockedError(
            f"Clearance item {item_id} is locked",
            to_state=new_status.value,
        )

    item = checklist.get_item(item_id)
    if item is None:
        raise ValidationError(f"Unknown clearance item: {item_id}", field="item_id")

    check_item_update(
        item,
        new_status,
        actor_role,
        remarks=remarks,
        justification=justification,
        can_override=can_override,
    )

    now = timestamp or utc_now()
    entry = ClearanceItemHistoryEntry(
        id=str(uuid.uuid4()),
        previous_status=item.status,
        new_status=new_status,
        actor=actor_id,
        actor_role=actor_role,
        timestamp=now,
        remarks=remarks,
        justification=justification,
    )
    item.history.append(entry)
    item.status = new_status
    item.last_updated_at = now
    item.last_updated_by = actor_id
    if remarks is not None:
        item.remarks = remarks

    logger.info(
        "Item %s: %s -> %s by %s",
        item.id,
        entry.previous_status.value,
        new_status.value,
        actor_role.value,
    )

    return ItemUpdate(
        item=item,
        entry=entry,
        all_mandatory_completed=checklist.all_mandatory_completed,
        blocking_items=tuple(checklist.blocking_items),
    )
