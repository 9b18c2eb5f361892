"""Clearance checklist data model.

A checklist owns one ClearanceItem per departmental sign-off. Items are
never removed; closure is a terminal status. Each item carries an
append-only history of status changes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from exitflow.common.timeutils import round_half_up
from exitflow.core.rbac.roles import Role


class ClearanceItemType(str, Enum):
    """Kinds of departmental clearance."""
    ROOM_INVENTORY = "ROOM_INVENTORY"
    KEY_RETURN = "KEY_RETURN"
    ID_CARD_RETURN = "ID_CARD_RETURN"
    ACCOUNTS_CLEARANCE = "ACCOUNTS_CLEARANCE"
    LIBRARY_DUES = "LIBRARY_DUES"
    MESS_DUES = "MESS_DUES"
    CUSTOM = "CUSTOM"


class ClearanceItemStatus(str, Enum):
    """Status of a clearance item."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    WAIVED = "WAIVED"


# Forward order of statuses; COMPLETED and WAIVED are both closing states
STATUS_RANK: Dict[ClearanceItemStatus, int] = {
    ClearanceItemStatus.PENDING: 0,
    ClearanceItemStatus.IN_PROGRESS: 1,
    ClearanceItemStatus.COMPLETED: 2,
    ClearanceItemStatus.WAIVED: 2,
}

# Statuses that satisfy the mandatory-item gate
CLOSED_STATUSES = frozenset({ClearanceItemStatus.COMPLETED, ClearanceItemStatus.WAIVED})


@dataclass(frozen=True)
class ClearanceItemHistoryEntry:
    """Immutable record of one status change on a clearance item."""
    id: str
    previous_status: Optional[ClearanceItemStatus]
    new_status: ClearanceItemStatus
    actor: str
    actor_role: Role
    timestamp: datetime
    remarks: Optional[str] = None
    justification: Optional[str] = None

    @property
    def is_reversal(self) -> bool:
        return (
            self.previous_status is not None
            and STATUS_RANK[self.new_status] < STATUS_RANK[self.previous_status]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "new_status": self.new_status.value,
            "actor": self.actor,
            "actor_role": self.actor_role.value,
            "timestamp": self.timestamp.isoformat(),
            "remarks": self.remarks,
            "justification": self.justification,
        }


@dataclass
class ClearanceItem:
    """One unit of departmental sign-off."""
    id: str
    type: ClearanceItemType
    title: str
    owner_role: Role
    status: ClearanceItemStatus = ClearanceItemStatus.PENDING
    is_mandatory: bool = True
    description: str = ""
    last_updated_at: Optional[datetime] = None
    last_updated_by: Optional[str] = None
    remarks: Optional[str] = None
    student_instructions: Optional[str] = None
    history: List[ClearanceItemHistoryEntry] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    @property
    def is_blocking(self) -> bool:
        """A mandatory item that is neither completed nor waived."""
        return self.is_mandatory and not self.is_closed


@dataclass
class ExitClearanceChecklist:
    """
    Ordered clearance items for one exit request.

    Every aggregate below is recomputed from the items on access, so it
    always reflects the last applied mutation.
    """
    exit_request_id: str
    items: List[ClearanceItem] = field(default_factory=list)

    def get_item(self, item_id: str) -> Optional[ClearanceItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def all_mandatory_completed(self) -> bool:
        return all(item.is_closed for item in self.items if item.is_mandatory)

    @property
    def blocking_items(self) -> List[str]:
        return [item.id for item in self.items if item.is_blocking]

    @property
    def total_count(self) -> int:
        return len(self.items)

    @property
    def completed_count(self) -> int:
        """Items marked COMPLETED. Waived items are counted separately."""
        return sum(1 for item in self.items if item.status == ClearanceItemStatus.COMPLETED)

    @property
    def waived_count(self) -> int:
        return sum(1 for item in self.items if item.status == ClearanceItemStatus.WAIVED)

    @property
    def pending_count(self) -> int:
        return sum(1 for item in self.items if not item.is_closed)

    @property
    def mandatory_pending_count(self) -> int:
        return len(self.blocking_items)

    @property
    def completion_percentage(self) -> int:
        if not self.items:
            return 0
        return round_half_up(self.completed_count * 100 / self.total_count)

    def items_owned_by(self, role: Role) -> List[ClearanceItem]:
        return [item for item in self.items if item.owner_role == role]
