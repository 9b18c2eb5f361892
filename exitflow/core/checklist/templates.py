"""Per-vertical checklist templates and checklist instantiation."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from exitflow.common.timeutils import utc_now
from exitflow.core.rbac.roles import Role
from exitflow.core.request.models import HostelVertical

from .models import (
    ClearanceItem,
    ClearanceItemHistoryEntry,
    ClearanceItemStatus,
    ClearanceItemType,
    ExitClearanceChecklist,
)


@dataclass(frozen=True)
class ChecklistItemTemplate:
    """Blueprint for one clearance item."""
    type: ClearanceItemType
    title: str
    owner_role: Role
    description: str = ""
    mandatory: bool = True


ROOM_INVENTORY = ChecklistItemTemplate(
    ClearanceItemType.ROOM_INVENTORY, "Room Inventory", Role.SUPERINTENDENT,
    "Room inspected and furniture inventory verified",
)
KEY_RETURN = ChecklistItemTemplate(
    ClearanceItemType.KEY_RETURN, "Key Return", Role.SUPERINTENDENT,
    "Room and locker keys returned",
)
ID_CARD_RETURN = ChecklistItemTemplate(
    ClearanceItemType.ID_CARD_RETURN, "ID Card Return", Role.ADMIN,
    "Hostel identity card surrendered",
)
ACCOUNTS_CLEARANCE = ChecklistItemTemplate(
    ClearanceItemType.ACCOUNTS_CLEARANCE, "Accounts Clearance", Role.ACCOUNTS,
    "Fees and deposit reconciled",
)
MESS_DUES = ChecklistItemTemplate(
    ClearanceItemType.MESS_DUES, "Mess Dues", Role.MESS,
    "Mess bills settled",
)
LIBRARY_DUES = ChecklistItemTemplate(
    ClearanceItemType.LIBRARY_DUES, "Library Dues", Role.LIBRARY,
    "Books returned and fines paid", mandatory=False,
)

_RESIDENTIAL = [ROOM_INVENTORY, KEY_RETURN, ID_CARD_RETURN, ACCOUNTS_CLEARANCE, MESS_DUES, LIBRARY_DUES]

DEFAULT_CHECKLIST_TEMPLATES: Dict[HostelVertical, List[ChecklistItemTemplate]] = {
    HostelVertical.BOYS: list(_RESIDENTIAL),
    HostelVertical.GIRLS: list(_RESIDENTIAL),
    HostelVertical.DHARAMSHALA: [
        ROOM_INVENTORY,
        KEY_RETURN,
        ACCOUNTS_CLEARANCE,
        ChecklistItemTemplate(
            ClearanceItemType.MESS_DUES, "Mess Dues", Role.MESS,
            "Mess bills settled", mandatory=False,
        ),
    ],
}


def instantiate_checklist(
    exit_request_id: str,
    templates: Iterable[ChecklistItemTemplate],
    timestamp: Optional[datetime] = None,
) -> ExitClearanceChecklist:
    """
    Create the clearance checklist for an exit request.

    Items start PENDING with a single SYSTEM history entry. A CUSTOM type
    may repeat, so repeated types get a numeric suffix on their id.
    """
    now = timestamp or utc_now()
    seen: Dict[ClearanceItemType, int] = {}
    items = []
    for template in templates:
        seen[template.type] = seen.get(template.type, 0) + 1
        item_id = f"{exit_request_id}-{template.type.value}"
        if seen[template.type] > 1:
            item_id = f"{item_id}-{seen[template.type]}"

        items.append(ClearanceItem(
            id=item_id,
            type=template.type,
            title=template.title,
            owner_role=template.owner_role,
            is_mandatory=template.mandatory,
            description=template.description,
            last_updated_at=now,
            last_updated_by=Role.SYSTEM.value,
            history=[ClearanceItemHistoryEntry(
                id=str(uuid.uuid4()),
                previous_status=None,
                new_status=ClearanceItemStatus.PENDING,
                actor=Role.SYSTEM.value,
                actor_role=Role.SYSTEM,
                timestamp=now,
            )],
        ))
    return ExitClearanceChecklist(exit_request_id=exit_request_id, items=items)
