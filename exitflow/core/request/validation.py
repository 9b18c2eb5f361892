"""Exit request submission checks.

Returns a field -> message map rather than raising, so the calling layer
can show every problem at once.
"""

import re
from datetime import datetime, timedelta
from typing import Dict, Optional

from exitflow.core.approval.policy import DEFAULT_POLICY, ApprovalPolicy

from .models import ExitRequestDraft

PINCODE_PATTERN = re.compile(r"^\d{6}$")
PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _blank(value: Optional[str]) -> bool:
    return not (value and value.strip())


def validate_submission(
    draft: ExitRequestDraft,
    now: datetime,
    policy: Optional[ApprovalPolicy] = None,
) -> Dict[str, str]:
    """
    Validate a draft for submission.

    Args:
        draft: The draft to check
        now: Submission time
        policy: Approval policy supplying notice period and reason length

    Returns:
        Mapping of field name to error message; empty when valid
    """
    policy = policy or DEFAULT_POLICY
    errors: Dict[str, str] = {}

    if _blank(draft.student_id):
        errors["student_id"] = "Student ID is required"
    if _blank(draft.student_name):
        errors["student_name"] = "Student name is required"
    if _blank(draft.room_number):
        errors["room_number"] = "Room number is required"

    earliest = now.date() + timedelta(days=policy.min_notice_days)
    if draft.requested_exit_date is None:
        errors["requested_exit_date"] = "Exit date is required"
    elif draft.requested_exit_date < earliest:
        errors["requested_exit_date"] = (
            f"Exit date must be at least {policy.min_notice_days} days from today"
        )

    if len((draft.reason or "").strip()) < policy.min_reason_length:
        errors["reason"] = f"Reason must be at least {policy.min_reason_length} characters"

    address = draft.forwarding_address
    for part in ("street", "city", "state"):
        if _blank(getattr(address, part)):
            errors[f"forwarding_address.{part}"] = f"{part.capitalize()} is required"
    if not PINCODE_PATTERN.match((address.pincode or "").strip()):
        errors["forwarding_address.pincode"] = "Pincode must be exactly 6 digits"

    contact = draft.preferred_contact
    phone = re.sub(r"[\s-]", "", contact.phone or "")
    if not PHONE_PATTERN.match(phone):
        errors["preferred_contact.phone"] = "Invalid phone number"
    if not EMAIL_PATTERN.match((contact.email or "").strip()):
        errors["preferred_contact.email"] = "Invalid email address"

    if draft.admission_date and draft.requested_exit_date and (
        draft.admission_date > draft.requested_exit_date
    ):
        errors["admission_date"] = "Admission date must be before the exit date"

    return errors
