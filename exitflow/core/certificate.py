"""Exit certificate payload.

Builds the data handed to the downstream certificate renderer. Only
approved requests get a certificate; re-issues bump the version and
must say why. Each version carries a SHA-256 hash of its own content.
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from exitflow.common.timeutils import utc_now, whole_months_between
from exitflow.core.errors import InvalidTransitionError, ValidationError
from exitflow.core.rbac.roles import Actor, Role
from exitflow.core.request.states import ExitRequestState


class ConductRating(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    SATISFACTORY = "SATISFACTORY"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"


@dataclass(frozen=True)
class ConductStatement:
    rating: ConductRating
    issued_by: str
    issued_by_role: Role
    remarks: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating.value,
            "issued_by": self.issued_by,
            "issued_by_role": self.issued_by_role.value,
            "remarks": self.remarks,
        }


@dataclass(frozen=True)
class CertificateData:
    """One version of an exit certificate."""
    certificate_id: str
    version_id: str
    version: int
    student_id: str
    student_name: str
    vertical: str
    room_number: str
    exit_date: date
    approval_date: datetime
    approved_by: str
    approved_by_role: Role
    generated_at: datetime
    generated_by: str
    generated_by_role: Role
    admission_date: Optional[date] = None
    stay_duration: Optional[str] = None
    conduct_statement: Optional[ConductStatement] = None
    previous_version_id: Optional[str] = None
    reissue_reason: Optional[str] = None
    version_hash: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "certificate_id": self.certificate_id,
            "version_id": self.version_id,
            "version": self.version,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "vertical": self.vertical,
            "room_number": self.room_number,
            "admission_date": self.admission_date.isoformat() if self.admission_date else None,
            "exit_date": self.exit_date.isoformat(),
            "stay_duration": self.stay_duration,
            "approval_date": self.approval_date.isoformat(),
            "approved_by": self.approved_by,
            "approved_by_role": self.approved_by_role.value,
            "generated_at": self.generated_at.isoformat(),
            "generated_by": self.generated_by,
            "generated_by_role": self.generated_by_role.value,
            "conduct_statement": (
                self.conduct_statement.to_dict() if self.conduct_statement else None
            ),
            "previous_version_id": self.previous_version_id,
            "reissue_reason": self.reissue_reason,
            "version_hash": self.version_hash,
        }

    def compute_hash(self) -> str:
        payload = self.to_dict()
        payload.pop("version_hash")
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def verify(self) -> bool:
        """Check the stored hash against the content."""
        return self.version_hash == self.compute_hash()


def format_stay_duration(admission_date: date, exit_date: date) -> str:
    months = whole_months_between(admission_date, exit_date)
    return f"{months} month" if months == 1 else f"{months} months"


def build_certificate(
    data: Any,
    issued_by: Actor,
    *,
    conduct_statement: Optional[ConductStatement] = None,
    previous: Optional[CertificateData] = None,
    reissue_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CertificateData:
    """
    Build a certificate version for an approved exit request.

    Args:
        data: The ExitApprovalData aggregate
        issued_by: Actor generating the certificate
        conduct_statement: Optional conduct statement
        previous: Previous version when re-issuing
        reissue_reason: Required when re-issuing
        now: Generation time (defaults to now)

    Returns:
        CertificateData with version_hash filled in

    Raises:
        InvalidTransitionError: If the request is not APPROVED
        ValidationError: If a re-issue has no reason
    """
    if data.current_status != ExitRequestState.APPROVED or not data.approval_history:
        raise InvalidTransitionError(
            f"Certificate requires an approved request, {data.id} is {data.current_status.value}",
            from_state=data.current_status.value,
            to_state="CERTIFICATE_ISSUED",
        )

    if previous is not None and not (reissue_reason and reissue_reason.strip()):
        raise ValidationError("Re-issuing a certificate requires a reason", field="reissue_reason")

    approval = data.approval_history[0]
    certificate = CertificateData(
        certificate_id=previous.certificate_id if previous else str(uuid.uuid4()),
        version_id=str(uuid.uuid4()),
        version=previous.version + 1 if previous else 1,
        student_id=data.student_id,
        student_name=data.student_name,
        vertical=data.vertical.value,
        room_number=data.room_number,
        exit_date=data.requested_exit_date,
        approval_date=approval.timestamp,
        approved_by=approval.approver_name,
        approved_by_role=approval.approver_role,
        generated_at=now or utc_now(),
        generated_by=issued_by.name,
        generated_by_role=issued_by.role,
        admission_date=data.admission_date,
        stay_duration=(
            format_stay_duration(data.admission_date, data.requested_exit_date)
            if data.admission_date else None
        ),
        conduct_statement=conduct_statement,
        previous_version_id=previous.version_id if previous else None,
        reissue_reason=reissue_reason if previous else None,
    )
    return _with_hash(certificate)


def _with_hash(certificate: CertificateData) -> CertificateData:
    return replace(certificate, version_hash=certificate.compute_hash())
