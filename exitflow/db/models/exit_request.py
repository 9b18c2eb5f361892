"""Exit request snapshot table.

The full aggregate is stored as its JSON contract in ``snapshot``; the
identity and state columns are denormalized for querying. ``version`` is
bumped on every committed change and guards against lost updates.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String

from exitflow.core.request.models import ExitApprovalData
from exitflow.db.base import Base
from exitflow.schemas.exit_request import ExitApprovalDataSchema


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExitRequestRecord(Base):
    """Persisted exit request."""
    __tablename__ = "exit_requests"

    id = Column(String(64), primary_key=True)

    # Denormalized for filtering
    student_id = Column(String(64), nullable=False, index=True)
    vertical = Column(String(20), nullable=False, index=True)
    state = Column(String(30), nullable=False, index=True)
    requested_exit_date = Column(Date, nullable=False)

    snapshot = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<ExitRequestRecord {self.id} {self.state} v{self.version}>"

    @classmethod
    def from_domain(cls, data: ExitApprovalData) -> "ExitRequestRecord":
        record = cls(id=data.id, version=1)
        record.apply(data)
        return record

    @staticmethod
    def column_values(data: ExitApprovalData) -> Dict[str, Any]:
        """Snapshot and denormalized column values for the aggregate."""
        return {
            "student_id": data.student_id,
            "vertical": data.vertical.value,
            "state": data.current_status.value,
            "requested_exit_date": data.requested_exit_date,
            "snapshot": ExitApprovalDataSchema.from_domain(data).to_payload(),
        }

    def apply(self, data: ExitApprovalData) -> None:
        """Overwrite the snapshot and denormalized columns from the aggregate."""
        for name, value in self.column_values(data).items():
            setattr(self, name, value)

    def to_domain(self) -> ExitApprovalData:
        return ExitApprovalDataSchema.model_validate(self.snapshot).to_domain()
