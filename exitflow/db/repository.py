"""Exit request repositories.

Every mutation of an exit request runs inside ``transaction(id)``, which
serializes work on that request, hands out a private copy of the
aggregate and persists the copy together with its audit entries only
when the block finishes without an exception.
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from exitflow.core.audit import AuditEntry
from exitflow.core.errors import (
    ExitRequestNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from exitflow.core.request.models import ExitApprovalData
from exitflow.db.models import ExitAuditLog, ExitRequestRecord
from exitflow.schemas.exit_request import AuditEntrySchema, ExitApprovalDataSchema

logger = logging.getLogger(__name__)


@dataclass
class UnitOfWork:
    """Working copy of one exit request plus the audit entries to write with it."""
    data: ExitApprovalData
    audit_entries: List[AuditEntry] = field(default_factory=list)

    def record(self, entry: AuditEntry) -> None:
        self.audit_entries.append(entry)


class RequestLocks:
    """One lock per exit request; the table itself is guarded by a master lock."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._master = threading.Lock()

    def for_request(self, exit_request_id: str) -> threading.Lock:
        with self._master:
            return self._locks.setdefault(exit_request_id, threading.Lock())


class ExitRequestRepository(ABC):
    """Persistence boundary for exit requests."""

    @abstractmethod
    def add(self, data: ExitApprovalData, audit_entries: Iterable[AuditEntry] = ()) -> None:
        """Store a new exit request."""

    @abstractmethod
    def get(self, exit_request_id: str) -> ExitApprovalData:
        """Load an exit request; raises ExitRequestNotFoundError when missing."""

    @abstractmethod
    def list_all(self) -> List[ExitApprovalData]:
        """All stored exit requests."""

    @abstractmethod
    def audit_log(self, exit_request_id: str) -> List[AuditEntry]:
        """Audit entries of an exit request, oldest first."""

    @abstractmethod
    def transaction(self, exit_request_id: str):
        """Context manager yielding a UnitOfWork under the request's lock."""


class InMemoryExitRequestRepository(ExitRequestRepository):
    """Repository keeping serialized snapshots in memory."""

    def __init__(self):
        self._snapshots: Dict[str, dict] = {}
        self._audit: Dict[str, List[dict]] = {}
        self._locks = RequestLocks()

    def _store(self, data: ExitApprovalData, audit_entries: Iterable[AuditEntry]) -> None:
        self._snapshots[data.id] = ExitApprovalDataSchema.from_domain(data).to_payload()
        self._audit.setdefault(data.id, []).extend(
            AuditEntrySchema.from_domain(e).to_payload() for e in audit_entries
        )

    def add(self, data: ExitApprovalData, audit_entries: Iterable[AuditEntry] = ()) -> None:
        with self._locks.for_request(data.id):
            if data.id in self._snapshots:
                raise ValidationError(f"Exit request {data.id} already exists", field="id")
            self._store(data, audit_entries)

    def get(self, exit_request_id: str) -> ExitApprovalData:
        snapshot = self._snapshots.get(exit_request_id)
        if snapshot is None:
            raise ExitRequestNotFoundError(exit_request_id)
        return ExitApprovalDataSchema.model_validate(snapshot).to_domain()

    def list_all(self) -> List[ExitApprovalData]:
        return [self.get(exit_request_id) for exit_request_id in list(self._snapshots)]

    def audit_log(self, exit_request_id: str) -> List[AuditEntry]:
        return [
            AuditEntrySchema.model_validate(payload).to_domain()
            for payload in self._audit.get(exit_request_id, [])
        ]

    @contextmanager
    def transaction(self, exit_request_id: str) -> Iterator[UnitOfWork]:
        with self._locks.for_request(exit_request_id):
            unit = UnitOfWork(self.get(exit_request_id))
            yield unit
            self._store(unit.data, unit.audit_entries)


class SqlAlchemyExitRequestRepository(ExitRequestRepository):
    """
    Repository backed by SQLAlchemy.

    Mutations of one exit request are serialized in process by a
    per-request lock and across processes by SELECT ... FOR UPDATE where
    the database supports it. The write is an UPDATE conditioned on the
    version that was read, so a row changed by anyone else in between
    (SQLite ignores FOR UPDATE) fails the transaction instead of being
    overwritten.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._locks = RequestLocks()

    def add(self, data: ExitApprovalData, audit_entries: Iterable[AuditEntry] = ()) -> None:
        with self._locks.for_request(data.id):
            session = self.session_factory()
            try:
                if session.get(ExitRequestRecord, data.id) is not None:
                    raise ValidationError(f"Exit request {data.id} already exists", field="id")
                session.add(ExitRequestRecord.from_domain(data))
                for entry in audit_entries:
                    session.add(ExitAuditLog.create_entry(entry))
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def get(self, exit_request_id: str) -> ExitApprovalData:
        session = self.session_factory()
        try:
            record = session.get(ExitRequestRecord, exit_request_id)
            if record is None:
                raise ExitRequestNotFoundError(exit_request_id)
            return record.to_domain()
        finally:
            session.close()

    def list_all(self) -> List[ExitApprovalData]:
        session = self.session_factory()
        try:
            records = session.query(ExitRequestRecord).order_by(ExitRequestRecord.created_at).all()
            return [r.to_domain() for r in records]
        finally:
            session.close()

    def audit_log(self, exit_request_id: str) -> List[AuditEntry]:
        session = self.session_factory()
        try:
            rows = (
                session.query(ExitAuditLog)
                .filter(ExitAuditLog.exit_request_id == exit_request_id)
                .order_by(ExitAuditLog.created_at)
                .all()
            )
            return [row.to_domain() for row in rows]
        finally:
            session.close()

    @contextmanager
    def transaction(self, exit_request_id: str) -> Iterator[UnitOfWork]:
        with self._locks.for_request(exit_request_id):
            session = self.session_factory()
            try:
                record = (
                    session.query(ExitRequestRecord)
                    .filter(ExitRequestRecord.id == exit_request_id)
                    .with_for_update()
                    .first()
                )
                if record is None:
                    raise ExitRequestNotFoundError(exit_request_id)
                read_version = record.version
                read_state = record.state

                unit = UnitOfWork(record.to_domain())
                yield unit

                result = session.execute(
                    update(ExitRequestRecord)
                    .where(
                        ExitRequestRecord.id == exit_request_id,
                        ExitRequestRecord.version == read_version,
                    )
                    .values(version=read_version + 1, **ExitRequestRecord.column_values(unit.data))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidTransitionError(
                        f"Exit request {exit_request_id} was modified concurrently "
                        f"(read at version {read_version})",
                        from_state=read_state,
                        to_state=unit.data.current_status.value,
                    )
                for entry in unit.audit_entries:
                    session.add(ExitAuditLog.create_entry(entry))
                session.commit()
                logger.debug("Committed %s at version %d", exit_request_id, read_version + 1)
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
