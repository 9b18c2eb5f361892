"""Integration tests for the exit workflow service.

The workflow tests run against both the in-memory repository and the SQLAlchemy
repository on in-memory SQLite.
"""

import logging
import threading
from datetime import timedelta

import pytest
import yaml

from exitflow.common.config import parse_config
from exitflow.core.approval.models import FinancialSummary, OverrideReason
from exitflow.core.audit import AuditAction, AuditEntry
from exitflow.core.certificate import ConductRating, ConductStatement
from exitflow.core.checklist.models import ClearanceItemStatus
from exitflow.core.errors import (
    BlockedByMandatoryItemsError,
    ChecklistLockedError,
    ExitRequestNotFoundError,
    InvalidTransitionError,
    UnauthorizedError,
    ValidationError,
)
from exitflow.core.rbac.roles import Role
from exitflow.core.request.models import ForwardingAddress, HostelVertical
from exitflow.core.request.states import ExitRequestState
from exitflow.core.settings import Settings
from exitflow.db.models import ExitAuditLog, ExitRequestRecord, ImmutableAuditLogError
from exitflow.db.repository import SqlAlchemyExitRequestRepository
from exitflow.db.session import create_db_engine, create_session_factory, init_db
from exitflow.services import ExitWorkflowService, create_workflow_service

from tests.factories import VALID_JUSTIFICATION, create_actor, create_draft


@pytest.fixture(params=["memory", "sql"])
def repository(request):
    return request.getfixturevalue(f"{request.param}_repository")


@pytest.fixture
def workflow(repository, workflow_config, dispatcher, clock):
    return ExitWorkflowService(repository, workflow_config, dispatcher, clock)


@pytest.fixture
def owners(superintendent, accounts, mess, admin):
    return {
        Role.SUPERINTENDENT: superintendent,
        Role.ACCOUNTS: accounts,
        Role.MESS: mess,
        Role.ADMIN: admin,
        Role.LIBRARY: create_actor(Role.LIBRARY, name="Librarian"),
    }


def _tick(clock, minutes=5):
    clock.now = clock.now + timedelta(minutes=minutes)


def _start_clearance(workflow, student, clock, exit_request_id="EXIT-100", **draft_overrides):
    draft = create_draft(student_id=student.actor_id, **draft_overrides)
    workflow.create_draft(draft, student, exit_request_id)
    _tick(clock)
    workflow.submit(exit_request_id, student)
    _tick(clock)
    return workflow.begin_clearance(exit_request_id)


def _clear_mandatory(workflow, exit_request_id, owners, clock):
    for item in workflow.get(exit_request_id).checklist.items:
        if item.is_mandatory:
            _tick(clock)
            workflow.update_item_status(
                exit_request_id, item.id, ClearanceItemStatus.COMPLETED, owners[item.owner_role]
            )


class TestExitLifecycle:
    """Test the full request lifecycle through the service."""

    def test_full_lifecycle(self, workflow, student, trustee, admin, owners, clock):
        """Test draft to certificate, with an override and re-approval."""
        started = _start_clearance(workflow, student, clock)

        assert started.data.current_status == ExitRequestState.UNDER_CLEARANCE
        assert len(started.data.checklist.items) == 6
        assert not started.can_approve
        assert len(started.blocking_items) == 5

        _clear_mandatory(workflow, "EXIT-100", owners, clock)
        assert workflow.evaluate("EXIT-100").can_approve

        _tick(clock)
        approved = workflow.approve("EXIT-100", trustee, remarks="Cleared")
        assert approved.data.current_status == ExitRequestState.APPROVED
        assert approved.data.approval_history[0].approver_id == trustee.actor_id

        with pytest.raises(ChecklistLockedError):
            workflow.update_item_status(
                "EXIT-100", "EXIT-100-LIBRARY_DUES", ClearanceItemStatus.COMPLETED,
                owners[Role.LIBRARY],
            )

        _tick(clock)
        issued = workflow.issue_certificate(
            "EXIT-100", admin,
            ConductStatement(ConductRating.GOOD, admin.name, Role.ADMIN),
        )
        assert issued.data.certificate.version == 1
        assert workflow.get("EXIT-100").certificate.verify()

        _tick(clock)
        original = workflow.get("EXIT-100").approval_history[0]
        overridden = workflow.override(
            "EXIT-100", trustee, OverrideReason.DATA_ERROR, VALID_JUSTIFICATION
        )
        assert overridden.data.current_status == ExitRequestState.UNDER_CLEARANCE
        assert overridden.data.approval_history[1] == original
        assert overridden.data.last_override.referenced_approval_id == original.approval_id

        _tick(clock)
        workflow.update_item_status(
            "EXIT-100", "EXIT-100-LIBRARY_DUES", ClearanceItemStatus.COMPLETED, owners[Role.LIBRARY]
        )
        _tick(clock)
        workflow.approve("EXIT-100", trustee)
        _tick(clock)
        reissued = workflow.issue_certificate("EXIT-100", admin, reissue_reason="Approval re-recorded")
        assert reissued.data.certificate.version == 2

        actions = [e.action for e in workflow.audit_log("EXIT-100")]
        assert actions == (
            [AuditAction.CREATED, AuditAction.SUBMITTED, AuditAction.CLEARANCE_STARTED]
            + [AuditAction.ITEM_STATUS_CHANGED] * 5
            + [AuditAction.APPROVED, AuditAction.CERTIFICATE_ISSUED, AuditAction.OVERRIDDEN]
            + [AuditAction.ITEM_STATUS_CHANGED, AuditAction.APPROVED, AuditAction.CERTIFICATE_ISSUED]
        )

    def test_result_carries_derived_state(self, workflow, student, owners, clock):
        _start_clearance(workflow, student, clock)
        result = workflow.update_item_status(
            "EXIT-100", "EXIT-100-ROOM_INVENTORY", ClearanceItemStatus.WAIVED,
            owners[Role.SUPERINTENDENT], remarks="hardship case",
        )

        assert "EXIT-100-ROOM_INVENTORY" not in result.blocking_items
        assert not result.all_mandatory_completed
        assert len(result.audit_entries) == 1
        assert result.audit_entries[0].remarks == "hardship case"

    def test_approve_blocked(self, workflow, student, trustee, clock):
        """Test a blocked approval leaves the stored request untouched."""
        _start_clearance(workflow, student, clock)
        audit_before = len(workflow.audit_log("EXIT-100"))

        with pytest.raises(BlockedByMandatoryItemsError):
            workflow.approve("EXIT-100", trustee)

        data = workflow.get("EXIT-100")
        assert data.current_status == ExitRequestState.UNDER_CLEARANCE
        assert data.approval_history == []
        assert len(workflow.audit_log("EXIT-100")) == audit_before

    def test_reject(self, workflow, student, admin, clock):
        _start_clearance(workflow, student, clock)
        result = workflow.reject("EXIT-100", admin, "Room damage unpaid")

        assert result.data.current_status == ExitRequestState.REJECTED
        assert workflow.get("EXIT-100").rejection_remarks == "Room damage unpaid"

    def test_override_requires_capability(self, workflow, student, trustee, admin, owners, clock):
        _start_clearance(workflow, student, clock)
        _clear_mandatory(workflow, "EXIT-100", owners, clock)
        workflow.approve("EXIT-100", trustee)

        with pytest.raises(UnauthorizedError):
            workflow.override("EXIT-100", admin, OverrideReason.OTHER, VALID_JUSTIFICATION)
        with pytest.raises(ValidationError):
            workflow.override("EXIT-100", trustee, OverrideReason.OTHER, "too short")
        assert workflow.get("EXIT-100").current_status == ExitRequestState.APPROVED


class TestStudentActions:
    """Test draft, submission and withdrawal."""

    def test_submit_validation(self, workflow, student):
        """Test every form problem is reported and the draft stays a draft."""
        draft = create_draft(
            student_id=student.actor_id,
            reason="bye",
            forwarding_address=ForwardingAddress("1 Main St", "Pune", "MH", "12"),
        )
        workflow.create_draft(draft, student, "EXIT-200")

        with pytest.raises(ValidationError) as exc_info:
            workflow.submit("EXIT-200", student)

        assert set(exc_info.value.errors) == {"reason", "forwarding_address.pincode"}
        assert workflow.get("EXIT-200").current_status == ExitRequestState.DRAFT

    def test_other_student_cannot_submit(self, workflow, student):
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-201")
        intruder = create_actor(Role.STUDENT, actor_id="STU0001")

        with pytest.raises(UnauthorizedError):
            workflow.submit("EXIT-201", intruder)

    def test_draft_for_another_student_refused(self, workflow, student):
        with pytest.raises(UnauthorizedError):
            workflow.create_draft(create_draft(student_id="STU4242"), student)

    def test_generated_id(self, workflow, student):
        data = workflow.create_draft(create_draft(student_id=student.actor_id), student)
        assert data.id.startswith("EXIT-")
        assert workflow.get(data.id).current_status == ExitRequestState.DRAFT

    def test_duplicate_id(self, workflow, student):
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-202")
        with pytest.raises(ValidationError):
            workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-202")

    def test_withdraw(self, workflow, student, clock):
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-203")
        workflow.submit("EXIT-203", student)
        result = workflow.withdraw("EXIT-203", student, remarks="Plans changed")

        assert result.data.current_status == ExitRequestState.WITHDRAWN
        assert result.data.is_locked

    def test_cannot_withdraw_under_clearance(self, workflow, student, clock):
        _start_clearance(workflow, student, clock, "EXIT-204")
        with pytest.raises(InvalidTransitionError):
            workflow.withdraw("EXIT-204", student)

    def test_begin_clearance_twice(self, workflow, student, clock):
        _start_clearance(workflow, student, clock, "EXIT-205")
        with pytest.raises(InvalidTransitionError):
            workflow.begin_clearance("EXIT-205")

    def test_not_found(self, workflow, trustee):
        with pytest.raises(ExitRequestNotFoundError):
            workflow.get("EXIT-404")
        with pytest.raises(ExitRequestNotFoundError):
            workflow.approve("EXIT-404", trustee)


class TestClearanceUpdates:
    """Test item and financial updates through the service."""

    def test_non_owner_update_not_persisted(self, workflow, student, mess, clock):
        _start_clearance(workflow, student, clock)

        with pytest.raises(UnauthorizedError):
            workflow.update_item_status(
                "EXIT-100", "EXIT-100-ROOM_INVENTORY", ClearanceItemStatus.COMPLETED, mess
            )

        item = workflow.get("EXIT-100").checklist.get_item("EXIT-100-ROOM_INVENTORY")
        assert item.status == ClearanceItemStatus.PENDING
        assert len(item.history) == 1

    def test_invalid_status(self, workflow, student, superintendent, clock):
        _start_clearance(workflow, student, clock)
        with pytest.raises(ValidationError):
            workflow.update_item_status(
                "EXIT-100", "EXIT-100-ROOM_INVENTORY", "DONE", superintendent
            )

    def test_items_locked_before_clearance(self, workflow, student, superintendent):
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-300")
        with pytest.raises(ChecklistLockedError):
            workflow.update_item_status(
                "EXIT-300", "EXIT-300-ROOM_INVENTORY", ClearanceItemStatus.COMPLETED, superintendent
            )

    def test_financial_update(self, workflow, student, accounts, clock):
        """Test dues show up as a warning without blocking."""
        _start_clearance(workflow, student, clock)
        summary = FinancialSummary.from_charges(5000, mess_dues=750)

        result = workflow.update_financial_summary("EXIT-100", summary, accounts)

        assert workflow.get("EXIT-100").financial_summary == summary
        warnings = [b for b in result.blockers if b.id == "financial-dues"]
        assert len(warnings) == 1
        assert not warnings[0].is_error
        assert result.audit_entries[0].details["pending_dues"] == 750

    def test_financial_update_needs_permission(self, workflow, student, superintendent, clock):
        _start_clearance(workflow, student, clock)
        with pytest.raises(UnauthorizedError):
            workflow.update_financial_summary("EXIT-100", FinancialSummary(), superintendent)

    def test_financial_update_locked_after_decision(self, workflow, student, admin, accounts, clock):
        _start_clearance(workflow, student, clock)
        workflow.reject("EXIT-100", admin, "Incomplete paperwork")
        with pytest.raises(ChecklistLockedError):
            workflow.update_financial_summary("EXIT-100", FinancialSummary(), accounts)

    def test_certificate_needs_permission(self, workflow, student, superintendent, trustee, owners, clock):
        _start_clearance(workflow, student, clock)
        _clear_mandatory(workflow, "EXIT-100", owners, clock)
        workflow.approve("EXIT-100", trustee)

        with pytest.raises(UnauthorizedError):
            workflow.issue_certificate("EXIT-100", superintendent)

    def test_configured_checklist(self, repository, student, clock, sample_config):
        """Test a vertical's configured templates replace the defaults."""
        service = ExitWorkflowService(repository, parse_config(sample_config), clock=clock)
        result = _start_clearance(
            service, student, clock, "EXIT-301", vertical=HostelVertical.DHARAMSHALA
        )

        assert [i.id for i in result.data.checklist.items] == [
            "EXIT-301-ROOM_INVENTORY",
            "EXIT-301-MESS_DUES",
        ]
        assert result.blocking_items == ["EXIT-301-ROOM_INVENTORY"]


class TestDashboardQueries:
    """Test the dashboard over stored requests."""

    def test_dashboard(self, workflow, student, accounts, clock):
        """Test tracked requests are summarized for the viewing role."""
        _start_clearance(workflow, student, clock, "EXIT-400")
        _start_clearance(workflow, student, clock, "EXIT-401", vertical=HostelVertical.GIRLS)
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-402")

        view = workflow.dashboard(Role.ACCOUNTS, as_of=clock.now + timedelta(days=2))

        assert {r.id for r in view.requests} == {"EXIT-400", "EXIT-401"}
        assert view.stats.total_requests == 2
        assert view.stats.my_pending_items == 2
        assert view.stats.average_aging_days == 2


class TestNotifications:
    """Test notification fan-out after commit."""

    def test_events_dispatched(self, workflow, dispatcher, student, clock):
        events = []
        dispatcher.register(events.append)
        _start_clearance(workflow, student, clock)

        assert [e.action for e in events] == [
            AuditAction.CREATED, AuditAction.SUBMITTED, AuditAction.CLEARANCE_STARTED,
        ]
        assert events[1].old_status == "DRAFT"
        assert events[1].new_status == "SUBMITTED"
        assert events[1].actor_id == student.actor_id

    def test_action_filter(self, workflow, dispatcher, student, clock):
        submitted = []
        dispatcher.register(submitted.append, AuditAction.SUBMITTED)
        _start_clearance(workflow, student, clock)
        assert len(submitted) == 1

    def test_handler_failure_keeps_transition(self, workflow, dispatcher, student, clock):
        """Test a failing handler never undoes a committed change."""
        def broken(event):
            raise RuntimeError("SMS gateway down")

        dispatcher.register(broken)
        _start_clearance(workflow, student, clock)
        assert workflow.get("EXIT-100").current_status == ExitRequestState.UNDER_CLEARANCE

    def test_no_event_on_failure(self, workflow, dispatcher, student, trustee, clock):
        _start_clearance(workflow, student, clock)
        events = []
        dispatcher.register(events.append)

        with pytest.raises(BlockedByMandatoryItemsError):
            workflow.approve("EXIT-100", trustee)
        assert events == []


class TestRepositoryTransactions:
    """Test the per-request transaction boundary."""

    def test_rollback_on_exception(self, repository, workflow, student, admin, clock):
        """Test nothing is persisted when the transaction body fails."""
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-500")
        audit_before = len(repository.audit_log("EXIT-500"))

        with pytest.raises(RuntimeError):
            with repository.transaction("EXIT-500") as unit:
                unit.data.reason = "Changed inside a failed transaction"
                unit.record(AuditEntry.create_entry("EXIT-500", AuditAction.SUBMITTED, admin, clock.now))
                raise RuntimeError("boom")

        assert repository.get("EXIT-500").reason != "Changed inside a failed transaction"
        assert len(repository.audit_log("EXIT-500")) == audit_before

    def test_transaction_on_missing_request(self, repository):
        with pytest.raises(ExitRequestNotFoundError):
            with repository.transaction("EXIT-404"):
                pass

    def test_get_returns_copies(self, repository, workflow, student):
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-501")
        repository.get("EXIT-501").reason = "mutated"
        assert repository.get("EXIT-501").reason != "mutated"


class TestConcurrentTransactions:
    """Test serialization of concurrent mutations on one request."""

    def test_concurrent_financial_updates(self, workflow, student, accounts, clock):
        _start_clearance(workflow, student, clock, "EXIT-600")
        errors = []

        def update(amount):
            try:
                workflow.update_financial_summary(
                    "EXIT-600", FinancialSummary.from_charges(5000, mess_dues=amount), accounts
                )
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=update, args=(n * 10,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        entries = [e for e in workflow.audit_log("EXIT-600") if e.action == AuditAction.FINANCIAL_UPDATED]
        assert len(entries) == 8

    def test_second_transaction_waits_for_first(self, repository, workflow, student):
        """Test a transaction cannot start while another holds the request, and both writes land."""
        workflow.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-610")
        first_open = threading.Event()
        release_first = threading.Event()
        second_entered = threading.Event()
        errors = []

        def first():
            try:
                with repository.transaction("EXIT-610") as unit:
                    first_open.set()
                    unit.data.reason = "Moving to a hostel closer to my new workplace"
                    release_first.wait(5)
            except Exception as exc:
                errors.append(exc)

        def second():
            try:
                first_open.wait(5)
                with repository.transaction("EXIT-610") as unit:
                    second_entered.set()
                    unit.data.room_number = "B-999"
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for thread in threads:
            thread.start()

        assert first_open.wait(5)
        assert not second_entered.wait(0.2)
        release_first.set()
        for thread in threads:
            thread.join(5)

        assert errors == []
        assert second_entered.is_set()
        stored = repository.get("EXIT-610")
        assert stored.reason == "Moving to a hostel closer to my new workplace"
        assert stored.room_number == "B-999"


class TestSqlPersistence:
    """Test the SQLAlchemy tables directly."""

    def test_version_bumped(self, sql_repository, sqlite_session_factory, workflow_config, clock, student):
        service = ExitWorkflowService(sql_repository, workflow_config, clock=clock)
        _start_clearance(service, student, clock, "EXIT-700")

        session = sqlite_session_factory()
        try:
            record = session.get(ExitRequestRecord, "EXIT-700")
            assert record.version == 3
            assert record.state == "UNDER_CLEARANCE"
            assert record.snapshot["currentStatus"] == "UNDER_CLEARANCE"
        finally:
            session.close()

    def test_audit_rows_immutable(self, sql_repository, sqlite_session_factory, workflow_config, clock, student):
        service = ExitWorkflowService(sql_repository, workflow_config, clock=clock)
        service.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-701")

        session = sqlite_session_factory()
        try:
            row = session.query(ExitAuditLog).filter_by(exit_request_id="EXIT-701").one()
            row.description = "rewritten"
            with pytest.raises(ImmutableAuditLogError):
                session.commit()
            session.rollback()

            row = session.query(ExitAuditLog).filter_by(exit_request_id="EXIT-701").one()
            session.delete(row)
            with pytest.raises(ImmutableAuditLogError):
                session.commit()
        finally:
            session.rollback()
            session.close()

    def test_stale_version_refused(self, tmp_path, workflow_config, clock, student):
        """Test a row changed after it was read fails the transaction instead of being overwritten."""
        engine = create_db_engine(f"sqlite:///{tmp_path / 'exitflow.db'}")
        init_db(engine)
        session_factory = create_session_factory(engine)
        repository = SqlAlchemyExitRequestRepository(session_factory)
        service = ExitWorkflowService(repository, workflow_config, clock=clock)
        service.create_draft(create_draft(student_id=student.actor_id), student, "EXIT-702")

        try:
            with pytest.raises(InvalidTransitionError):
                with repository.transaction("EXIT-702") as unit:
                    unit.data.room_number = "B-999"
                    unit.record(AuditEntry.create_entry("EXIT-702", AuditAction.SUBMITTED, student, clock.now))

                    other = session_factory()
                    try:
                        other.get(ExitRequestRecord, "EXIT-702").version += 1
                        other.commit()
                    finally:
                        other.close()

            assert repository.get("EXIT-702").room_number != "B-999"
            assert len(repository.audit_log("EXIT-702")) == 1

            session = session_factory()
            try:
                assert session.get(ExitRequestRecord, "EXIT-702").version == 2
            finally:
                session.close()
        finally:
            engine.dispose()


class TestServiceFactory:
    """Test building a database-backed service from settings."""

    def test_service_from_settings(self, tmp_path, sample_config, student, clock):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump(sample_config))
        settings = Settings(
            database_url="sqlite:///:memory:",
            config_path=str(config_file),
            file_logging=False,
            _env_file=None,
        )

        service = create_workflow_service(settings=settings)
        try:
            assert isinstance(service.repository, SqlAlchemyExitRequestRepository)
            assert service.config.policy.min_notice_days == 21

            service.clock = clock
            draft = create_draft(student_id=student.actor_id, vertical=HostelVertical.DHARAMSHALA)
            service.create_draft(draft, student, "EXIT-800")
            assert service.get("EXIT-800").current_status == ExitRequestState.DRAFT
        finally:
            package_logger = logging.getLogger("exitflow")
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
            package_logger.setLevel(logging.NOTSET)

    def test_logging_section_applied(self, tmp_path):
        """Test the config file's logging section configures the package logger."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            f"logging:\n  level: WARNING\n  log_dir: {tmp_path}\n  file_logging: true\n"
        )
        settings = Settings(database_url="sqlite:///:memory:", _env_file=None)

        create_workflow_service(str(config_file), settings=settings)
        package_logger = logging.getLogger("exitflow")
        try:
            assert package_logger.level == logging.WARNING
            assert (tmp_path / "exitflow.log").exists()
        finally:
            for handler in list(package_logger.handlers):
                handler.close()
                package_logger.removeHandler(handler)
            package_logger.setLevel(logging.NOTSET)
