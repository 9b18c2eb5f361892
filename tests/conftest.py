"""Pytest configuration and shared fixtures."""

import pytest

from exitflow.common.config import WorkflowConfig
from exitflow.core.rbac.roles import Role
from exitflow.db.repository import InMemoryExitRequestRepository, SqlAlchemyExitRequestRepository
from exitflow.db.session import create_db_engine, create_session_factory, init_db
from exitflow.services.notifications import NotificationDispatcher

from tests.factories import NOW, create_actor


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def workflow_config():
    return WorkflowConfig()


@pytest.fixture
def student():
    return create_actor(Role.STUDENT, actor_id="STU9001", name="Asha Rao")


@pytest.fixture
def superintendent():
    return create_actor(Role.SUPERINTENDENT, name="Warden Singh")


@pytest.fixture
def accounts():
    return create_actor(Role.ACCOUNTS, name="Accounts Desk")


@pytest.fixture
def mess():
    return create_actor(Role.MESS, name="Mess Manager")


@pytest.fixture
def admin():
    return create_actor(Role.ADMIN, name="Hostel Admin", device_info="Chrome on Windows", ip_address="10.0.0.9")


@pytest.fixture
def trustee():
    return create_actor(Role.TRUSTEE, name="Trustee Mehta", device_info="Safari on macOS", ip_address="10.0.0.7")


@pytest.fixture
def dispatcher():
    return NotificationDispatcher()


@pytest.fixture
def memory_repository():
    return InMemoryExitRequestRepository()


@pytest.fixture
def sqlite_session_factory():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_repository(sqlite_session_factory):
    return SqlAlchemyExitRequestRepository(sqlite_session_factory)


@pytest.fixture
def sample_config():
    """Sample workflow configuration dictionary."""
    return {
        "policy": {
            "override_min_justification_length": 60,
            "min_notice_days": 21,
            "min_reason_length": 15,
            "dues_hard_block_threshold": 500,
        },
        "dashboard": {
            "item_sla_days": 5,
            "high_risk_exit_window_days": 10,
        },
        "checklists": {
            "DHARAMSHALA": [
                {"type": "ROOM_INVENTORY", "title": "Room Check", "owner_role": "SUPERINTENDENT"},
                {"type": "MESS_DUES", "owner_role": "MESS", "mandatory": False},
            ],
        },
        "logging": {
            "level": "debug",
            "log_dir": "/tmp/exitflow-logs",
            "file_logging": False,
        },
    }
