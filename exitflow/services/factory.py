"""Wiring of a database-backed workflow service from settings and config."""

import logging
from typing import Optional

from exitflow.common.config import configure_logging, load_typed_config
from exitflow.core.settings import Settings, get_settings
from exitflow.db.repository import SqlAlchemyExitRequestRepository
from exitflow.db.session import create_db_engine, create_session_factory, init_db
from exitflow.services.exit_workflow import ExitWorkflowService
from exitflow.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def create_workflow_service(
    config_path: Optional[str] = None,
    database_url: Optional[str] = None,
    notifier: Optional[NotificationDispatcher] = None,
    settings: Optional[Settings] = None,
) -> ExitWorkflowService:
    """
    Build an ExitWorkflowService over the configured database.

    Loads the workflow policy file, installs the package logger, creates
    the tables and wires the SQLAlchemy repository.

    Args:
        config_path: YAML policy file (falls back to the settings)
        database_url: Database URL (falls back to the settings)
        notifier: Dispatcher for committed transitions
        settings: Process settings (``get_settings()`` when omitted)
    """
    settings = settings or get_settings()
    config = load_typed_config(config_path, settings)
    configure_logging(config.logging)

    url = database_url or settings.database_url
    engine = create_db_engine(url, echo=settings.debug)
    init_db(engine)
    repository = SqlAlchemyExitRequestRepository(create_session_factory(engine))

    logger.info("Exit workflow service ready on %s", engine.url.render_as_string(hide_password=True))
    return ExitWorkflowService(repository, config, notifier)
