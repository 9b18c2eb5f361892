"""Database engine and session helpers."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from exitflow.core.settings import get_settings
from exitflow.db.base import Base


def create_db_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create an engine for the configured database.

    In-memory SQLite shares one connection across sessions so that every
    session sees the same database.
    """
    url = database_url or get_settings().database_url
    if url.startswith("sqlite") and (":memory:" in url or url in ("sqlite://", "sqlite:///")):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables."""
    # Registers the models on Base.metadata
    import exitflow.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
