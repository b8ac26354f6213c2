"""
Database engine, session factory, and metadata for the SQL-backed stores.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    """
    Create an engine for ``database_url``.

    In-memory SQLite needs a single shared connection, otherwise every
    session would see its own empty database.
    """
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/") in {"sqlite:", "sqlite+pysqlite:"}:
            options["poolclass"] = StaticPool
    options.update(kwargs)
    engine = create_engine(database_url, **options)
    logger.info("Database engine created for dialect %s", engine.dialect.name)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create all tables. Migrations are out of scope for the embedded stores."""
    from . import tables  # noqa: F401

    Base.metadata.create_all(engine)


__all__ = ["Base", "build_engine", "build_session_factory", "init_db"]
