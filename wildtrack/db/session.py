"""SQLModel engine and session management for the document collections."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from wildtrack.core.config import settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None


def build_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, echo=False, pool_pre_ping=True, connect_args=connect_args)


def get_engine() -> Engine | None:
    """Return the process engine, or None when the store is not configured."""

    global _engine
    if _engine is None and settings.database_url:
        try:
            _engine = build_engine(settings.database_url)
        except Exception:
            logger.error("Failed to create database engine", exc_info=True)
            return None
    return _engine


def init_db() -> None:
    import wildtrack.models  # noqa: F401  registers every table on the metadata

    engine = get_engine()
    if engine is None:
        logger.warning("DATABASE_URL not configured - observation storage disabled")
        return
    try:
        SQLModel.metadata.create_all(engine)
    except SQLAlchemyError:
        logger.error("Failed to create tables; the store will report unavailable", exc_info=True)


def store_available(session: Session) -> bool:
    """Check the store with a trivial query."""

    try:
        session.connection().execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.warning("Document store check failed", exc_info=True)
        return False


__all__ = ["build_engine", "get_engine", "init_db", "store_available"]
