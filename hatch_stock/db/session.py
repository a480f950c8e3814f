"""SQLAlchemy engine, session factory and the unit-of-work helper."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..core.config import settings
from ..core.errors import OperationFailed

logger = logging.getLogger(__name__)

DB_URL = settings.database_url
# SQLite connections are shared across FastAPI worker threads.
CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(DB_URL, connect_args=CONNECT_ARGS)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session, operation: str = "write") -> Iterator[Session]:
    """Run the enclosed writes as one transaction.

    Commits on success. Any exception rolls back everything written inside the
    block; database errors are re-raised as ``OperationFailed`` so callers see a
    single failure kind with no partial mutation behind it.
    """

    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("transaction.rolled_back", extra={"extra_data": {"operation": operation}})
        raise OperationFailed(f"{operation} failed and was rolled back") from exc
    except Exception:
        db.rollback()
        raise
