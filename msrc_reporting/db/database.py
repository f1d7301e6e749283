import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from msrc_reporting.core.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

engine_options = {"pool_pre_ping": True}
if make_url(DATABASE_URL).get_backend_name() != "sqlite":
    engine_options.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )

# Process-wide pool; sessions are handed out per request
engine = create_engine(DATABASE_URL, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


SNAPSHOT_ISOLATION = "REPEATABLE READ"


def begin_read(db: Session) -> None:
    """Start the session's transaction at the isolation level its scope asked for."""
    level = db.info.get("isolation_level")
    if level:
        db.connection(execution_options={"isolation_level": level})


def restart_read(db: Session) -> None:
    """
    Roll back a failed read and begin again at the scope's isolation level.

    In snapshot mode the new transaction takes a fresh snapshot, so sections
    after a failure may see rows committed since the report started.
    """
    db.rollback()
    begin_read(db)


@contextmanager
def read_scope(snapshot: bool = False, session_factory=None) -> Iterator[Session]:
    """
    Open a session for read-only reporting work and always release it.

    With snapshot=True every query issued through the session runs inside one
    REPEATABLE READ transaction, so summary and trend sections of a report see
    the same data even if a submission lands mid-request. A section that fails
    is rolled back through `restart_read`, which keeps the isolation level but
    not the original snapshot.
    """
    factory = session_factory or SessionLocal
    db = factory()
    try:
        if snapshot:
            db.info["isolation_level"] = SNAPSHOT_ISOLATION
            begin_read(db)
        yield db
    finally:
        # Reporting never writes; discard whatever transaction is open
        db.rollback()
        db.close()


def get_db():
    """FastAPI dependency for getting a DB session."""
    with read_scope(snapshot=settings.REPORT_READ_SNAPSHOT) as db:
        yield db


def get_session_factory():
    """FastAPI dependency for routes that manage their own read scope."""
    return SessionLocal
