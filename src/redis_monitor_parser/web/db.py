"""Database connection and session management for the web API."""

import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
from typing import Generator

from .models import Base

# redis_monitor.db in the working directory unless REDIS_MONITOR_DATABASE_URL is set
DB_PATH = Path.cwd() / "redis_monitor.db"
DATABASE_URL = os.environ.get("REDIS_MONITOR_DATABASE_URL", f"sqlite:///{DB_PATH}")

# check_same_thread=False lets FastAPI's worker threads share SQLite connections
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    echo=False
)

# Sessions for request handlers, the CLI store command and tests
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the capture tables if they do not exist."""
    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    """Drop the capture tables."""
    Base.metadata.drop_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session per request; the endpoint decides when to commit."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Session that commits on success and rolls back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
