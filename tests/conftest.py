import os
import tempfile

import pytest

# Must be set before redis_monitor_parser.web.db is imported
_DB_DIR = tempfile.mkdtemp(prefix="redis-monitor-tests-")
os.environ.setdefault(
    "REDIS_MONITOR_DATABASE_URL",
    "sqlite:///" + os.path.join(_DB_DIR, "test.db"),
)


def monitor_line(command, *args, ts="1424186960.663817", db="0", addr="127.0.0.1:60475"):
    """Build a monitor line with already-escaped argument text."""
    parts = [f'{ts} [{db} {addr}] "{command}"']
    parts.extend(f'"{a}"' for a in args)
    return " ".join(parts)


@pytest.fixture
def clean_db():
    from redis_monitor_parser.web.db import drop_db, init_db

    drop_db()
    init_db()
    yield
    drop_db()


@pytest.fixture
def db_session(clean_db):
    from redis_monitor_parser.web.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
