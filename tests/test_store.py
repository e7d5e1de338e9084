import json

import pytest

from redis_monitor_parser import parse_line
from redis_monitor_parser.web import store
from redis_monitor_parser.web.models import MonitorCapture, MonitorCommand
from redis_monitor_parser.web.store import command_row, save_capture

from conftest import monitor_line


def test_command_row():
    parsed = parse_line(monitor_line("hget", "session:550e8400-e29b-41d4-a716-446655440000", "field", db="2"))

    row = command_row("capture-1", parsed)

    assert row.capture_id == "capture-1"
    assert row.command == "HGET"
    assert row.db_index == "2"
    assert row.key == "session:550e8400-e29b-41d4-a716-446655440000"
    assert row.key_pattern == "session:{UUID}"
    assert json.loads(row.args_json) == ["session:550e8400-e29b-41d4-a716-446655440000", "field"]
    assert row.timestamp_raw == "1424186960.663817"
    assert row.datetime_utc.startswith("2015-02-17T")


def test_command_row_without_args():
    row = command_row("capture-1", parse_line(monitor_line("PING")))

    assert row.key is None
    assert row.key_pattern is None
    assert row.args_json == "[]"


def test_command_row_odd_timestamp():
    row = command_row("capture-1", parse_line(monitor_line("PING", ts="1.2.3")))

    assert row.timestamp is None
    assert row.datetime_utc is None
    assert row.timestamp_raw == "1.2.3"


def test_save_capture(db_session, monkeypatch):
    monkeypatch.setattr(store, "BATCH_SIZE", 2)
    lines = [monitor_line("GET", f"key:{i}") for i in range(5)] + ["OK"]

    capture = save_capture(db_session, lines, name="batch")
    db_session.commit()

    stored = db_session.query(MonitorCapture).filter(MonitorCapture.id == capture.id).one()
    assert stored.name == "batch"
    assert (stored.total_lines, stored.parsed_lines, stored.failed_lines) == (6, 5, 1)
    assert db_session.query(MonitorCommand).filter(MonitorCommand.capture_id == capture.id).count() == 5


def test_delete_capture_cascades(db_session):
    capture = save_capture(db_session, [monitor_line("GET", "a"), monitor_line("GET", "b")])
    db_session.commit()

    db_session.delete(capture)
    db_session.commit()

    assert db_session.query(MonitorCommand).count() == 0


def test_db_context_commits_on_success(clean_db):
    from redis_monitor_parser.web.db import get_db_context

    with get_db_context() as db:
        save_capture(db, [monitor_line("GET", "a")], name="kept")

    with get_db_context() as db:
        assert db.query(MonitorCapture).filter(MonitorCapture.name == "kept").count() == 1


def test_db_context_rolls_back_on_error(clean_db):
    from redis_monitor_parser.web.db import get_db_context

    with pytest.raises(RuntimeError):
        with get_db_context() as db:
            save_capture(db, [monitor_line("GET", "a")], name="lost")
            raise RuntimeError("boom")

    with get_db_context() as db:
        assert db.query(MonitorCapture).count() == 0
        assert db.query(MonitorCommand).count() == 0
