"""Persist decoded monitor lines."""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from ..analysis import extract_key_pattern, first_key
from ..ingest import IngestStats, iter_parsed
from ..parser import ParsedLine, ParserConfig
from .models import MonitorCapture, MonitorCommand

logger = logging.getLogger(__name__)

# Commands are flushed to the session in batches
BATCH_SIZE = 500


def command_row(capture_id: str, parsed: ParsedLine) -> MonitorCommand:
    """Build the MonitorCommand row for a decoded line."""
    try:
        ts = parsed.unix_time
        dt = datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
    except (ValueError, OverflowError, OSError):
        # The grammar accepts odd timestamps such as "1.2.3"
        ts, dt = None, None

    key = first_key(parsed)
    return MonitorCommand(
        capture_id=capture_id,
        timestamp=ts,
        timestamp_raw=parsed.timestamp,
        datetime_utc=dt,
        db_index=parsed.db_index,
        command=parsed.command.upper(),
        key=key,
        key_pattern=extract_key_pattern(key) if key is not None else None,
        args_json=json.dumps(list(parsed.args)),
        raw_line=parsed.raw_line,
    )


def save_capture(
    db: Session,
    lines: Iterable[Union[str, bytes]],
    name: Optional[str] = None,
    config: Optional[ParserConfig] = None,
) -> MonitorCapture:
    """Decode ``lines`` and store every recognized one under a new capture.

    The caller owns the transaction; the capture is flushed but not committed.
    """
    capture = MonitorCapture(id=str(uuid.uuid4()), name=name)
    db.add(capture)
    db.flush()

    stats = IngestStats()
    pending = []
    for parsed in iter_parsed(lines, config, stats):
        pending.append(command_row(capture.id, parsed))
        if len(pending) >= BATCH_SIZE:
            db.add_all(pending)
            db.flush()
            pending = []

    if pending:
        db.add_all(pending)

    capture.total_lines = stats.total
    capture.parsed_lines = stats.parsed
    capture.failed_lines = stats.failed
    db.flush()

    logger.info(f"Stored capture {capture.id}: {stats.parsed} commands, {stats.failed} unrecognized lines")
    return capture
