"""FastAPI application for decoding and analysing Redis MONITOR output."""

import logging
import os
import sys
import json
from contextlib import asynccontextmanager
from typing import Optional, List

from fastapi import FastAPI, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy import func, desc

from ..parser import ParserConfig, parse_line
from .db import init_db, get_db
from .models import MonitorCapture, MonitorCommand
from .store import save_capture

logger = logging.getLogger("redis-monitor-web")


def configure_logging() -> None:
    """Log to stdout at REDIS_MONITOR_LOG_LEVEL (default INFO).

    The app logger gets its level set directly so it holds even when the
    root logger was already configured by the CLI.
    """
    level = os.environ.get("REDIS_MONITOR_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logger.setLevel(level)


# Setup logging
configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    logger.info("Starting Redis Monitor Parser API...")
    init_db()
    logger.info("Database initialized")
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Redis Monitor Parser",
    description="Decode Redis MONITOR lines and analyse command and key access patterns",
    version="1.0.0",
    lifespan=lifespan
)


class ParseRequest(BaseModel):
    line: str
    lenient: bool = False
    command_case: Optional[str] = None
    args_case: Optional[str] = None


class CaptureRequest(BaseModel):
    name: Optional[str] = None
    lines: List[str]
    lenient: bool = False


def capture_to_dict(capture: MonitorCapture) -> dict:
    return {
        "id": capture.id,
        "name": capture.name,
        "created_at": capture.created_at.isoformat() + 'Z' if capture.created_at else None,
        "total_lines": capture.total_lines,
        "parsed_lines": capture.parsed_lines,
        "failed_lines": capture.failed_lines,
    }


# =============================================================================
# PARSING
# =============================================================================

@app.post("/api/parse")
async def parse(request: ParseRequest):
    """Decode a single monitor line."""
    try:
        config = ParserConfig(
            command_case=request.command_case,
            args_case=request.args_case,
            lenient_tokens=request.lenient,
        )
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    parsed = parse_line(request.line, config)
    if parsed is None:
        return JSONResponse({"error": "unrecognized monitor line"}, status_code=422)

    return parsed.to_dict()


# =============================================================================
# CAPTURES
# =============================================================================

@app.post("/api/captures", status_code=201)
async def create_capture(request: CaptureRequest, db: Session = Depends(get_db)):
    """Decode a batch of monitor lines and store the recognized ones."""
    config = ParserConfig(lenient_tokens=request.lenient)
    try:
        capture = save_capture(db, request.lines, name=request.name, config=config)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to store capture")
        raise

    logger.info(f"Created capture {capture.id} ({capture.parsed_lines}/{capture.total_lines} lines decoded)")
    return capture_to_dict(capture)


@app.get("/api/captures")
async def list_captures(db: Session = Depends(get_db)):
    """List all captures, newest first."""
    captures = db.query(MonitorCapture).order_by(desc(MonitorCapture.created_at)).all()
    return [capture_to_dict(c) for c in captures]


@app.get("/api/captures/{capture_id}")
async def get_capture(capture_id: str, db: Session = Depends(get_db)):
    """Get capture metadata."""
    capture = db.query(MonitorCapture).filter(MonitorCapture.id == capture_id).first()

    if not capture:
        return JSONResponse({"error": "Capture not found"}, status_code=404)

    return capture_to_dict(capture)


@app.get("/api/captures/{capture_id}/stats")
async def get_capture_stats(
    capture_id: str,
    top: int = Query(10, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """Command, key pattern and database distribution for a capture."""
    capture = db.query(MonitorCapture).filter(MonitorCapture.id == capture_id).first()

    if not capture:
        return JSONResponse({"error": "Capture not found"}, status_code=404)

    command_counts = db.query(
        MonitorCommand.command,
        func.count(MonitorCommand.id).label('count')
    ).filter(
        MonitorCommand.capture_id == capture_id
    ).group_by(
        MonitorCommand.command
    ).order_by(
        desc('count'), MonitorCommand.command
    ).limit(top).all()

    pattern_counts = db.query(
        MonitorCommand.key_pattern,
        func.count(MonitorCommand.id).label('count')
    ).filter(
        MonitorCommand.capture_id == capture_id,
        MonitorCommand.key_pattern.isnot(None)
    ).group_by(
        MonitorCommand.key_pattern
    ).order_by(
        desc('count'), MonitorCommand.key_pattern
    ).limit(top).all()

    db_counts = db.query(
        MonitorCommand.db_index,
        func.count(MonitorCommand.id).label('count')
    ).filter(
        MonitorCommand.capture_id == capture_id
    ).group_by(
        MonitorCommand.db_index
    ).order_by(
        desc('count'), MonitorCommand.db_index
    ).all()

    return {
        "capture": capture_to_dict(capture),
        "commands": [{"command": c, "count": n} for c, n in command_counts],
        "key_patterns": [{"pattern": p, "count": n} for p, n in pattern_counts],
        "databases": [{"db": d, "count": n} for d, n in db_counts],
    }


@app.get("/api/captures/{capture_id}/commands")
async def list_capture_commands(
    capture_id: str,
    command: Optional[str] = None,
    limit: int = Query(100, ge=1, le=10000),
    db: Session = Depends(get_db)
):
    """Stored commands of a capture in timestamp order."""
    capture = db.query(MonitorCapture).filter(MonitorCapture.id == capture_id).first()

    if not capture:
        return JSONResponse({"error": "Capture not found"}, status_code=404)

    query = db.query(MonitorCommand).filter(MonitorCommand.capture_id == capture_id)
    if command:
        query = query.filter(MonitorCommand.command == command.upper())

    rows = query.order_by(MonitorCommand.timestamp, MonitorCommand.id).limit(limit).all()

    return [
        {
            "timestamp": row.timestamp_raw,
            "datetime_utc": row.datetime_utc,
            "db_index": row.db_index,
            "command": row.command,
            "key": row.key,
            "key_pattern": row.key_pattern,
            "args": json.loads(row.args_json),
        }
        for row in rows
    ]


@app.delete("/api/captures/{capture_id}")
async def delete_capture(capture_id: str, db: Session = Depends(get_db)):
    """Delete a capture and all its commands."""
    capture = db.query(MonitorCapture).filter(MonitorCapture.id == capture_id).first()

    if not capture:
        return JSONResponse({"error": "Capture not found"}, status_code=404)

    db.query(MonitorCommand).filter(MonitorCommand.capture_id == capture_id).delete()
    db.delete(capture)
    db.commit()

    logger.info(f"Deleted capture {capture_id}")
    return {"status": "deleted"}
