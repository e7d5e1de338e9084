"""SQLAlchemy models for decoded monitor captures."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, ForeignKey, Index
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class MonitorCapture(Base):
    """A batch of monitor lines submitted for decoding."""
    __tablename__ = "monitor_captures"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)  # Optional capture name
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    total_lines = Column(Integer, default=0)
    parsed_lines = Column(Integer, default=0)
    failed_lines = Column(Integer, default=0)

    commands = relationship("MonitorCommand", back_populates="capture", cascade="all, delete-orphan")


class MonitorCommand(Base):
    """One decoded monitor line."""
    __tablename__ = "monitor_commands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    capture_id = Column(String, ForeignKey("monitor_captures.id"), nullable=False, index=True)

    timestamp = Column(Float, nullable=True)  # None when the raw value is not a number
    timestamp_raw = Column(String, nullable=False)  # seconds.microseconds as Redis wrote it
    datetime_utc = Column(String, nullable=True)
    db_index = Column(String, nullable=False)

    command = Column(String, nullable=False, index=True)  # upper-cased for grouping
    key = Column(String, nullable=True, index=True)
    key_pattern = Column(String, nullable=True, index=True)

    args_json = Column(Text, nullable=False)  # JSON array of unescaped arguments
    raw_line = Column(Text, nullable=False)

    capture = relationship("MonitorCapture", back_populates="commands")

    __table_args__ = (
        Index('ix_monitor_commands_capture_cmd', 'capture_id', 'command'),
        Index('ix_monitor_commands_capture_pattern', 'capture_id', 'key_pattern'),
    )
