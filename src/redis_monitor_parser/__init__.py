"""Decode Redis MONITOR output into structured records."""

from .parser import (
    MalformedArgumentsError,
    MonitorFields,
    MonitorLineParser,
    ParsedLine,
    ParserConfig,
    parse_line,
    split_fields,
    tokenize_args,
)

__version__ = "1.0.0"

__all__ = [
    "MalformedArgumentsError",
    "MonitorFields",
    "MonitorLineParser",
    "ParsedLine",
    "ParserConfig",
    "parse_line",
    "split_fields",
    "tokenize_args",
]
