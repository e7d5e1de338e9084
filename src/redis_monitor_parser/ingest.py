"""Decode streams of monitor lines."""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .parser import ParsedLine, ParserConfig, parse_line

logger = logging.getLogger(__name__)


@dataclass
class IngestStats:
    """Counters for one ingestion run."""
    parsed: int = 0
    failed: int = 0
    blank: int = 0

    @property
    def total(self) -> int:
        return self.parsed + self.failed + self.blank

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "parsed": self.parsed,
            "failed": self.failed,
            "blank": self.blank,
        }


def _to_text(line: Union[str, bytes]) -> str:
    if isinstance(line, bytes):
        return line.decode("utf-8", errors="replace")
    return line


def iter_parsed(
    lines: Iterable[Union[str, bytes]],
    config: Optional[ParserConfig] = None,
    stats: Optional[IngestStats] = None,
) -> Iterator[ParsedLine]:
    """Yield a ParsedLine for every recognized line.

    Blank lines are skipped; lines that are not monitor lines (e.g. the
    ``OK`` Redis sends when MONITOR starts) are counted and dropped.
    Trailing newlines are removed before the line is stored as ``raw_line``.
    """
    stats = stats if stats is not None else IngestStats()

    for lineno, raw in enumerate(lines, 1):
        line = _to_text(raw).rstrip("\r\n")
        if not line.strip():
            stats.blank += 1
            continue

        parsed = parse_line(line, config)
        if parsed is None:
            stats.failed += 1
            logger.debug("Line %d not recognized: %r", lineno, line)
            continue

        stats.parsed += 1
        yield parsed


def parse_lines(
    lines: Iterable[Union[str, bytes]],
    config: Optional[ParserConfig] = None,
) -> Tuple[List[ParsedLine], IngestStats]:
    """Decode all lines eagerly, returning the records and the counters."""
    stats = IngestStats()
    records = list(iter_parsed(lines, config, stats))
    logger.info(f"Decoded {stats.parsed} lines ({stats.failed} unrecognized, {stats.blank} blank)")
    return records, stats
