"""Command and key access analysis over decoded monitor lines"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .parser import ParsedLine

UUID_RE = re.compile(
    r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
    re.IGNORECASE
)
DATE_RE = re.compile(r'\d{4}-\d{2}-\d{2}')
TIMESTAMP_RE = re.compile(r'\d{10,13}')
USERID_INNER_RE = re.compile(r':\d{10,}:')
USERID_TAIL_RE = re.compile(r':\d{10,}$')
HASH_RE = re.compile(r'\b[0-9a-f]{32,}\b', re.IGNORECASE)
IP_RE = re.compile(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b')


def extract_key_pattern(key):
    """Extract pattern from key for grouping similar keys"""
    if not key:
        return "NO_KEY"

    # Replace UUIDs with {UUID}
    key = UUID_RE.sub('{UUID}', key)

    # Replace dates (YYYY-MM-DD) with {DATE}
    key = DATE_RE.sub('{DATE}', key)

    # Large user IDs between separators must be replaced before timestamps
    key = USERID_INNER_RE.sub(':{USERID}:', key)
    key = USERID_TAIL_RE.sub(':{USERID}', key)

    # Replace timestamps with {TIMESTAMP}
    key = TIMESTAMP_RE.sub('{TIMESTAMP}', key)

    # Replace hashes (32+ hex chars) with {HASH}
    key = HASH_RE.sub('{HASH}', key)

    # Replace IPs with {IP}
    key = IP_RE.sub('{IP}', key)

    return key


def first_key(parsed: ParsedLine) -> Optional[str]:
    """First argument of a command, used as its key for grouping."""
    return parsed.args[0] if parsed.args else None


@dataclass
class CommandSummary:
    """Aggregated counts over a set of decoded lines."""
    total: int = 0
    commands: List[Tuple[str, int]] = field(default_factory=list)
    key_patterns: List[Tuple[str, int]] = field(default_factory=list)
    databases: List[Tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "commands": [{"command": c, "count": n} for c, n in self.commands],
            "key_patterns": [{"pattern": p, "count": n} for p, n in self.key_patterns],
            "databases": [{"db": d, "count": n} for d, n in self.databases],
        }


def summarize(records: Iterable[ParsedLine], top: int = 10) -> CommandSummary:
    """Count commands, key patterns and databases.

    Commands are grouped case-insensitively (``get`` and ``GET`` are the
    same command); commands without arguments do not contribute a key
    pattern.
    """
    commands = Counter()
    patterns = Counter()
    databases = Counter()
    total = 0

    for record in records:
        total += 1
        commands[record.command.upper()] += 1
        databases[record.db_index] += 1
        key = first_key(record)
        if key is not None:
            patterns[extract_key_pattern(key)] += 1

    return CommandSummary(
        total=total,
        commands=commands.most_common(top),
        key_patterns=patterns.most_common(top),
        databases=databases.most_common(top),
    )
