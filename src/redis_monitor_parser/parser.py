"""Redis MONITOR line parser.

Lines look like this::

    [timestamp]-------[db client_IP_port]-[command]-[0-N arguments]
    1424186956.633238 [0 127.0.0.1:60475] "EXEC"
    1424186956.633238 [0 127.0.0.1:60475] "SELECT" "0"
    1424186956.633238 [0 127.0.0.1:60475] "MGET" "KEY1" "KEY2"
    1424186956.633238 [0 [::]:11707] "HGET" "KEY" "FIELD"

Parsing happens in two stages: the line is split into its top-level fields
with a fixed grammar, then the trailing argument blob is tokenized into
unescaped argument values.
"""

import re
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple

# Redis 2.6+ format. The command can have zero or more args, the client
# address can be IPv6 ("[::]:21452") and the command is always quoted.
MONITOR_LINE_RE = re.compile(
    r"""
    (?P<timestamp>[\d.]+)
    \s
    \[(?P<db>\d+)\s\S+\]
    \s
    (?P<command>"\w+")
    (?:\s(?P<args>.+))?
    """,
    re.VERBOSE,
)

QUOTE_CHAR = '"'
ESCAPE_CHAR = "\\"
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Single character escapes. Redis (sdscatrepr) emits \n \r \t \a \b \\ \" only;
# \f and \v are decoded as well.
# Anything not listed here is taken literally with the backslash dropped.
SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "\\": "\\",
    '"': '"',
}

CASE_MODES = ("upper", "lower")

_BETWEEN_TOKENS = 0
_IN_TOKEN = 1


class MalformedArgumentsError(ValueError):
    """Raised when the argument blob cannot be tokenized."""


class MonitorFields(NamedTuple):
    """Top-level fields of a monitor line, still in wire form."""
    timestamp: str
    db_index: str
    command: str
    args_blob: str


@dataclass(frozen=True)
class ParserConfig:
    """Parser toggles.

    The defaults preserve the original text exactly. ``lenient_tokens``
    makes the tokenizer start an unquoted argument when it meets a stray
    character between tokens instead of rejecting the line.
    """
    command_case: Optional[str] = None
    args_case: Optional[str] = None
    lenient_tokens: bool = False

    def __post_init__(self):
        for name in ("command_case", "args_case"):
            value = getattr(self, name)
            if value is not None and value not in CASE_MODES:
                raise ValueError(f"{name} must be one of {CASE_MODES} or None, got {value!r}")


ParserConfig.DEFAULT = ParserConfig()


@dataclass(frozen=True)
class ParsedLine:
    """A decoded monitor line.

    ``timestamp`` and ``db_index`` are kept as the raw strings Redis wrote,
    ``command`` is unquoted and ``args`` holds the unescaped arguments in
    source order. ``raw_line`` is the input exactly as given.
    """
    raw_line: str
    timestamp: str
    db_index: str
    command: str
    args: Tuple[str, ...] = ()

    @property
    def unix_time(self) -> float:
        return float(self.timestamp)

    def to_dict(self) -> dict:
        return {
            "raw_line": self.raw_line,
            "timestamp": self.timestamp,
            "db_index": self.db_index,
            "command": self.command,
            "args": list(self.args),
        }


def split_fields(line: str) -> Optional[MonitorFields]:
    """Split a monitor line into timestamp, db, quoted command and argument blob.

    Returns None if the line does not match the monitor grammar.
    """
    match = MONITOR_LINE_RE.fullmatch(line.strip())
    if not match:
        return None

    return MonitorFields(
        timestamp=match.group("timestamp"),
        db_index=match.group("db"),
        command=match.group("command"),
        args_blob=match.group("args") or "",
    )


def _decode_escape(blob: str, i: int) -> Tuple[str, int]:
    """Decode the escape sequence starting at ``blob[i]`` (the backslash).

    Returns the decoded value and the index just past the sequence.
    """
    if i + 1 >= len(blob):
        raise MalformedArgumentsError(f"dangling escape at offset {i}")

    nxt = blob[i + 1]
    if nxt == "x":
        digits = blob[i + 2:i + 4]
        if len(digits) != 2 or not all(d in HEX_DIGITS for d in digits):
            raise MalformedArgumentsError(f"invalid hex escape at offset {i}: {blob[i:i + 4]!r}")
        return chr(int(digits, 16)), i + 4

    return SIMPLE_ESCAPES.get(nxt, nxt), i + 2


def tokenize_args(blob: str, lenient: bool = False) -> List[str]:
    """Tokenize an argument blob like ``"KEY1" "KEY \\" 1" "K\\\\E\\\\Y2"``.

    Arguments are separated by whitespace and surrounded in quotes. A quote
    ends the argument unless it is escaped (``\\"``). Backslash escapes are
    resolved, including ``\\xHH`` byte escapes which always span exactly four
    characters. A missing closing quote at the end of the blob is tolerated.

    Raises:
        MalformedArgumentsError: on a dangling backslash, a bad hex escape or
            (unless ``lenient``) a stray character between arguments.
    """
    results: List[str] = []
    buffer: List[str] = []
    state = _BETWEEN_TOKENS
    i = 0
    n = len(blob)

    while i < n:
        c = blob[i]

        if state == _BETWEEN_TOKENS:
            if c.isspace():
                i += 1
                continue
            if c == QUOTE_CHAR:
                state = _IN_TOKEN
                buffer = []
                i += 1
                continue
            if not lenient:
                raise MalformedArgumentsError(f"unquoted argument at offset {i}")
            state = _IN_TOKEN
            buffer = []
            # fall through so the character is handled as token content

        if c == ESCAPE_CHAR:
            value, i = _decode_escape(blob, i)
            buffer.append(value)
            continue

        if c == QUOTE_CHAR:
            results.append("".join(buffer))
            buffer = []
            state = _BETWEEN_TOKENS
            i += 1
            continue

        buffer.append(c)
        i += 1

    if state == _IN_TOKEN and buffer:
        results.append("".join(buffer))

    return results


def _apply_case(value: str, mode: Optional[str]) -> str:
    if mode == "upper":
        return value.upper()
    if mode == "lower":
        return value.lower()
    return value


def parse_line(line: str, config: Optional[ParserConfig] = None) -> Optional[ParsedLine]:
    """Parse a raw monitor line into a ParsedLine.

    Returns None when the line is not a monitor line or its arguments are
    malformed. Both cases look the same to the caller.
    """
    config = config or ParserConfig.DEFAULT

    fields = split_fields(line)
    if fields is None:
        return None

    try:
        args = tokenize_args(fields.args_blob, lenient=config.lenient_tokens)
    except MalformedArgumentsError:
        return None

    command = fields.command.strip(QUOTE_CHAR)

    return ParsedLine(
        raw_line=line,
        timestamp=fields.timestamp,
        db_index=fields.db_index,
        command=_apply_case(command, config.command_case),
        args=tuple(_apply_case(a, config.args_case) for a in args),
    )


class MonitorLineParser:
    """Parser bound to a ParserConfig."""

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig.DEFAULT

    def parse(self, line: str) -> Optional[ParsedLine]:
        return parse_line(line, self.config)
