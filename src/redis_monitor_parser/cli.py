"""Command-line interface for redis_monitor_parser.

- decode: print one JSON object per decoded monitor line
- summary: print command / key pattern counts
- store: decode a file into the capture database
- serve: run the web API
"""

import argparse
import json
import logging
import sys
from typing import Iterable, List, Optional

from .analysis import summarize
from .ingest import parse_lines
from .parser import ParserConfig, parse_line

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _read_lines(path: Optional[str]) -> Iterable[str]:
    if path is None or path == "-":
        return sys.stdin
    return open(path, "r", encoding="utf-8", errors="replace")


def _config_from_args(args) -> ParserConfig:
    return ParserConfig(
        command_case=getattr(args, "command_case", None),
        args_case=getattr(args, "args_case", None),
        lenient_tokens=getattr(args, "lenient", False),
    )


def cmd_decode(args) -> int:
    config = _config_from_args(args)
    failed = 0
    with _read_lines(args.path) as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            parsed = parse_line(line, config)
            if parsed is None:
                failed += 1
                if not args.skip_invalid:
                    sys.stderr.write(f"error: line {lineno} not recognized\n")
                continue
            sys.stdout.write(json.dumps(parsed.to_dict()) + "\n")

    if failed and not args.skip_invalid:
        return 1
    return 0


def cmd_summary(args) -> int:
    config = _config_from_args(args)
    with _read_lines(args.path) as fh:
        records, stats = parse_lines(fh, config)

    result = summarize(records, top=args.top).to_dict()
    result["lines"] = stats.to_dict()
    sys.stdout.write(json.dumps(result, indent=2) + "\n")
    return 0


def cmd_store(args) -> int:
    from .web.db import init_db, get_db_context
    from .web.store import save_capture

    config = _config_from_args(args)
    init_db()
    with _read_lines(args.path) as fh, get_db_context() as db:
        capture = save_capture(db, fh, name=args.name, config=config)
        capture_id = capture.id
        parsed, failed = capture.parsed_lines, capture.failed_lines

    sys.stdout.write(json.dumps({"id": capture_id, "parsed_lines": parsed, "failed_lines": failed}) + "\n")
    return 0


def cmd_serve(args) -> int:
    import uvicorn
    from .web.main import configure_logging

    configure_logging()
    uvicorn.run("redis_monitor_parser.web.main:app", host=args.host, port=args.port)
    return 0


def _add_parser_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", nargs="?", default="-", help="Input file path or '-' for stdin")
    p.add_argument("--command-case", choices=("upper", "lower"), default=None,
                   help="Normalize the command name case")
    p.add_argument("--args-case", choices=("upper", "lower"), default=None,
                   help="Normalize argument case")
    p.add_argument("--lenient", action="store_true",
                   help="Accept unquoted arguments instead of rejecting the line")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="redis-monitor-parser",
                                description="Decode Redis MONITOR output.")
    p.add_argument("--log-level", type=str.upper, default="WARNING", choices=LOG_LEVELS,
                   help="Logging level for decode/summary/store (default: WARNING)")
    sub = p.add_subparsers(dest="command", required=True)

    decode = sub.add_parser("decode", help="Decode lines to JSON")
    _add_parser_options(decode)
    decode.add_argument("--skip-invalid", action="store_true",
                        help="Silently drop unrecognized lines and exit 0")
    decode.set_defaults(handler=cmd_decode)

    summary = sub.add_parser("summary", help="Summarize commands and key patterns")
    _add_parser_options(summary)
    summary.add_argument("--top", type=int, default=10, help="Number of entries per list")
    summary.set_defaults(handler=cmd_summary)

    store = sub.add_parser("store", help="Decode lines into the capture database")
    _add_parser_options(store)
    store.add_argument("--name", default=None, help="Capture name")
    store.set_defaults(handler=cmd_store)

    serve = sub.add_parser("serve", help="Run the web API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(handler=cmd_serve, configure_logging=False)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # serve logs through the web app configuration instead
    if getattr(args, "configure_logging", True):
        logging.basicConfig(
            level=args.log_level,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=[logging.StreamHandler(sys.stderr)]
        )

    try:
        return args.handler(args)
    except OSError as ex:
        sys.stderr.write(f"error: {ex}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
