import logging

from redis_monitor_parser import ParserConfig
from redis_monitor_parser.ingest import IngestStats, iter_parsed, parse_lines

from conftest import monitor_line


def test_iter_parsed_counts_and_skips():
    lines = [
        "OK\n",
        monitor_line("GET", "KEY1") + "\n",
        "\n",
        (monitor_line("SET", "KEY2", "VALUE") + "\r\n").encode("utf-8"),
        "not a monitor line\n",
    ]
    stats = IngestStats()

    records = list(iter_parsed(lines, stats=stats))

    assert [r.command for r in records] == ["GET", "SET"]
    assert records[0].raw_line == monitor_line("GET", "KEY1")
    assert records[1].args == ("KEY2", "VALUE")
    assert stats.to_dict() == {"total": 5, "parsed": 2, "failed": 2, "blank": 1}


def test_iter_parsed_is_lazy():
    def lines():
        yield monitor_line("GET", "A")
        raise AssertionError("consumed past the first record")

    first = next(iter_parsed(lines()))

    assert first.args == ("A",)


def test_invalid_utf8_bytes_are_replaced():
    line = b'1424186960.663817 [0 127.0.0.1:60475] "GET" "K\xffY"'

    (record,) = iter_parsed([line])

    assert record.args == ("K\ufffdY",)


def test_parse_lines_applies_config():
    records, stats = parse_lines(
        [monitor_line("get", "key"), monitor_line("GET", "KEY") + ' key'],
        ParserConfig(command_case="upper", lenient_tokens=True),
    )

    assert [r.command for r in records] == ["GET", "GET"]
    assert records[1].args == ("KEY", "key")
    assert stats.parsed == 2
    assert stats.failed == 0


def test_parse_lines_logs_summary(caplog):
    with caplog.at_level(logging.INFO, logger="redis_monitor_parser.ingest"):
        parse_lines([monitor_line("GET", "A"), "OK"])

    assert "Decoded 1 lines (1 unrecognized, 0 blank)" in caplog.text


def test_unrecognized_lines_logged_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="redis_monitor_parser.ingest"):
        list(iter_parsed(["OK"]))

    assert "Line 1 not recognized" in caplog.text
