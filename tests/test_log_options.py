import argparse
import json
import logging
import re
from datetime import datetime, timedelta

import pytest

from wbkit.log.options import (
    CONSOLE_FORMAT,
    FLAG_LEVEL,
    FLAG_OUTPUT_PATHS,
    Level,
    Options,
    format_duration_ms,
    format_time,
)


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("debug", Level.DEBUG),
        ("DEBUG", Level.DEBUG),
        ("info", Level.INFO),
        ("warn", Level.WARN),
        ("ERROR", Level.ERROR),
        ("dpanic", Level.DPANIC),
        ("panic", Level.PANIC),
        ("FATAL", Level.FATAL),
        ("", Level.INFO),
    ],
)
def test_level_parse(text, expected):
    assert Level.parse(text) is expected


@pytest.mark.parametrize("text", ["Info", "verbose", "warning", "1"])
def test_level_parse_rejects(text):
    with pytest.raises(ValueError, match="unrecognized level"):
        Level.parse(text)


def test_level_string_round_trip():
    for level in Level:
        assert Level.parse(str(level)) is level


def test_level_ordering_matches_logging():
    names = ["debug", "info", "warn", "error", "dpanic", "panic", "fatal"]
    ordered = [Level.parse(name) for name in names]
    values = [lvl.logging_level for lvl in ordered]
    assert values == sorted(values)
    assert len(set(values)) == len(values)
    assert Level.parse("info").logging_level == logging.INFO


def test_default_options():
    opts = Options()
    assert opts.level == "info"
    assert opts.format == CONSOLE_FORMAT
    assert opts.output_paths == ["stdout"]
    assert opts.error_output_paths == ["stderr"]
    assert opts.validate() == []


def test_validate_reports_level_and_format():
    errors = Options(level="loud", format="xml").validate()
    assert len(errors) == 2
    assert "unrecognized level" in str(errors[0])
    assert str(errors[1]) == 'not a valid log format: "xml"'


def test_validate_accepts_upper_case_format():
    assert Options(format="JSON").validate() == []


def test_to_json_keys_and_values():
    opts = Options(name="svc", enable_color=True)
    data = json.loads(opts.to_json())
    assert list(data) == [
        "output-paths",
        "error-output-paths",
        "level",
        "format",
        "disable-caller",
        "disable-stacktrace",
        "enable-color",
        "development",
        "name",
    ]
    assert data["name"] == "svc"
    assert data["enable-color"] is True
    assert str(opts) == opts.to_json()


def test_add_flags_binds_values():
    opts = Options()
    parser = argparse.ArgumentParser()
    opts.add_flags(parser)
    ns = parser.parse_args(
        ["--log.level", "debug", "--log.disable-caller", "--log.output-paths", "a,b", "--log.enable-color=false"]
    )
    assert opts.level == "debug"
    assert opts.disable_caller is True
    assert opts.enable_color is False
    assert opts.output_paths == ["a", "b"]
    assert getattr(ns, FLAG_LEVEL) == "debug"


def test_add_flags_repeated_list_appends():
    opts = Options()
    parser = argparse.ArgumentParser()
    opts.add_flags(parser)
    parser.parse_args(["--log.output-paths", "a", "--log.output-paths", "b,c"])
    assert opts.output_paths == ["a", "b", "c"]


def test_add_flags_defaults_untouched():
    opts = Options(level="warn")
    parser = argparse.ArgumentParser()
    opts.add_flags(parser)
    ns = parser.parse_args([])
    assert opts.level == "warn"
    assert getattr(ns, FLAG_LEVEL) == "warn"
    assert getattr(ns, FLAG_OUTPUT_PATHS) == ["stdout"]


def test_add_flags_bad_bool_exits():
    parser = argparse.ArgumentParser()
    Options().add_flags(parser)
    with pytest.raises(SystemExit):
        parser.parse_args(["--log.development=maybe"])


def test_format_time_layout():
    assert format_time(datetime(2021, 3, 4, 5, 6, 7, 891000)) == "2021-03-04 05:06:07.891"


def test_format_duration_ms():
    assert format_duration_ms(timedelta(milliseconds=250)) == 250.0
    assert format_duration_ms(timedelta(microseconds=1500)) == 1.5


def test_build_json_output(tmp_path, restore_root):
    path = tmp_path / "out.log"
    opts = Options(output_paths=[str(path)], format="json", name="svc")
    logger = opts.build()
    logger.info("hello %s", "world", extra={"fields": {"k": 1}})
    logger.debug("hidden")
    for handler in restore_root.handlers:
        handler.flush()
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["message"] == "hello world"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "svc"
    assert entry["k"] == 1
    assert entry["caller"].startswith("tests/test_log_options.py:")
    assert re.fullmatch(r"\d{4}-\d\d-\d\d \d\d:\d\d:\d\d\.\d{3}", entry["timestamp"])


def test_build_respects_level_and_disable_caller(tmp_path, restore_root):
    path = tmp_path / "out.log"
    opts = Options(output_paths=[str(path)], format="json", level="warn", disable_caller=True)
    logger = opts.build()
    logger.info("quiet")
    logger.warning("loud")
    entries = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [e["message"] for e in entries] == ["loud"]
    assert entries[0]["level"] == "WARN"
    assert "caller" not in entries[0]


def test_build_console_with_color(capsys, restore_root):
    opts = Options(enable_color=True)
    logger = opts.build()
    logger.info("colored")
    out = capsys.readouterr().out
    assert "\x1b[34mINFO\x1b[0m" in out
    assert out.rstrip("\n").endswith("colored")


def test_build_rejects_unknown_encoder(restore_root):
    with pytest.raises(ValueError, match="no encoder registered"):
        Options(format="JSON").build()