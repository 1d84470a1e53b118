"""Logging options, level parsing and construction of the global logger."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import os
import sys
import threading
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any, Optional, TextIO

FLAG_LEVEL = "log.level"
FLAG_DISABLE_CALLER = "log.disable-caller"
FLAG_DISABLE_STACKTRACE = "log.disable-stacktrace"
FLAG_FORMAT = "log.format"
FLAG_ENABLE_COLOR = "log.enable-color"
FLAG_OUTPUT_PATHS = "log.output-paths"
FLAG_ERROR_OUTPUT_PATHS = "log.error-output-paths"
FLAG_DEVELOPMENT = "log.development"
FLAG_NAME = "log.name"

CONSOLE_FORMAT = "console"
JSON_FORMAT = "json"

KEY_REQUEST_ID = "requestID"
KEY_USERNAME = "username"
KEY_WATCHER_NAME = "watcher"

_SAMPLE_INITIAL = 100
_SAMPLE_THEREAFTER = 100


class Level(IntEnum):
    """Log severity, from least to most important."""

    DEBUG = -1
    INFO = 0
    WARN = 1
    ERROR = 2
    DPANIC = 3
    PANIC = 4
    FATAL = 5

    @classmethod
    def parse(cls, text: str) -> "Level":
        """Parse an all-lower or all-upper case level name; empty means INFO."""
        if text == "":
            return cls.INFO
        if text in (text.lower(), text.upper()):
            try:
                return cls[text.upper()]
            except KeyError:
                pass
        raise ValueError(f"unrecognized level: {json.dumps(text)}")

    @property
    def logging_level(self) -> int:
        """The matching numeric level of the standard logging module."""
        return _LOGGING_LEVELS[self]

    def __str__(self) -> str:
        return self.name.lower()


_LOGGING_LEVELS = {
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.DPANIC: 45,
    Level.PANIC: 48,
    Level.FATAL: logging.CRITICAL,
}

_COLORS = {
    Level.DEBUG: 35,
    Level.INFO: 34,
    Level.WARN: 33,
    Level.ERROR: 31,
    Level.DPANIC: 31,
    Level.PANIC: 31,
    Level.FATAL: 31,
}


def _record_level(levelno: int) -> Level:
    matching = [lvl for lvl in Level if lvl.logging_level <= levelno]
    return max(matching) if matching else Level.DEBUG


def format_time(moment: datetime) -> str:
    """Render a timestamp as "YYYY-MM-DD HH:MM:SS.mmm"."""
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def format_duration_ms(duration: timedelta) -> float:
    """A duration expressed as fractional milliseconds."""
    return duration / timedelta(milliseconds=1)


def _short_caller(path: str, line: int) -> str:
    parts = path.replace(os.sep, "/").split("/")
    return f"{'/'.join(parts[-2:])}:{line}"


def _json_value(value: Any) -> Any:
    if isinstance(value, timedelta):
        return format_duration_ms(value)
    if isinstance(value, datetime):
        return format_time(value)
    return str(value)


class _Formatter(logging.Formatter):
    """Renders records in console (tab separated) or JSON form."""

    def __init__(self, opts: "Options"):
        super().__init__()
        self._json = opts.format == JSON_FORMAT
        self._color = opts.format == CONSOLE_FORMAT and opts.enable_color
        self._disable_caller = opts.disable_caller
        self._disable_stacktrace = opts.disable_stacktrace
        self._default_name = opts.name

    def _level_text(self, level: Level) -> str:
        if self._color:
            return f"\x1b[{_COLORS[level]}m{level.name}\x1b[0m"
        return level.name

    def _stacktrace(self, record: logging.LogRecord, level: Level) -> str:
        parts = []
        if level >= Level.PANIC and not self._disable_stacktrace:
            parts.append("".join(traceback.format_stack()).rstrip("\n"))
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return "\n".join(parts)

    def format(self, record: logging.LogRecord) -> str:
        level = _record_level(record.levelno)
        name = record.name if record.name != "root" else self._default_name
        caller = None if self._disable_caller else _short_caller(record.pathname, record.lineno)
        message = record.getMessage()
        fields = dict(getattr(record, "fields", None) or {})
        stack = self._stacktrace(record, level)
        timestamp = format_time(datetime.fromtimestamp(record.created))

        if self._json:
            entry: dict[str, Any] = {"level": self._level_text(level), "timestamp": timestamp}
            if name:
                entry["logger"] = name
            if caller:
                entry["caller"] = caller
            entry["message"] = message
            entry.update(fields)
            if stack:
                entry["stacktrace"] = stack
            return json.dumps(entry, default=_json_value, ensure_ascii=False)

        columns = [timestamp, self._level_text(level)]
        if name:
            columns.append(name)
        if caller:
            columns.append(caller)
        columns.append(message)
        if fields:
            columns.append(json.dumps(fields, default=_json_value, ensure_ascii=False))
        text = "\t".join(columns)
        return f"{text}\n{stack}" if stack else text


class _Sampler(logging.Filter):
    """Per second, pass the first entries of each message, then every n-th."""

    def __init__(self, first: int, thereafter: int):
        super().__init__()
        self._first = first
        self._thereafter = thereafter
        self._lock = threading.Lock()
        self._tick: Optional[int] = None
        self._counts: dict[tuple[int, str], int] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        tick = int(record.created)
        key = (record.levelno, record.getMessage())
        with self._lock:
            if tick != self._tick:
                self._tick = tick
                self._counts.clear()
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
        return count <= self._first or (count - self._first) % self._thereafter == 0


_STANDARD_SINKS: dict[str, Callable[[], TextIO]] = {
    "stdout": lambda: sys.stdout,
    "stderr": lambda: sys.stderr,
}


class _Handler(logging.Handler):
    """Writes formatted records to every output path; its own failures go to the error paths."""

    def __init__(self, opts: "Options", level: Level):
        super().__init__(level.logging_level)
        self._files: list[TextIO] = []
        try:
            self._outputs = [self._open(path) for path in opts.output_paths]
            self._error_outputs = [self._open(path) for path in opts.error_output_paths]
        except OSError:
            self._close_files()
            raise
        self.setFormatter(_Formatter(opts))
        self.addFilter(_Sampler(_SAMPLE_INITIAL, _SAMPLE_THEREAFTER))

    def _open(self, path: str) -> Callable[[], TextIO]:
        if path in _STANDARD_SINKS:
            return _STANDARD_SINKS[path]
        stream = open(path, "a", encoding="utf-8")
        self._files.append(stream)
        return lambda: stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record) + "\n"
            for sink in self._outputs:
                stream = sink()
                stream.write(text)
                stream.flush()
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        detail = "".join(traceback.format_exception(*sys.exc_info()))
        line = f"{format_time(datetime.now())} write error: {detail}"
        for sink in self._error_outputs:
            try:
                stream = sink()
                stream.write(line)
                stream.flush()
            except Exception:
                pass

    def _close_files(self) -> None:
        for stream in self._files:
            stream.close()
        self._files.clear()

    def close(self) -> None:
        self._close_files()
        super().close()


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_csv(text: str) -> list[str]:
    if text == "":
        return []
    return next(csv.reader([text]))


class _BindAction(argparse.Action):
    """Stores the parsed value in the namespace and in the bound Options attribute."""

    def __init__(self, option_strings, dest, target: "Options", attr: str, kind: str = "str", **kwargs):
        if kind == "bool":
            kwargs.setdefault("nargs", "?")
        super().__init__(option_strings, dest, **kwargs)
        self._target = target
        self._attr = attr
        self._kind = kind

    def __call__(self, parser, namespace, values, option_string=None):
        if self._kind == "bool":
            try:
                value: Any = True if values is None else _parse_bool(values)
            except ValueError as exc:
                raise argparse.ArgumentError(self, str(exc)) from exc
        elif self._kind == "list":
            try:
                items = _parse_csv(values)
            except csv.Error as exc:
                raise argparse.ArgumentError(self, str(exc)) from exc
            current = getattr(namespace, self.dest, None)
            value = items if current is self.default or current is None else list(current) + items
        else:
            value = values
        setattr(namespace, self.dest, value)
        setattr(self._target, self._attr, list(value) if isinstance(value, list) else value)


_JSON_KEYS = (
    ("output_paths", "output-paths"),
    ("error_output_paths", "error-output-paths"),
    ("level", "level"),
    ("format", "format"),
    ("disable_caller", "disable-caller"),
    ("disable_stacktrace", "disable-stacktrace"),
    ("enable_color", "enable-color"),
    ("development", "development"),
    ("name", "name"),
)


@dataclass
class Options:
    """Configuration of the logger; the defaults log at info level to stdout."""

    output_paths: list[str] = field(default_factory=lambda: ["stdout"])
    error_output_paths: list[str] = field(default_factory=lambda: ["stderr"])
    level: str = str(Level.INFO)
    format: str = CONSOLE_FORMAT
    disable_caller: bool = False
    disable_stacktrace: bool = False
    enable_color: bool = False
    development: bool = False
    name: str = ""

    def validate(self) -> list[Exception]:
        """Every problem found with the level and the format."""
        errors: list[Exception] = []
        try:
            Level.parse(self.level)
        except ValueError as exc:
            errors.append(exc)
        if self.format.lower() not in (CONSOLE_FORMAT, JSON_FORMAT):
            errors.append(ValueError(f"not a valid log format: {json.dumps(self.format)}"))
        return errors

    def add_flags(self, parser) -> None:
        """Register the log.* command-line flags; parsing them updates this object."""
        def add(flag: str, attr: str, kind: str, help_text: str, metavar: Optional[str] = None) -> None:
            default = getattr(self, attr)
            parser.add_argument(
                "--" + flag,
                dest=flag,
                action=_BindAction,
                target=self,
                attr=attr,
                kind=kind,
                default=list(default) if isinstance(default, list) else default,
                metavar=metavar,
                help=help_text,
            )

        add(FLAG_LEVEL, "level", "str", "Minimum log output LEVEL.", "LEVEL")
        add(FLAG_DISABLE_CALLER, "disable_caller", "bool",
            "Disable output of caller information in the log.")
        add(FLAG_DISABLE_STACKTRACE, "disable_stacktrace", "bool",
            "Disable the log to record a stack trace for all messages at or above panic level.")
        add(FLAG_FORMAT, "format", "str", "Log output FORMAT, support plain or json format.", "FORMAT")
        add(FLAG_ENABLE_COLOR, "enable_color", "bool", "Enable output ansi colors in plain format logs.")
        add(FLAG_OUTPUT_PATHS, "output_paths", "list", "Output paths of log.", "strings")
        add(FLAG_ERROR_OUTPUT_PATHS, "error_output_paths", "list", "Error output paths of log.", "strings")
        add(FLAG_DEVELOPMENT, "development", "bool",
            "Development puts the logger in development mode, which changes "
            "the behavior of DPanicLevel and takes stacktraces more liberally.")
        add(FLAG_NAME, "name", "str", "The name of the logger.", "string")

    def to_json(self) -> str:
        """Compact JSON with the option names used in configuration files."""
        data = {key: getattr(self, attr) for attr, key in _JSON_KEYS}
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    def __str__(self) -> str:
        return self.to_json()

    def build(self) -> logging.Logger:
        """Install a handler built from these options on the root logger and return the named logger."""
        try:
            level = Level.parse(self.level)
        except ValueError:
            level = Level.INFO
        if self.format not in (CONSOLE_FORMAT, JSON_FORMAT):
            raise ValueError(f"no encoder registered for name {json.dumps(self.format)}")
        handler = _Handler(self, level)
        root = logging.getLogger()
        for old in list(root.handlers):
            root.removeHandler(old)
            if isinstance(old, _Handler):
                old.close()
        root.addHandler(handler)
        root.setLevel(level.logging_level)
        return logging.getLogger(self.name) if self.name else root