"""Structured logger with named children, bound fields, verbosity levels and context binding."""

from __future__ import annotations

import contextvars
import logging
import threading
from collections.abc import Mapping
from typing import Any, Optional, Union

from wbkit.log.options import (
    KEY_REQUEST_ID,
    KEY_USERNAME,
    KEY_WATCHER_NAME,
    Level,
    Options,
)

_CONTEXT_LOGGER: contextvars.ContextVar[Optional["Logger"]] = contextvars.ContextVar(
    "wbkit_logger", default=None
)

# Frames between the user's call and logging.Logger.log: the public method and _emit.
_STACKLEVEL = 3

_REQUEST_KEYS = (KEY_REQUEST_ID, KEY_USERNAME, KEY_WATCHER_NAME)


def _render(msg: str, args: tuple) -> str:
    return msg % args if args else msg


class InfoLogger:
    """Logs non-error messages at one fixed level; a disabled one does nothing."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        level: Level = Level.INFO,
        fields: Optional[Mapping[str, Any]] = None,
    ):
        self._logger = logger
        self._level = level
        self._fields = dict(fields or {})

    def enabled(self) -> bool:
        """Report whether messages sent here are written at all."""
        return self._logger is not None

    def _emit(self, level: Level, msg: str, args: tuple, fields: Mapping[str, Any]) -> None:
        if self._logger is None:
            return
        merged = {**self._fields, **fields}
        self._logger.log(
            level.logging_level,
            msg,
            *args,
            extra={"fields": merged},
            stacklevel=_STACKLEVEL,
        )

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log msg, %-formatted with args, with kwargs as structured fields."""
        self._emit(self._level, msg, args, kwargs)


_DISABLED = InfoLogger()


class Logger(InfoLogger):
    """A logger writing at every level, with a name and bound key/value fields."""

    def __init__(self, logger: logging.Logger, fields: Optional[Mapping[str, Any]] = None):
        super().__init__(logger, Level.INFO, fields)

    @property
    def name(self) -> str:
        """The dotted logger name; empty for the unnamed logger."""
        if self._logger is None or self._logger is logging.getLogger():
            return ""
        return self._logger.name

    @property
    def fields(self) -> dict[str, Any]:
        """The key/value pairs attached to every entry."""
        return dict(self._fields)

    def enabled(self) -> bool:
        return True

    def _is_enabled_for(self, level: Level) -> bool:
        return self._logger is not None and self._logger.isEnabledFor(level.logging_level)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at debug level."""
        self._emit(Level.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at info level."""
        self._emit(Level.INFO, msg, args, kwargs)

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at warning level."""
        self._emit(Level.WARN, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at error level."""
        self._emit(Level.ERROR, msg, args, kwargs)

    def panic(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at panic level, then raise RuntimeError with the message."""
        self._emit(Level.PANIC, msg, args, kwargs)
        raise RuntimeError(_render(msg, args))

    def fatal(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at fatal level, flush, then exit with status 1."""
        self._emit(Level.FATAL, msg, args, kwargs)
        self.flush()
        raise SystemExit(1)

    def v(self, level: int) -> InfoLogger:
        """An info logger for verbosity level; higher means less important."""
        if level < 0:
            raise ValueError("verbosity level must not be negative")
        value = 5 - level
        if value < Level.DEBUG:
            return _DISABLED
        lvl = Level(value)
        if self._is_enabled_for(lvl):
            return InfoLogger(self._logger, lvl, self._fields)
        return _DISABLED

    def write(self, data: Union[bytes, str]) -> int:
        """Log data as an info message and report its length."""
        text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else data
        self._emit(Level.INFO, "%s", (text,), {})
        return len(data)

    def with_values(self, **kwargs: Any) -> "Logger":
        """A child logger that adds kwargs to every entry."""
        return Logger(self._logger, {**self._fields, **kwargs})

    def with_name(self, name: str) -> "Logger":
        """A child logger whose name gains the segment name, joined by a period."""
        full = f"{self.name}.{name}" if self.name else name
        return Logger(logging.getLogger(full), self._fields)

    def with_context(self) -> contextvars.Context:
        """A copy of the current context in which this logger is set."""
        ctx = contextvars.copy_context()
        ctx.run(_CONTEXT_LOGGER.set, self)
        return ctx

    def for_request(self, values: Mapping[str, Any]) -> "Logger":
        """A copy carrying the request id, username and watcher found in values."""
        extra = {key: values[key] for key in _REQUEST_KEYS if values.get(key) is not None}
        return Logger(self._logger, {**self._fields, **extra})

    def flush(self) -> None:
        """Flush every handler this logger writes through."""
        node: Optional[logging.Logger] = self._logger
        while node is not None:
            for handler in node.handlers:
                handler.flush()
            node = node.parent if node.propagate else None


_std: Optional[Logger] = None
_mu = threading.Lock()


def new(opts: Optional[Options] = None) -> Logger:
    """Build a logger from opts, or from the default options when None."""
    if opts is None:
        opts = Options()
    return Logger(opts.build())


def init(opts: Optional[Options] = None) -> None:
    """Replace the global logger with one built from opts."""
    global _std
    logger = new(opts)
    with _mu:
        _std = logger


def std() -> Logger:
    """The global logger, built with default options on first use."""
    global _std
    with _mu:
        if _std is None:
            _std = new(Options())
        return _std


def from_context() -> Logger:
    """The logger set in the current context, or a global child named "Unknown-Context"."""
    logger = _CONTEXT_LOGGER.get()
    if logger is not None:
        return logger
    return with_name("Unknown-Context")


def v(level: int) -> InfoLogger:
    """A leveled info logger from the global logger."""
    return std().v(level)


def with_values(**kwargs: Any) -> Logger:
    """A child of the global logger carrying kwargs."""
    return std().with_values(**kwargs)


def with_name(name: str) -> Logger:
    """A named child of the global logger."""
    return std().with_name(name)


def flush() -> None:
    """Flush the global logger."""
    std().flush()


def check_int_level(level: int) -> bool:
    """Report whether the global logger writes at the given numeric verbosity."""
    lvl = Level.INFO if level < 5 else Level.DEBUG
    return std()._is_enabled_for(lvl)


def debug(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at debug level through the global logger."""
    std()._emit(Level.DEBUG, msg, args, kwargs)


def info(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at info level through the global logger."""
    std()._emit(Level.INFO, msg, args, kwargs)


def warn(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at warning level through the global logger."""
    std()._emit(Level.WARN, msg, args, kwargs)


def error(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at error level through the global logger."""
    std()._emit(Level.ERROR, msg, args, kwargs)


def panic(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at panic level through the global logger, then raise RuntimeError."""
    std()._emit(Level.PANIC, msg, args, kwargs)
    raise RuntimeError(_render(msg, args))


def fatal(msg: str, *args: Any, **kwargs: Any) -> None:
    """Log at fatal level through the global logger, flush and exit with status 1."""
    logger = std()
    logger._emit(Level.FATAL, msg, args, kwargs)
    logger.flush()
    raise SystemExit(1)


def for_request(values: Mapping[str, Any]) -> Logger:
    """The global logger carrying the request values found in values."""
    return std().for_request(values)