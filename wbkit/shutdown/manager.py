"""Graceful shutdown: callbacks run when a shutdown manager requests shutdown.

Shutdown managers listen for shutdown requests (for example POSIX signals).
When one of them calls ``start_shutdown``, its ``shutdown_start`` runs first,
then every registered callback runs in its own thread, and once all of them
have returned the manager's ``shutdown_finish`` runs. Exceptions raised along
the way go to the error handler, if one is set.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class ShutdownCallback(Protocol):
    """Called with the name of the manager that requested shutdown."""

    def on_shutdown(self, manager_name: str) -> None:
        """Do the work needed at shutdown; raise to report a failure."""
        ...


@runtime_checkable
class ShutdownManager(Protocol):
    """Listens for shutdown requests and brackets the shutdown callbacks."""

    def get_name(self) -> str:
        """The name passed to every shutdown callback."""
        ...

    def start(self, gs: "GracefulShutdown") -> None:
        """Begin listening; call gs.start_shutdown(self) when shutdown is requested."""
        ...

    def shutdown_start(self) -> None:
        """Run before the shutdown callbacks."""
        ...

    def shutdown_finish(self) -> None:
        """Run after every shutdown callback has returned."""
        ...


CallbackLike = Union[ShutdownCallback, Callable[[str], Any]]
ErrorHandlerLike = Callable[[BaseException], Any]


def _callback_function(callback: Any) -> Callable[[str], Any]:
    method = getattr(callback, "on_shutdown", None)
    if callable(method):
        return method
    if callable(callback):
        return callback
    raise TypeError(f"{callback!r} is neither callable nor has an on_shutdown method")


def _error_function(handler: Any) -> Optional[Callable[[BaseException], Any]]:
    if handler is None:
        return None
    method = getattr(handler, "on_error", None)
    if callable(method):
        return method
    if callable(handler):
        return handler
    raise TypeError(f"{handler!r} is neither callable nor has an on_error method")


class GracefulShutdown:
    """Holds the shutdown managers, the shutdown callbacks and the error handler."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[str], Any]] = []
        self._managers: list[ShutdownManager] = []
        self._error_handler: Optional[Callable[[BaseException], Any]] = None

    def start(self) -> None:
        """Start every manager in order; the first exception raised stops and propagates."""
        for manager in list(self._managers):
            manager.start(self)

    def add_shutdown_manager(self, manager: ShutdownManager) -> None:
        """Add a manager that will listen for shutdown requests."""
        self._managers.append(manager)

    def add_shutdown_callback(self, callback: CallbackLike) -> None:
        """Add a callback: an object with on_shutdown, or a function taking the manager name."""
        self._callbacks.append(_callback_function(callback))

    def set_error_handler(self, handler: Optional[Any]) -> None:
        """Set the handler for errors: an object with on_error, or a function taking the error."""
        self._error_handler = _error_function(handler)

    def start_shutdown(self, manager: ShutdownManager) -> None:
        """Run shutdown_start, all callbacks concurrently, then shutdown_finish."""
        self._guarded(manager.shutdown_start)

        def run(callback: Callable[[str], Any]) -> None:
            self._guarded(callback, manager.get_name())

        threads = [
            threading.Thread(target=run, args=(callback,), name="shutdown-callback")
            for callback in list(self._callbacks)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self._guarded(manager.shutdown_finish)

    def report_error(self, err: Optional[BaseException]) -> None:
        """Pass err to the error handler; None and a missing handler are ignored."""
        if err is not None and self._error_handler is not None:
            self._error_handler(err)

    def _guarded(self, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception as exc:
            self.report_error(exc)