"""Registry of error codes and their user-facing details."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Coder(Protocol):
    """Details attached to an error code."""

    @property
    def code(self) -> int:
        """The integer error code."""
        ...

    @property
    def reference(self) -> str:
        """Where the user can read more about this error."""
        ...

    def http_status(self) -> int:
        """HTTP status to answer with for this error."""
        ...

    def __str__(self) -> str:
        """External, user-facing error text."""
        ...


@dataclass(frozen=True)
class DefaultCoder:
    """A plain Coder built from its four values."""

    code: int
    http: int = 0
    ext: str = ""
    ref: str = ""

    @property
    def reference(self) -> str:
        return self.ref

    def http_status(self) -> int:
        """The configured HTTP status, or 500 when none was set."""
        return self.http if self.http != 0 else 500

    def __str__(self) -> str:
        return self.ext


UNKNOWN_CODER = DefaultCoder(1, 500, "An internal server error occurred", "")

_codes: dict[int, Coder] = {UNKNOWN_CODER.code: UNKNOWN_CODER}
_lock = threading.Lock()


def _check_not_reserved(coder: Coder) -> None:
    if coder.code == 0:
        raise ValueError("code 0 is reserved as the unknown error code")


def register(coder: Coder) -> None:
    """Register coder, replacing any coder with the same code."""
    _check_not_reserved(coder)
    with _lock:
        _codes[coder.code] = coder


def must_register(coder: Coder) -> None:
    """Register coder; raise ValueError if its code is already taken."""
    _check_not_reserved(coder)
    with _lock:
        if coder.code in _codes:
            raise ValueError(f"code: {coder.code} already exist")
        _codes[coder.code] = coder


def lookup(code: int) -> Optional[Coder]:
    """The coder registered for code, or None."""
    with _lock:
        return _codes.get(code)