"""Errors with messages, stack traces and error codes, plus chain inspection."""

from __future__ import annotations

import json
from typing import Any, Optional, TypeVar, Union

from wbkit.errors.code import UNKNOWN_CODER, Coder, lookup
from wbkit.errors.stack import StackTrace, callers

E = TypeVar("E", bound=BaseException)
Target = Union[BaseException, type]

_TRIM = "\r\n\t"
_UNKNOWN_CODE = 1


def _sprintf(fmt: str, args: tuple) -> str:
    return fmt % args if args else fmt


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _verbose(err: BaseException) -> str:
    """The "+v" form of err when it supports one, else its plain text."""
    if isinstance(err, (Fundamental, WithStack, WithMessage, WithCode)):
        return format(err, "+v")
    return str(err)


class Fundamental(Exception):
    """An error with a message and the stack where it was created."""

    def __init__(self, msg: str, stack: Optional[StackTrace] = None):
        super().__init__(msg)
        self.msg = msg
        self.stack = stack if stack is not None else callers(1)

    def __str__(self) -> str:
        return self.msg

    def __format__(self, spec: str) -> str:
        if spec == "+v":
            return self.msg + self.stack.format(verbose=True)
        if spec in ("", "s", "v"):
            return self.msg
        if spec == "q":
            return _quote(self.msg)
        raise ValueError(f"unsupported format spec {spec!r}")


class WithStack(Exception):
    """Annotates an existing error with the stack where it was wrapped."""

    def __init__(self, err: BaseException, stack: Optional[StackTrace] = None):
        super().__init__(str(err))
        self.__cause__ = err
        self.stack = stack if stack is not None else callers(1)

    def __str__(self) -> str:
        return str(self.__cause__)

    def __format__(self, spec: str) -> str:
        if spec == "+v":
            return _verbose(self.__cause__) + self.stack.format(verbose=True)
        if spec in ("", "s", "v"):
            return str(self)
        if spec == "q":
            return _quote(str(self))
        raise ValueError(f"unsupported format spec {spec!r}")


class WithMessage(Exception):
    """Annotates an existing error with a new message."""

    def __init__(self, err: BaseException, msg: str):
        super().__init__(msg)
        self.__cause__ = err
        self.msg = msg

    def __str__(self) -> str:
        return self.msg

    def __format__(self, spec: str) -> str:
        if spec == "+v":
            return _verbose(self.__cause__) + "\n" + self.msg
        if spec in ("", "s", "v", "q"):
            return self.msg
        raise ValueError(f"unsupported format spec {spec!r}")


class WithCode(Exception):
    """An error carrying an error code, a message, an optional cause and a stack."""

    def __init__(
        self,
        err: BaseException,
        code: int,
        cause: Optional[BaseException] = None,
        stack: Optional[StackTrace] = None,
    ):
        super().__init__(str(err))
        self.err = err
        self.code = code
        self.__cause__ = cause
        self.stack = stack if stack is not None else callers(1)

    def __str__(self) -> str:
        return str(self.err)

    def format(self, detail: bool = False, trace: bool = False, as_json: bool = False) -> str:
        """Render the error: detail adds caller info, trace walks the chain, as_json emits JSON."""
        chain = error_chain(self)
        length = len(chain)
        parts: list[str] = []
        json_data: list[dict[str, Any]] = []
        sep = ""
        for index, err in enumerate(chain):
            info = _build_format_info(err)
            k = length - index - 1
            if as_json:
                json_data.append(_json_entry(k, info, detail or trace))
            else:
                parts.append(_text_entry(k, info, sep, detail or trace))
            sep = "; "
            if not trace:
                break
        text = "".join(parts)
        if as_json:
            text += json.dumps(json_data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return text.strip(_TRIM)

    def __format__(self, spec: str) -> str:
        if spec == "":
            return str(self)
        if spec.endswith("v"):
            flags = spec[:-1]
            if set(flags) - set("#-+"):
                raise ValueError(f"unsupported format spec {spec!r}")
            return self.format(detail="-" in flags, trace="+" in flags, as_json="#" in flags)
        if spec in ("s", "q"):
            return _build_format_info(self).message
        raise ValueError(f"unsupported format spec {spec!r}")


class _FormatInfo:
    __slots__ = ("code", "message", "err", "stack")

    def __init__(self, code: int, message: str, err: str, stack: Optional[StackTrace]):
        self.code = code
        self.message = message
        self.err = err
        self.stack = stack or None


def _build_format_info(err: BaseException) -> _FormatInfo:
    if isinstance(err, Fundamental):
        return _FormatInfo(_UNKNOWN_CODE, err.msg, err.msg, err.stack)
    if isinstance(err, WithStack):
        return _FormatInfo(_UNKNOWN_CODE, str(err), str(err), err.stack)
    if isinstance(err, WithCode):
        registered = lookup(err.code)
        coder = registered or UNKNOWN_CODER
        # A registered coder is stored under its own code.
        number = err.code if registered is not None else _UNKNOWN_CODE
        ext = str(coder) or str(err.err)
        return _FormatInfo(number, ext, str(err.err), err.stack)
    return _FormatInfo(_UNKNOWN_CODE, str(err), str(err), None)


def _json_entry(k: int, info: _FormatInfo, detailed: bool) -> dict[str, Any]:
    if not detailed:
        return {"error": info.message}
    caller = f"#{k}"
    if info.stack:
        frame = info.stack[0]
        caller = f"{caller} {frame.file}:{frame.line} ({frame.name})"
    return {"message": info.message, "code": info.code, "error": info.err, "caller": caller}


def _text_entry(k: int, info: _FormatInfo, sep: str, detailed: bool) -> str:
    if not detailed:
        return info.message
    if info.stack:
        frame = info.stack[0]
        return (
            f"{sep}{info.err} - #{k} [{frame.file}:{frame.line} ({frame.name})] "
            f"({info.code}) {info.message}"
        )
    return f"{sep}{info.err} - #{k} {info.message}"


def new(message: str) -> Fundamental:
    """An error with message and the caller's stack."""
    return Fundamental(message, callers(1))


def errorf(fmt: str, *args: Any) -> Fundamental:
    """An error with a %-formatted message and the caller's stack."""
    return Fundamental(_sprintf(fmt, args), callers(1))


def with_stack(err: Optional[BaseException]) -> Optional[BaseException]:
    """Annotate err with the caller's stack; None stays None."""
    if err is None:
        return None
    stack = callers(1)
    if isinstance(err, WithCode):
        return WithCode(err.err, err.code, err, stack)
    return WithStack(err, stack)


def _wrap(err: BaseException, message: str, stack: StackTrace) -> BaseException:
    if isinstance(err, WithCode):
        return WithCode(Exception(message), err.code, err, stack)
    return WithStack(WithMessage(err, message), stack)


def wrap(err: Optional[BaseException], message: str) -> Optional[BaseException]:
    """Annotate err with message and the caller's stack; None stays None."""
    if err is None:
        return None
    return _wrap(err, message, callers(1))


def wrapf(err: Optional[BaseException], fmt: str, *args: Any) -> Optional[BaseException]:
    """Like wrap, with a %-formatted message."""
    if err is None:
        return None
    return _wrap(err, _sprintf(fmt, args), callers(1))


def with_message(err: Optional[BaseException], message: str) -> Optional[WithMessage]:
    """Annotate err with a new message; None stays None."""
    if err is None:
        return None
    return WithMessage(err, message)


def with_messagef(err: Optional[BaseException], fmt: str, *args: Any) -> Optional[WithMessage]:
    """Like with_message, with a %-formatted message."""
    if err is None:
        return None
    return WithMessage(err, _sprintf(fmt, args))


def with_code(code: int, fmt: str, *args: Any) -> WithCode:
    """A new coded error with a %-formatted message."""
    return WithCode(Exception(_sprintf(fmt, args)), code, None, callers(1))


def wrap_c(err: Optional[BaseException], code: int, fmt: str, *args: Any) -> Optional[WithCode]:
    """Wrap err in a coded error with a %-formatted message; None stays None."""
    if err is None:
        return None
    return WithCode(Exception(_sprintf(fmt, args)), code, err, callers(1))


def cause(err: Optional[BaseException]) -> Optional[BaseException]:
    """The innermost cause of err, following the cause chain to its end."""
    seen: set[int] = set()
    while err is not None and err.__cause__ is not None and id(err) not in seen:
        seen.add(id(err))
        err = err.__cause__
    return err


_UNWRAPPING = (WithStack, WithMessage, WithCode)


def unwrap(err: Optional[BaseException]) -> Optional[BaseException]:
    """The next error in err's chain, or None."""
    if err is None:
        return None
    if isinstance(err, WithStack):
        inner = err.__cause__
        if isinstance(inner, _UNWRAPPING):
            return unwrap(inner)
        return inner
    return err.__cause__


def _iter_chain(err: Optional[BaseException]):
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = unwrap(err)


def error_chain(err: Optional[BaseException]) -> list[BaseException]:
    """err followed by every error reached by repeatedly unwrapping it."""
    return list(_iter_chain(err))


def _matches(err: BaseException, target: Target) -> bool:
    if isinstance(target, type):
        if isinstance(err, target):
            return True
    elif err is target or err == target:
        return True
    matcher = getattr(err, "matches", None)
    return bool(callable(matcher) and matcher(target))


def is_error(err: Optional[BaseException], target: Target) -> bool:
    """Report whether any error in err's chain matches target (instance or class)."""
    return any(_matches(e, target) for e in _iter_chain(err))


def as_error(err: Optional[BaseException], cls: type[E]) -> Optional[E]:
    """The first error in err's chain that is an instance of cls, or None."""
    return next((e for e in _iter_chain(err) if isinstance(e, cls)), None)


def parse_coder(err: Optional[BaseException]) -> Optional[Coder]:
    """The coder registered for a coded error; the unknown coder otherwise."""
    if err is None:
        return None
    if isinstance(err, WithCode):
        coder = lookup(err.code)
        if coder is not None:
            return coder
    return UNKNOWN_CODER


def is_code(err: Optional[BaseException], code: int) -> bool:
    """Report whether err, or a coded error it wraps, carries code."""
    while isinstance(err, WithCode):
        if err.code == code:
            return True
        err = err.__cause__
    return False