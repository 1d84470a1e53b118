"""Aggregation of several errors into a single exception."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Union

Matcher = Callable[[BaseException], bool]
Target = Union[BaseException, type]


def _error_matches(err: Optional[BaseException], target: Target) -> bool:
    """Walk err's cause chain looking for target (an instance or a class)."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if isinstance(target, type):
            if isinstance(err, target):
                return True
        elif err is target or err == target:
            return True
        matcher = getattr(err, "matches", None)
        if callable(matcher) and matcher(target):
            return True
        err = err.__cause__
    return False


class Aggregate(Exception):
    """An exception holding several errors without a single meaning of its own."""

    def __init__(self, errors: Iterable[BaseException]):
        self._errors = list(errors)
        super().__init__(*self._errors)

    def errors(self) -> list[BaseException]:
        """The errors held, in order."""
        return list(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self):
        return iter(self._errors)

    def _visit(self, fn: Callable[[BaseException], bool]) -> bool:
        for err in self._errors:
            if isinstance(err, Aggregate):
                if err._visit(fn):
                    return True
            elif fn(err):
                return True
        return False

    def __str__(self) -> str:
        if not self._errors:
            return ""
        if len(self._errors) == 1:
            return str(self._errors[0])
        seen: dict[str, None] = {}

        def collect(err: BaseException) -> bool:
            seen.setdefault(str(err), None)
            return False

        self._visit(collect)
        if len(seen) == 1:
            return next(iter(seen))
        return "[" + ", ".join(seen) + "]"

    def matches(self, target: Target) -> bool:
        """Report whether any held error, nested ones included, matches target."""
        return self._visit(lambda err: _error_matches(err, target))


def new_aggregate(errlist: Optional[Iterable[Optional[BaseException]]]) -> Optional[Aggregate]:
    """Aggregate the non-None errors of errlist; None if there are none."""
    if errlist is None:
        return None
    errs = [err for err in errlist if err is not None]
    if not errs:
        return None
    return Aggregate(errs)


def _matches_any(err: BaseException, matchers: Iterable[Matcher]) -> bool:
    return any(matcher(err) for matcher in matchers)


def _filter_errors(errors: Iterable[BaseException], matchers: tuple[Matcher, ...]) -> list[BaseException]:
    result = []
    for err in errors:
        kept = filter_out(err, *matchers)
        if kept is not None:
            result.append(kept)
    return result


def filter_out(err: Optional[BaseException], *matchers: Matcher) -> Optional[BaseException]:
    """Drop errors matched by any matcher, descending into aggregates."""
    if err is None:
        return None
    if isinstance(err, Aggregate):
        return new_aggregate(_filter_errors(err.errors(), matchers))
    if _matches_any(err, matchers):
        return None
    return err


def flatten(agg: Optional[Aggregate]) -> Optional[Aggregate]:
    """Collapse arbitrarily nested aggregates into a single flat one."""
    if agg is None:
        return None
    result: list[BaseException] = []
    for err in agg.errors():
        if isinstance(err, Aggregate):
            inner = flatten(err)
            if inner is not None:
                result.extend(inner.errors())
        elif err is not None:
            result.append(err)
    return new_aggregate(result)


def create_aggregate_from_message_count_map(counts: Optional[Mapping[str, int]]) -> Optional[Aggregate]:
    """Build an aggregate from messages and how often each occurred."""
    if counts is None:
        return None
    result = []
    for message, count in counts.items():
        suffix = f" (repeated {count} times)" if count > 1 else ""
        result.append(Exception(f"{message}{suffix}"))
    return new_aggregate(result)


def reduce(err: Optional[BaseException]) -> Optional[BaseException]:
    """Unwrap a one-element aggregate; an empty aggregate becomes None."""
    if isinstance(err, Aggregate):
        held = err.errors()
        if len(held) == 1:
            return held[0]
        if not held:
            return None
    return err


def aggregate_parallel(*funcs: Callable[[], Any]) -> Optional[Aggregate]:
    """Run funcs concurrently and aggregate the exceptions they raise."""
    if not funcs:
        return None
    with ThreadPoolExecutor(max_workers=len(funcs)) as pool:
        futures = [pool.submit(func) for func in funcs]
    return new_aggregate(future.exception() for future in futures)


class PreconditionViolatedError(Exception):
    """Raised when a precondition is violated."""

    def __init__(self, message: str = "precondition is violated"):
        super().__init__(message)