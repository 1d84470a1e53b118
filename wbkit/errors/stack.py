"""Call-site capture and formatting for error stack traces."""

from __future__ import annotations

import inspect
import os
import sys
from dataclasses import dataclass

_DEPTH = 32


@dataclass(frozen=True)
class Frame:
    """One call site: file, line, function and the module it lives in."""

    file: str = "unknown"
    line: int = 0
    function: str = ""
    module: str = ""

    @property
    def name(self) -> str:
        """Fully qualified function name, or "unknown"."""
        if not self.function:
            return "unknown"
        return f"{self.module}.{self.function}" if self.module else self.function

    def short_name(self) -> str:
        """Function name without the module prefix."""
        return self.function or "unknown"

    def marshal_text(self) -> str:
        """Single-line text form: "name file:line", or "unknown"."""
        name = self.name
        if name == "unknown":
            return name
        return f"{name} {self.file}:{self.line}"

    def __format__(self, spec: str) -> str:
        if spec == "s":
            return os.path.basename(self.file)
        if spec == "+s":
            return f"{self.name}\n\t{self.file}"
        if spec == "d":
            return str(self.line)
        if spec == "n":
            return self.short_name()
        if spec in ("", "v"):
            return f"{self:s}:{self:d}"
        if spec == "+v":
            return f"{self:+s}:{self:d}"
        raise ValueError(f"unsupported format spec {spec!r} for Frame")

    def __str__(self) -> str:
        return format(self, "v")


class StackTrace(list):
    """Frames from innermost (newest) to outermost (oldest)."""

    def format(self, verbose: bool = False) -> str:
        """Bracketed short list, or one detailed frame per line when verbose."""
        if verbose:
            return "".join(f"\n{frame:+v}" for frame in self)
        return "[" + " ".join(f"{frame:v}" for frame in self) + "]"

    def __str__(self) -> str:
        return self.format()


def callers(skip: int = 0) -> StackTrace:
    """Capture up to 32 frames, starting at the caller of callers plus skip."""
    if skip < 0:
        raise ValueError("skip must not be negative")
    try:
        frame = sys._getframe(skip + 1)
    except ValueError:
        return StackTrace()
    frames = []
    while frame is not None and len(frames) < _DEPTH:
        code_obj = frame.f_code
        filename = code_obj.co_filename
        frames.append(
            Frame(
                file=filename,
                line=frame.f_lineno,
                function=getattr(code_obj, "co_qualname", code_obj.co_name),
                module=inspect.getmodulename(filename) or "",
            )
        )
        frame = frame.f_back
    return StackTrace(frames)