"""Terminal size lookup for output streams."""

from __future__ import annotations

import os
from typing import Any


def terminal_size(stream: Any) -> tuple[int, int]:
    """Width and height of the terminal behind stream; OSError if it is no terminal."""
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        fd = None
    if fd is None or not os.isatty(fd):
        raise OSError("given writer is no terminal")
    size = os.get_terminal_size(fd)
    return size.columns, size.lines