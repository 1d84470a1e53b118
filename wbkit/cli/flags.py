"""Named groups of command-line flags and their sectioned help output."""

from __future__ import annotations

import argparse
import json
import textwrap
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TextIO, Union

from wbkit.log import logger as log

_MIN_WRAP = 24


@dataclass
class NamedFlagSets:
    """Flag groups by name, remembering the order in which they were first asked for."""

    order: list[str] = field(default_factory=list)
    flag_sets: dict[str, argparse.ArgumentParser] = field(default_factory=dict)

    def flag_set(self, name: str) -> argparse.ArgumentParser:
        """The flag group called name, created and appended to the order if new."""
        parser = self.flag_sets.get(name)
        if parser is None:
            parser = argparse.ArgumentParser(prog=name, add_help=False, allow_abbrev=False)
            self.flag_sets[name] = parser
            self.order.append(name)
        return parser


def _value_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_value_text(item) for item in value) + "]"
    return str(value)


def _visible_actions(parser: argparse.ArgumentParser) -> list[argparse.Action]:
    return [
        action
        for action in parser._actions
        if action.option_strings and action.help != argparse.SUPPRESS
    ]


def _varname(action: argparse.Action) -> str:
    if action.metavar:
        metavar = action.metavar
        return " ".join(metavar) if isinstance(metavar, tuple) else str(metavar)
    if action.nargs in (0, "?"):
        return ""
    if action.nargs in ("*", "+") or isinstance(action.default, list):
        return "strings"
    if action.type is int:
        return "int"
    return "string"


def _default_text(action: argparse.Action) -> str:
    default = action.default
    if default is None or default is argparse.SUPPRESS or default is False:
        return ""
    if default == "" or default == [] or (isinstance(default, (int, float)) and default == 0):
        return ""
    if isinstance(default, str):
        return json.dumps(default, ensure_ascii=False)
    return _value_text(default)


def _wrap(indent: int, cols: int, text: str) -> str:
    pad = "\n" + " " * indent
    width = cols - indent
    if cols == 0 or width < _MIN_WRAP:
        return text.replace("\n", pad)
    lines = textwrap.wrap(text, width) or [""]
    return pad.join(lines)


def _flag_usages(parser: argparse.ArgumentParser, cols: int) -> str:
    entries = []
    for action in _visible_actions(parser):
        longs = [opt for opt in action.option_strings if opt.startswith("--")]
        shorts = [opt for opt in action.option_strings if not opt.startswith("--")]
        if longs and shorts:
            line = f"  {shorts[0]}, {longs[0]}"
        else:
            line = f"      {(longs or shorts)[0]}"
        varname = _varname(action)
        if varname:
            line += " " + varname
        usage = action.help or ""
        default = _default_text(action)
        if default:
            usage += f" (default {default})"
        entries.append((line, usage))
    maxlen = max(len(line) for line, _ in entries)
    rows = [
        f"{line} {' ' * (maxlen - len(line))} {_wrap(maxlen + 2, cols, usage)}"
        for line, usage in entries
    ]
    return "\n".join(rows) + "\n"


def print_sections(stream: TextIO, fss: NamedFlagSets, cols: int) -> None:
    """Write each non-empty flag group as a titled section; cols 0 means no wrapping."""
    for name in fss.order:
        parser = fss.flag_sets[name]
        if not _visible_actions(parser):
            continue
        title = name[:1].upper() + name[1:]
        stream.write(f"\n{title} flags:\n\n{_flag_usages(parser, cols)}")


def print_flags(namespace: Union[argparse.Namespace, Mapping[str, Any]]) -> list[str]:
    """Log every flag and its value at debug level; return the logged lines."""
    values = namespace if isinstance(namespace, Mapping) else vars(namespace)
    lines = [
        f"FLAG: --{name}={json.dumps(_value_text(values[name]), ensure_ascii=False)}"
        for name in sorted(values)
    ]
    for line in lines:
        log.debug("%s", line)
    return lines