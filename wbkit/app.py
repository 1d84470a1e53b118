"""Command-line application scaffold: flags, configuration file, environment and startup."""

from __future__ import annotations

import argparse
import configparser
import json
import os
import re
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Optional, Protocol, TextIO, runtime_checkable

import yaml

from wbkit.cli.flags import NamedFlagSets, print_flags, print_sections
from wbkit.errors.aggregate import new_aggregate
from wbkit.log import logger as log
from wbkit.term import terminal_size

RunFunc = Callable[[str], Any]

_POSITIONAL = "_positional"
_CONFIG_EXTENSIONS = ("json", "toml", "yaml", "yml", "properties", "props", "prop", "dotenv", "env", "ini")
_MAX_COL_WIDTH = 80
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


@runtime_checkable
class CliOptions(Protocol):
    """Options read from flags and configuration; may also define complete() and __str__."""

    def flags(self) -> NamedFlagSets:
        """The flag groups that fill these options."""
        ...

    def validate(self) -> list:
        """Every problem found with the options."""
        ...


class UsageError(ValueError):
    """The command line could not be parsed."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise UsageError(message)


class _HelpAction(argparse.Action):
    def __init__(self, option_strings, dest, app: "App", **kwargs):
        kwargs.pop("default", None)
        super().__init__(option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, nargs=0, **kwargs)
        self._app = app

    def __call__(self, parser, namespace, values, option_string=None):
        self._app._print_help(sys.stdout)
        parser.exit(0)


def format_base_name(basename: str) -> str:
    """On Windows, lower-case the name and strip a trailing ".exe"."""
    if sys.platform == "win32":
        basename = basename.lower()
        if basename.endswith(".exe"):
            basename = basename[: -len(".exe")]
    return basename


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_text(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return "map[" + " ".join(f"{k}:{_text(v)}" for k, v in value.items()) + "]"
    return "" if value is None else str(value)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        full = f"{prefix}{str(key).lower()}"
        if isinstance(value, Mapping) and value:
            result.update(_flatten(value, full + "."))
        else:
            result[full] = value
    return result


def _parse_key_values(text: str, dotenv: bool) -> dict[str, str]:
    data: dict[str, str] = {}
    pattern = r"([^=\s]+)\s*=\s*(.*)$" if dotenv else r"([^=:\s]+)\s*[=:\s]\s*(.*)$"
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        if dotenv and line.startswith("export "):
            line = line[len("export "):].strip()
        match = re.match(pattern, line)
        if match is None:
            data[line] = ""
            continue
        value = match[2].strip()
        if dotenv and len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        data[match[1]] = value
    return data


def _parse_ini(text: str) -> dict[str, Any]:
    parser = configparser.ConfigParser()
    parser.read_string(text)
    data: dict[str, Any] = dict(parser.defaults())
    for section in parser.sections():
        data[section] = dict(parser[section])
    return data


def _read_config(path: Path) -> dict[str, Any]:
    ext = path.suffix[1:].lower()
    if ext not in _CONFIG_EXTENSIONS:
        raise ValueError(f'Unsupported Config Type "{ext}"')
    text = path.read_text(encoding="utf-8")
    if ext == "json":
        data = json.loads(text) if text.strip() else {}
    elif ext in ("yaml", "yml"):
        data = yaml.safe_load(text) or {}
    elif ext == "toml":
        if sys.version_info < (3, 11):
            raise ValueError("TOML configuration needs Python 3.11 or newer")
        import tomllib

        data = tomllib.loads(text)
    elif ext == "ini":
        data = _parse_ini(text)
    else:
        data = _parse_key_values(text, dotenv=ext in ("env", "dotenv"))
    if not isinstance(data, Mapping):
        raise ValueError(f"configuration in {path} is not a mapping")
    return dict(data)


def load_config(basename: str, config_file: str = "") -> tuple[str, dict[str, Any]]:
    """Read config_file, or basename.<ext> from the working directory.

    Returns the path used and the settings as lower-case dotted keys.
    """
    if config_file:
        path = Path(config_file)
    else:
        cwd = Path.cwd()
        for ext in _CONFIG_EXTENSIONS:
            candidate = cwd / f"{basename}.{ext}"
            if candidate.is_file():
                path = candidate
                break
        else:
            raise FileNotFoundError(f'Config File "{basename}" Not Found in "[{cwd}]"')
    return str(path), _flatten(_read_config(path))


def print_config(config: Mapping[str, Any]) -> None:
    """Print the settings as a table of right-aligned "key:" and value."""
    flat = _flatten(config)
    if not flat:
        return
    keys = sorted(flat)
    width = max(len(key) + 1 for key in keys)
    rows = []
    for key in keys:
        value = _text(flat[key])
        if len(value) > _MAX_COL_WIDTH:
            value = value[: _MAX_COL_WIDTH - 3] + "..."
        rows.append(f"{(key + ':').rjust(width)} {value}")
    sys.stdout.write("\n".join(rows))


def _coerce(value: Any, current: Any) -> Any:
    if isinstance(current, bool):
        return _parse_bool(value) if isinstance(value, str) else bool(value)
    if isinstance(current, int) and isinstance(value, str):
        return int(value)
    if isinstance(current, float) and isinstance(value, (str, int)):
        return float(value)
    if isinstance(current, list):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",")] if value else []
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]
    if isinstance(current, str) and not isinstance(value, str):
        return _text(value)
    return value


def _assign(target: Any, segments: list[str], value: Any) -> None:
    head, *rest = segments
    attr = head.replace("-", "_")
    if attr.startswith("_") or not hasattr(target, attr):
        return
    current = getattr(target, attr)
    if rest:
        if current is not None and not isinstance(current, (str, int, float, bool, list, tuple, dict)):
            _assign(current, rest, value)
        return
    if callable(current):
        return
    setattr(target, attr, _coerce(value, current))


class App:
    """A command-line application: parses flags, loads configuration and runs."""

    def __init__(
        self,
        name: str,
        basename: str,
        *,
        options: Optional[CliOptions] = None,
        run_func: Optional[RunFunc] = None,
        description: str = "",
        default_valid_args: bool = False,
        silence: bool = False,
        no_config: bool = False,
    ):
        self.name = name
        self.basename = basename
        self.options = options
        self.run_func = run_func
        self.description = description
        self.default_valid_args = default_valid_args
        self.silence = silence
        self.no_config = no_config
        self.named_flag_sets = NamedFlagSets()
        self.parser = self.build_parser()

    @property
    def prog(self) -> str:
        return format_base_name(self.name)

    def build_parser(self) -> argparse.ArgumentParser:
        """The argument parser holding every option flag plus --config and --help."""
        fss = self.options.flags() if self.options is not None else NamedFlagSets()
        fss.flag_set("global").add_argument(
            "-c",
            "--config",
            dest="config",
            default="",
            metavar="FILE",
            help="Read configuration from specified FILE, support JSON, TOML, YAML, INI, "
            "or Java properties formats.",
        )
        parser = _Parser(
            prog=self.prog,
            description=self.description,
            add_help=False,
            allow_abbrev=False,
            parents=[fss.flag_sets[name] for name in fss.order],
        )
        parser.add_argument("-h", "--help", action=_HelpAction, app=self, help=f"help for {self.prog}")
        parser.add_argument(_POSITIONAL, nargs="*", help=argparse.SUPPRESS)
        self.named_flag_sets = fss
        return parser

    def _print_help(self, stream: TextIO) -> None:
        try:
            cols, _ = terminal_size(stream)
        except OSError:
            cols = 0
        stream.write(f"{self.description}\n\nUsage:\n  {self.prog} [flags]\n")
        print_sections(stream, self.named_flag_sets, cols)

    def _check_args(self, args: list[str]) -> None:
        if self.default_valid_args and any(args):
            quoted = "[" + " ".join(json.dumps(arg, ensure_ascii=False) for arg in args) + "]"
            raise ValueError(f'"{self.prog}" does not take any arguments, got {quoted}')

    def _changed_flags(self, argv: list[str]) -> set[str]:
        actions = self.parser._option_string_actions
        changed: set[str] = set()
        for token in argv:
            if token == "--":
                break
            if not token.startswith("-") or token == "-":
                continue
            opt = token.split("=", 1)[0]
            if opt not in actions and not token.startswith("--"):
                opt = token[:2]
            action = actions.get(opt)
            if action is not None:
                changed.add(action.dest)
        return changed

    def _env_name(self, key: str) -> str:
        name = key.upper().replace(".", "_").replace("-", "_")
        prefix = self.basename.upper().replace("-", "_")
        return f"{prefix}_{name}" if prefix else name

    def _settings(self, flags: dict[str, Any], changed: set[str], config: dict[str, Any]) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        for key in sorted(set(flags) | set(config)):
            env_value = os.environ.get(self._env_name(key))
            if key in changed:
                settings[key] = flags[key]
            elif env_value is not None:
                settings[key] = env_value
            elif key in config:
                settings[key] = config[key]
            else:
                settings[key] = flags[key]
        return settings

    def run_command(self, argv: Optional[list[str]] = None) -> Any:
        """Parse argv, load configuration into the options, validate them and run."""
        argv = list(sys.argv[1:] if argv is None else argv)
        namespace = self.parser.parse_args(argv)
        self._check_args(getattr(namespace, _POSITIONAL))
        flags = {key: value for key, value in vars(namespace).items() if key != _POSITIONAL}

        config_file = flags.get("config", "")
        try:
            config_path, config = load_config(self.basename, config_file)
        except (OSError, ValueError, yaml.YAMLError, configparser.Error) as exc:
            sys.stderr.write(f"Error: failed to read configuration file({config_file}): {exc}\n")
            raise SystemExit(1) from exc

        log.info("WorkingDir: %s", os.getcwd())
        print_flags(flags)

        if not self.no_config and self.options is not None:
            settings = self._settings(flags, self._changed_flags(argv), config)
            for key, value in settings.items():
                _assign(self.options, key.split("."), value)

        if not self.silence:
            log.info("Starting %s ...", self.name)
            if not self.no_config:
                log.info("Config file used: `%s`", config_path)

        if self.options is not None:
            self._apply_option_rules()

        if self.run_func is not None:
            return self.run_func(self.basename)
        return None

    def _apply_option_rules(self) -> None:
        complete = getattr(self.options, "complete", None)
        if callable(complete):
            complete()
        problems = new_aggregate(self.options.validate())
        if problems is not None:
            raise problems
        if not self.silence and type(self.options).__str__ is not object.__str__:
            log.info("Config: `%s`", str(self.options))

    def run(self, argv: Optional[list[str]] = None) -> None:
        """Run the application; on failure print the error and exit with status 1."""
        try:
            self.run_command(argv)
        except SystemExit:
            raise
        except Exception as err:
            sys.stdout.write(str(err))
            sys.stdout.flush()
            raise SystemExit(1) from err