from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .cli_shared import (
    EXIT_OK,
    MissingRequiredFlagError,
    OpError,
    UnrecognizedFlagError,
    UsageError,
)
from .config import RuntimeConfig
from .registry import Command, Flag

logger = logging.getLogger(__name__)

HELP_TOKENS = ("--help", "-h")


@dataclass(frozen=True)
class Invocation:
    command: Command
    config: RuntimeConfig
    flags: Mapping[str, Any] = field(default_factory=dict)
    args: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        return self.command.path


def _convert(flag: Flag, raw: str, *, path: str) -> Any:
    try:
        return flag.type.convert(raw, None, None)
    except click.BadParameter as e:
        raise UsageError(f"invalid value for --{flag.name}: {e.format_message()}", path=path) from e


def parse_flags(command: Command, residual: Sequence[str]) -> tuple[dict[str, Any], list[str]]:
    """Bind residual tokens to the command's declared flags.

    Returns the flag values keyed by flag name (every declared flag present,
    unset ones at their default) and the positional arguments.
    """
    path = command.path
    values: dict[str, Any] = {f.name: f.initial for f in command.flags}
    given: set[str] = set()
    positional: list[str] = []
    tokens = list(residual)
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if token == "--":
            positional.extend(tokens[i:])
            break
        if not token.startswith("-") or token == "-":
            positional.append(token)
            continue
        name, sep, inline = token.partition("=")
        flag = command.flag(name)
        if flag is None:
            raise UnrecognizedFlagError(f"unrecognized flag: {name}", path=path)
        if flag.is_bool:
            if sep:
                values[flag.name] = _convert(flag, inline, path=path)
            else:
                values[flag.name] = True
        else:
            if sep:
                raw = inline
            elif i < len(tokens):
                raw = tokens[i]
                i += 1
            else:
                raise UsageError(f"flag --{flag.name} requires a value", path=path)
            values[flag.name] = _convert(flag, raw, path=path)
        given.add(flag.name)

    missing = [f.name for f in command.flags if f.required and f.name not in given]
    if missing:
        raise MissingRequiredFlagError(missing, path=path)
    if positional and not command.accepts_args:
        raise UsageError(f"unexpected argument: {positional[0]!r}", path=path)
    return values, positional


def _help_requested(command: Command, residual: Sequence[str]) -> bool:
    """True when a help token sits where a flag name is expected.

    A valued flag given as ``--name value`` consumes the next token, so
    ``--pattern -h`` binds ``-h`` to ``--pattern``. Unknown flags consume
    nothing here; ``parse_flags`` reports them.
    """
    tokens = list(residual)
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if token == "--":
            return False
        if token in HELP_TOKENS:
            return True
        if not token.startswith("-") or token == "-" or "=" in token:
            continue
        flag = command.flag(token)
        if flag is not None and not flag.is_bool:
            i += 1
    return False


def _usage_line(command: Command) -> str:
    parts = [command.path]
    if command.children:
        parts.append("COMMAND" if not command.runnable else "[COMMAND]")
    if command.flags:
        parts.append("[FLAGS]")
    if command.accepts_args:
        parts.append("[ARGS]...")
    return "Usage: " + " ".join(parts)


def _flag_label(flag: Flag) -> str:
    label = f"--{flag.name}"
    if flag.short:
        label = f"-{flag.short}, {label}"
    if not flag.is_bool:
        label += f" {flag.type.name.upper()}"
    return label


def _flag_help(flag: Flag) -> str:
    text = flag.help
    if flag.required:
        text = (text + " " if text else "") + "[required]"
    elif flag.default is not None and not flag.is_bool:
        text = (text + " " if text else "") + f"[default: {flag.default}]"
    return text


def render_help(command: Command, *, console: Console | None = None) -> None:
    out = console or Console(highlight=False)
    out.print(_usage_line(command), markup=False)
    if command.description:
        out.print("")
        out.print(command.description, markup=False)
    if command.flags:
        table = Table(show_header=False, box=None, padding=(0, 2))
        for f in command.flags:
            table.add_row(Text(_flag_label(f)), Text(_flag_help(f)))
        table.add_row(Text("-h, --help"), Text("Show this message and exit."))
        out.print("")
        out.print("Flags:")
        out.print(table)
    if command.children:
        table = Table(show_header=False, box=None, padding=(0, 2))
        for name, child in command.children.items():
            summary = child.description.splitlines()[0] if child.description else ""
            table.add_row(Text(name), Text(summary))
        out.print("")
        out.print("Commands:")
        out.print(table)


def execute(command: Command, residual_args: Sequence[str], config: RuntimeConfig) -> int:
    """Parse ``residual_args`` against ``command`` and run its handler once."""
    residual = list(residual_args)
    if _help_requested(command, residual):
        render_help(command)
        return EXIT_OK

    if not command.runnable:
        parse_flags(command, residual)
        render_help(command)
        return EXIT_OK

    values, positional = parse_flags(command, residual)
    inv = Invocation(command=command, config=config, flags=values, args=tuple(positional))
    logger.debug("dispatching %s flags=%s args=%s", command.path, values, positional)
    handler = command.handler
    result = handler(inv) if handler is not None else None
    if result is None:
        return EXIT_OK
    try:
        return int(result)
    except (TypeError, ValueError) as e:
        raise OpError(f"command {command.path!r} returned a non-integer status: {result!r}") from e
