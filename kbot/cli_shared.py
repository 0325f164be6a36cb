from __future__ import annotations

import json
import os
import sys
from typing import Any, Iterable

from rich.console import Console
from rich.markup import escape


class KbotError(Exception):
    pass


class UsageError(KbotError):
    """Argument-resolution failure; rendered with help, exit status 2."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class NoSuchCommandError(UsageError):
    pass


class UnrecognizedFlagError(UsageError):
    pass


class MissingRequiredFlagError(UsageError):
    def __init__(self, names: Iterable[str], *, path: str = "") -> None:
        self.names = list(names)
        flags = ", ".join(f"--{n}" for n in self.names)
        label = "flag" if len(self.names) == 1 else "flags"
        super().__init__(f"missing required {label}: {flags}", path=path)


class OpError(KbotError):
    pass


class RegistryError(KbotError):
    pass


class DuplicateCommandError(RegistryError):
    pass


EXIT_OK = 0
EXIT_OP_ERROR = 1
EXIT_USAGE = 2

KBOT_VERSION = "KBOT_VERSION"
KBOT_TARGET_OS = "KBOT_TARGET_OS"
KBOT_TARGET_ARCH = "KBOT_TARGET_ARCH"
KBOT_NATIVE_INTEROP = "KBOT_NATIVE_INTEROP"
KBOT_LOG_LEVEL = "KBOT_LOG_LEVEL"

_ERROR_CONSOLE = Console(stderr=True)


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", highlight=False, soft_wrap=True)


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _print_json(obj: Any, *, pretty: bool = False) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")
