from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Sequence

from rich.console import Console

from .cli_shared import (
    EXIT_OK,
    EXIT_OP_ERROR,
    EXIT_USAGE,
    KbotError,
    OpError,
    UsageError,
    _eprint,
    _rich_error,
)
from .commands import APP_NAME, build_registry
from .config import RuntimeConfig, _bootstrap_env, load_config
from .dispatcher import execute, render_help
from .logging_config import setup_logging
from .registry import CommandRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlobalOpts:
    version: bool = False
    quiet: bool = False
    log_level: str | None = None


def _split_global_flags(argv: Sequence[str]) -> tuple[GlobalOpts, list[str]]:
    """Consume process-level flags that precede the command path."""
    version = False
    quiet = False
    log_level: str | None = None
    args = list(argv)
    i = 0
    while i < len(args):
        token = args[i]
        if token == "--version":
            version = True
        elif token == "--quiet":
            quiet = True
        elif token == "--log-level":
            if i + 1 >= len(args):
                raise UsageError("flag --log-level requires a value")
            log_level = args[i + 1]
            i += 1
        elif token.startswith("--log-level="):
            log_level = token.split("=", 1)[1]
            if not log_level.strip():
                raise UsageError("flag --log-level requires a value")
        else:
            break
        i += 1
    return GlobalOpts(version=version, quiet=quiet, log_level=log_level), args[i:]


def _render_usage_error_with_help(*, registry: CommandRegistry, error: UsageError) -> None:
    _rich_error(str(error))
    try:
        target = registry.find(error.path) if error.path else registry.root
    except UsageError:
        target = registry.root
    _eprint("")
    render_help(target, console=Console(stderr=True, highlight=False))


def run(registry: CommandRegistry, argv: Sequence[str], config: RuntimeConfig) -> int:
    try:
        command, residual = registry.resolve(argv)
        return execute(command, residual, config)
    except UsageError as e:
        _render_usage_error_with_help(registry=registry, error=e)
        return EXIT_USAGE
    except KbotError as e:
        _rich_error(str(e))
        return EXIT_OP_ERROR
    except Exception as e:
        logger.debug("command failed", exc_info=True)
        _rich_error(str(e) or type(e).__name__)
        return EXIT_OP_ERROR


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        opts, rest = _split_global_flags(argv)
        _bootstrap_env()
        config = load_config(log_level=opts.log_level, quiet=opts.quiet)
    except UsageError as e:
        _rich_error(str(e))
        return EXIT_USAGE
    except OpError as e:
        _rich_error(str(e))
        return EXIT_OP_ERROR

    setup_logging(config.effective_log_level)
    if opts.version:
        sys.stdout.write(f"{APP_NAME} {config.version}\n")
        return EXIT_OK
    return run(build_registry(), rest, config)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
