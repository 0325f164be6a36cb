"""Runtime configuration assembled once at process start."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .build_info import BuildInfo, load_build_info
from .cli_shared import KBOT_LOG_LEVEL, UsageError, _env_or_none

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class RuntimeConfig:
    build: BuildInfo
    log_level: str = DEFAULT_LOG_LEVEL
    quiet: bool = False

    @property
    def version(self) -> str:
        return self.build.get()

    @property
    def effective_log_level(self) -> int:
        if self.quiet:
            return logging.ERROR
        return getattr(logging, self.log_level)


def _bootstrap_env() -> None:
    # .env in the working directory; already-exported values win.
    load_dotenv(find_dotenv(usecwd=True))


def _normalize_log_level(raw: str) -> str:
    level = (raw or "").strip().upper()
    if level not in LOG_LEVELS:
        raise UsageError(f"invalid log level {raw!r} (expected one of: {', '.join(LOG_LEVELS)})")
    return level


def load_config(*, log_level: str | None = None, quiet: bool = False) -> RuntimeConfig:
    level = log_level or _env_or_none(KBOT_LOG_LEVEL) or DEFAULT_LOG_LEVEL
    return RuntimeConfig(
        build=load_build_info(),
        log_level=_normalize_log_level(level),
        quiet=quiet,
    )
