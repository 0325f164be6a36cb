"""Build metadata holder.

The version string used to be stamped into the binary at link time. Here the
build tool writes it into the embedded resource ``kbot/_build_info.json``
before archiving the package; environment variables override the resource so a
container image can carry its own tag. Nothing is mutated after load.
"""

from __future__ import annotations

import json
import logging
import os
import platform
from dataclasses import asdict, dataclass
from importlib import resources
from typing import Any

from .cli_shared import (
    KBOT_NATIVE_INTEROP,
    KBOT_TARGET_ARCH,
    KBOT_TARGET_OS,
    KBOT_VERSION,
    OpError,
    _env_or_none,
    _truthy,
)

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "dev"
DEV_SUFFIX = "-dev"
BUILD_INFO_RESOURCE = "_build_info.json"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
}


def normalize_arch(machine: str) -> str:
    m = (machine or "").strip().lower()
    return _ARCH_ALIASES.get(m, m)


def host_os() -> str:
    return platform.system().strip().lower()


def host_arch() -> str:
    return normalize_arch(platform.machine())


def compose_version(tag: str, revision: str, *, dev: bool = False) -> str:
    """Return ``<tag>-<revision>``, with ``-dev`` appended for development builds."""
    t = (tag or "").strip()
    r = (revision or "").strip()
    if not t or not r:
        raise ValueError("version requires both a tag and a revision")
    version = f"{t}-{r}"
    return version + DEV_SUFFIX if dev else version


@dataclass(frozen=True)
class BuildInfo:
    version: str
    target_os: str
    target_arch: str
    native_interop: bool = False

    def get(self) -> str:
        return self.version or UNKNOWN_VERSION

    @property
    def is_dev(self) -> bool:
        return self.version == UNKNOWN_VERSION or self.version.endswith(DEV_SUFFIX)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["version"] = self.get()
        return out


def _read_embedded() -> dict[str, Any]:
    try:
        raw = resources.files("kbot").joinpath(BUILD_INFO_RESOURCE).read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        val = json.loads(raw)
    except ValueError as e:
        raise OpError(f"invalid embedded build info {BUILD_INFO_RESOURCE}: {e}") from e
    if not isinstance(val, dict):
        raise OpError(f"invalid embedded build info {BUILD_INFO_RESOURCE}: expected JSON object")
    return val


def load_build_info() -> BuildInfo:
    embedded = _read_embedded()
    version = _env_or_none(KBOT_VERSION) or str(embedded.get("version") or "").strip()
    if not version:
        logger.debug("no build version injected; using %r", UNKNOWN_VERSION)
        version = UNKNOWN_VERSION
    target_os = _env_or_none(KBOT_TARGET_OS) or str(embedded.get("target_os") or "").strip() or host_os()
    target_arch = normalize_arch(
        _env_or_none(KBOT_TARGET_ARCH) or str(embedded.get("target_arch") or "").strip() or host_arch()
    )
    native_raw = os.environ.get(KBOT_NATIVE_INTEROP)
    if native_raw is not None and native_raw.strip():
        native_interop = _truthy(native_raw)
    else:
        native_interop = bool(embedded.get("native_interop", False))
    return BuildInfo(
        version=version,
        target_os=target_os,
        target_arch=target_arch,
        native_interop=native_interop,
    )


def build_info_document(info: BuildInfo) -> str:
    return json.dumps(info.to_dict(), indent=2, sort_keys=True) + "\n"
