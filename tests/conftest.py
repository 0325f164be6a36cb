from __future__ import annotations

import logging
from typing import Iterator

import pytest

from kbot import build_info

_ENV_VARS = (
    "KBOT_VERSION",
    "KBOT_TARGET_OS",
    "KBOT_TARGET_ARCH",
    "KBOT_NATIVE_INTEROP",
    "KBOT_LOG_LEVEL",
    "TARGETOS",
    "TARGETARCH",
    "NATIVE_INTEROP",
    "REGISTRY",
    "APP",
    "VERSION",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # A locally built kbot/_build_info.json must not leak into test expectations.
    monkeypatch.setattr(build_info, "_read_embedded", lambda: {})
    yield
    # setup_logging binds handlers to the stderr that was current at the time.
    logging.getLogger("kbot").handlers.clear()
