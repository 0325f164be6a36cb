from __future__ import annotations

import json

import pytest

from kbot import build_info
from kbot.build_info import (
    BuildInfo,
    UNKNOWN_VERSION,
    build_info_document,
    compose_version,
    load_build_info,
    normalize_arch,
)
from kbot.cli_shared import OpError

_read_embedded = build_info._read_embedded


def test_placeholder_when_nothing_injected(monkeypatch) -> None:
    monkeypatch.setattr(build_info, "host_os", lambda: "linux")
    monkeypatch.setattr(build_info, "host_arch", lambda: "amd64")
    info = load_build_info()
    assert info.get() == UNKNOWN_VERSION == "dev"
    assert info.target_os == "linux"
    assert info.target_arch == "amd64"
    assert info.native_interop is False
    assert info.is_dev


def test_get_never_returns_empty_string() -> None:
    assert BuildInfo(version="", target_os="linux", target_arch="arm64").get() == "dev"


def test_get_returns_injected_value_unchanged() -> None:
    info = BuildInfo(version="v1.0.0-3f2a9c1", target_os="linux", target_arch="amd64")
    assert info.get() == "v1.0.0-3f2a9c1"
    assert not info.is_dev


def test_embedded_resource_is_used(monkeypatch) -> None:
    monkeypatch.setattr(
        build_info,
        "_read_embedded",
        lambda: {
            "version": "v2.1.0-deadbee-dev",
            "target_os": "darwin",
            "target_arch": "arm64",
            "native_interop": True,
        },
    )
    info = load_build_info()
    assert info == BuildInfo(
        version="v2.1.0-deadbee-dev",
        target_os="darwin",
        target_arch="arm64",
        native_interop=True,
    )
    assert info.is_dev


def test_environment_overrides_embedded_resource(monkeypatch) -> None:
    monkeypatch.setattr(
        build_info,
        "_read_embedded",
        lambda: {"version": "v1.0.0-aaaaaaa", "target_arch": "arm64", "native_interop": True},
    )
    monkeypatch.setenv("KBOT_VERSION", "v1.0.1-bbbbbbb")
    monkeypatch.setenv("KBOT_TARGET_ARCH", "x86_64")
    monkeypatch.setenv("KBOT_NATIVE_INTEROP", "0")
    info = load_build_info()
    assert info.version == "v1.0.1-bbbbbbb"
    assert info.target_arch == "amd64"
    assert info.native_interop is False


def test_build_info_document_round_trips_through_loader(monkeypatch) -> None:
    info = BuildInfo(version="v3.0.0-1234567", target_os="linux", target_arch="arm64")
    doc = build_info_document(info)
    monkeypatch.setattr(build_info, "_read_embedded", lambda: json.loads(doc))
    assert load_build_info() == info


def test_read_embedded_rejects_non_object(monkeypatch) -> None:
    class _Res:
        def joinpath(self, name):
            return self

        def read_text(self, encoding="utf-8"):
            return "[1, 2]"

    monkeypatch.setattr(build_info.resources, "files", lambda pkg: _Res())
    with pytest.raises(OpError, match="expected JSON object"):
        _read_embedded()


def test_compose_version() -> None:
    assert compose_version("v1.4.0", "a1b2c3d") == "v1.4.0-a1b2c3d"
    assert compose_version("v1.4.0", "a1b2c3d", dev=True) == "v1.4.0-a1b2c3d-dev"
    with pytest.raises(ValueError):
        compose_version("", "a1b2c3d")


@pytest.mark.parametrize(
    ("machine", "expected"),
    [("x86_64", "amd64"), ("aarch64", "arm64"), ("AMD64", "amd64"), ("arm64", "arm64"), ("riscv64", "riscv64")],
)
def test_normalize_arch(machine: str, expected: str) -> None:
    assert normalize_arch(machine) == expected
