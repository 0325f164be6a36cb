from __future__ import annotations

from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_build_outputs_are_ignored() -> None:
    ignored = {
        line.strip()
        for line in (ROOT / ".gitignore").read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.startswith("#")
    }
    required = {"bin/", "build/", "__pycache__/", "kbot/_build_info.json", ".env"}
    missing = sorted(required - ignored)
    assert missing == [], f"missing .gitignore entries: {missing}"


def test_source_tree_carries_no_embedded_build_info() -> None:
    assert not (ROOT / "kbot" / "_build_info.json").exists()
