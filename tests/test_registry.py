from __future__ import annotations

import click
import pytest

from kbot.cli_shared import (
    DuplicateCommandError,
    NoSuchCommandError,
    RegistryError,
    UsageError,
)
from kbot.registry import Command, CommandRegistry, Flag


def _noop(inv) -> int:
    return 0


def _tree() -> CommandRegistry:
    reg = CommandRegistry(Command("kbot", description="root"))
    reg.register(None, Command("version", handler=_noop, flags=(Flag("json", click.BOOL),)))
    cluster = reg.register(None, Command("cluster", description="cluster ops"))
    reg.register(cluster, Command("list", handler=_noop))
    nodes = reg.register(cluster, Command("nodes", handler=_noop, accepts_args=True))
    reg.register(nodes, Command("drain", handler=_noop, flags=(Flag("node", required=True),)))
    reg.register("cluster nodes", Command("cordon", handler=_noop))
    return reg


def test_resolve_returns_exact_command_for_every_path() -> None:
    reg = _tree()
    reg.seal()
    for path, cmd in reg.walk():
        argv = path.split()[1:]
        got, residual = reg.resolve(argv)
        assert got is cmd, path
        assert residual == []


def test_walk_visits_in_registration_order() -> None:
    reg = _tree()
    paths = [p for p, _ in reg.walk()]
    assert paths == [
        "kbot",
        "kbot version",
        "kbot cluster",
        "kbot cluster list",
        "kbot cluster nodes",
        "kbot cluster nodes drain",
        "kbot cluster nodes cordon",
    ]


def test_resolve_stops_at_first_flag() -> None:
    reg = _tree()
    cmd, residual = reg.resolve(["cluster", "nodes", "--node", "drain"])
    assert cmd.path == "kbot cluster nodes"
    assert residual == ["--node", "drain"]


def test_resolve_stops_at_first_unknown_name_on_runnable_command() -> None:
    reg = _tree()
    cmd, residual = reg.resolve(["cluster", "nodes", "worker-1", "drain"])
    assert cmd.path == "kbot cluster nodes"
    assert residual == ["worker-1", "drain"]


def test_resolve_unknown_subcommand_of_group_fails() -> None:
    reg = _tree()
    with pytest.raises(NoSuchCommandError, match="no such command: 'bogus'") as exc:
        reg.resolve(["cluster", "bogus"])
    assert exc.value.path == "kbot cluster"


def test_resolve_flag_before_subcommand_is_usage_error() -> None:
    reg = _tree()
    with pytest.raises(UsageError, match="flags must follow the full command path"):
        reg.resolve(["cluster", "--verbose", "list"])


def test_resolve_empty_argv_returns_root() -> None:
    reg = _tree()
    cmd, residual = reg.resolve([])
    assert cmd is reg.root
    assert residual == []


def test_register_duplicate_sibling_fails_without_overwriting() -> None:
    reg = _tree()
    original = reg.find("cluster list")
    for _ in range(2):
        with pytest.raises(DuplicateCommandError, match="already registered under 'kbot cluster'"):
            reg.register("cluster", Command("list", handler=_noop))
    assert reg.find("cluster list") is original


def test_same_name_under_different_parents_is_allowed() -> None:
    reg = _tree()
    reg.register(None, Command("list", handler=_noop))
    assert reg.find("list") is not reg.find("cluster list")


def test_register_under_unknown_parent_path_fails() -> None:
    reg = _tree()
    with pytest.raises(NoSuchCommandError):
        reg.register("nope", Command("x"))


def test_register_after_seal_fails() -> None:
    reg = _tree()
    reg.seal()
    assert reg.sealed
    with pytest.raises(RegistryError, match="sealed"):
        reg.register(None, Command("late", handler=_noop))


def test_commands_are_read_only_after_seal() -> None:
    reg = _tree()
    reg.seal()
    cmd = reg.find("version")
    with pytest.raises(RegistryError, match="read-only"):
        cmd.description = "changed"
    with pytest.raises(TypeError):
        reg.root.children["x"] = Command("x")  # type: ignore[index]


def test_command_rejects_duplicate_flags_and_bad_names() -> None:
    with pytest.raises(RegistryError, match="duplicate flag --a"):
        Command("x", flags=(Flag("a"), Flag("a")))
    with pytest.raises(RegistryError, match="duplicate flag -n"):
        Command("x", flags=(Flag("name", short="n"), Flag("node", short="n")))
    with pytest.raises(RegistryError, match="invalid command name"):
        Command("--x")
    with pytest.raises(RegistryError, match="invalid flag name"):
        Flag("--x")


def test_command_cannot_be_attached_twice() -> None:
    reg = _tree()
    cmd = Command("solo", handler=_noop)
    reg.register(None, cmd)
    with pytest.raises(RegistryError, match="already attached"):
        reg.register("cluster", cmd)
