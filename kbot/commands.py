from __future__ import annotations

import sys

import click

from .cli_shared import _print_json
from .dispatcher import Invocation, render_help
from .registry import Command, CommandRegistry, Flag

APP_NAME = "kbot"

_JSON_FLAG = Flag("json", click.BOOL, help="Emit JSON instead of text")
_PRETTY_FLAG = Flag("pretty", click.BOOL, help="Indent JSON output")


def cmd_version(inv: Invocation) -> int:
    build = inv.config.build
    if inv.flags.get("json"):
        _print_json(
            {
                "kind": "kbot.version.v1",
                "version": build.get(),
                "targetOs": build.target_os,
                "targetArch": build.target_arch,
            },
            pretty=bool(inv.flags.get("pretty")),
        )
        return 0
    sys.stdout.write(f"{APP_NAME} {build.get()}\n")
    return 0


def cmd_config_show(inv: Invocation) -> int:
    cfg = inv.config
    doc = {
        "kind": "kbot.config.v1",
        "build": {
            "version": cfg.build.get(),
            "targetOs": cfg.build.target_os,
            "targetArch": cfg.build.target_arch,
            "nativeInterop": cfg.build.native_interop,
            "dev": cfg.build.is_dev,
        },
        "logLevel": cfg.log_level,
        "quiet": cfg.quiet,
    }
    if inv.flags.get("json"):
        _print_json(doc, pretty=bool(inv.flags.get("pretty")))
        return 0
    rows = [
        ("version", doc["build"]["version"]),
        ("target-os", cfg.build.target_os),
        ("target-arch", cfg.build.target_arch),
        ("native-interop", "1" if cfg.build.native_interop else "0"),
        ("dev-build", "1" if cfg.build.is_dev else "0"),
        ("log-level", cfg.log_level),
        ("quiet", "1" if cfg.quiet else "0"),
    ]
    width = max(len(k) for k, _ in rows)
    for k, v in rows:
        sys.stdout.write(f"{k.ljust(width)}  {v}\n")
    return 0


def _help_handler(registry: CommandRegistry):
    def cmd_help(inv: Invocation) -> int:
        target = registry.find(list(inv.args)) if inv.args else registry.root
        render_help(target)
        return 0

    return cmd_help


def build_registry() -> CommandRegistry:
    """Populate and seal the command tree."""
    root = Command(
        APP_NAME,
        description="Kubernetes operational bot.",
    )
    registry = CommandRegistry(root)
    registry.register(
        None,
        Command(
            "version",
            description="Print the build version.",
            flags=(_JSON_FLAG, _PRETTY_FLAG),
            handler=cmd_version,
        ),
    )
    registry.register(
        None,
        Command(
            "help",
            description="Show help for a command path.",
            handler=_help_handler(registry),
            accepts_args=True,
        ),
    )
    config = registry.register(
        None,
        Command("config", description="Inspect runtime configuration."),
    )
    registry.register(
        config,
        Command(
            "show",
            description="Print build metadata and runtime settings.",
            flags=(_JSON_FLAG, _PRETTY_FLAG),
            handler=cmd_config_show,
        ),
    )
    registry.seal()
    return registry
