from __future__ import annotations

import logging
import importlib.util
import os
import shlex
import shutil
import subprocess
import sys
import zipapp
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import click
import typer
from rich.console import Console

from .. import __version__
from ..build_info import (
    BUILD_INFO_RESOURCE,
    BuildInfo,
    DEV_SUFFIX,
    build_info_document,
    compose_version,
    host_arch,
    host_os,
    normalize_arch,
)
from ..cli_shared import (
    EXIT_OP_ERROR,
    EXIT_USAGE,
    OpError,
    UsageError,
    _rich_error,
    _truthy,
)
from ..config import _bootstrap_env
from ..logging_config import setup_logging

logger = logging.getLogger(__name__)

BINARY_NAME = "kbot"
DEFAULT_REGISTRY = "cibexon"
FALLBACK_TAG = "v0.0.0"
FALLBACK_REVISION = "unknown"
ARTIFACT_DIR = Path("bin")
STAGING_DIR = Path("build") / "zipapp"
ZIPAPP_INTERPRETER = "/usr/bin/env python3"
ZIPAPP_MAIN = "import sys\n\nfrom kbot.main import main\n\nsys.exit(main(sys.argv[1:]))\n"

TARGETS = (
    ("help", "Show this help message"),
    ("format", "Format Python code"),
    ("lint", "Run ruff"),
    ("test", "Run tests"),
    ("get", "Get dependencies"),
    ("build", "Build the application"),
    ("image", "Build Docker image for host platform"),
    ("push", "Push Docker image to registry"),
    ("clean", "Clean build artifacts including Docker image"),
    ("dev", "Development build (with debug info)"),
    ("release", "Production build, image and push"),
)

_OUT = Console(highlight=False)


@dataclass(frozen=True)
class BuildSettings:
    app: str
    registry: str
    version: str
    host_os: str
    host_arch: str
    target_os: str
    target_arch: str
    native_interop: bool = False
    dry_run: bool = False

    @property
    def image_tag(self) -> str:
        return f"{self.registry}/{self.app}:{self.version}-{self.target_arch}"

    @property
    def artifact(self) -> Path:
        return ARTIFACT_DIR / BINARY_NAME

    @property
    def cross_target(self) -> bool:
        return (self.target_os, self.target_arch) != (self.host_os, self.host_arch)


def _say(msg: str) -> None:
    _OUT.print(msg, markup=False, soft_wrap=True)


def _git(*args: str) -> str | None:
    try:
        out = subprocess.check_output(["git", *args], text=True, stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.strip() or None


def _app_name_from_remote() -> str:
    url = _git("remote", "get-url", "origin")
    if not url:
        logger.warning("no git remote 'origin'; using app name %r", BINARY_NAME)
        return BINARY_NAME
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or BINARY_NAME


def _version_from_git() -> str:
    tag = _git("describe", "--tags", "--abbrev=0")
    revision = _git("rev-parse", "--short", "HEAD")
    if not tag or not revision:
        logger.warning("git tag or revision unavailable; versioning as %s-%s", FALLBACK_TAG, FALLBACK_REVISION)
    return compose_version(tag or FALLBACK_TAG, revision or FALLBACK_REVISION)


def _require_set(name: str, value: str) -> str:
    v = (value or "").strip()
    if not v:
        raise UsageError(f"{name} is not set")
    return v


def resolve_settings(*, dry_run: bool = False) -> BuildSettings:
    """Read build configuration from the environment, defaulting to the host platform."""
    h_os = host_os()
    h_arch = host_arch()
    target_os = _require_set("TARGETOS", os.environ.get("TARGETOS", h_os))
    target_arch = normalize_arch(_require_set("TARGETARCH", os.environ.get("TARGETARCH", h_arch)))
    return BuildSettings(
        app=(os.environ.get("APP") or "").strip() or _app_name_from_remote(),
        registry=(os.environ.get("REGISTRY") or "").strip() or DEFAULT_REGISTRY,
        version=(os.environ.get("VERSION") or "").strip() or _version_from_git(),
        host_os=h_os,
        host_arch=h_arch,
        target_os=target_os,
        target_arch=target_arch,
        native_interop=_truthy(os.environ.get("NATIVE_INTEROP", "0")),
        dry_run=dry_run,
    )


def _run(cmd: Sequence[str], *, s: BuildSettings, check: bool = True) -> int:
    line = shlex.join(cmd)
    if s.dry_run:
        _say(f"DRYRUN {line}")
        return 0
    logger.info("running: %s", line)
    try:
        proc = subprocess.run(list(cmd), check=False)
    except OSError as e:
        if not check:
            return 127
        raise OpError(f"failed to run {cmd[0]!r}: {e}") from e
    if check and proc.returncode != 0:
        raise OpError(f"command failed with exit status {proc.returncode}: {line}")
    return proc.returncode


def _ruff_installed() -> bool:
    return importlib.util.find_spec("ruff") is not None


def _ruff(*args: str) -> list[str]:
    return [sys.executable, "-m", "ruff", *args]


def _ensure_ruff(s: BuildSettings) -> None:
    if not _ruff_installed():
        _say("Installing ruff...")
        _run([sys.executable, "-m", "pip", "install", "ruff"], s=s)


def do_format(s: BuildSettings) -> None:
    _say("Formatting Python code...")
    _ensure_ruff(s)
    _run(_ruff("format", "."), s=s)


def do_lint(s: BuildSettings) -> None:
    _ensure_ruff(s)
    _say("Running linter...")
    _run(_ruff("check", "."), s=s)


def do_test(s: BuildSettings) -> None:
    _say("Running tests...")
    _run([sys.executable, "-m", "pytest", "-v", "--cov=kbot"], s=s)


def do_get(s: BuildSettings) -> None:
    _say("Getting dependencies...")
    _run([sys.executable, "-m", "pip", "install", "-e", ".[test]"], s=s)
    _run([sys.executable, "-m", "pip", "check"], s=s)


def _write_text(path: Path, text: str, *, s: BuildSettings) -> None:
    if s.dry_run:
        _say(f"DRYRUN write {path}")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _remove_path(path: Path, *, s: BuildSettings) -> None:
    if s.dry_run:
        _say(f"DRYRUN remove {path}")
        return
    if path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def do_build(s: BuildSettings, *, dev: bool) -> Path:
    """Stage the package with its dependencies and archive it as a zipapp."""
    if s.native_interop and s.cross_target:
        raise UsageError(
            f"cross-target build {s.target_os}/{s.target_arch} requires NATIVE_INTEROP=0 "
            f"(host is {s.host_os}/{s.host_arch})"
        )
    do_format(s)
    do_get(s)
    info = BuildInfo(
        version=s.version + DEV_SUFFIX if dev else s.version,
        target_os=s.target_os,
        target_arch=s.target_arch,
        native_interop=s.native_interop,
    )
    _say(f"Building {'development' if dev else 'production'} version {info.version}...")
    _remove_path(STAGING_DIR, s=s)
    pip_cmd = [sys.executable, "-m", "pip", "install", "--target", str(STAGING_DIR), "."]
    if not dev:
        pip_cmd.insert(4, "--no-compile")
    _run(pip_cmd, s=s)
    _write_text(STAGING_DIR / "kbot" / BUILD_INFO_RESOURCE, build_info_document(info), s=s)
    _write_text(STAGING_DIR / "__main__.py", ZIPAPP_MAIN, s=s)
    if s.dry_run:
        _say(f"DRYRUN zipapp {STAGING_DIR} -> {s.artifact}")
        return s.artifact
    s.artifact.parent.mkdir(parents=True, exist_ok=True)
    zipapp.create_archive(
        STAGING_DIR,
        target=s.artifact,
        interpreter=ZIPAPP_INTERPRETER,
        compressed=not dev,
    )
    _say(f"Built {s.artifact}")
    return s.artifact


def do_image(s: BuildSettings) -> None:
    _say(f"Building Docker image for host platform: {s.host_os}/{s.host_arch}...")
    _run(
        [
            "docker",
            "build",
            ".",
            "-t",
            s.image_tag,
            "--build-arg",
            f"TARGETARCH={s.host_arch}",
            "--build-arg",
            f"VERSION={s.version}",
        ],
        s=s,
    )
    _say(f"Image built: {s.image_tag}")


def do_push(s: BuildSettings) -> None:
    _say("Pushing Docker image...")
    _run(["docker", "push", s.image_tag], s=s)


def do_clean(s: BuildSettings) -> None:
    _say("Cleaning build artifacts...")
    _remove_path(s.artifact, s=s)
    _remove_path(STAGING_DIR, s=s)
    _say(f"Removing Docker image: {s.image_tag}")
    _run(["docker", "rmi", s.image_tag], s=s, check=False)


def do_release(s: BuildSettings) -> None:
    do_clean(s)
    do_test(s)
    do_build(s, dev=False)
    do_image(s)
    do_push(s)
    _say(f"Release {s.version} completed successfully!")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"kbot-build {__version__}")
        raise typer.Exit(code=0)


def _ctx_settings(ctx: typer.Context) -> BuildSettings:
    if isinstance(ctx.obj, dict) and isinstance(ctx.obj.get("s"), BuildSettings):
        return ctx.obj["s"]
    return resolve_settings()


app = typer.Typer(
    name="kbot-build",
    help="Build lifecycle for the kbot binary: format, lint, test, build, image, release.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def app_callback(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without running them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each external command"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True),
) -> None:
    del version
    setup_logging(logging.INFO if verbose else logging.WARNING)
    ctx.obj = {"s": resolve_settings(dry_run=dry_run)}


@app.command("help", help="List targets and the current build configuration.")
def help_target(ctx: typer.Context) -> None:
    s = _ctx_settings(ctx)
    _say("Available targets:")
    width = max(len(name) for name, _ in TARGETS)
    for name, text in TARGETS:
        if name == "image":
            text = f"{text} ({s.host_os}/{s.host_arch})"
        _say(f"  {name.ljust(width)} - {text}")
    _say("")
    _say("Configuration:")
    _say(f"  TARGETOS       - Target OS (linux, darwin, windows) [{s.target_os}]")
    _say(f"  TARGETARCH     - Target architecture (amd64, arm64) [{s.target_arch}]")
    _say(f"  NATIVE_INTEROP - Allow native extensions (0 or 1) [{1 if s.native_interop else 0}]")
    _say(f"  IMAGE_TAG      - Docker image tag [{s.image_tag}]")


@app.command("format", help="Format Python code with ruff.")
def format_target(ctx: typer.Context) -> None:
    do_format(_ctx_settings(ctx))


@app.command("lint", help="Run ruff, installing it first if missing.")
def lint_target(ctx: typer.Context) -> None:
    do_lint(_ctx_settings(ctx))


@app.command("test", help="Run the test suite with coverage.")
def test_target(ctx: typer.Context) -> None:
    do_test(_ctx_settings(ctx))


@app.command("get", help="Install the project and its dependencies.")
def get_target(ctx: typer.Context) -> None:
    do_get(_ctx_settings(ctx))


@app.command("dev", help="Development build (version suffixed with -dev).")
def dev_target(ctx: typer.Context) -> None:
    do_build(_ctx_settings(ctx), dev=True)


@app.command("build", help="Production build of the single-file kbot zipapp.")
def build_target(ctx: typer.Context) -> None:
    do_build(_ctx_settings(ctx), dev=False)


@app.command("image", help="Build the Docker image for the host platform.")
def image_target(ctx: typer.Context) -> None:
    do_image(_ctx_settings(ctx))


@app.command("push", help="Push the Docker image to the registry.")
def push_target(ctx: typer.Context) -> None:
    do_push(_ctx_settings(ctx))


@app.command("clean", help="Remove build artifacts and the Docker image.")
def clean_target(ctx: typer.Context) -> None:
    do_clean(_ctx_settings(ctx))


@app.command("release", help="clean, test, build, image, push.")
def release_target(ctx: typer.Context) -> None:
    do_release(_ctx_settings(ctx))


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        _bootstrap_env()
        result = app(args=argv, prog_name="kbot-build", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return EXIT_USAGE
    except OpError as e:
        _rich_error(str(e))
        return EXIT_OP_ERROR


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
