"""Static command tree.

The tree is populated once during startup and sealed before any argument is
resolved against it. Flag value types are click parameter types so the
dispatcher gets click's conversion and error messages for free.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, Sequence

import click

from .cli_shared import DuplicateCommandError, NoSuchCommandError, RegistryError, UsageError

if TYPE_CHECKING:
    from .dispatcher import Invocation

Handler = Callable[["Invocation"], "int | None"]


def _is_flag_token(token: str) -> bool:
    return token.startswith("-") and token != "-"


@dataclass(frozen=True)
class Flag:
    name: str
    type: click.ParamType = click.STRING
    default: Any = None
    required: bool = False
    short: str = ""
    help: str = ""

    def __post_init__(self) -> None:
        if not self.name or self.name.startswith("-"):
            raise RegistryError(f"invalid flag name: {self.name!r}")
        if self.short and len(self.short) != 1:
            raise RegistryError(f"short alias for --{self.name} must be one character")

    @property
    def is_bool(self) -> bool:
        return isinstance(self.type, click.types.BoolParamType)

    @property
    def initial(self) -> Any:
        if self.is_bool and self.default is None:
            return False
        return self.default


@dataclass(eq=False)
class Command:
    name: str
    description: str = ""
    flags: Sequence[Flag] = ()
    handler: Handler | None = None
    accepts_args: bool = False
    children: Mapping[str, "Command"] = field(default_factory=dict, init=False, repr=False)
    parent: "Command | None" = field(default=None, init=False, repr=False)
    _frozen: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name or _is_flag_token(self.name) or " " in self.name:
            raise RegistryError(f"invalid command name: {self.name!r}")
        self.flags = tuple(self.flags)
        seen: set[str] = set()
        for f in self.flags:
            for key in (f"--{f.name}", f"-{f.short}" if f.short else ""):
                if not key:
                    continue
                if key in seen:
                    raise RegistryError(f"duplicate flag {key} on command {self.name!r}")
                seen.add(key)

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise RegistryError(f"command {self.name!r} is read-only after startup")
        object.__setattr__(self, key, value)

    @property
    def path(self) -> str:
        parts: list[str] = []
        node: Command | None = self
        while node is not None:
            parts.append(node.name)
            node = node.parent
        return " ".join(reversed(parts))

    @property
    def runnable(self) -> bool:
        return self.handler is not None

    def flag(self, token: str) -> Flag | None:
        for f in self.flags:
            if token == f"--{f.name}" or (f.short and token == f"-{f.short}"):
                return f
        return None


class CommandRegistry:
    def __init__(self, root: Command) -> None:
        self.root = root
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def find(self, path: str | Sequence[str]) -> Command:
        parts = path.split() if isinstance(path, str) else list(path)
        node = self.root
        if parts and parts[0] == self.root.name:
            parts = parts[1:]
        for i, name in enumerate(parts):
            child = node.children.get(name)
            if child is None:
                raise NoSuchCommandError(
                    f"no such command: {' '.join(parts[: i + 1])}",
                    path=node.path,
                )
            node = child
        return node

    def register(self, parent: Command | str | None, command: Command) -> Command:
        if self._sealed:
            raise RegistryError("command registry is sealed")
        if parent is None:
            target = self.root
        elif isinstance(parent, Command):
            target = parent
        else:
            target = self.find(parent)
        if command.name in target.children:
            raise DuplicateCommandError(
                f"command {command.name!r} already registered under {target.path!r}"
            )
        if command.parent is not None:
            raise RegistryError(f"command {command.name!r} is already attached to {command.parent.path!r}")
        target.children[command.name] = command
        command.parent = target
        return command

    def seal(self) -> None:
        for _path, cmd in self.walk():
            cmd.children = MappingProxyType(dict(cmd.children))
            object.__setattr__(cmd, "_frozen", True)
        self._sealed = True

    def walk(self) -> Iterator[tuple[str, Command]]:
        stack: list[Command] = [self.root]
        while stack:
            cmd = stack.pop()
            yield cmd.path, cmd
            stack.extend(reversed(list(cmd.children.values())))

    def resolve(self, argv: Sequence[str]) -> tuple[Command, list[str]]:
        node = self.root
        args = list(argv)
        i = 0
        while i < len(args):
            token = args[i]
            if _is_flag_token(token):
                break
            child = node.children.get(token)
            if child is None:
                break
            node = child
            i += 1
        residual = args[i:]
        if not node.runnable:
            unknown = next((t for t in residual if not _is_flag_token(t)), None)
            if unknown is not None and unknown in node.children:
                raise UsageError(
                    f"flags must follow the full command path: {node.path} {unknown} ...",
                    path=node.path,
                )
            if unknown is not None:
                raise NoSuchCommandError(f"no such command: {unknown!r}", path=node.path)
        return node, residual
