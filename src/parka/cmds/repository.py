"""A tree of commands addressed by their ``parents + [name]`` path."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.exceptions import ConfigException
from .commands import Command

logger = logging.getLogger(__name__)


@dataclass
class _Node:
    name: str
    command: Command | None = None
    children: dict[str, _Node] = field(default_factory=dict)

    def collect(self, recurse: bool) -> list[Command]:
        if self.command is not None and not recurse:
            return [self.command]
        result: list[Command] = [] if self.command is None else [self.command]
        for child in self.children.values():
            if recurse:
                result.extend(child.collect(recurse=True))
            elif child.command is not None:
                result.append(child.command)
        return result


class Repository:
    """Holds commands in a tree keyed by their full path."""

    def __init__(self, name: str = "", commands: Iterable[Command] = ()):
        self.name = name
        self._root = _Node(name="")
        self.add(*commands)

    def add(self, *commands: Command) -> Repository:
        for cmd in commands:
            desc = cmd.description()
            node = self._root
            for part in desc.full_path:
                node = node.children.setdefault(part, _Node(name=part))
            if node.command is not None:
                logger.warning(f"Replacing command {' '.join(desc.full_path)}")
            node.command = cmd
        return self

    def _find(self, path: list[str]) -> _Node | None:
        node = self._root
        for part in path:
            if not part:
                continue
            child = node.children.get(part)
            if child is None:
                return None
            node = child
        return node

    def collect_commands(self, prefix: list[str], recurse: bool = False) -> list[Command]:
        """Commands at ``prefix``.

        Without ``recurse``, a path naming a command returns that command and a
        path naming a directory returns the commands directly inside it. With
        ``recurse`` every command below the path is returned.
        """
        node = self._find(prefix)
        if node is None:
            return []
        return node.collect(recurse)

    def commands(self) -> list[Command]:
        return self._root.collect(recurse=True)

    def __len__(self) -> int:
        return len(self.commands())


def load_repository(spec: str) -> Repository:
    """Import a repository from ``"package.module:attribute"``.

    The attribute may be a ``Repository``, an iterable of commands, or a
    callable returning either.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigException(f"invalid repository spec '{spec}', expected 'module:attribute'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigException(f"could not import '{module_name}': {e}") from e

    try:
        obj = getattr(module, attr)
    except AttributeError as e:
        raise ConfigException(f"module '{module_name}' has no attribute '{attr}'") from e

    if callable(obj) and not isinstance(obj, (Repository, Command)):
        obj = obj()

    if isinstance(obj, Repository):
        return obj
    if isinstance(obj, Command):
        return Repository(name=spec, commands=[obj])
    if isinstance(obj, Iterable):
        commands = list(obj)
        bad = [c for c in commands if not isinstance(c, Command)]
        if bad:
            raise ConfigException(f"'{spec}' contains non-command entries: {bad!r}")
        return Repository(name=spec, commands=commands)

    raise ConfigException(f"'{spec}' is not a repository or a list of commands")


def load_command(spec: str) -> Command:
    """Import a single command from ``"package.module:attribute"``."""
    repository = load_repository(spec)
    commands = repository.commands()
    if len(commands) != 1:
        raise ConfigException(f"'{spec}' must resolve to exactly one command, got {len(commands)}")
    return commands[0]
