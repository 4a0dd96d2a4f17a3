"""Command descriptions and the command interfaces handlers run.

A command has a ``CommandDescription`` (name, help texts, parameter layers)
and is either a ``GlazeCommand``, emitting rows into a ``TableProcessor``,
or a ``WriterCommand``, writing text. Commands may additionally implement
``CommandWithMetadata`` to expose extra data to templates.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TextIO

from .layers import DEFAULT_SLUG, ParameterLayer, ParameterLayers, ParsedLayers
from .parameters import ParameterDefinition, ParameterDefinitions

if TYPE_CHECKING:
    from .processor import TableProcessor


@dataclass
class CommandDescription:
    """Everything needed to describe a command to a user or a parser.

    ``layout`` optionally declares how the parameters are arranged in forms:
    a list of sections ``{"title": ..., "description": ..., "rows": [[name, ...], ...]}``.
    """

    name: str
    short: str = ""
    long: str = ""
    layers: ParameterLayers = field(default_factory=ParameterLayers)
    parents: list[str] = field(default_factory=list)
    source: str = ""
    layout: list[dict[str, Any]] = field(default_factory=list)

    @property
    def full_path(self) -> list[str]:
        return [*self.parents, self.name]

    def get_default_layer(self) -> ParameterLayer | None:
        return self.layers.get(DEFAULT_SLUG)

    def get_default_flags(self) -> ParameterDefinitions:
        layer = self.get_default_layer()
        return ParameterDefinitions() if layer is None else layer.definitions.get_flags()

    def get_default_arguments(self) -> ParameterDefinitions:
        layer = self.get_default_layer()
        return ParameterDefinitions() if layer is None else layer.definitions.get_arguments()

    def clone(self) -> CommandDescription:
        ret = copy.copy(self)
        ret.layers = self.layers.clone()
        ret.parents = list(self.parents)
        ret.layout = copy.deepcopy(self.layout)
        return ret


def new_command_description(
    name: str,
    short: str = "",
    long: str = "",
    flags: Sequence[ParameterDefinition] = (),
    arguments: Sequence[ParameterDefinition] = (),
    layers: Sequence[ParameterLayer] = (),
    parents: Sequence[str] = (),
    layout: list[dict[str, Any]] | None = None,
) -> CommandDescription:
    """Build a description with flags and arguments in the default layer."""
    for argument in arguments:
        argument.is_argument = True

    default_layer = ParameterLayer(
        slug=DEFAULT_SLUG,
        name="Flags",
        definitions=ParameterDefinitions([*flags, *arguments]),
    )
    all_layers = ParameterLayers([default_layer])
    all_layers.append_layers(*layers)

    return CommandDescription(
        name=name,
        short=short,
        long=long,
        layers=all_layers,
        parents=list(parents),
        layout=layout or [],
    )


class Command(ABC):
    """Base class of all commands."""

    @abstractmethod
    def description(self) -> CommandDescription:
        """Return the command description."""


class GlazeCommand(Command):
    """A command producing structured rows."""

    @abstractmethod
    async def run_into_glaze_processor(
        self,
        parsed_layers: ParsedLayers,
        processor: TableProcessor,
    ) -> None:
        """Run the command, adding rows with ``await processor.add_row(row)``."""


class WriterCommand(Command):
    """A command producing free-form text."""

    @abstractmethod
    async def run_into_writer(self, parsed_layers: ParsedLayers, writer: TextIO) -> None:
        """Run the command, writing its output to ``writer``."""


class CommandWithMetadata(ABC):
    """Mixin for commands exposing extra metadata to templates."""

    @abstractmethod
    async def metadata(self, parsed_layers: ParsedLayers) -> dict[str, Any]:
        """Return metadata computed from the parsed parameters."""


class CommandAlias(Command):
    """A command forwarding to another command with pre-filled parameters.

    ``flags`` maps parameter names to raw string values, ``arguments`` lists
    raw values for the aliased command's positional arguments, in order.
    Use ``new_command_alias`` to get an alias of the right flavour.
    """

    def __init__(
        self,
        name: str,
        alias_for: Command,
        flags: dict[str, str] | None = None,
        arguments: list[str] | None = None,
        parents: list[str] | None = None,
    ):
        self.name = name
        self.alias_for = alias_for
        self.flags = dict(flags or {})
        self.arguments = list(arguments or [])
        self.parents = parents

    def description(self) -> CommandDescription:
        d = self.alias_for.description().clone()
        d.name = self.name
        if self.parents is not None:
            d.parents = list(self.parents)
        return d

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, alias_for={self.alias_for.description().name!r})"


class GlazeCommandAlias(CommandAlias, GlazeCommand):
    """Alias of a ``GlazeCommand``."""

    async def run_into_glaze_processor(
        self,
        parsed_layers: ParsedLayers,
        processor: TableProcessor,
    ) -> None:
        assert isinstance(self.alias_for, GlazeCommand)
        await self.alias_for.run_into_glaze_processor(parsed_layers, processor)


class WriterCommandAlias(CommandAlias, WriterCommand):
    """Alias of a ``WriterCommand``."""

    async def run_into_writer(self, parsed_layers: ParsedLayers, writer: TextIO) -> None:
        assert isinstance(self.alias_for, WriterCommand)
        await self.alias_for.run_into_writer(parsed_layers, writer)


def new_command_alias(
    name: str,
    alias_for: Command,
    flags: dict[str, str] | None = None,
    arguments: list[str] | None = None,
    parents: list[str] | None = None,
) -> CommandAlias:
    """Create an alias matching the kind of the aliased command."""
    cls: type[CommandAlias]
    if isinstance(alias_for, GlazeCommand):
        cls = GlazeCommandAlias
    elif isinstance(alias_for, WriterCommand):
        cls = WriterCommandAlias
    else:
        cls = CommandAlias
    return cls(name, alias_for, flags=flags, arguments=arguments, parents=parents)
