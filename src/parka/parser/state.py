"""Per-layer parse state built from a command description."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..cmds.commands import Command, CommandAlias
from ..cmds.layers import ParameterLayers, ParsedLayer, ParsedLayers
from ..cmds.parameters import ParameterDefinitions, ParsedParameters


@dataclass
class LayerParseState:
    """What has been parsed for one layer so far.

    ``defaults`` holds raw string defaults (alias flags), used when a request
    doesn't provide a value. ``parameter_definitions`` are the definitions
    that can still be parsed.
    """

    slug: str
    defaults: dict[str, str] = field(default_factory=dict)
    parsed_parameters: ParsedParameters = field(default_factory=ParsedParameters)
    parameter_definitions: ParameterDefinitions = field(default_factory=ParameterDefinitions)

    def with_parameter_definitions(self, definitions: ParameterDefinitions) -> LayerParseState:
        self.parameter_definitions = definitions
        return self

    def merge_parameter_definitions(self, definitions: ParameterDefinitions) -> LayerParseState:
        self.parameter_definitions.merge(definitions)
        return self

    def with_defaults(self, defaults: dict[str, str]) -> LayerParseState:
        self.defaults = dict(defaults)
        return self

    def merge_defaults(self, defaults: dict[str, str]) -> LayerParseState:
        """Add defaults, keeping the ones already present."""
        for k, v in defaults.items():
            self.defaults.setdefault(k, v)
        return self

    def with_parsed_parameters(self, parsed: ParsedParameters) -> LayerParseState:
        self.parsed_parameters = parsed
        return self

    def merge_parsed_parameters(self, parsed: ParsedParameters) -> LayerParseState:
        self.parsed_parameters.merge(parsed)
        return self


def compute_alias_defaults(cmd: Command) -> dict[str, str]:
    """Raw string defaults an alias pre-fills.

    The alias flags are used as is; positional alias arguments are mapped in
    order onto the command's argument definitions, surplus ones are dropped.
    """
    if not isinstance(cmd, CommandAlias):
        return {}

    defaults = dict(cmd.flags)
    arguments = list(cmd.description().get_default_arguments())
    for idx, value in enumerate(cmd.arguments):
        if idx < len(arguments):
            defaults[arguments[idx].name] = value
    return defaults


@dataclass
class ParseState:
    layers: dict[str, LayerParseState] = field(default_factory=dict)

    @classmethod
    def from_command(cls, cmd: Command, layers: ParameterLayers | None = None) -> ParseState:
        """One layer state per layer of ``cmd``, or of ``layers`` when given."""
        defaults = compute_alias_defaults(cmd)
        state = cls()
        for layer in layers if layers is not None else cmd.description().layers:
            state.layers[layer.slug] = LayerParseState(
                slug=layer.slug,
                defaults=dict(defaults),
                parameter_definitions=layer.definitions.clone(),
            )
        return state

    def get(self, slug: str) -> LayerParseState | None:
        return self.layers.get(slug)

    def to_parsed_layers(self, layers: ParameterLayers) -> ParsedLayers:
        """Bind the parsed values onto ``layers``; unknown slugs are dropped."""
        ret = ParsedLayers()
        for layer in layers:
            layer_state = self.layers.get(layer.slug)
            parsed = ParsedParameters() if layer_state is None else layer_state.parsed_parameters.clone()
            ret.set(ParsedLayer(layer=layer, parameters=parsed))
        return ret
