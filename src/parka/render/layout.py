"""Form layout computed from a command description and its parsed values."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..cmds.commands import Command
from ..cmds.layers import DEFAULT_SLUG, ParameterLayer, ParsedLayers
from ..cmds.parameters import FileData, ParameterDefinition, is_list_parameter
from ..core.exceptions import ConfigException


@dataclass
class Input:
    name: str
    label: str
    type: str
    layer: str = DEFAULT_SLUG
    value: Any = None
    default: Any = None
    options: list[str] = field(default_factory=list)
    help: str = ""
    required: bool = False
    multiple: bool = False

    @property
    def display_value(self) -> str:
        """The value as it goes into an HTML input."""
        return _display(self.value)


@dataclass
class Row:
    inputs: list[Input] = field(default_factory=list)


@dataclass
class Section:
    title: str = ""
    description: str = ""
    rows: list[Row] = field(default_factory=list)


@dataclass
class Layout:
    sections: list[Section] = field(default_factory=list)

    def inputs(self) -> list[Input]:
        return [i for s in self.sections for r in s.rows for i in r.inputs]


def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.hour == value.minute == value.second == value.microsecond == 0:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, FileData):
        return value.path
    if isinstance(value, dict):
        return ",".join(f"{k}:{v}" for k, v in value.items())
    if isinstance(value, list):
        return ",".join(_display(v) for v in value)
    return str(value)


def _label(name: str) -> str:
    return name.replace("-", " ").replace("_", " ").capitalize()


def _input(layer: ParameterLayer, d: ParameterDefinition, parsed_layers: ParsedLayers) -> Input:
    parsed = parsed_layers.get_parameter(layer.slug, d.name)
    return Input(
        name=d.name,
        label=_label(d.name),
        type=d.type.value,
        layer=layer.slug,
        value=d.default if parsed is None else parsed.value,
        default=d.default,
        options=list(d.choices),
        help=d.help,
        required=d.required,
        multiple=is_list_parameter(d.type),
    )


def compute_layout(cmd: Command, parsed_layers: ParsedLayers) -> Layout:
    """Arrange a command's parameters into sections of rows.

    A declared layout (``CommandDescription.layout``) is used as given; names
    are looked up in the default layer first. Without one, each layer gets a
    section with one parameter per row.

    Raises:
        ConfigException: if the declared layout names an unknown parameter.
    """
    description = cmd.description()
    layers = list(description.layers)

    if not description.layout:
        return Layout(
            sections=[
                Section(
                    title=layer.name,
                    description=layer.description,
                    rows=[Row(inputs=[_input(layer, d, parsed_layers)]) for d in layer.definitions],
                )
                for layer in layers
                if len(layer.definitions) > 0
            ]
        )

    # default layer first
    ordered = sorted(layers, key=lambda layer: layer.slug != DEFAULT_SLUG)

    def find(name: str) -> Input:
        for layer in ordered:
            d = layer.definitions.get(name)
            if d is not None:
                return _input(layer, d, parsed_layers)
        raise ConfigException(f"layout of command {description.name} references unknown parameter '{name}'")

    sections = []
    for spec in description.layout:
        rows = [Row(inputs=[find(name) for name in row]) for row in spec.get("rows", [])]
        sections.append(
            Section(
                title=spec.get("title", ""),
                description=spec.get("description", ""),
                rows=rows,
            )
        )
    return Layout(sections=sections)
