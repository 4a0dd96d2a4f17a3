"""Parameter layers: named groups of parameter definitions.

A command's parameters are split into layers (its own flags and arguments
in the ``default`` layer, output settings in the ``glazed`` layer, ...).
Parsing fills one ``ParsedLayer`` per layer.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .parameters import ParameterDefinition, ParameterDefinitions, ParsedParameter, ParsedParameters

DEFAULT_SLUG = "default"


@dataclass
class ParameterLayer:
    """A named group of related parameter definitions."""

    slug: str
    name: str = ""
    description: str = ""
    definitions: ParameterDefinitions = field(default_factory=ParameterDefinitions)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.slug

    def add_definitions(self, *definitions: ParameterDefinition) -> ParameterLayer:
        self.definitions.add(*definitions)
        return self

    def clone(self) -> ParameterLayer:
        return ParameterLayer(
            slug=self.slug,
            name=self.name,
            description=self.description,
            definitions=self.definitions.clone(),
        )


class ParameterLayers:
    """Ordered, slug-keyed collection of parameter layers."""

    def __init__(self, layers: Iterable[ParameterLayer] = ()):
        self._layers: dict[str, ParameterLayer] = {}
        self.append_layers(*layers)

    def append_layers(self, *layers: ParameterLayer) -> ParameterLayers:
        for layer in layers:
            self._layers[layer.slug] = layer
        return self

    def get(self, slug: str) -> ParameterLayer | None:
        return self._layers.get(slug)

    def delete(self, slug: str) -> None:
        self._layers.pop(slug, None)

    def slugs(self) -> list[str]:
        return list(self._layers)

    def subset(self, *slugs: str) -> ParameterLayers:
        return ParameterLayers(layer for slug, layer in self._layers.items() if slug in slugs)

    def clone(self) -> ParameterLayers:
        return ParameterLayers(layer.clone() for layer in self._layers.values())

    def __contains__(self, slug: object) -> bool:
        return slug in self._layers

    def __iter__(self) -> Iterator[ParameterLayer]:
        return iter(list(self._layers.values()))

    def __len__(self) -> int:
        return len(self._layers)


@dataclass
class ParsedLayer:
    """The values bound onto a layer's parameter definitions."""

    layer: ParameterLayer
    parameters: ParsedParameters = field(default_factory=ParsedParameters)

    @property
    def slug(self) -> str:
        return self.layer.slug

    def get_value(self, name: str, default: Any = None) -> Any:
        return self.parameters.get_value(name, default)

    def clone(self) -> ParsedLayer:
        return ParsedLayer(layer=self.layer, parameters=self.parameters.clone())

    def merge(self, other: ParsedLayer) -> ParsedLayer:
        self.parameters.merge(other.parameters)
        return self


class ParsedLayers:
    """Slug-keyed collection of parsed layers."""

    def __init__(self, layers: Iterable[ParsedLayer] = ()):
        self._layers: dict[str, ParsedLayer] = {}
        for layer in layers:
            self._layers[layer.slug] = layer

    def get(self, slug: str) -> ParsedLayer | None:
        return self._layers.get(slug)

    def get_or_create(self, layer: ParameterLayer) -> ParsedLayer:
        parsed = self._layers.get(layer.slug)
        if parsed is None:
            parsed = ParsedLayer(layer=layer)
            self._layers[layer.slug] = parsed
        return parsed

    def set(self, parsed_layer: ParsedLayer) -> None:
        self._layers[parsed_layer.slug] = parsed_layer

    def get_parameter(self, slug: str, name: str) -> ParsedParameter | None:
        layer = self._layers.get(slug)
        return None if layer is None else layer.parameters.get(name)

    def get_default_parameters(self) -> ParsedParameters:
        layer = self._layers.get(DEFAULT_SLUG)
        return ParsedParameters() if layer is None else layer.parameters

    def get_data_map(self) -> dict[str, Any]:
        """Flatten all layers into a single name → value dict.

        Later layers win on name collisions, the default layer always wins.
        """
        result: dict[str, Any] = {}
        for slug, layer in self._layers.items():
            if slug != DEFAULT_SLUG:
                result.update(layer.parameters.to_dict())
        result.update(self.get_default_parameters().to_dict())
        return result

    def clone(self) -> ParsedLayers:
        return ParsedLayers(layer.clone() for layer in self._layers.values())

    def merge(self, other: ParsedLayers) -> ParsedLayers:
        for slug, layer in other.items():
            existing = self._layers.get(slug)
            if existing is None:
                self._layers[slug] = layer.clone()
            else:
                existing.merge(layer)
        return self

    def items(self) -> list[tuple[str, ParsedLayer]]:
        return list(self._layers.items())

    def __contains__(self, slug: object) -> bool:
        return slug in self._layers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._layers))

    def __len__(self) -> int:
        return len(self._layers)
