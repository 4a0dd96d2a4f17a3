"""Parameter middlewares.

A handler fills ``ParsedLayers`` for a set of ``ParameterLayers``; a
middleware wraps a handler. Every middleware here first calls the handler it
wraps and then applies its own values, so in
``execute_middlewares(layers, parsed, m1, m2, m3)`` the values of ``m1`` win
over those of ``m2``, which win over those of ``m3``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from .layers import ParameterLayer, ParameterLayers, ParsedLayers
from .parameters import ParameterDefinition

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[ParameterLayers, ParsedLayers], None]
Middleware = Callable[[HandlerFunc], HandlerFunc]

SOURCE_DEFAULTS = "defaults"
SOURCE_MAP = "map"
SOURCE_MAP_DEFAULTS = "map-defaults"


def _identity(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
    return None


def chain_middlewares(*middlewares: Middleware) -> HandlerFunc:
    """Compose middlewares into a single handler, first one outermost."""
    handler: HandlerFunc = _identity
    for middleware in reversed(middlewares):
        handler = middleware(handler)
    return handler


def execute_middlewares(
    layers: ParameterLayers,
    parsed_layers: ParsedLayers,
    *middlewares: Middleware,
) -> ParsedLayers:
    """Run the middleware chain over ``parsed_layers`` and return it."""
    for layer in layers:
        parsed_layers.get_or_create(layer)
    chain_middlewares(*middlewares)(layers, parsed_layers)
    return parsed_layers


def _set_default(parsed_layers: ParsedLayers, layer: ParameterLayer, d: ParameterDefinition) -> None:
    if d.default is None:
        return
    parsed = parsed_layers.get_or_create(layer)
    parsed.parameters.update_value(d, d.coerce_value(d.default), SOURCE_DEFAULTS)


def set_from_defaults() -> Middleware:
    """Set every parameter with a declared default to that default."""

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            next_(layers, parsed_layers)
            for layer in layers:
                for d in layer.definitions:
                    _set_default(parsed_layers, layer, d)

        return handle

    return middleware


def _apply_map(
    layers: ParameterLayers,
    parsed_layers: ParsedLayers,
    values: dict[str, dict[str, Any]],
    source: str,
    only_defaults: bool,
) -> None:
    for layer in layers:
        layer_values = values.get(layer.slug)
        if not layer_values:
            continue
        parsed = parsed_layers.get_or_create(layer)
        for name, value in layer_values.items():
            d = layer.definitions.get(name)
            if d is None:
                logger.debug(f"Ignoring unknown parameter {layer.slug}.{name}")
                continue
            if only_defaults:
                existing = parsed.parameters.get(name)
                if existing is not None and existing.source not in (None, SOURCE_DEFAULTS):
                    continue
            parsed.parameters.update_value(d, d.coerce_value(value), source)


def update_from_map(values: dict[str, dict[str, Any]], source: str = SOURCE_MAP) -> Middleware:
    """Set parameters from a ``{layer_slug: {name: value}}`` map.

    Values may be typed or raw strings; strings are parsed according to the
    parameter type.
    """

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            next_(layers, parsed_layers)
            _apply_map(layers, parsed_layers, values, source, only_defaults=False)

        return handle

    return middleware


def update_from_map_as_default(
    values: dict[str, dict[str, Any]],
    source: str = SOURCE_MAP_DEFAULTS,
) -> Middleware:
    """Like ``update_from_map`` but leaves explicitly provided values alone.

    Only parameters that are unset or still hold their declared default are
    updated.
    """

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            next_(layers, parsed_layers)
            _apply_map(layers, parsed_layers, values, source, only_defaults=True)

        return handle

    return middleware


def _filtered(
    keep: Callable[[ParameterLayer], Iterable[ParameterDefinition] | None],
) -> Middleware:
    """Hide layers or parameters from the wrapped handler.

    ``keep`` returns the definitions of a layer that stay visible, or None to
    hide the whole layer. Hidden parameters still get their declared default.
    """

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            visible = ParameterLayers()
            hidden: list[tuple[ParameterLayer, ParameterDefinition]] = []
            for layer in layers:
                kept = keep(layer)
                kept_names = set() if kept is None else {d.name for d in kept}
                hidden.extend((layer, d) for d in layer.definitions if d.name not in kept_names)
                if kept is not None:
                    clipped = ParameterLayer(
                        slug=layer.slug,
                        name=layer.name,
                        description=layer.description,
                    )
                    clipped.add_definitions(*(d for d in layer.definitions if d.name in kept_names))
                    visible.append_layers(clipped)

            next_(visible, parsed_layers)

            for layer, d in hidden:
                if parsed_layers.get_parameter(layer.slug, d.name) is None:
                    _set_default(parsed_layers, layer, d)

        return handle

    return middleware


def whitelist_layers(slugs: Iterable[str]) -> Middleware:
    """Only let the given layers through to inner middlewares."""
    allowed = set(slugs)
    return _filtered(lambda layer: list(layer.definitions) if layer.slug in allowed else None)


def blacklist_layers(slugs: Iterable[str]) -> Middleware:
    """Hide the given layers from inner middlewares."""
    blocked = set(slugs)
    return _filtered(lambda layer: None if layer.slug in blocked else list(layer.definitions))


def whitelist_layer_parameters(parameters: dict[str, Iterable[str]]) -> Middleware:
    """Only let the given parameters through, per layer slug.

    Layers not mentioned are hidden entirely.
    """
    allowed = {slug: set(names) for slug, names in parameters.items()}

    def keep(layer: ParameterLayer) -> list[ParameterDefinition] | None:
        names = allowed.get(layer.slug)
        if names is None:
            return None
        return [d for d in layer.definitions if d.name in names]

    return _filtered(keep)


def blacklist_layer_parameters(parameters: dict[str, Iterable[str]]) -> Middleware:
    """Hide the given parameters, per layer slug."""
    blocked = {slug: set(names) for slug, names in parameters.items()}

    def keep(layer: ParameterLayer) -> list[ParameterDefinition]:
        names = blocked.get(layer.slug, set())
        return [d for d in layer.definitions if d.name not in names]

    return _filtered(keep)
