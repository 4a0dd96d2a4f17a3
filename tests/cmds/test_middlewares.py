"""Tests for parka.cmds.middlewares - precedence and layer filtering."""

from __future__ import annotations

import pytest

from parka.cmds.layers import DEFAULT_SLUG, ParameterLayer, ParameterLayers, ParsedLayers
from parka.cmds.middlewares import (
    blacklist_layer_parameters,
    blacklist_layers,
    execute_middlewares,
    set_from_defaults,
    update_from_map,
    update_from_map_as_default,
    whitelist_layer_parameters,
    whitelist_layers,
)
from parka.cmds.parameters import ParameterDefinition, ParameterType
from parka.core.exceptions import ParameterError


@pytest.fixture
def layers() -> ParameterLayers:
    default = ParameterLayer(slug=DEFAULT_SLUG).add_definitions(
        ParameterDefinition("limit", ParameterType.INTEGER, default=10),
        ParameterDefinition("name", ParameterType.STRING),
        ParameterDefinition("debug", ParameterType.BOOL, default=False),
    )
    output = ParameterLayer(slug="output").add_definitions(
        ParameterDefinition("format", ParameterType.CHOICE, default="table", choices=["table", "json"]),
    )
    return ParameterLayers([default, output])


def run(layers: ParameterLayers, *middlewares) -> ParsedLayers:
    return execute_middlewares(layers, ParsedLayers(), *middlewares)


class TestPrecedence:
    def test_declared_defaults(self, layers):
        parsed = run(layers, set_from_defaults())
        assert parsed.get_parameter(DEFAULT_SLUG, "limit").value == 10
        assert parsed.get_parameter(DEFAULT_SLUG, "name") is None
        assert parsed.get_parameter("output", "format").value == "table"

    def test_every_layer_is_created(self, layers):
        parsed = run(layers)
        assert list(parsed) == [DEFAULT_SLUG, "output"]

    def test_first_middleware_wins(self, layers):
        parsed = run(
            layers,
            update_from_map({DEFAULT_SLUG: {"limit": 1}}),
            update_from_map({DEFAULT_SLUG: {"limit": 2}}),
            set_from_defaults(),
        )
        p = parsed.get_parameter(DEFAULT_SLUG, "limit")
        assert p.value == 1
        assert [entry.value for entry in p.log] == [10, 2, 1]

    def test_raw_strings_are_parsed(self, layers):
        parsed = run(layers, update_from_map({DEFAULT_SLUG: {"limit": "7", "debug": "yes"}}))
        assert parsed.get_default_parameters().to_dict() == {"limit": 7, "debug": True}

    def test_unknown_names_are_ignored(self, layers):
        parsed = run(layers, update_from_map({DEFAULT_SLUG: {"nope": 1}, "missing": {"x": 1}}))
        assert "nope" not in parsed.get_default_parameters()

    def test_invalid_value_raises(self, layers):
        with pytest.raises(ParameterError):
            run(layers, update_from_map({"output": {"format": "xml"}}))

    def test_map_as_default_keeps_explicit_values(self, layers):
        parsed = run(
            layers,
            update_from_map_as_default({DEFAULT_SLUG: {"limit": 50, "name": "fallback"}}),
            update_from_map({DEFAULT_SLUG: {"name": "explicit"}}),
            set_from_defaults(),
        )
        values = parsed.get_default_parameters()
        # replaces the declared default but not the explicit value
        assert values.get_value("limit") == 50
        assert values.get_value("name") == "explicit"

    def test_data_map_default_layer_wins(self, layers):
        layers.get("output").add_definitions(ParameterDefinition("limit", ParameterType.INTEGER, default=99))
        parsed = run(layers, set_from_defaults())
        assert parsed.get_data_map()["limit"] == 10


class TestFilters:
    def test_blacklisted_parameter_keeps_default(self, layers):
        parsed = run(
            layers,
            blacklist_layer_parameters({DEFAULT_SLUG: ["limit"]}),
            update_from_map({DEFAULT_SLUG: {"limit": 1, "name": "x"}}),
        )
        values = parsed.get_default_parameters()
        assert values.get_value("limit") == 10
        assert values.get_value("name") == "x"

    def test_outer_override_passes_filter(self, layers):
        parsed = run(
            layers,
            update_from_map({DEFAULT_SLUG: {"limit": 1}}),
            blacklist_layer_parameters({DEFAULT_SLUG: ["limit"]}),
            update_from_map({DEFAULT_SLUG: {"limit": 2}}),
        )
        assert parsed.get_parameter(DEFAULT_SLUG, "limit").value == 1

    def test_whitelist_layers(self, layers):
        parsed = run(
            layers,
            whitelist_layers([DEFAULT_SLUG]),
            update_from_map({DEFAULT_SLUG: {"limit": 3}, "output": {"format": "json"}}),
        )
        assert parsed.get_parameter(DEFAULT_SLUG, "limit").value == 3
        assert parsed.get_parameter("output", "format").value == "table"

    def test_blacklist_layers(self, layers):
        parsed = run(
            layers,
            blacklist_layers(["output"]),
            update_from_map({"output": {"format": "json"}}),
        )
        assert parsed.get_parameter("output", "format").value == "table"

    def test_whitelist_parameters(self, layers):
        parsed = run(
            layers,
            whitelist_layer_parameters({DEFAULT_SLUG: ["name"]}),
            update_from_map({DEFAULT_SLUG: {"name": "a", "limit": 4}, "output": {"format": "json"}}),
        )
        values = parsed.get_default_parameters()
        assert values.get_value("name") == "a"
        assert values.get_value("limit") == 10
        assert parsed.get_parameter("output", "format").value == "table"
