"""Ordered parse steps per layer."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..cmds.settings import GLAZED_SLUG
from .state import ParseState
from .steps import DefaultParseStep, ParseStep, StaticParseStep, StopParseStep


class Parser:
    """Runs each layer's parse steps, in order, against a request query.

    Steps are registered per layer slug. The helpers return the parser so
    calls can be chained:

        parser = (
            Parser()
            .append("default", QueryParseStep())
            .with_glaze_output("json", "ascii")
        )
    """

    def __init__(self) -> None:
        self.steps_by_slug: dict[str, list[ParseStep]] = {}

    def prepend(self, slug: str, *steps: ParseStep) -> Parser:
        """Add steps to the beginning of a layer's steps."""
        self.steps_by_slug[slug] = [*steps, *self.steps_by_slug.get(slug, [])]
        return self

    def append(self, slug: str, *steps: ParseStep) -> Parser:
        """Add steps to the end of a layer's steps."""
        self.steps_by_slug.setdefault(slug, []).extend(steps)
        return self

    def replace(self, slug: str, *steps: ParseStep) -> Parser:
        """Replace all of a layer's steps."""
        self.steps_by_slug[slug] = list(steps)
        return self

    def with_glaze_output(self, output: str, table_format: str = "ascii") -> Parser:
        """Force the glazed output settings."""
        return self.append(
            GLAZED_SLUG,
            StaticParseStep({"output": output, "table-format": table_format}),
        )

    def replace_parameters(self, slug: str, overrides: Mapping[str, Any]) -> Parser:
        """Replace a layer's steps with fixed values; further steps may still be appended."""
        return self.replace(slug, StaticParseStep(overrides))

    def append_overrides(self, slug: str, overrides: Mapping[str, Any]) -> Parser:
        return self.append(slug, StaticParseStep(overrides))

    def prepend_defaults(self, slug: str, defaults: Mapping[str, Any]) -> Parser:
        """Set initial values for a layer, without overwriting already set ones."""
        return self.prepend(slug, DefaultParseStep(defaults))

    def stop_parsing(self, slug: str) -> Parser:
        """Seal a layer so no step added later can change it."""
        return self.append(slug, StopParseStep())

    def parse(self, query: Mapping[str, list[str]], state: ParseState) -> ParseState:
        for slug, layer_state in state.layers.items():
            for step in self.steps_by_slug.get(slug, []):
                step.parse(query, layer_state)
        return state
