"""Parse steps: one unit of work filling a ``LayerParseState``."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from ..cmds.parameters import ParameterDefinitions
from .state import LayerParseState

logger = logging.getLogger(__name__)


class ParseStep(ABC):
    """Parses parameters out of a request query into a layer state.

    A step may only set parameters present in ``state.parameter_definitions``.
    """

    @abstractmethod
    def parse(self, query: Mapping[str, list[str]], state: LayerParseState) -> None:
        """Update ``state`` from ``query``."""


def _apply(state: LayerParseState, values: Mapping[str, Any], source: str, keep_existing: bool) -> None:
    for name, value in values.items():
        d = state.parameter_definitions.get(name)
        if d is None:
            logger.debug(f"Skipping unknown parameter {state.slug}.{name}")
            continue
        if keep_existing and name in state.parsed_parameters:
            continue
        state.parsed_parameters.update_value(d, d.coerce_value(value), source)


class StaticParseStep(ParseStep):
    """Always set the given values, whatever the request says."""

    def __init__(self, overrides: Mapping[str, Any]):
        self.overrides = dict(overrides)

    def parse(self, query: Mapping[str, list[str]], state: LayerParseState) -> None:
        _apply(state, self.overrides, "static", keep_existing=False)


class DefaultParseStep(ParseStep):
    """Set the given values for parameters that have none yet."""

    def __init__(self, defaults: Mapping[str, Any]):
        self.defaults = dict(defaults)

    def parse(self, query: Mapping[str, list[str]], state: LayerParseState) -> None:
        _apply(state, self.defaults, "parser-defaults", keep_existing=True)


class StopParseStep(ParseStep):
    """Seal the layer: later steps can't set any parameter."""

    def parse(self, query: Mapping[str, list[str]], state: LayerParseState) -> None:
        state.parameter_definitions = ParameterDefinitions()
