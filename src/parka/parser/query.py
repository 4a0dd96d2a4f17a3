# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Binding raw query values onto parameter definitions."""

from __future__ import annotations

import io
from collections.abc import Iterable, Mapping
from typing import Any

from ..cmds.parameters import (
    ParameterDefinition,
    ParsedParameters,
    is_file_loading_parameter,
    is_list_parameter,
)
from ..core.exceptions import MissingParameterError, ParameterError
from .steps import ParseStep
from .state import LayerParseState

# Raw request values: parameter name -> every value sent for it
Query = Mapping[str, list[str]]

SOURCE_QUERY = "query"
SOURCE_DEFAULTS = "defaults"


def _invalid(d: ParameterDefinition, value: Any, error: Exception) -> ParameterError:
    reason = error.message if isinstance(error, ParameterError) else str(error)
    return ParameterError(
        f"invalid value for parameter '{d.name}': ({value}) {reason}",
        parameter=d.name,
        value=value,
    )


def _store_default(d: ParameterDefinition, parsed: ParsedParameters) -> None:
    if d.name in parsed or d.default is None:
        return
    try:
        value = d.coerce_value(d.default)
    except ParameterError as e:
        raise _invalid(d, d.default, e) from e
    parsed.update_value(d, value, SOURCE_DEFAULTS)


def bind_query(
    definitions: Iterable[ParameterDefinition],
    query: Query,
    parsed: ParsedParameters,
    defaults: Mapping[str, str] | None = None,
    only_provided: bool = False,
    ignore_required: bool = False,
    source: str = SOURCE_QUERY,
) -> ParsedParameters:
    """Parse ``query`` into ``parsed`` for each definition, in order.

    List parameters first look for repeated ``name[]`` values. Otherwise the
    value of ``name`` is used, falling back to ``defaults``; list parameters
    split it on commas and file-backed parameters read it as file content.
    An empty value counts as missing: required parameters without a value
    set by an earlier step raise ``MissingParameterError`` (or are skipped
    with ``ignore_required``), optional ones get their declared default
    unless ``only_provided`` or a value is already present.

    Raises:
        MissingParameterError: a required parameter has no value.
        ParameterError: a value could not be parsed.
    """
    defaults = defaults or {}

    for d in definitions:
        if is_list_parameter(d.type):
            values = query.get(f"{d.name}[]")
            if values:
                try:
                    parsed.update_value(d, d.parse_parameter(list(values)), source)
                except ParameterError as e:
                    raise _invalid(d, list(values), e) from e
                continue

        raw = query.get(d.name)
        value = raw[0] if raw else defaults.get(d.name, "")

        if value == "":
            if d.required:
                if ignore_required or d.name in parsed:
                    continue
                raise MissingParameterError(d.name)
            if not only_provided:
                _store_default(d, parsed)
            continue

        try:
            if is_file_loading_parameter(d.type, value):
                typed = d.parse_from_reader(io.StringIO(value), "")
            elif is_list_parameter(d.type):
                typed = d.parse_parameter(value.split(","))
            else:
                typed = d.parse_parameter([value])
        except ParameterError as e:
            raise _invalid(d, value, e) from e
        parsed.update_value(d, typed, source)

    return parsed


class QueryParseStep(ParseStep):
    """Parse a layer's parameters from the request query."""

    def __init__(self, only_provided: bool = False, ignore_required: bool = False):
        self.only_provided = only_provided
        self.ignore_required = ignore_required

    def parse(self, query: Query, state: LayerParseState) -> None:
        bind_query(
            state.parameter_definitions,
            query,
            state.parsed_parameters,
            defaults=state.defaults,
            only_provided=self.only_provided,
            ignore_required=self.ignore_required,
        )
