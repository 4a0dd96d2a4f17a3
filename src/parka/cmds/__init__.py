# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Command framework the HTTP layers adapt.

Commands declare typed parameters grouped in layers, are run with parsed
layers, and either emit rows into a ``TableProcessor`` (glaze commands) or
write text (writer commands).

Usage:
    from parka.cmds import GlazeCommand, ParameterDefinition, new_command_description

    class Numbers(GlazeCommand):
        def description(self):
            return new_command_description(
                "numbers",
                flags=[ParameterDefinition("count", "integer", default=3)],
            )

        async def run_into_glaze_processor(self, parsed_layers, processor):
            for i in range(parsed_layers.get_default_parameters().get_value("count")):
                await processor.add_row({"i": i})
"""

from .commands import (
    Command,
    CommandAlias,
    CommandDescription,
    CommandWithMetadata,
    GlazeCommand,
    GlazeCommandAlias,
    WriterCommand,
    WriterCommandAlias,
    new_command_alias,
    new_command_description,
)
from .layers import DEFAULT_SLUG, ParameterLayer, ParameterLayers, ParsedLayer, ParsedLayers
from .parameters import (
    FileData,
    ParameterDefinition,
    ParameterDefinitions,
    ParameterType,
    ParsedParameter,
    ParsedParameters,
    is_file_loading_parameter,
    is_list_parameter,
    parse_date,
)
from .processor import Table, TableProcessor
from .repository import Repository, load_command, load_repository
from .settings import GLAZED_SLUG, ensure_glazed_layer, new_glazed_layer

__all__ = [
    "DEFAULT_SLUG",
    "GLAZED_SLUG",
    "Command",
    "CommandAlias",
    "CommandDescription",
    "CommandWithMetadata",
    "FileData",
    "GlazeCommand",
    "GlazeCommandAlias",
    "ParameterDefinition",
    "ParameterDefinitions",
    "ParameterLayer",
    "ParameterLayers",
    "ParameterType",
    "ParsedLayer",
    "ParsedLayers",
    "ParsedParameter",
    "ParsedParameters",
    "Repository",
    "Table",
    "TableProcessor",
    "WriterCommand",
    "WriterCommandAlias",
    "ensure_glazed_layer",
    "is_file_loading_parameter",
    "is_list_parameter",
    "load_command",
    "load_repository",
    "new_command_alias",
    "new_command_description",
    "new_glazed_layer",
    "parse_date",
]
