"""Shared helpers for command handlers: parsing, running and page context.

Used by both the Starlette handlers and the aiohttp handlers in
``parka.aio``.
"""

from __future__ import annotations

import io
import os
import posixpath
import tempfile
import time
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, TextIO

from markupsafe import Markup

from ..cmds.commands import Command, CommandWithMetadata, GlazeCommand, WriterCommand
from ..cmds.formatters import OutputFormatter
from ..cmds.layers import ParameterLayers, ParsedLayers
from ..cmds.middlewares import Middleware, execute_middlewares, set_from_defaults, update_from_map
from ..cmds.parameters import ParameterType
from ..cmds.processor import TableProcessor
from ..cmds.repository import Repository
from ..cmds.settings import (
    GLAZED_SLUG,
    ensure_glazed_layer,
    setup_processor_output,
    setup_table_processor,
)
from ..core.exceptions import AmbiguousCommand, CommandNotFound, UnsupportedOutputFormat
from ..core.logging import command_logger
from ..middlewares import update_from_query_parameters
from ..parser.state import compute_alias_defaults
from ..render.layout import Layout, compute_layout
from ..render.markdown import render_markdown_to_html


# Download links offered next to a table, (label, file extension)
DOWNLOAD_FORMATS: tuple[tuple[str, str], ...] = (
    ("CSV", "csv"),
    ("JSON", "json"),
    ("Excel", "xlsx"),
    ("Markdown", "md"),
    ("HTML", "html"),
    ("Text", "txt"),
)


def command_layers(cmd: Command) -> ParameterLayers:
    """A copy of the command's layers; glaze commands always get a glazed layer."""
    layers = cmd.description().layers.clone()
    if isinstance(cmd, GlazeCommand):
        ensure_glazed_layer(layers)
    return layers


def parse_command_parameters(
    cmd: Command,
    query: Mapping[str, list[str]],
    middlewares: Sequence[Middleware] = (),
    overrides: dict[str, dict[str, Any]] | None = None,
    only_provided: bool = False,
) -> tuple[ParameterLayers, ParsedLayers]:
    """Run ``[*middlewares, query, declared defaults]`` for ``cmd``.

    ``overrides`` (``{layer_slug: {name: value}}``) win over everything else,
    for values a handler forces such as the glazed output format. With
    ``only_provided`` the query only sets what it contains and required
    parameters are left to the middlewares.

    Raises:
        ParameterError: if the query can't be bound.
    """
    layers = command_layers(cmd)
    chain = [
        *([update_from_map(overrides, source="handler")] if overrides else []),
        *middlewares,
        update_from_query_parameters(
            query,
            only_provided=only_provided,
            ignore_required=only_provided,
            defaults=compute_alias_defaults(cmd),
        ),
        set_from_defaults(),
    ]
    parsed_layers = execute_middlewares(layers, ParsedLayers(), *chain)
    return layers, parsed_layers


def secret_names(layers: ParameterLayers) -> set[str]:
    return {d.name for layer in layers for d in layer.definitions if d.type == ParameterType.SECRET}


async def run_glaze_command(
    cmd: GlazeCommand,
    parsed_layers: ParsedLayers,
    processor: TableProcessor,
) -> None:
    """Run a glaze command, logging parameters and timing."""
    name = " ".join(cmd.description().full_path)
    command_logger.log_run(
        name,
        parsed_layers.get_data_map(),
        secret_names=secret_names(cmd.description().layers),
    )
    start = time.perf_counter()
    success = False
    try:
        await cmd.run_into_glaze_processor(parsed_layers, processor)
        success = True
    finally:
        command_logger.log_result(name, success, (time.perf_counter() - start) * 1000)


async def run_writer_command(
    cmd: WriterCommand,
    parsed_layers: ParsedLayers,
    stream: TextIO | None = None,
) -> str:
    """Run a writer command and return everything it wrote.

    With ``stream`` the output goes there instead and "" is returned.
    """
    name = " ".join(cmd.description().full_path)
    command_logger.log_run(
        name,
        parsed_layers.get_data_map(),
        secret_names=secret_names(cmd.description().layers),
    )
    buf = io.StringIO()
    start = time.perf_counter()
    success = False
    try:
        await cmd.run_into_writer(parsed_layers, stream if stream is not None else buf)
        success = True
    finally:
        command_logger.log_result(name, success, (time.perf_counter() - start) * 1000)
    return buf.getvalue()


async def command_metadata(cmd: Command, parsed_layers: ParsedLayers) -> dict[str, Any]:
    if isinstance(cmd, CommandWithMetadata):
        return await cmd.metadata(parsed_layers)
    return {}


def download_links(download_base: str, name: str) -> list[dict[str, str]]:
    """Links to download the output of ``name`` in every supported format."""
    base = download_base.rstrip("/")
    return [
        {"href": f"{base}/{name}.{ext}", "text": label, "class": f"download-{ext}"}
        for label, ext in DOWNLOAD_FORMATS
    ]


def command_page_context(cmd: Command, parsed_layers: ParsedLayers) -> dict[str, Any]:
    """Template context describing a command and its current parameter values."""
    description = cmd.description()
    layout: Layout = compute_layout(cmd, parsed_layers)
    return {
        "command": description,
        "long_description": Markup(render_markdown_to_html(description.long)),
        "layout": layout,
        "parsed_layers": parsed_layers,
        "values": parsed_layers.get_data_map(),
    }


# glazed settings selected by a download's file extension
_FILE_OUTPUTS: dict[str, dict[str, str]] = {
    ".csv": {"output": "table", "table-format": "csv"},
    ".tsv": {"output": "table", "table-format": "tsv"},
    ".md": {"output": "table", "table-format": "markdown"},
    ".html": {"output": "table", "table-format": "html"},
    ".txt": {"output": "table", "table-format": "ascii"},
    ".json": {"output": "json"},
    ".yaml": {"output": "yaml"},
    ".yml": {"output": "yaml"},
    ".xlsx": {"output": "excel"},
}


def output_settings_for_file(file_name: str) -> dict[str, str]:
    """Glazed ``output``/``table-format`` values for a download file name.

    Raises:
        UnsupportedOutputFormat: for unknown extensions.
    """
    suffix = posixpath.splitext(file_name)[1].lower()
    settings = _FILE_OUTPUTS.get(suffix)
    if settings is None:
        raise UnsupportedOutputFormat(
            f"could not determine output format for '{file_name}'", file_name=file_name
        )
    return dict(settings)


def download_file_stem(cmd: Command) -> str:
    return f"{datetime.now().strftime('%Y-%m-%d--%H-%M-%S')}-{cmd.description().name}"


def get_repository_command(repository: Repository, command_path: str) -> Command:
    """Resolve a slash separated path to exactly one command.

    Raises:
        CommandNotFound: nothing lives at the path.
        AmbiguousCommand: the path names a directory with several commands.
    """
    path = [p for p in command_path.strip("/").split("/") if p]
    commands = repository.collect_commands(path, recurse=False) if path else []
    if not commands:
        raise CommandNotFound(command_path)
    if len(commands) > 1:
        raise AmbiguousCommand(
            command_path,
            [" ".join(c.description().full_path) for c in commands],
        )
    return commands[0]


def index_entries(repository: Repository, prefix: str, link_base: str) -> list[dict[str, str]]:
    """Commands below ``prefix`` as entries for the index template."""
    path = [p for p in prefix.strip("/").split("/") if p]
    entries = []
    for cmd in repository.collect_commands(path, recurse=True):
        d = cmd.description()
        cmd_path = "/".join(d.full_path)
        entries.append(
            {
                "name": d.name,
                "path": cmd_path,
                "short": d.short,
                "href": f"{link_base.rstrip('/')}/{cmd_path}",
            }
        )
    return sorted(entries, key=lambda e: e["path"])


async def run_glaze_to_string(cmd: GlazeCommand, parsed_layers: ParsedLayers) -> tuple[str, OutputFormatter]:
    """Run ``cmd`` and format its table as the glazed layer asks."""
    glazed = parsed_layers.get(GLAZED_SLUG)
    processor = setup_table_processor(glazed)
    formatter = setup_processor_output(processor, glazed)
    await run_glaze_command(cmd, parsed_layers, processor)
    buf = io.StringIO()
    await processor.output(buf)
    return buf.getvalue(), formatter


async def run_glaze_to_file(
    cmd: GlazeCommand,
    parsed_layers: ParsedLayers,
    suffix: str,
    directory: str | os.PathLike[str] | None = None,
) -> tuple[str, OutputFormatter]:
    """Run ``cmd`` and write its formatted table to a new temporary file.

    The caller owns the returned path and must remove it.
    """
    glazed = parsed_layers.get(GLAZED_SLUG)
    processor = setup_table_processor(glazed)
    formatter = setup_processor_output(processor, glazed)
    fd, path = tempfile.mkstemp(suffix=suffix, prefix="parka-", dir=directory)
    os.close(fd)
    try:
        await run_glaze_command(cmd, parsed_layers, processor)
        formatter.write_to_file(await processor.finalize(), path)
    except BaseException:
        os.unlink(path)
        raise
    return path, formatter
