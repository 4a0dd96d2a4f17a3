# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""aiohttp handlers running commands from request queries.

Parameters are parsed with a ``Parser``: every layer binds the query, with
handler defaults prepended and handler overrides appended, so overrides
always win and defaults only fill what the query leaves empty.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import jinja2
from aiohttp import web

from ..cmds.commands import Command, GlazeCommand, WriterCommand
from ..cmds.layers import DEFAULT_SLUG, ParameterLayers, ParsedLayers
from ..cmds.settings import GLAZED_SLUG
from ..core.exceptions import ParkaException, TemplateNotFound, UnsupportedOutputFormat
from ..handlers.utils import (
    command_layers,
    command_metadata,
    command_page_context,
    run_glaze_to_string,
    run_writer_command,
)
from ..middlewares import query_from_aiohttp
from ..parser.parser import Parser
from ..parser.query import QueryParseStep
from ..parser.state import ParseState
from ..render.lookup import TemplateLookup, lookup_bundled_templates, lookup_first
from ..server.errors import INTERNAL_ERROR, error_body, status_for_exception

logger = logging.getLogger(__name__)


@dataclass
class HandlerParameters:
    """Per-layer values; ``flags`` and ``arguments`` belong to the default layer."""

    layers: dict[str, dict[str, Any]] = field(default_factory=dict)
    flags: dict[str, Any] = field(default_factory=dict)
    arguments: dict[str, Any] = field(default_factory=dict)

    def merge(self, other: HandlerParameters) -> HandlerParameters:
        """Merge ``other`` into this one; its values win."""
        for slug, values in other.layers.items():
            self.layers.setdefault(slug, {}).update(values)
        self.flags.update(other.flags)
        self.arguments.update(other.arguments)
        return self

    def layer_map(self) -> dict[str, dict[str, Any]]:
        result = {slug: dict(values) for slug, values in self.layers.items()}
        if self.flags or self.arguments:
            default = result.setdefault(DEFAULT_SLUG, {})
            default.update(self.flags)
            default.update(self.arguments)
        return result

    def __bool__(self) -> bool:
        return bool(self.layers or self.flags or self.arguments)


def json_error(exc: Exception, name: str = "") -> web.Response:
    """JSON error response; call from inside the ``except`` block."""
    status, code = status_for_exception(exc)
    if isinstance(exc, ParkaException):
        logger.info(f"{name}: {exc.message}")
        extra = {"details": exc.details} if exc.details else {}
        return web.json_response(error_body(code, exc.message, **extra), status=status)
    logger.exception(f"Command {name} failed")
    return web.json_response(error_body(INTERNAL_ERROR, f"Command failed: {exc}"), status=500)


def parse_query(
    cmd: Command,
    query: Mapping[str, list[str]],
    defaults: HandlerParameters | None = None,
    overrides: HandlerParameters | None = None,
    static: Mapping[str, Mapping[str, Any]] | None = None,
) -> tuple[ParameterLayers, ParsedLayers]:
    """Parse ``query`` for ``cmd``; ``static`` values are applied last.

    Raises:
        ParameterError: if the query can't be bound.
    """
    layers = command_layers(cmd)
    state = ParseState.from_command(cmd, layers)
    parser = Parser()
    for slug in state.layers:
        parser.append(slug, QueryParseStep())
    for slug, values in (defaults.layer_map() if defaults else {}).items():
        parser.prepend_defaults(slug, values)
    for slug, values in (overrides.layer_map() if overrides else {}).items():
        parser.append_overrides(slug, values)
    for slug, values in (static or {}).items():
        parser.append_overrides(slug, values)
    parser.parse(query, state)
    return layers, state.to_parsed_layers(layers)


class _AioCommandHandler:
    def __init__(
        self,
        cmd: Command,
        defaults: HandlerParameters | None = None,
        overrides: HandlerParameters | None = None,
    ):
        self.cmd = cmd
        self.defaults = defaults
        self.overrides = overrides

    @property
    def name(self) -> str:
        return " ".join(self.cmd.description().full_path)

    def parse(
        self,
        request: web.Request,
        static: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> tuple[ParameterLayers, ParsedLayers]:
        return parse_query(self.cmd, query_from_aiohttp(request), self.defaults, self.overrides, static)


class QueryHandler(_AioCommandHandler):
    """Serves a glaze command in the output format of its glazed layer.

    ``output`` forces the glazed output settings; without it the request
    chooses, e.g. ``?output=csv``.
    """

    def __init__(
        self,
        cmd: Command,
        defaults: HandlerParameters | None = None,
        overrides: HandlerParameters | None = None,
        output: Mapping[str, Any] | None = None,
    ):
        super().__init__(cmd, defaults, overrides)
        self.output = dict(output or {})

    async def handle(self, request: web.Request) -> web.Response:
        try:
            if not isinstance(self.cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {self.name} doesn't produce rows")
            _, parsed_layers = self.parse(request, {GLAZED_SLUG: self.output} if self.output else None)
            output, formatter = await run_glaze_to_string(self.cmd, parsed_layers)
        except Exception as e:
            return json_error(e, self.name)
        content_type, _, charset = formatter.content_type.partition("; charset=")
        return web.Response(text=output, content_type=content_type, charset=charset or "utf-8")


class WriterQueryHandler(_AioCommandHandler):
    """Renders a writer command's output into ``writer.tmpl.html``."""

    def __init__(
        self,
        cmd: Command,
        lookups: Iterable[TemplateLookup] = (),
        template_name: str = "writer.tmpl.html",
        links: list[dict[str, str]] | None = None,
        defaults: HandlerParameters | None = None,
        overrides: HandlerParameters | None = None,
    ):
        super().__init__(cmd, defaults, overrides)
        self.lookups = list(lookups) or [lookup_bundled_templates()]
        self.template_name = template_name
        self.links = list(links or [])

    def template(self) -> jinja2.Template:
        t = lookup_first(self.lookups, self.template_name)
        if t is None:
            raise TemplateNotFound([self.template_name])
        return t

    async def handle(self, request: web.Request) -> web.Response:
        try:
            if not isinstance(self.cmd, WriterCommand):
                raise UnsupportedOutputFormat(f"command {self.name} is not a writer command")
            template = self.template()
            _, parsed_layers = self.parse(request)
            output = await run_writer_command(self.cmd, parsed_layers)
            context = command_page_context(self.cmd, parsed_layers)
            context.update(
                output=output,
                links=self.links,
                metadata=await command_metadata(self.cmd, parsed_layers),
                errors=[],
            )
            html = await template.render_async(**context)
        except Exception as e:
            return json_error(e, self.name)
        return web.Response(text=html, content_type="text/html")
