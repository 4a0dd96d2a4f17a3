# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""HTML table page for a glaze command.

The page shows the command's description, its parameters as a form, download
links and the rows. When streaming, the command runs in a task that pushes
rows onto a queue while the template renders them as they arrive; errors
raised after the page started are rendered at its end.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import jinja2
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response, StreamingResponse

from ..cmds.commands import Command, GlazeCommand
from ..cmds.layers import ParsedLayers
from ..cmds.middlewares import Middleware
from ..cmds.processor import Row, RowChannelMiddleware
from ..cmds.settings import GLAZED_SLUG, setup_table_processor
from ..core.exceptions import ParameterError, TemplateNotFound, UnsupportedOutputFormat
from ..render.lookup import TemplateLookup, lookup_bundled_templates, lookup_first
from .base import CommandHandler
from .streaming import QUEUE_SIZE, iterate_command_output
from .utils import command_page_context, download_file_stem, download_links, run_glaze_command

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "data-tables.tmpl.html"


class DataTablesHandler(CommandHandler):
    def __init__(
        self,
        cmd: Command,
        middlewares: Sequence[Middleware] = (),
        lookups: Sequence[TemplateLookup] = (),
        template_name: str = DEFAULT_TEMPLATE_NAME,
        download_path: str = "",
        additional_data: dict[str, Any] | None = None,
        stream: bool = True,
    ):
        super().__init__(cmd, middlewares)
        self.lookups = list(lookups) or [lookup_bundled_templates()]
        self.template_name = template_name
        self.download_path = download_path
        self.additional_data = dict(additional_data or {})
        self.stream = stream

    def template(self) -> jinja2.Template:
        t = lookup_first(self.lookups, self.template_name, DEFAULT_TEMPLATE_NAME)
        if t is None:
            raise TemplateNotFound([self.template_name])
        return t

    def _context(self, parsed_layers: ParsedLayers) -> dict[str, Any]:
        context = command_page_context(self.cmd, parsed_layers)
        context["additional_data"] = self.additional_data
        context["links"] = (
            download_links(self.download_path, download_file_stem(self.cmd)) if self.download_path else []
        )
        context["errors"] = []
        return context

    async def handle(self, request: Request) -> Response:
        errors: list[str] = []
        try:
            template = self.template()
            if not isinstance(self.cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {self.name} doesn't produce rows")
            try:
                _, parsed_layers = self.parse(request)
            except ParameterError as e:
                errors.append(e.message)
                parsed_layers = ParsedLayers()
            context = self._context(parsed_layers)
        except Exception as e:
            return self.error_response(e)

        if errors:
            context.update(rows=[], columns=[], errors=errors)
            return HTMLResponse(await template.render_async(**context), status_code=400)

        if self.stream:
            return self._stream(template, parsed_layers, context)

        processor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
        try:
            await run_glaze_command(self.cmd, parsed_layers, processor)
        except Exception as e:
            logger.exception(f"Command {self.name} failed")
            context["errors"].append(str(e) or type(e).__name__)
        table = await processor.finalize()
        context.update(rows=table.rows, columns=table.columns)
        return HTMLResponse(await template.render_async(**context))

    def _stream(self, template: jinja2.Template, parsed_layers: ParsedLayers, context: dict[str, Any]) -> Response:
        cmd = self.cmd
        queue: asyncio.Queue[Row] = asyncio.Queue(maxsize=QUEUE_SIZE)
        processor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
        processor.add_row_middleware(RowChannelMiddleware(queue))
        processor.replace_table_middleware()

        async def run() -> None:
            await run_glaze_command(cmd, parsed_layers, processor)
            await processor.finalize()

        columns: list[str] = []

        async def rows() -> AsyncIterator[Row]:
            async for row in iterate_command_output(run, queue, context["errors"]):
                # the header is rendered from the first row's columns
                if not columns:
                    columns.extend(row.keys())
                yield row

        context.update(rows=rows(), columns=columns)
        return StreamingResponse(template.generate_async(**context), media_type="text/html")
