"""HTMX form for a command.

``GET <base>/`` renders the command's parameters as a form, which posts to
``<base>/submit``. The submit endpoint renders only the results fragment,
streaming rows into it as the command produces them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import jinja2
from starlette.requests import Request
from starlette.responses import HTMLResponse, RedirectResponse, Response, StreamingResponse
from starlette.routing import Route

from ..cmds.commands import Command, GlazeCommand, WriterCommand
from ..cmds.formatters import JSONOutputFormatter
from ..cmds.layers import ParsedLayers
from ..cmds.middlewares import Middleware
from ..cmds.processor import OutputChannelMiddleware
from ..cmds.settings import GLAZED_SLUG, setup_table_processor
from ..core.exceptions import ParameterError, TemplateNotFound
from ..middlewares import form_from_starlette, update_from_form_query
from ..render.lookup import TemplateLookup, lookup_bundled_templates, lookup_first
from .base import CommandHandler
from .streaming import QUEUE_SIZE, iterate_command_output
from .utils import command_metadata, command_page_context, run_glaze_command, run_writer_command

logger = logging.getLogger(__name__)


class FormHandler(CommandHandler):
    def __init__(
        self,
        cmd: Command,
        middlewares: Sequence[Middleware] = (),
        lookups: Sequence[TemplateLookup] = (),
        template_name: str = "form.tmpl.html",
        results_template_name: str = "results.tmpl.html",
        additional_data: dict[str, Any] | None = None,
    ):
        super().__init__(cmd, middlewares)
        self.lookups = list(lookups) or [lookup_bundled_templates()]
        self.template_name = template_name
        self.results_template_name = results_template_name
        self.additional_data = dict(additional_data or {})

    def routes(self, path: str) -> list[Route]:
        path = path.rstrip("/")
        return [
            Route(path or "/", self.redirect, methods=["GET"]),
            Route(f"{path}/", self.handle, methods=["GET"]),
            Route(f"{path}/submit", self.submit, methods=["GET", "POST"]),
        ]

    def _template(self, name: str) -> jinja2.Template:
        t = lookup_first(self.lookups, name)
        if t is None:
            raise TemplateNotFound([name])
        return t

    async def redirect(self, request: Request) -> Response:
        return RedirectResponse(str(request.url.replace(path=request.url.path + "/")), status_code=302)

    async def handle(self, request: Request) -> Response:
        try:
            template = self._template(self.template_name)
        except TemplateNotFound as e:
            return self.error_response(e)

        errors: list[str] = []
        try:
            try:
                _, parsed_layers = self.parse(request)
            except ParameterError as e:
                errors.append(e.message)
                parsed_layers = ParsedLayers()
            context = command_page_context(self.cmd, parsed_layers)
        except Exception as e:
            return self.error_response(e)

        context.update(
            errors=errors,
            metadata=await command_metadata(self.cmd, parsed_layers) if not errors else {},
            additional_data=self.additional_data,
        )
        html = await template.render_async(**context)
        return HTMLResponse(html, status_code=400 if errors else 200)

    async def submit(self, request: Request) -> Response:
        try:
            template = self._template(self.results_template_name)
        except TemplateNotFound as e:
            return self.error_response(e)

        try:
            if request.method == "POST":
                form = await form_from_starlette(request)
                _, parsed_layers = self.parse(
                    request,
                    request_middlewares=[update_from_form_query(form)],
                    only_provided=True,
                )
            else:
                _, parsed_layers = self.parse(request)
        except ParameterError as e:
            html = await template.render_async(rows=[], errors=[e.message])
            return HTMLResponse(html, status_code=400)
        except Exception as e:
            return self.error_response(e)

        if isinstance(self.cmd, WriterCommand):
            errors: list[str] = []
            rows: list[str] = []
            try:
                rows.append(await run_writer_command(self.cmd, parsed_layers))
            except Exception as e:
                logger.exception(f"Command {self.name} failed")
                errors.append(str(e) or type(e).__name__)
            return HTMLResponse(await template.render_async(rows=rows, errors=errors))

        if not isinstance(self.cmd, GlazeCommand):
            html = await template.render_async(rows=[], errors=[f"command {self.name} can't be run"])
            return HTMLResponse(html, status_code=400)

        return StreamingResponse(self._stream_results(template, parsed_layers), media_type="text/html")

    def _stream_results(self, template: jinja2.Template, parsed_layers: ParsedLayers) -> AsyncIterator[str]:
        cmd = self.cmd
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=QUEUE_SIZE)
        processor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
        processor.add_row_middleware(OutputChannelMiddleware(JSONOutputFormatter(indent=None), queue))
        processor.replace_table_middleware()

        async def run() -> None:
            await run_glaze_command(cmd, parsed_layers, processor)
            await processor.finalize()

        errors: list[str] = []
        return template.generate_async(rows=iterate_command_output(run, queue, errors), errors=errors)
