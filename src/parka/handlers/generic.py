# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Register the command handlers for one command or a whole repository.

For a single command served at ``/base``:

    /base                  DataTables page
    /base/data             JSON
    /base/text             plain text
    /base/streaming        server-sent events
    /base/datatables       DataTables page
    /base/download/<file>  download, format from the file extension
    /base/form/            HTMX form

A repository served at ``/base`` exposes the same endpoints with the command
path appended, e.g. ``/base/data/reports/sales``.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import HTMLResponse, Response

from ..cmds.commands import Command
from ..cmds.middlewares import Middleware
from ..cmds.repository import Repository
from ..core.exceptions import CommandNotFound, ParkaException, TemplateNotFound
from ..render.lookup import TemplateLookup, lookup_bundled_templates, lookup_first
from ..server.errors import exception_response, internal_error
from .base import CommandHandler
from .datatables import DEFAULT_TEMPLATE_NAME, DataTablesHandler
from .form import FormHandler
from .json_output import JSONQueryHandler
from .output_file import OutputFileHandler
from .sse import SSEHandler
from .text import TextQueryHandler
from .utils import get_repository_command, index_entries

if TYPE_CHECKING:
    from ..server.app import Server

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]


class GenericCommandHandler:
    """Shared route settings for serving commands.

    Args:
        middlewares: parameter middlewares applied to every command, e.g. from
            a route's parameter filter.
        template_name: DataTables page template.
        index_template_name: template listing the commands of a repository;
            without it repository roots return 404.
        stream: stream rows into the DataTables page.
        additional_data: extra values passed to page templates.
    """

    def __init__(
        self,
        middlewares: Sequence[Middleware] = (),
        lookups: Sequence[TemplateLookup] = (),
        template_name: str = DEFAULT_TEMPLATE_NAME,
        index_template_name: str = "",
        stream: bool = True,
        additional_data: dict[str, Any] | None = None,
    ):
        self.middlewares = list(middlewares)
        self.lookups = list(lookups) or [lookup_bundled_templates()]
        self.template_name = template_name
        self.index_template_name = index_template_name
        self.stream = stream
        self.additional_data = dict(additional_data or {})

    def _datatables(self, cmd: Command, download_path: str) -> DataTablesHandler:
        return DataTablesHandler(
            cmd,
            self.middlewares,
            lookups=self.lookups,
            template_name=self.template_name,
            download_path=download_path,
            additional_data=self.additional_data,
            stream=self.stream,
        )

    def serve_single_command(self, server: Server, base_path: str, cmd: Command) -> None:
        base = base_path.rstrip("/")
        datatables = self._datatables(cmd, f"{base}/download")
        logger.info(f"Serving command {' '.join(cmd.description().full_path)} at {base or '/'}")

        server.add_route(base or "/", datatables.handle)
        server.add_route(f"{base}/data", JSONQueryHandler(cmd, self.middlewares).handle)
        server.add_route(f"{base}/text", TextQueryHandler(cmd, self.middlewares).handle)
        server.add_route(f"{base}/streaming", SSEHandler(cmd, self.middlewares).handle)
        server.add_route(f"{base}/datatables", datatables.handle)
        server.add_route(f"{base}/download/{{file}}", OutputFileHandler(cmd, self.middlewares).handle)
        form = FormHandler(cmd, self.middlewares, lookups=self.lookups, additional_data=self.additional_data)
        server.routes.extend(form.routes(f"{base}/form"))

    def serve_repository(self, server: Server, base_path: str, repository: Repository) -> None:
        base = base_path.rstrip("/")
        logger.info(f"Serving {len(repository)} commands from {repository.name} at {base or '/'}")

        def command_endpoint(make: Callable[[Command], CommandHandler]) -> Endpoint:
            async def endpoint(request: Request) -> Response:
                path = request.path_params.get("path", "")
                try:
                    cmd = get_repository_command(repository, path)
                except ParkaException as e:
                    return exception_response(e)
                return await make(cmd).handle(request)

            return endpoint

        async def datatables(request: Request) -> Response:
            path = request.path_params.get("path", "")
            if self.index_template_name and (path == "" or path.endswith("/")):
                return await self._render_index(repository, path, f"{base}/datatables")
            try:
                cmd = get_repository_command(repository, path)
            except ParkaException as e:
                return exception_response(e)
            return await self._datatables(cmd, f"{base}/download/{path.strip('/')}").handle(request)

        async def download(request: Request) -> Response:
            cmd_path, file_name = posixpath.split(request.path_params.get("path", ""))
            try:
                cmd = get_repository_command(repository, cmd_path)
            except ParkaException as e:
                return exception_response(e)
            return await OutputFileHandler(cmd, self.middlewares, file_name=file_name).handle(request)

        async def index(request: Request) -> Response:
            if not self.index_template_name:
                return exception_response(CommandNotFound(request.url.path))
            return await self._render_index(repository, "", f"{base}/datatables")

        middlewares = self.middlewares
        server.add_route(f"{base}/data/{{path:path}}", command_endpoint(lambda c: JSONQueryHandler(c, middlewares)))
        server.add_route(f"{base}/text/{{path:path}}", command_endpoint(lambda c: TextQueryHandler(c, middlewares)))
        server.add_route(f"{base}/streaming/{{path:path}}", command_endpoint(lambda c: SSEHandler(c, middlewares)))
        server.add_route(f"{base}/datatables/{{path:path}}", datatables)
        server.add_route(f"{base}/download/{{path:path}}", download)
        server.add_route(f"{base}/", index)

    async def _render_index(self, repository: Repository, path: str, link_base: str) -> Response:
        template = lookup_first(self.lookups, self.index_template_name)
        if template is None:
            return exception_response(TemplateNotFound([self.index_template_name]))
        try:
            html = await template.render_async(
                title=repository.name,
                path=path,
                commands=index_entries(repository, path, link_base),
                additional_data=self.additional_data,
            )
        except Exception as e:
            logger.exception("Error rendering command index")
            return internal_error("Error rendering command index", e)
        return HTMLResponse(html)
