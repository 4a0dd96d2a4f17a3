# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Serve a repository of commands on an ``AioServer``.

    <path>/data/<command>              rows as JSON
    <path>/datatables/<command>        HTML table with download links
    <path>/table/<command>             bare HTML table page
    <path>/download/<command>/<file>   download, format from the file extension
"""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Iterable
from typing import Any

from aiohttp import web

from ..cmds.commands import Command, GlazeCommand, WriterCommand
from ..cmds.repository import Repository
from ..cmds.settings import GLAZED_SLUG, setup_table_processor
from ..core.config import get_settings
from ..core.exceptions import TemplateNotFound, UnsupportedOutputFormat
from ..handlers.utils import (
    command_page_context,
    download_file_stem,
    download_links,
    get_repository_command,
    index_entries,
    output_settings_for_file,
    run_glaze_command,
    run_glaze_to_file,
    run_writer_command,
)
from ..middlewares import query_from_aiohttp
from ..render.html import HTMLTemplateOutputFormatter
from ..render.lookup import TemplateLookup, lookup_bundled_templates, lookup_first
from .handlers import HandlerParameters, QueryHandler, WriterQueryHandler, json_error, parse_query
from .server import AioServer

logger = logging.getLogger(__name__)


def _read_and_remove(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    finally:
        os.unlink(path)


class CommandDirHandler:
    def __init__(
        self,
        repository: Repository,
        lookups: Iterable[TemplateLookup] = (),
        template_name: str = "data-tables.tmpl.html",
        index_template_name: str = "",
        defaults: HandlerParameters | None = None,
        overrides: HandlerParameters | None = None,
        additional_data: dict[str, Any] | None = None,
    ):
        self.repository = repository
        self.lookups = list(lookups) or [lookup_bundled_templates()]
        self.template_name = template_name
        self.index_template_name = index_template_name
        self.defaults = defaults
        self.overrides = overrides
        self.additional_data = dict(additional_data or {})
        self.path = ""

    def merge_overrides(self, overrides: HandlerParameters) -> CommandDirHandler:
        self.overrides = overrides if self.overrides is None else self.overrides.merge(overrides)
        return self

    def merge_defaults(self, defaults: HandlerParameters) -> CommandDirHandler:
        self.defaults = defaults if self.defaults is None else self.defaults.merge(defaults)
        return self

    def serve(self, server: AioServer, path: str) -> None:
        self.path = path.rstrip("/")
        router = server.app.router
        router.add_get(f"{self.path}/data/{{command:.*}}", self.handle_data)
        router.add_get(f"{self.path}/datatables/{{command:.*}}", self.handle_datatables)
        router.add_get(f"{self.path}/table/{{command:.*}}", self.handle_table)
        router.add_get(f"{self.path}/download/{{command:.*}}", self.handle_download)
        logger.info(
            f"Serving {len(self.repository)} commands from {self.repository.name} at {self.path or '/'}"
        )

    def _command(self, command_path: str) -> Command:
        return get_repository_command(self.repository, command_path)

    async def handle_data(self, request: web.Request) -> web.Response:
        command_path = request.match_info["command"]
        try:
            cmd = self._command(command_path)
        except Exception as e:
            return json_error(e, command_path)
        handler = QueryHandler(cmd, self.defaults, self.overrides, output={"output": "json"})
        return await handler.handle(request)

    async def handle_datatables(self, request: web.Request) -> web.Response:
        command_path = request.match_info["command"].strip("/")
        if self.index_template_name and (command_path == "" or request.match_info["command"].endswith("/")):
            return await self._render_index(command_path)
        try:
            cmd = self._command(command_path)
        except Exception as e:
            return json_error(e, command_path)

        links = download_links(f"{self.path}/download/{command_path}", download_file_stem(cmd))
        if isinstance(cmd, WriterCommand):
            writer = WriterQueryHandler(
                cmd,
                self.lookups,
                links=links,
                defaults=self.defaults,
                overrides=self.overrides,
            )
            return await writer.handle(request)

        try:
            if not isinstance(cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {command_path} doesn't produce rows")
            template = lookup_first(self.lookups, self.template_name)
            if template is None:
                raise TemplateNotFound([self.template_name])
            _, parsed_layers = parse_query(cmd, query_from_aiohttp(request), self.defaults, self.overrides)
            processor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
            await run_glaze_command(cmd, parsed_layers, processor)
            table = await processor.finalize()
            context = command_page_context(cmd, parsed_layers)
            context.update(
                links=links,
                additional_data=self.additional_data,
                rows=table.rows,
                columns=table.columns,
                errors=[],
            )
            html = await template.render_async(**context)
        except Exception as e:
            return json_error(e, command_path)
        return web.Response(text=html, content_type="text/html")

    async def handle_table(self, request: web.Request) -> web.Response:
        command_path = request.match_info["command"]
        try:
            cmd = self._command(command_path)
            if not isinstance(cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {command_path} doesn't produce rows")
            template = lookup_first(self.lookups, "table.tmpl.html")
            if template is None:
                raise TemplateNotFound(["table.tmpl.html"])
            _, parsed_layers = parse_query(cmd, query_from_aiohttp(request), self.defaults, self.overrides)
            processor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
            await run_glaze_command(cmd, parsed_layers, processor)
            formatter = HTMLTemplateOutputFormatter(template)
            html = await formatter.render(await processor.finalize(), command_page_context(cmd, parsed_layers))
        except Exception as e:
            return json_error(e, command_path)
        return web.Response(text=html, content_type="text/html")

    async def handle_download(self, request: web.Request) -> web.Response:
        command_path, file_name = posixpath.split(request.match_info["command"])
        headers = {"Content-Disposition": f'attachment; filename="{file_name}"'}
        try:
            cmd = self._command(command_path)
            if isinstance(cmd, WriterCommand):
                _, parsed_layers = parse_query(cmd, query_from_aiohttp(request), self.defaults, self.overrides)
                output = await run_writer_command(cmd, parsed_layers)
                return web.Response(text=output, content_type="text/plain", headers=headers)
            if not isinstance(cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {command_path} has no downloadable output")

            static = {GLAZED_SLUG: output_settings_for_file(file_name)}
            _, parsed_layers = parse_query(cmd, query_from_aiohttp(request), self.defaults, self.overrides, static)
            path, formatter = await run_glaze_to_file(
                cmd,
                parsed_layers,
                posixpath.splitext(file_name)[1],
                directory=get_settings().temp_dir,
            )
            body = _read_and_remove(path)
        except Exception as e:
            return json_error(e, command_path)
        return web.Response(body=body, content_type=formatter.content_type, headers=headers)

    async def _render_index(self, command_path: str) -> web.Response:
        try:
            template = lookup_first(self.lookups, self.index_template_name)
            if template is None:
                raise TemplateNotFound([self.index_template_name])
            html = await template.render_async(
                title=self.repository.name,
                path=command_path,
                commands=index_entries(self.repository, command_path, f"{self.path}/datatables"),
                additional_data=self.additional_data,
            )
        except Exception as e:
            return json_error(e, command_path)
        return web.Response(text=html, content_type="text/html")
