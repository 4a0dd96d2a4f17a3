"""Serve templates as pages."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from starlette.requests import Request
from starlette.responses import HTMLResponse, Response

from ..core.exceptions import TemplateNotFound
from ..render.lookup import LookupTemplateFromDirectory, LookupTemplateFromFile, lookup_bundled_templates
from ..render.renderer import Renderer
from ..server.errors import exception_response, internal_error, not_found_error

logger = logging.getLogger(__name__)


class TemplateHandler:
    """Render a single template file, markdown files inside the base template."""

    def __init__(
        self,
        template_file: str | Path,
        data: dict[str, Any] | None = None,
        always_reload: bool = False,
    ):
        self.template_file = Path(template_file)
        name = self.template_file.name
        self.page = name.split(".", 1)[0]
        lookup = LookupTemplateFromFile(self.template_file, name, always_reload=always_reload)
        self.renderer = Renderer([lookup, lookup_bundled_templates()], data=data)

    async def handle(self, request: Request) -> Response:
        try:
            html = await self.renderer.render_page(self.page, {"request_path": request.url.path})
        except Exception as e:
            logger.exception(f"Error rendering {self.template_file}")
            return internal_error("Error rendering template", e)
        if html is None:
            return exception_response(TemplateNotFound([self.template_file.name]))
        return HTMLResponse(html)


class TemplateDirHandler:
    """Render pages from a template directory.

    ``/base/foo`` serves ``foo.tmpl.md``, ``foo.md``, ``foo.tmpl.html`` or
    ``foo.html``; ``/base/`` serves the directory's ``index`` page.
    """

    def __init__(
        self,
        directory: str | Path,
        data: dict[str, Any] | None = None,
        always_reload: bool = False,
        markdown_base_template_name: str = "base.tmpl.html",
    ):
        self.directory = Path(directory)
        self.lookup = LookupTemplateFromDirectory(self.directory, always_reload=always_reload)
        self.renderer = Renderer(
            [self.lookup, lookup_bundled_templates()],
            markdown_base_template_name=markdown_base_template_name,
            data=data,
        )

    async def handle(self, request: Request) -> Response:
        path = request.path_params.get("path", "")
        try:
            html = await self.renderer.render_path(path, {"request_path": request.url.path})
        except Exception as e:
            logger.exception(f"Error rendering {path} from {self.directory}")
            return internal_error("Error rendering template", e)
        if html is None:
            return not_found_error(f"page {path or '/'}")
        return HTMLResponse(html)
