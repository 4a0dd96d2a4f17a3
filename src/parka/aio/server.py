"""aiohttp.web server hosting command directories and markdown pages."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any

from aiohttp import web

from ..core.logging import correlation_context
from ..render.lookup import TemplateLookup, lookup_bundled_templates
from ..render.renderer import Renderer
from ..server.errors import INTERNAL_ERROR, NOT_FOUND_PAGE, error_body

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def correlation_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    with correlation_context(request.headers.get(CORRELATION_HEADER)) as cid:
        response = await handler(request)
    response.headers[CORRELATION_HEADER] = cid
    return response


class AioServer:
    """An aiohttp application with template lookups and static paths.

    Routes are added to ``app.router`` directly. Paths no route matches are
    rendered as pages through the template lookups, so the page routes are
    only registered once, when the app is built.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        template_lookups: Iterable[TemplateLookup] = (),
        data: dict[str, Any] | None = None,
    ):
        self.host = host
        self.port = port
        self.template_lookups: list[TemplateLookup] = list(template_lookups)
        self.data = dict(data or {})
        self.app = web.Application(middlewares=[correlation_middleware])
        self._bundled = lookup_bundled_templates()
        self._pages_added = False
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    def add_static_path(self, url: str, directory: str | Path) -> None:
        self.app.router.add_static(url.rstrip("/") or "/", str(directory))

    def prepend_template_lookups(self, *lookups: TemplateLookup) -> None:
        self.template_lookups = [*lookups, *self.template_lookups]

    def append_template_lookups(self, *lookups: TemplateLookup) -> None:
        self.template_lookups.extend(lookups)

    def lookups(self) -> list[TemplateLookup]:
        return [*self.template_lookups, self._bundled]

    def renderer(self) -> Renderer:
        return Renderer(self.lookups(), data=self.data)

    async def handle_page(self, request: web.Request) -> web.Response:
        path = request.match_info.get("page", "")
        try:
            html = await self.renderer().render_path(path, {"request_path": request.path})
        except Exception:
            logger.exception(f"Error rendering page {path}")
            return web.json_response(error_body(INTERNAL_ERROR, "Error rendering page"), status=500)
        if html is None:
            return web.json_response(error_body(NOT_FOUND_PAGE, f"page /{path} not found"), status=404)
        return web.Response(text=html, content_type="text/html")

    def build_app(self) -> web.Application:
        """Add the page routes after every other route and return the app."""
        if not self._pages_added:
            self.app.router.add_get("/", self.handle_page)
            self.app.router.add_get("/{page:.*}", self.handle_page)
            self._pages_added = True
        return self.app

    async def start(self) -> None:
        """Start serving."""
        if self._running:
            logger.warning("Server already running")
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info(f"Parka aiohttp server listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop serving."""
        if not self._running:
            return

        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()

        self._running = False
        self._runner = None
        self._site = None

        logger.info("Parka aiohttp server stopped")

    async def run_forever(self) -> None:
        """Start and run until interrupted."""
        await self.start()

        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()
