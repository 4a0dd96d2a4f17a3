"""Starlette application serving commands, templates and static files."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from starlette.applications import Starlette
from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import BaseRoute, Mount, Route
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.config import ParkaSettings, get_settings
from ..core.logging import correlation_context
from ..render.lookup import LookupTemplateFromDirectory, TemplateLookup, lookup_bundled_templates
from ..render.renderer import Renderer
from .errors import internal_error, not_found_error

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

Endpoint = Callable[[Request], Awaitable[Response]]


class CorrelationIdMiddleware:
    """Bind a correlation ID to each request's log records.

    The ID is taken from the request header when present and echoed back. It
    stays bound until the response body is sent, streamed bodies included.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        with correlation_context(Headers(scope=scope).get(CORRELATION_HEADER)) as cid:

            async def send_with_id(message: Message) -> None:
                if message["type"] == "http.response.start":
                    MutableHeaders(scope=message)[CORRELATION_HEADER] = cid
                await send(message)

            await self.app(scope, receive, send_with_id)


class Server:
    """Collects routes, static paths and template lookups, then builds the app.

    Template lookups are tried in order; the bundled templates always come
    last so any configured directory can override them. Paths without a
    route are rendered as pages (``/`` is the ``index`` page).
    """

    def __init__(
        self,
        template_lookups: Iterable[TemplateLookup] = (),
        allowed_origins: Iterable[str] = (),
        data: dict[str, Any] | None = None,
    ):
        self.routes: list[BaseRoute] = []
        self.static_paths: dict[str, Path] = {}
        self.template_lookups: list[TemplateLookup] = list(template_lookups)
        self.allowed_origins = list(allowed_origins)
        self.data = dict(data or {})
        self._bundled = lookup_bundled_templates()

    def add_route(self, path: str, endpoint: Endpoint, methods: list[str] | None = None) -> None:
        self.routes.append(Route(path, endpoint, methods=methods or ["GET"]))

    def mount(self, path: str, app: ASGIApp, name: str | None = None) -> None:
        self.routes.append(Mount(path, app=app, name=name))

    def add_static_path(self, url: str, directory: str | Path) -> None:
        """Serve ``directory`` under ``url``, replacing an earlier path at the same url."""
        self.static_paths[url.rstrip("/")] = Path(directory)

    def prepend_template_lookups(self, *lookups: TemplateLookup) -> None:
        self.template_lookups = [*lookups, *self.template_lookups]

    def append_template_lookups(self, *lookups: TemplateLookup) -> None:
        self.template_lookups.extend(lookups)

    def lookups(self) -> list[TemplateLookup]:
        return [*self.template_lookups, self._bundled]

    def renderer(self) -> Renderer:
        return Renderer(self.lookups(), data=self.data)

    async def page_endpoint(self, request: Request) -> Response:
        path = request.path_params.get("page", "")
        try:
            html = await self.renderer().render_path(path, {"request_path": request.url.path})
        except Exception as e:
            logger.exception(f"Error rendering page {path}")
            return internal_error("Error rendering page", e)
        if html is None:
            return not_found_error(f"page /{path}")
        return HTMLResponse(html)

    async def info_endpoint(self, request: Request) -> JSONResponse:
        settings = get_settings()
        return JSONResponse(
            {
                "server": settings.server_name,
                "version": settings.server_version,
                "routes": [getattr(r, "path", "") for r in self.routes],
            }
        )

    def create_app(self, lifespan: Callable | None = None) -> Starlette:
        routes: list[BaseRoute] = [
            Route("/_parka/info", self.info_endpoint, methods=["GET"]),
            *self.routes,
            *(
                Mount(url, app=StaticFiles(directory=str(directory)))
                for url, directory in self.static_paths.items()
            ),
            Route("/", self.page_endpoint, methods=["GET"]),
            Route("/{page:path}", self.page_endpoint, methods=["GET"]),
        ]

        middleware = [
            Middleware(
                CORSMiddleware,
                allow_origins=self.allowed_origins,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type", CORRELATION_HEADER],
                expose_headers=[CORRELATION_HEADER],
            ),
            Middleware(CorrelationIdMiddleware),
        ]

        return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)


def create_server(settings: ParkaSettings | None = None) -> Server:
    """Build a server from runtime settings and the route config file."""
    from ..handlers.config import configure_server, load_config

    settings = settings or get_settings()
    server = Server(
        allowed_origins=settings.allowed_origins,
        data={"server_name": settings.server_name, "server_version": settings.server_version},
    )
    if settings.templates_dir is not None:
        server.prepend_template_lookups(
            LookupTemplateFromDirectory(settings.templates_dir, always_reload=settings.dev_mode)
        )
    if settings.static_dir is not None:
        server.add_static_path("/static", settings.static_dir)
    if settings.config_file is not None:
        configure_server(
            server,
            load_config(settings.config_file),
            stream_rows=settings.stream_rows,
            dev_mode=settings.dev_mode,
        )
    return server


@asynccontextmanager
async def lifespan(app: Starlette):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting Parka server on {settings.host}:{settings.port}")
    yield
    logger.info("Parka server shutting down")


def create_app() -> Starlette:
    """Create the Starlette ASGI application."""
    return create_server().create_app(lifespan=lifespan)


def run() -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = get_settings()

    logger.info(f"Starting Parka HTTP server on {settings.host}:{settings.port}")

    uvicorn.run(
        "parka.server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
