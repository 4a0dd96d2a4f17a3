# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Command-line interface for running parka servers."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .core.config import BACKENDS, ParkaSettings, get_settings
from .core.exceptions import ConfigException
from .core.logging import configure_logging

logger = logging.getLogger(__name__)


def settings_from_args(args: argparse.Namespace) -> ParkaSettings:
    """Runtime settings with command-line options taking precedence."""
    update: dict[str, Any] = {}
    for name in ("host", "port", "backend", "config_file", "templates_dir", "static_dir"):
        value = getattr(args, name, None)
        if value is not None:
            update[name] = value
    if getattr(args, "dev", False):
        update["dev_mode"] = True
    if getattr(args, "no_stream", False):
        update["stream_rows"] = False
    return get_settings().model_copy(update=update)


def serve_aiohttp(settings: ParkaSettings) -> None:
    from .aio import AioServer, configure_aio_server
    from .handlers.config import load_config
    from .render.lookup import LookupTemplateFromDirectory

    server = AioServer(
        host=settings.host,
        port=settings.port,
        data={"server_name": settings.server_name, "server_version": settings.server_version},
    )
    if settings.templates_dir is not None:
        server.prepend_template_lookups(
            LookupTemplateFromDirectory(settings.templates_dir, always_reload=settings.dev_mode)
        )
    if settings.static_dir is not None:
        server.add_static_path("/static", settings.static_dir)
    if settings.config_file is not None:
        configure_aio_server(server, load_config(settings.config_file), dev_mode=settings.dev_mode)
    asyncio.run(server.run_forever())


def serve_starlette(settings: ParkaSettings) -> None:
    import uvicorn

    from .server.app import create_server, lifespan

    app = create_server(settings).create_app(lifespan=lifespan)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def cmd_serve(args: argparse.Namespace) -> int:
    """Start a server."""
    settings = settings_from_args(args)
    logger.info(f"Starting parka ({settings.backend}) on {settings.host}:{settings.port}")
    try:
        if settings.backend == "aiohttp":
            serve_aiohttp(settings)
        else:
            serve_starlette(settings)
    except ConfigException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


def cmd_routes(args: argparse.Namespace) -> int:
    """Validate a route config file and list its routes."""
    from .handlers.config import load_config

    config_file = args.config_file or get_settings().config_file
    if config_file is None:
        print("Error: no config file given (use --config or PARKA_CONFIG_FILE)", file=sys.stderr)
        return 1

    try:
        config = load_config(config_file)
    except ConfigException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([{"path": r.path, "kind": r.kind} for r in config.routes], indent=2))
        return 0

    if not config.routes:
        print("No routes configured.")
        return 0
    width = max(len(r.path) for r in config.routes)
    for route in config.routes:
        print(f"{route.path:<{width}}  {route.kind}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Serve commands over HTTP",
        prog="parka",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: PARKA_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Host to bind to")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="Port to bind to")
    serve_parser.add_argument("--backend", choices=BACKENDS, default=None, help="HTTP stack")
    serve_parser.add_argument(
        "--config",
        "-c",
        dest="config_file",
        type=Path,
        default=None,
        help="Route config file (YAML)",
    )
    serve_parser.add_argument("--templates-dir", type=Path, default=None, help="Template directory")
    serve_parser.add_argument("--static-dir", type=Path, default=None, help="Directory served under /static")
    serve_parser.add_argument("--dev", action="store_true", help="Reload templates on every request")
    serve_parser.add_argument("--no-stream", action="store_true", help="Collect rows before rendering tables")

    # Routes command
    routes_parser = subparsers.add_parser("routes", help="Validate a config file and list its routes")
    routes_parser.add_argument("--config", "-c", dest="config_file", type=Path, default=None, help="Route config file")
    routes_parser.add_argument("--json", action="store_true", help="Output JSON")

    args = parser.parse_args(argv)

    configure_logging(level=args.log_level)

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "routes":
        return cmd_routes(args)

    return 1


if __name__ == "__main__":
    sys.exit(main())
