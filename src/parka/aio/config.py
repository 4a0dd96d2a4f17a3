"""Apply a route configuration file to an ``AioServer``.

Only command directories, static directories and template directories are
served by the aiohttp backend.
"""

from __future__ import annotations

import logging

from ..core.exceptions import ConfigException
from ..handlers.config import Config, LayerParams, merge_repositories
from ..render.lookup import LookupTemplateFromDirectory
from .command_dir import CommandDirHandler
from .handlers import HandlerParameters
from .server import AioServer

logger = logging.getLogger(__name__)


def handler_parameters(params: LayerParams | None) -> HandlerParameters | None:
    if params is None:
        return None
    return HandlerParameters(
        layers={slug: dict(values) for slug, values in params.layers.items()},
        flags=dict(params.flags),
        arguments=dict(params.arguments),
    )


def configure_aio_server(server: AioServer, config: Config, dev_mode: bool = False) -> None:
    """Register every configured route on ``server``.

    Raises:
        ConfigException: for route kinds the aiohttp backend doesn't serve,
            or command directories using whitelists or blacklists.
    """
    for route in config.routes:
        path = route.path.rstrip("/")
        if route.command_directory is not None:
            options = route.command_directory
            if options.whitelist is not None or options.blacklist is not None:
                raise ConfigException(f"route {route.path}: whitelist and blacklist need the starlette backend")
            handler = CommandDirHandler(
                merge_repositories(options.repositories),
                lookups=server.lookups(),
                template_name=options.template_name,
                index_template_name=options.index_template_name,
                defaults=handler_parameters(options.defaults),
                overrides=handler_parameters(options.overrides),
                additional_data=options.additional_data,
            )
            handler.serve(server, path)
        elif route.static is not None:
            server.add_static_path(path, route.static.local_path)
        elif route.template_directory is not None:
            # served through the page routes
            server.append_template_lookups(
                LookupTemplateFromDirectory(route.template_directory.local_directory, always_reload=dev_mode)
            )
            if path:
                logger.warning(f"Template directory {route.path} is served at / by the aiohttp backend")
        else:
            raise ConfigException(f"route {route.path}: {route.kind} routes need the starlette backend")
