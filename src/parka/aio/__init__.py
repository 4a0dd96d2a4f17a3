"""Command directories served with aiohttp.web.

Usage:
    server = AioServer(port=8080)
    CommandDirHandler(repository).serve(server, "/commands")
    await server.run_forever()
"""

from .command_dir import CommandDirHandler
from .config import configure_aio_server
from .handlers import HandlerParameters, QueryHandler, WriterQueryHandler, parse_query
from .server import AioServer, correlation_middleware

__all__ = [
    "AioServer",
    "CommandDirHandler",
    "HandlerParameters",
    "QueryHandler",
    "WriterQueryHandler",
    "configure_aio_server",
    "correlation_middleware",
    "parse_query",
]
