"""Parka Starlette server.

Usage:
    # Start the server
    parka serve --config routes.yaml

    # Or with uvicorn directly
    uvicorn parka.server.app:create_app --factory --port 8080
"""

from .app import CorrelationIdMiddleware, Server, create_app, create_server

__all__ = [
    "CorrelationIdMiddleware",
    "Server",
    "create_app",
    "create_server",
]
