"""Base class for handlers serving a single command."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from ..cmds.commands import Command
from ..cmds.layers import ParameterLayers, ParsedLayers
from ..cmds.middlewares import Middleware
from ..core.exceptions import ParkaException
from ..middlewares import query_from_starlette
from ..server.errors import exception_response, internal_error
from .utils import parse_command_parameters

logger = logging.getLogger(__name__)


class CommandHandler(ABC):
    """Holds a command and the parameter middlewares configured for its route.

    Subclasses implement ``handle``, which is registered as the route endpoint.
    """

    def __init__(self, cmd: Command, middlewares: Sequence[Middleware] = ()):
        self.cmd = cmd
        self.middlewares = list(middlewares)

    @property
    def name(self) -> str:
        return " ".join(self.cmd.description().full_path)

    def parse(
        self,
        request: Request,
        overrides: dict[str, dict[str, Any]] | None = None,
        request_middlewares: Sequence[Middleware] = (),
        only_provided: bool = False,
    ) -> tuple[ParameterLayers, ParsedLayers]:
        """Parse the request query.

        ``request_middlewares`` run inside the route middlewares, so route
        overrides and filters still apply to the values they set.
        """
        return parse_command_parameters(
            self.cmd,
            query_from_starlette(request),
            [*self.middlewares, *request_middlewares],
            overrides=overrides,
            only_provided=only_provided,
        )

    def error_response(self, exc: Exception) -> Response:
        """JSON error response; call from inside the ``except`` block."""
        if isinstance(exc, ParkaException):
            logger.info(f"{self.name}: {exc.message}")
            return exception_response(exc)
        logger.exception(f"Command {self.name} failed")
        return internal_error("Command failed", exc)

    @abstractmethod
    async def handle(self, request: Request) -> Response:
        """Route endpoint."""
