"""JSON output of a glaze command."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from ..cmds.commands import GlazeCommand
from ..cmds.settings import GLAZED_SLUG
from .base import CommandHandler
from .text import TextQueryHandler
from .utils import run_glaze_to_string

JSON_OVERRIDES = {GLAZED_SLUG: {"output": "json"}}


class JSONQueryHandler(CommandHandler):
    """Runs the command with the query as parameters and returns its rows as JSON.

    Writer commands have no rows and are served as plain text instead.
    """

    async def handle(self, request: Request) -> Response:
        if not isinstance(self.cmd, GlazeCommand):
            return await TextQueryHandler(self.cmd, self.middlewares).handle(request)

        try:
            _, parsed_layers = self.parse(request, overrides=JSON_OVERRIDES)
            output, formatter = await run_glaze_to_string(self.cmd, parsed_layers)
        except Exception as e:
            return self.error_response(e)

        return Response(output, media_type=formatter.content_type)
