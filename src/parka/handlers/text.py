"""Plain text output: writer output as is, glaze rows as an ASCII table."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from ..cmds.commands import GlazeCommand, WriterCommand
from ..cmds.settings import GLAZED_SLUG
from ..core.exceptions import UnsupportedOutputFormat
from .base import CommandHandler
from .utils import run_glaze_to_string, run_writer_command

TEXT_OVERRIDES = {GLAZED_SLUG: {"output": "table", "table-format": "ascii"}}


class TextQueryHandler(CommandHandler):
    async def handle(self, request: Request) -> Response:
        try:
            if isinstance(self.cmd, WriterCommand):
                _, parsed_layers = self.parse(request)
                return PlainTextResponse(await run_writer_command(self.cmd, parsed_layers))
            if isinstance(self.cmd, GlazeCommand):
                _, parsed_layers = self.parse(request, overrides=TEXT_OVERRIDES)
                output, _ = await run_glaze_to_string(self.cmd, parsed_layers)
                return PlainTextResponse(output)
            raise UnsupportedOutputFormat(f"command {self.name} has no text output")
        except Exception as e:
            return self.error_response(e)
