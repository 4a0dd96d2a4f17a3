"""Server-sent events: one ``data:`` event per row or writer chunk."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from ..cmds.commands import GlazeCommand, WriterCommand
from ..cmds.formatters import JSONOutputFormatter
from ..cmds.processor import OutputChannelMiddleware, TableProcessor
from ..cmds.settings import GLAZED_SLUG, setup_table_processor
from ..core.exceptions import UnsupportedOutputFormat
from ..server.errors import COMMAND_FAILED
from .base import CommandHandler
from .streaming import QUEUE_SIZE, QueueWriter, iterate_command_output
from .utils import run_glaze_command, run_writer_command

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def sse_event(data: str, event: str | None = None) -> str:
    lines = [f"event: {event}"] if event else []
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


class SSEHandler(CommandHandler):
    """Streams rows as JSON events while the command runs.

    Failures after the stream started are sent as an ``error`` event.
    """

    async def handle(self, request: Request) -> Response:
        try:
            _, parsed_layers = self.parse(request)
        except Exception as e:
            return self.error_response(e)

        queue: asyncio.Queue[str]
        if isinstance(self.cmd, GlazeCommand):
            cmd = self.cmd
            queue = asyncio.Queue(maxsize=QUEUE_SIZE)
            processor: TableProcessor = setup_table_processor(parsed_layers.get(GLAZED_SLUG))
            processor.add_row_middleware(OutputChannelMiddleware(JSONOutputFormatter(indent=None), queue))
            processor.replace_table_middleware()

            async def run() -> None:
                await run_glaze_command(cmd, parsed_layers, processor)
                await processor.finalize()

        elif isinstance(self.cmd, WriterCommand):
            writer_cmd = self.cmd
            queue = asyncio.Queue()

            async def run() -> None:
                await run_writer_command(writer_cmd, parsed_layers, QueueWriter(queue))

        else:
            return self.error_response(UnsupportedOutputFormat(f"command {self.name} can't be streamed"))

        return StreamingResponse(
            self._events(run, queue),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    async def _events(self, run, queue: asyncio.Queue[str]) -> AsyncIterator[str]:
        errors: list[str] = []
        async for item in iterate_command_output(run, queue, errors):
            yield sse_event(item)
        for error in errors:
            yield sse_event(json.dumps({"code": COMMAND_FAILED, "message": error}), event="error")
