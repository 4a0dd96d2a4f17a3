"""Run a command in a task and consume what it produces as it arrives.

The command side pushes items onto an ``asyncio.Queue`` (rows from a
``RowChannelMiddleware``, formatted rows from an ``OutputChannelMiddleware``,
or text chunks from a ``QueueWriter``); ``iterate_command_output`` yields them
to whoever renders the response.
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

# rows buffered between the command and the response
QUEUE_SIZE = 100

_DONE = object()


class QueueWriter(io.TextIOBase):
    """A text stream that pushes every write onto an unbounded queue."""

    def __init__(self, queue: asyncio.Queue[Any]):
        super().__init__()
        self.queue = queue

    def writable(self) -> bool:
        return True

    def write(self, s: str) -> int:
        if s:
            self.queue.put_nowait(s)
        return len(s)


async def iterate_command_output(
    run: Callable[[], Awaitable[None]],
    queue: asyncio.Queue[Any],
    errors: list[str] | None = None,
) -> AsyncIterator[Any]:
    """Yield queue items while ``run()`` executes in its own task.

    If ``errors`` is given, a failing command is logged and its message is
    appended to ``errors`` once the items produced so far are consumed;
    otherwise the exception propagates to the consumer. Closing the iterator
    early cancels the command.
    """

    async def produce() -> None:
        try:
            await run()
        finally:
            await queue.put(_DONE)

    task = asyncio.create_task(produce())
    try:
        while True:
            item = await queue.get()
            if item is _DONE:
                break
            yield item
        try:
            await task
        except Exception as e:
            if errors is None:
                raise
            logger.exception("Command failed while streaming")
            errors.append(str(e) or type(e).__name__)
    finally:
        if not task.done():
            task.cancel()
            # unblock a producer waiting on a full queue
            while not queue.empty():
                queue.get_nowait()
            with contextlib.suppress(asyncio.CancelledError):
                await task
