"""Downloads: the command's output as a file named by the route."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Sequence

from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import FileResponse, Response

from ..cmds.commands import Command, GlazeCommand, WriterCommand
from ..cmds.middlewares import Middleware
from ..cmds.settings import GLAZED_SLUG
from ..core.config import get_settings
from ..core.exceptions import UnsupportedOutputFormat
from .base import CommandHandler
from .utils import output_settings_for_file, run_glaze_to_file, run_writer_command

logger = logging.getLogger(__name__)


def attachment_headers(file_name: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{file_name}"'}


class OutputFileHandler(CommandHandler):
    """Serves ``<file>`` with the output format picked from its extension.

    The file name comes from the ``file_path_param`` path parameter, or is
    fixed with ``file_name``.
    """

    def __init__(
        self,
        cmd: Command,
        middlewares: Sequence[Middleware] = (),
        file_name: str = "",
        file_path_param: str = "file",
    ):
        super().__init__(cmd, middlewares)
        self.file_name = file_name
        self.file_path_param = file_path_param

    async def handle(self, request: Request) -> Response:
        file_name = posixpath.basename(self.file_name or request.path_params.get(self.file_path_param, ""))
        try:
            if isinstance(self.cmd, WriterCommand):
                _, parsed_layers = self.parse(request)
                output = await run_writer_command(self.cmd, parsed_layers)
                return Response(output, media_type="text/plain", headers=attachment_headers(file_name))
            if not isinstance(self.cmd, GlazeCommand):
                raise UnsupportedOutputFormat(f"command {self.name} has no downloadable output")

            output_settings = output_settings_for_file(file_name)
            _, parsed_layers = self.parse(request, overrides={GLAZED_SLUG: output_settings})
            suffix = posixpath.splitext(file_name)[1]
            path, formatter = await run_glaze_to_file(
                self.cmd, parsed_layers, suffix, directory=get_settings().temp_dir
            )
        except Exception as e:
            return self.error_response(e)

        logger.debug(f"Serving {file_name} from {path}")
        return FileResponse(
            path,
            media_type=formatter.content_type,
            filename=file_name,
            background=BackgroundTask(os.unlink, path),
        )
