"""Static files: a directory mount or a single file."""

from __future__ import annotations

from pathlib import Path

from starlette.requests import Request
from starlette.responses import FileResponse, Response
from starlette.staticfiles import StaticFiles

from ..server.errors import not_found_error


class StaticDirHandler:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def app(self) -> StaticFiles:
        return StaticFiles(directory=str(self.directory))


class StaticFileHandler:
    def __init__(self, file: str | Path):
        self.file = Path(file)

    async def handle(self, request: Request) -> Response:
        if not self.file.is_file():
            return not_found_error(self.file.name)
        return FileResponse(self.file)
