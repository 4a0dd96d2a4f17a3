"""Parameter middlewares fed from HTTP requests.

``update_from_query_parameters`` and ``update_from_form_query`` plug the
query binding of ``parka.parser`` into a middleware chain. The adapters below
turn Starlette and aiohttp requests into the framework neutral
``{name: [values]}`` mapping they take.
"""

from __future__ import annotations

import io
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from starlette.datastructures import UploadFile

from .cmds.layers import ParameterLayers, ParsedLayers
from .cmds.middlewares import HandlerFunc, Middleware
from .cmds.parameters import FileData, ParameterDefinition, ParameterType, is_file_loading_parameter
from .core.exceptions import ParameterError
from .parser.query import Query, bind_query

if TYPE_CHECKING:
    from aiohttp import web
    from starlette.requests import Request

FormValue = str | FileData
Form = Mapping[str, list[FormValue]]

SOURCE_FORM = "form"


def update_from_query_parameters(
    query: Query,
    only_provided: bool = False,
    ignore_required: bool = False,
    defaults: Mapping[str, str] | None = None,
) -> Middleware:
    """Set parameters from a request query.

    ``defaults`` are raw string fallbacks, typically the flags of an alias.
    """

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            next_(layers, parsed_layers)
            for layer in layers:
                parsed = parsed_layers.get_or_create(layer)
                bind_query(
                    layer.definitions,
                    query,
                    parsed.parameters,
                    defaults=defaults,
                    only_provided=only_provided,
                    ignore_required=ignore_required,
                )

        return handle

    return middleware


def _parse_uploads(d: ParameterDefinition, files: list[FileData]) -> Any:
    try:
        parsed = [d.parse_from_reader(io.StringIO(f.content), f.path) for f in files]
    except ParameterError as e:
        raise ParameterError(
            f"invalid value for parameter '{d.name}': ({', '.join(f.path for f in files)}) {e.message}",
            parameter=d.name,
        ) from e

    if d.type == ParameterType.FILE:
        # keep the client side file name
        return parsed[0]
    if d.type == ParameterType.STRING_FROM_FILES:
        return "".join(parsed)
    if d.type in (
        ParameterType.FILE_LIST,
        ParameterType.STRING_LIST_FROM_FILES,
        ParameterType.OBJECT_LIST_FROM_FILES,
    ):
        return [item for chunk in parsed for item in chunk]
    return parsed[0]


def update_from_form_query(form: Form, only_provided: bool = False) -> Middleware:
    """Set parameters from a multipart form.

    Uploaded files are read for file-loading parameters; every other field
    is bound like a query parameter.
    """
    strings = {k: [v for v in values if isinstance(v, str)] for k, values in form.items()}

    def middleware(next_: HandlerFunc) -> HandlerFunc:
        def handle(layers: ParameterLayers, parsed_layers: ParsedLayers) -> None:
            next_(layers, parsed_layers)
            for layer in layers:
                parsed = parsed_layers.get_or_create(layer)
                remaining: list[ParameterDefinition] = []
                for d in layer.definitions:
                    uploads = [
                        v
                        for key in (d.name, f"{d.name}[]")
                        for v in form.get(key, [])
                        if isinstance(v, FileData) and (v.path or v.content)
                    ]
                    # key/value parameters accept uploaded files as well
                    if uploads and is_file_loading_parameter(d.type, "@"):
                        parsed.parameters.update_value(d, _parse_uploads(d, uploads), SOURCE_FORM)
                    else:
                        remaining.append(d)
                bind_query(
                    remaining,
                    strings,
                    parsed.parameters,
                    only_provided=only_provided,
                    source=SOURCE_FORM,
                )

        return handle

    return middleware


def query_from_starlette(request: Request) -> dict[str, list[str]]:
    params = request.query_params
    return {key: params.getlist(key) for key in params.keys()}


def query_from_aiohttp(request: web.Request) -> dict[str, list[str]]:
    params = request.query
    return {key: params.getall(key) for key in params.keys()}


async def form_from_starlette(request: Request) -> dict[str, list[FormValue]]:
    """Read a Starlette form, loading uploaded files into ``FileData``."""
    result: dict[str, list[FormValue]] = {}
    async with request.form() as form:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                raw = await value.read()
                if not value.filename and not raw:
                    # file input left empty
                    result.setdefault(key, []).append("")
                    continue
                item: FormValue = FileData(
                    content=raw.decode("utf-8", errors="replace"),
                    path=value.filename or "",
                    size=len(raw),
                )
            else:
                item = value
            result.setdefault(key, []).append(item)
    return result
