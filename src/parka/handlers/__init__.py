"""Starlette handlers adapting commands to HTTP responses."""

from .base import CommandHandler
from .config import (
    Config,
    LayerFilterList,
    LayerParams,
    ParameterFilter,
    RouteConfig,
    configure_server,
    load_config,
)
from .datatables import DataTablesHandler
from .form import FormHandler
from .generic import GenericCommandHandler
from .json_output import JSONQueryHandler
from .output_file import OutputFileHandler
from .sse import SSEHandler
from .static import StaticDirHandler, StaticFileHandler
from .template import TemplateDirHandler, TemplateHandler
from .text import TextQueryHandler

__all__ = [
    "CommandHandler",
    "Config",
    "DataTablesHandler",
    "FormHandler",
    "GenericCommandHandler",
    "JSONQueryHandler",
    "LayerFilterList",
    "LayerParams",
    "OutputFileHandler",
    "ParameterFilter",
    "RouteConfig",
    "SSEHandler",
    "StaticDirHandler",
    "StaticFileHandler",
    "TemplateDirHandler",
    "TemplateHandler",
    "TextQueryHandler",
    "configure_server",
    "load_config",
]
