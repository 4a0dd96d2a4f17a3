"""Core plumbing shared by every parka module: settings, logging, errors."""

from .config import ParkaSettings, clear_settings_cache, get_settings
from .exceptions import (
    AmbiguousCommand,
    CommandNotFound,
    ConfigException,
    MissingParameterError,
    ParameterError,
    ParkaException,
    TemplateNotFound,
    UnsupportedOutputFormat,
)

__all__ = [
    "AmbiguousCommand",
    "CommandNotFound",
    "ConfigException",
    "MissingParameterError",
    "ParameterError",
    "ParkaException",
    "ParkaSettings",
    "TemplateNotFound",
    "UnsupportedOutputFormat",
    "clear_settings_cache",
    "get_settings",
]
