# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Custom exception hierarchy for Parka.

Provides specific exception types for the failure modes of parsing requests,
looking up commands and rendering output, so HTTP handlers can map them to
status codes.
"""

from __future__ import annotations

from typing import Any


class ParkaException(Exception):  # noqa: N818
    """Base exception for all Parka errors.

    All Parka-specific exceptions should inherit from this class.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParameterError(ParkaException):
    """Exception for parameter parsing and validation errors.

    Raised when:
    - A raw query value cannot be coerced to the parameter type
    - A value is not one of the declared choices
    - A file-backed value cannot be decoded
    """

    def __init__(self, message: str, parameter: str | None = None, value: Any = None):
        details = {}
        if parameter:
            details["parameter"] = parameter
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.parameter = parameter
        self.value = value


class MissingParameterError(ParameterError):
    """Raised when a required parameter has no value."""

    def __init__(self, parameter: str):
        super().__init__(f"required parameter '{parameter}' is missing", parameter=parameter)


class CommandNotFound(ParkaException):
    """Raised when a command path doesn't match any command in a repository."""

    def __init__(self, command_path: str):
        super().__init__(f"command {command_path} not found", {"command_path": command_path})
        self.command_path = command_path


class AmbiguousCommand(ParkaException):
    """Raised when a command path matches more than one command."""

    def __init__(self, command_path: str, potential_commands: list[str] | None = None):
        self.command_path = command_path
        self.potential_commands = potential_commands or []
        super().__init__(
            f"command {command_path} is ambiguous, could be one of: "
            + ", ".join(self.potential_commands),
            {"command_path": command_path, "potential_commands": self.potential_commands},
        )


class ConfigException(ParkaException):
    """Exception for configuration errors.

    Raised when:
    - The route configuration file is invalid
    - A route declares zero or several handler kinds
    - A command or repository import spec can't be resolved
    """

    def __init__(self, message: str, path: str | None = None):
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class TemplateNotFound(ParkaException):
    """Raised when none of the requested template names can be found."""

    def __init__(self, names: list[str] | tuple[str, ...]):
        self.names = list(names)
        super().__init__(f"template not found: {', '.join(self.names)}", {"names": self.names})


class UnsupportedOutputFormat(ParkaException):
    """Raised for download file names or output settings parka can't produce."""

    def __init__(self, message: str, file_name: str | None = None):
        details = {}
        if file_name:
            details["file_name"] = file_name
        super().__init__(message, details)
        self.file_name = file_name
