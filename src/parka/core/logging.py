# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Structured logging for Parka servers.

Log records carry the correlation ID of the request being served. Servers
log JSON lines when not attached to a terminal (or when asked to), and
command runs are logged with their parameters, secrets redacted.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Bind a correlation ID (a fresh one if None) for the duration of the block."""
    token = _correlation_id.set(correlation_id or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Warnings and errors include where they were logged from; ``extra_data``
    attached by ``CommandRunLogger`` lands under ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if cid := get_correlation_id():
            entry["correlation_id"] = cid
        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_data", None)
        if extra is not None:
            entry["extra"] = extra
        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """Plain text lines, prefixed with a short correlation ID when one is bound."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(correlation)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        cid = get_correlation_id()
        record.correlation = f"[{cid[:8]}] " if cid else ""
        return super().format(record)


def _use_json(log_format: str) -> bool:
    if log_format.lower() == "json":
        return True
    if log_format.lower() == "text":
        return False
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Replace the root handlers with a stderr handler (and a JSON file handler).

    Arguments left as None come from the ``PARKA_LOG_LEVEL``,
    ``PARKA_LOG_FORMAT`` and ``PARKA_LOG_FILE`` settings.
    """
    from .config import get_settings

    settings = get_settings()
    level = settings.log_level if level is None else level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = _use_json(settings.log_format)
    log_file = settings.log_file if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for noisy in ("asyncio", "markdown", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class CommandRunLogger:
    """Logs command runs and their outcome at DEBUG level.

    Parameters declared as secrets, or whose names look sensitive, are
    redacted; long strings are cut to ``MAX_VALUE_LENGTH``.
    """

    SENSITIVE_NAMES = ("password", "secret", "token", "api_key", "apikey", "auth", "credential")
    MAX_VALUE_LENGTH = 500

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("parka.commands")

    def log_run(self, command_name: str, parameters: dict[str, Any], secret_names: set[str] | None = None) -> None:
        sanitized = self._sanitize(parameters, secret_names or set())
        self.logger.debug(
            f"Running command: {command_name}",
            extra={"extra_data": {"command": command_name, "parameters": sanitized}},
        )

    def log_result(self, command_name: str, success: bool, duration_ms: float | None = None) -> None:
        msg = f"Command result: {command_name} -> {'success' if success else 'failure'}"
        if duration_ms is not None:
            msg += f" ({duration_ms:.1f}ms)"
        self.logger.debug(
            msg,
            extra={"extra_data": {"command": command_name, "success": success, "duration_ms": duration_ms}},
        )

    def _is_secret(self, name: Any, secret_names: set[str]) -> bool:
        lowered = str(name).lower()
        return name in secret_names or any(s in lowered for s in self.SENSITIVE_NAMES)

    def _sanitize(self, data: Any, secret_names: set[str]) -> Any:
        if isinstance(data, dict):
            return {
                k: "[REDACTED]" if self._is_secret(k, secret_names) else self._sanitize(v, secret_names)
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._sanitize(item, secret_names) for item in data]
        if isinstance(data, str) and len(data) > self.MAX_VALUE_LENGTH:
            return data[: self.MAX_VALUE_LENGTH] + "..."
        return data


command_logger = CommandRunLogger()
