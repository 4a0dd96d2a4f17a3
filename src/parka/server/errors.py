# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Standardized error responses for parka handlers.

Every JSON error has the same shape:
{
    "success": false,
    "error": {
        "code": "ERROR_CODE",
        "message": "Human readable message"
    }
}

The helpers return Starlette responses; ``error_body`` and
``status_for_exception`` are shared with the aiohttp handlers.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from starlette.responses import JSONResponse

from ..core.exceptions import (
    AmbiguousCommand,
    CommandNotFound,
    MissingParameterError,
    ParameterError,
    ParkaException,
    TemplateNotFound,
    UnsupportedOutputFormat,
)

logger = logging.getLogger(__name__)

# =============================================================================
# STANDARD ERROR CODES
# =============================================================================

# Validation errors (400)
VALIDATION_MISSING_PARAMETER = "VALIDATION_MISSING_PARAMETER"
VALIDATION_INVALID_VALUE = "VALIDATION_INVALID_VALUE"
UNSUPPORTED_OUTPUT_FORMAT = "UNSUPPORTED_OUTPUT_FORMAT"

# Not found errors (404)
NOT_FOUND_COMMAND = "NOT_FOUND_COMMAND"
AMBIGUOUS_COMMAND = "AMBIGUOUS_COMMAND"
NOT_FOUND_PAGE = "NOT_FOUND_PAGE"

# Server errors (500)
COMMAND_FAILED = "COMMAND_FAILED"
TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"


def error_body(code: str, message: str, **extra: Any) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    error.update(extra)
    return {"success": False, "error": error}


def status_for_exception(exc: BaseException) -> tuple[int, str]:
    """HTTP status and error code for an exception raised by a handler."""
    if isinstance(exc, MissingParameterError):
        return 400, VALIDATION_MISSING_PARAMETER
    if isinstance(exc, ParameterError):
        return 400, VALIDATION_INVALID_VALUE
    if isinstance(exc, UnsupportedOutputFormat):
        return 400, UNSUPPORTED_OUTPUT_FORMAT
    if isinstance(exc, CommandNotFound):
        return 404, NOT_FOUND_COMMAND
    if isinstance(exc, AmbiguousCommand):
        return 404, AMBIGUOUS_COMMAND
    if isinstance(exc, TemplateNotFound):
        return 500, TEMPLATE_NOT_FOUND
    return 500, INTERNAL_ERROR


# =============================================================================
# ERROR RESPONSE HELPERS
# =============================================================================


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    **extra: Any,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code (e.g., VALIDATION_INVALID_VALUE)
        message: Human-readable error message
        status_code: HTTP status code (default 400)

    Returns:
        JSONResponse with standardized error format
    """
    return JSONResponse(error_body(code, message, **extra), status_code=status_code)


def validation_error(message: str, code: str = VALIDATION_INVALID_VALUE) -> JSONResponse:
    """Create a 400 validation error response."""
    return error_response(code, message, status_code=400)


def not_found_error(resource: str, code: str = NOT_FOUND_PAGE) -> JSONResponse:
    """Create a 404 not found error response."""
    return error_response(code, f"{resource} not found", status_code=404)


def exception_response(exc: ParkaException) -> JSONResponse:
    """Map a parka exception to its error response."""
    status_code, code = status_for_exception(exc)
    extra = {"details": exc.details} if exc.details else {}
    return error_response(code, exc.message, status_code=status_code, **extra)


def internal_error(
    message: str = "Internal server error",
    exc: BaseException | None = None,
) -> JSONResponse:
    """Create a 500 internal error response.

    Always includes a request_id for log correlation.
    """
    request_id = uuid.uuid4().hex[:12]
    if exc is not None:
        logger.error("request_id=%s %s: %s", request_id, type(exc).__name__, exc)
        message = f"{message}: {exc}"
    return error_response(INTERNAL_ERROR, message, status_code=500, request_id=request_id)
