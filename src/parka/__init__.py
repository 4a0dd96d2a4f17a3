# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Parka - serve commands over HTTP.

Parka takes commands described with the ``parka.cmds`` framework (typed
parameters grouped into layers, commands that emit rows or write text) and
exposes them as web endpoints:

  Query string
    → Parameter parsing (per-layer defaults, alias flags, overrides)
    → Command run (rows into a table processor, or text into a writer)
    → Response (JSON, HTML tables, streamed rows, file downloads, HTMX forms)

Two HTTP stacks are supported: a Starlette application (``parka.server``)
and an aiohttp.web application (``parka.aio``).

CLI entry point: ``parka serve``
"""

__version__ = "0.5.0"
