"""Markdown rendering for pages and command descriptions."""

from __future__ import annotations

from typing import Any

import jinja2
import markdown as md

EXTENSIONS = ["extra", "sane_lists", "toc"]


def render_markdown_to_html(source: str) -> str:
    if not source:
        return ""
    return md.markdown(source, extensions=EXTENSIONS, output_format="html")


async def render_markdown_template_to_html(template: jinja2.Template, data: dict[str, Any] | None = None) -> str:
    """Render a markdown template with ``data``, then convert it to HTML."""
    source = await template.render_async(**(data or {}))
    return render_markdown_to_html(source)
