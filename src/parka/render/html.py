"""HTML table output embedded in a page template."""

from __future__ import annotations

import io
from typing import Any

import jinja2
from markupsafe import Markup

from ..cmds.formatters import TableOutputFormatter
from ..cmds.processor import Table


class HTMLTemplateOutputFormatter:
    """Renders a table as HTML and passes it to ``template`` as ``table``.

    Templates are async, so unlike the plain formatters this one exposes
    ``render`` as a coroutine.
    """

    content_type = "text/html"

    def __init__(self, template: jinja2.Template, table_formatter: TableOutputFormatter | None = None):
        self.template = template
        self.table_formatter = table_formatter or TableOutputFormatter("html")

    def table_html(self, table: Table) -> Markup:
        buf = io.StringIO()
        self.table_formatter.output(table, buf)
        return Markup(buf.getvalue())

    async def render(self, table: Table, data: dict[str, Any] | None = None) -> str:
        context = dict(data or {})
        context["table"] = self.table_html(table)
        return await self.template.render_async(**context)
