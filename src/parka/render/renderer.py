"""Page rendering: markdown pages inside a base template, or HTML pages."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from typing import Any

import jinja2
from markupsafe import Markup

from .lookup import TemplateLookup, lookup_first
from .markdown import render_markdown_template_to_html

logger = logging.getLogger(__name__)


def page_name(path: str) -> str:
    """Map a URL path to a page name; directories map to their ``index``."""
    stripped = path.strip("/")
    if not stripped or path.endswith("/"):
        return posixpath.join(stripped, "index") if stripped else "index"
    return stripped


class Renderer:
    """Renders named pages through a list of template lookups.

    For a page ``p``, ``p.tmpl.md`` or ``p.md`` is rendered as a template,
    converted to HTML and embedded as ``markdown`` in the base template.
    Otherwise ``p.tmpl.html`` or ``p.html`` is rendered directly.
    """

    def __init__(
        self,
        lookups: Iterable[TemplateLookup] = (),
        markdown_base_template_name: str = "base.tmpl.html",
        data: dict[str, Any] | None = None,
    ):
        self.lookups: list[TemplateLookup] = list(lookups)
        self.markdown_base_template_name = markdown_base_template_name
        self.data = dict(data or {})

    def prepend_lookups(self, *lookups: TemplateLookup) -> Renderer:
        self.lookups = [*lookups, *self.lookups]
        return self

    def append_lookups(self, *lookups: TemplateLookup) -> Renderer:
        self.lookups.extend(lookups)
        return self

    def lookup_template(self, *names: str) -> jinja2.Template | None:
        return lookup_first(self.lookups, *names)

    async def render_markdown(self, template: jinja2.Template, context: dict[str, Any]) -> str:
        """Render a markdown template and embed it in the base template."""
        html = await render_markdown_template_to_html(template, context)
        base = self.lookup_template(self.markdown_base_template_name)
        if base is None:
            logger.warning(f"Base template {self.markdown_base_template_name} not found, serving bare markdown")
            return html
        return await base.render_async(**context, markdown=Markup(html))

    async def render_page(self, page: str, data: dict[str, Any] | None = None) -> str | None:
        """Render ``page``; None when no template exists for it.

        Lookups are tried in order, so a page in an earlier lookup wins over
        a page of either kind in a later one.
        """
        context = {**self.data, **(data or {})}

        for lookup in self.lookups:
            t = lookup.find(f"{page}.tmpl.md", f"{page}.md")
            if t is not None:
                return await self.render_markdown(t, context)
            t = lookup.find(f"{page}.tmpl.html", f"{page}.html")
            if t is not None:
                return await t.render_async(**context)

        return None

    async def render_path(self, path: str, data: dict[str, Any] | None = None) -> str | None:
        return await self.render_page(page_name(path), data)
