"""Templates, markdown and layout rendering."""

from .html import HTMLTemplateOutputFormatter
from .layout import Input, Layout, Row, Section, compute_layout
from .lookup import (
    LookupTemplateFromDirectory,
    LookupTemplateFromFile,
    LookupTemplateFromPackage,
    TemplateLookup,
    lookup_bundled_templates,
    lookup_first,
)
from .markdown import render_markdown_template_to_html, render_markdown_to_html
from .renderer import Renderer, page_name

__all__ = [
    "HTMLTemplateOutputFormatter",
    "Input",
    "Layout",
    "LookupTemplateFromDirectory",
    "LookupTemplateFromFile",
    "LookupTemplateFromPackage",
    "Renderer",
    "Row",
    "Section",
    "TemplateLookup",
    "compute_layout",
    "lookup_bundled_templates",
    "lookup_first",
    "page_name",
    "render_markdown_template_to_html",
    "render_markdown_to_html",
]
