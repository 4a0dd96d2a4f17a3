# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Template lookups backed by Jinja2 environments.

A lookup maps template names to compiled templates. Lookups are tried in
order by the server and the renderer, so user supplied directories can
shadow the templates bundled with parka.
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

import jinja2

from ..cmds.formatters import cell_to_string
from ..core.exceptions import TemplateNotFound

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ("*.tmpl.*", "*.md", "*.html")


def _bundled_loader() -> jinja2.BaseLoader:
    return jinja2.PackageLoader("parka.render", "templates")


def _autoescape(name: str | None) -> bool:
    return bool(name) and name.endswith((".html", ".htm", ".xml"))


def create_environment(loader: jinja2.BaseLoader, auto_reload: bool = False) -> jinja2.Environment:
    """Async-enabled environment; HTML templates are autoescaped."""
    env = jinja2.Environment(
        loader=loader,
        enable_async=True,
        autoescape=_autoescape,
        auto_reload=auto_reload,
        undefined=jinja2.ChainableUndefined,
    )
    env.filters["cell"] = cell_to_string
    return env


class TemplateLookup(ABC):
    """Finds templates by name."""

    @abstractmethod
    def lookup(self, *names: str) -> jinja2.Template:
        """Return the first of ``names`` that exists.

        Raises:
            TemplateNotFound: if none of the names exist.
        """

    def reload(self) -> None:
        return None

    def find(self, *names: str) -> jinja2.Template | None:
        """Like ``lookup`` but returns None when nothing is found."""
        try:
            return self.lookup(*names)
        except TemplateNotFound:
            return None


class _JinjaLookup(TemplateLookup):
    def __init__(
        self,
        loader: jinja2.BaseLoader,
        patterns: Iterable[str] = DEFAULT_PATTERNS,
        always_reload: bool = False,
        fallback: jinja2.BaseLoader | None = None,
    ):
        self.loader = loader
        self.patterns = tuple(patterns)
        self.always_reload = always_reload
        # fallback templates can be extended or imported but are never looked up
        env_loader = jinja2.ChoiceLoader([loader, fallback]) if fallback is not None else loader
        self.env = create_environment(env_loader, auto_reload=always_reload)
        self._names: set[str] = set()
        self.reload()

    def _matches(self, name: str) -> bool:
        base = posixpath.basename(name)
        return any(fnmatch.fnmatch(base, p) for p in self.patterns)

    def reload(self) -> None:
        if self.env.cache is not None:
            self.env.cache.clear()
        self._names = {n for n in self.loader.list_templates() if self._matches(n)}
        logger.debug(f"Loaded {len(self._names)} templates from {self!r}")

    def names(self) -> list[str]:
        return sorted(self._names)

    def lookup(self, *names: str) -> jinja2.Template:
        if self.always_reload:
            self.reload()
        for name in names:
            name = name.lstrip("/")
            if name in self._names:
                return self.env.get_template(name)
        raise TemplateNotFound(names)


class LookupTemplateFromDirectory(_JinjaLookup):
    """Templates loaded from a directory on disk.

    ``patterns`` are globs matched against template base names. With
    ``always_reload`` the directory is re-scanned on every lookup.
    """

    def __init__(
        self,
        directory: str | Path,
        patterns: Iterable[str] = DEFAULT_PATTERNS,
        always_reload: bool = False,
    ):
        self.directory = Path(directory)
        super().__init__(
            jinja2.FileSystemLoader(str(self.directory)),
            patterns,
            always_reload,
            fallback=_bundled_loader(),
        )

    def __repr__(self) -> str:
        return f"LookupTemplateFromDirectory({str(self.directory)!r})"


class LookupTemplateFromPackage(_JinjaLookup):
    """Templates shipped inside a Python package."""

    def __init__(
        self,
        package: str = "parka.render",
        base_dir: str = "templates",
        patterns: Iterable[str] = DEFAULT_PATTERNS,
    ):
        self.package = package
        self.base_dir = base_dir
        super().__init__(jinja2.PackageLoader(package, base_dir), patterns)

    def __repr__(self) -> str:
        return f"LookupTemplateFromPackage({self.package!r}, {self.base_dir!r})"


class LookupTemplateFromFile(_JinjaLookup):
    """A single file served under a fixed template name.

    The file is read again on every ``reload``.
    """

    def __init__(self, file: str | Path, template_name: str = "", always_reload: bool = False):
        self.file = Path(file)
        self.template_name = template_name.lstrip("/") or self.file.name
        self._loader = jinja2.DictLoader({})
        super().__init__(
            self._loader,
            patterns=("*",),
            always_reload=always_reload,
            fallback=_bundled_loader(),
        )

    def reload(self) -> None:
        self._loader.mapping = {self.template_name: self.file.read_text(encoding="utf-8")}
        super().reload()

    def __repr__(self) -> str:
        return f"LookupTemplateFromFile({str(self.file)!r}, {self.template_name!r})"


def lookup_bundled_templates() -> LookupTemplateFromPackage:
    """The templates parka ships with."""
    return LookupTemplateFromPackage()


def lookup_first(lookups: Iterable[TemplateLookup], *names: str) -> jinja2.Template | None:
    """Try each lookup in turn; None when no lookup has any of ``names``."""
    for lookup in lookups:
        t = lookup.find(*names)
        if t is not None:
            return t
    return None
