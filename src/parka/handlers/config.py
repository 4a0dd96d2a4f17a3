# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Route configuration file.

Example:

    routes:
      - path: /reports
        command_directory:
          repositories: ["myapp.commands:repository"]
          index_template_name: index-commands.tmpl.html
          defaults:
            flags:
              limit: 50
          overrides:
            layers:
              glazed:
                filter: [password]
          blacklist:
            flags: [debug]
      - path: /static
        static:
          local_path: ./static
      - path: /docs
        template_directory:
          local_directory: ./docs

Values can be computed when the file is loaded: ``{_env: NAME}`` reads an
environment variable and ``{_aws_ssm: /key}`` reads a decrypted AWS SSM
parameter (needs the ``aws`` extra).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ..cmds.layers import DEFAULT_SLUG
from ..cmds.middlewares import (
    Middleware,
    blacklist_layer_parameters,
    blacklist_layers,
    update_from_map,
    update_from_map_as_default,
    whitelist_layer_parameters,
    whitelist_layers,
)
from ..cmds.repository import Repository, load_command, load_repository
from ..cmds.settings import GLAZED_SLUG
from ..core.exceptions import ConfigException
from .generic import GenericCommandHandler
from .static import StaticDirHandler, StaticFileHandler
from .template import TemplateDirHandler, TemplateHandler

if TYPE_CHECKING:
    from ..server.app import Server

logger = logging.getLogger(__name__)

SOURCE_CONFIG = "config"
SOURCE_CONFIG_DEFAULTS = "config-defaults"


# =============================================================================
# VALUE EVALUATION
# =============================================================================


def _evaluate_env(name: Any) -> str:
    if not isinstance(name, str):
        raise ConfigException("'_env' must name an environment variable")
    value = os.environ.get(name)
    if value is None:
        raise ConfigException(f"environment variable {name} is not set")
    return value


def _evaluate_aws_ssm(key: Any) -> str:
    if not isinstance(key, str):
        raise ConfigException("'_aws_ssm' key must have a string value")
    import boto3

    logger.info(f"Getting parameter {key} from AWS SSM")
    client = boto3.client("ssm")
    try:
        result = client.get_parameter(Name=key, WithDecryption=True)
    except Exception as e:
        raise ConfigException(f"failed to get parameter {key} from AWS SSM: {e}") from e
    return result["Parameter"]["Value"]


EVALUATORS = {
    "_env": _evaluate_env,
    "_aws_ssm": _evaluate_aws_ssm,
}


def evaluate_config_entry(node: Any) -> Any:
    """Replace ``{_env: ...}`` / ``{_aws_ssm: ...}`` nodes with their values."""
    if isinstance(node, dict):
        if len(node) == 1:
            key, value = next(iter(node.items()))
            if key in EVALUATORS:
                return EVALUATORS[key](evaluate_config_entry(value))
        return {k: evaluate_config_entry(v) for k, v in node.items()}
    if isinstance(node, list):
        return [evaluate_config_entry(v) for v in node]
    return node


# =============================================================================
# PARAMETER FILTERS
# =============================================================================


class LayerParams(BaseModel):
    """Parameter values per layer; ``flags`` and ``arguments`` go to the default layer."""

    layers: dict[str, dict[str, Any]] = Field(default_factory=dict)
    flags: dict[str, Any] = Field(default_factory=dict)
    arguments: dict[str, Any] = Field(default_factory=dict)

    def to_layer_map(self) -> dict[str, dict[str, Any]]:
        result = {slug: dict(values) for slug, values in self.layers.items()}
        if self.flags or self.arguments:
            default = result.setdefault(DEFAULT_SLUG, {})
            default.update(self.flags)
            default.update(self.arguments)
        return result


class LayerFilterList(BaseModel):
    """Layers or parameters to show or hide."""

    layers: list[str] = Field(default_factory=list)
    layer_parameters: dict[str, list[str]] = Field(default_factory=dict)
    flags: list[str] = Field(default_factory=list)
    arguments: list[str] = Field(default_factory=list)

    def to_parameter_map(self) -> dict[str, list[str]]:
        result = {slug: list(names) for slug, names in self.layer_parameters.items()}
        if self.flags or self.arguments:
            result.setdefault(DEFAULT_SLUG, []).extend([*self.flags, *self.arguments])
        return result


class ParameterFilter(BaseModel):
    defaults: LayerParams | None = None
    overrides: LayerParams | None = None
    whitelist: LayerFilterList | None = None
    blacklist: LayerFilterList | None = None

    def compute_middlewares(self, stream: bool = True) -> list[Middleware]:
        """Middlewares applying this filter, outermost first.

        When rows are streamed the column set isn't known up front, so the
        glazed ``sort-columns`` parameter is hidden.
        """
        middlewares: list[Middleware] = []
        if self.overrides is not None:
            middlewares.append(update_from_map(self.overrides.to_layer_map(), source=SOURCE_CONFIG))
        if self.whitelist is not None:
            if self.whitelist.layers:
                middlewares.append(whitelist_layers(self.whitelist.layers))
            parameters = self.whitelist.to_parameter_map()
            if parameters:
                middlewares.append(whitelist_layer_parameters(parameters))
        blacklist = self.blacklist.to_parameter_map() if self.blacklist is not None else {}
        if stream:
            blacklist.setdefault(GLAZED_SLUG, []).append("sort-columns")
        if self.blacklist is not None and self.blacklist.layers:
            middlewares.append(blacklist_layers(self.blacklist.layers))
        if blacklist:
            middlewares.append(blacklist_layer_parameters(blacklist))
        if self.defaults is not None:
            middlewares.append(
                update_from_map_as_default(self.defaults.to_layer_map(), source=SOURCE_CONFIG_DEFAULTS)
            )
        return middlewares


# =============================================================================
# ROUTES
# =============================================================================


class CommandRouteOptions(ParameterFilter):
    template_name: str = "data-tables.tmpl.html"
    index_template_name: str = ""
    stream: bool | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)


class CommandDirectoryRoute(CommandRouteOptions):
    repositories: list[str] = Field(..., min_length=1, description="Import specs of command repositories")
    index_template_name: str = "index-commands.tmpl.html"


class CommandRoute(CommandRouteOptions):
    command: str = Field(..., description="Import spec of a single command")


class StaticRoute(BaseModel):
    local_path: Path


class StaticFileRoute(BaseModel):
    local_path: Path


class TemplateRoute(BaseModel):
    template_file: Path


class TemplateDirectoryRoute(BaseModel):
    local_directory: Path
    markdown_base_template_name: str = "base.tmpl.html"
    additional_data: dict[str, Any] = Field(default_factory=dict)


ROUTE_KINDS = ("command_directory", "command", "static", "static_file", "template", "template_directory")


class RouteConfig(BaseModel):
    path: str
    command_directory: CommandDirectoryRoute | None = None
    command: CommandRoute | None = None
    static: StaticRoute | None = None
    static_file: StaticFileRoute | None = None
    template: TemplateRoute | None = None
    template_directory: TemplateDirectoryRoute | None = None

    @model_validator(mode="after")
    def check_single_kind(self) -> RouteConfig:
        kinds = [k for k in ROUTE_KINDS if getattr(self, k) is not None]
        if len(kinds) != 1:
            raise ValueError(
                f"route {self.path} must have exactly one of {', '.join(ROUTE_KINDS)}, got {kinds or 'none'}"
            )
        return self

    @property
    def kind(self) -> str:
        return next(k for k in ROUTE_KINDS if getattr(self, k) is not None)


class Config(BaseModel):
    routes: list[RouteConfig] = Field(default_factory=list)


def parse_config(data: Any, path: str | Path | None = None) -> Config:
    """Evaluate and validate a loaded config document.

    Raises:
        ConfigException: if evaluation or validation fails.
    """
    try:
        return Config.model_validate(evaluate_config_entry(data or {}))
    except ValidationError as e:
        raise ConfigException(f"invalid config: {e}", path=str(path) if path else None) from e


def load_config(path: str | Path) -> Config:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigException(f"could not read config: {e}", path=str(path)) from e
    logger.info(f"Loaded config from {path}")
    return parse_config(data, path)


def merge_repositories(specs: list[str]) -> Repository:
    repositories = [load_repository(spec) for spec in specs]
    if len(repositories) == 1:
        return repositories[0]
    merged = Repository(name=", ".join(r.name for r in repositories))
    for repository in repositories:
        for cmd in repository.commands():
            merged.add(cmd)
    return merged


def _generic_handler(options: CommandRouteOptions, server: Server, stream_default: bool) -> GenericCommandHandler:
    stream = stream_default if options.stream is None else options.stream
    return GenericCommandHandler(
        middlewares=options.compute_middlewares(stream),
        lookups=server.lookups(),
        template_name=options.template_name,
        index_template_name=options.index_template_name,
        stream=stream,
        additional_data=options.additional_data,
    )


def configure_server(server: Server, config: Config, stream_rows: bool = True, dev_mode: bool = False) -> None:
    """Register every configured route on ``server``.

    Raises:
        ConfigException: if a command or repository can't be loaded.
    """
    for route in config.routes:
        path = route.path.rstrip("/")
        logger.debug(f"Configuring {route.kind} route at {route.path}")
        if route.command_directory is not None:
            handler = _generic_handler(route.command_directory, server, stream_rows)
            repository = merge_repositories(route.command_directory.repositories)
            handler.serve_repository(server, path, repository)
        elif route.command is not None:
            handler = _generic_handler(route.command, server, stream_rows)
            handler.serve_single_command(server, path, load_command(route.command.command))
        elif route.static is not None:
            server.mount(path, StaticDirHandler(route.static.local_path).app())
        elif route.static_file is not None:
            server.add_route(path or "/", StaticFileHandler(route.static_file.local_path).handle)
        elif route.template is not None:
            handler = TemplateHandler(route.template.template_file, always_reload=dev_mode)
            server.add_route(path or "/", handler.handle)
        elif route.template_directory is not None:
            options = route.template_directory
            handler = TemplateDirHandler(
                options.local_directory,
                data=options.additional_data,
                always_reload=dev_mode,
                markdown_base_template_name=options.markdown_base_template_name,
            )
            server.add_route(f"{path}/", handler.handle)
            server.add_route(f"{path}/{{path:path}}", handler.handle)
