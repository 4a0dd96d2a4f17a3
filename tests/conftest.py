"""Global test fixtures for the parka test suite."""

from __future__ import annotations

import os
from typing import TextIO

import pytest

from parka.cmds.commands import CommandWithMetadata, GlazeCommand, WriterCommand, new_command_description
from parka.cmds.layers import ParsedLayers
from parka.cmds.parameters import ParameterDefinition, ParameterType
from parka.cmds.processor import TableProcessor
from parka.cmds.repository import Repository
from parka.core.config import clear_settings_cache
from parka.core.logging import set_correlation_id

# ============================================================================
# Sample commands
# ============================================================================


class UsersCommand(GlazeCommand):
    """Emits ``limit`` rows; fails once ``fail-after`` rows were emitted."""

    def __init__(self, name: str = "users", parents: tuple[str, ...] = ()):
        self._description = new_command_description(
            name,
            short="List users",
            long="Lists **users** with their ids.",
            flags=[
                ParameterDefinition("limit", ParameterType.INTEGER, default=3, help="Rows to emit"),
                ParameterDefinition("prefix", ParameterType.STRING, default="user"),
                ParameterDefinition("fail-after", ParameterType.INTEGER),
            ],
            parents=parents,
        )

    def description(self):
        return self._description

    async def run_into_glaze_processor(self, parsed_layers: ParsedLayers, processor: TableProcessor) -> None:
        values = parsed_layers.get_default_parameters()
        prefix = values.get_value("prefix")
        fail_after = values.get_value("fail-after")
        for i in range(values.get_value("limit")):
            if fail_after is not None and i >= fail_after:
                raise RuntimeError("users backend went away")
            await processor.add_row({"id": i, "name": f"{prefix}-{i}"})


class GreetCommand(WriterCommand, CommandWithMetadata):
    def __init__(self, name: str = "greet", parents: tuple[str, ...] = ()):
        self._description = new_command_description(
            name,
            short="Say hello",
            flags=[ParameterDefinition("greeting", ParameterType.STRING, default="Hello")],
            arguments=[ParameterDefinition("who", ParameterType.STRING, required=True)],
            parents=parents,
        )

    def description(self):
        return self._description

    async def run_into_writer(self, parsed_layers: ParsedLayers, writer: TextIO) -> None:
        values = parsed_layers.get_default_parameters()
        writer.write(f"{values.get_value('greeting')}, {values.get_value('who')}!\n")

    async def metadata(self, parsed_layers: ParsedLayers) -> dict:
        return {"audience": parsed_layers.get_default_parameters().get_value("who")}


@pytest.fixture
def users_cmd() -> UsersCommand:
    return UsersCommand()


@pytest.fixture
def greet_cmd() -> GreetCommand:
    return GreetCommand()


@pytest.fixture
def repository() -> Repository:
    """``reports/users``, ``reports/sales`` and ``misc/greet``."""
    return Repository(
        name="test-commands",
        commands=[
            UsersCommand(parents=("reports",)),
            UsersCommand(name="sales", parents=("reports",)),
            GreetCommand(parents=("misc",)),
        ],
    )


# ============================================================================
# Global state
# ============================================================================


@pytest.fixture(autouse=True)
def clear_settings():
    """Reset cached settings and correlation IDs around every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
    set_correlation_id(None)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove PARKA_ environment variables and any .env file from view."""
    for key in list(os.environ):
        if key.startswith("PARKA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def temp_dir_settings(tmp_path, monkeypatch):
    """Point temporary download files at a fresh directory."""
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    monkeypatch.setenv("PARKA_TEMP_DIR", str(downloads))
    clear_settings_cache()
    return downloads
