"""Tests for parka.core.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from parka.core.config import ParkaSettings, clear_settings_cache, get_settings


class TestParkaSettings:
    def test_defaults(self, clean_env):
        settings = ParkaSettings()
        assert settings.host == "127.0.0.1"
        assert settings.port == 8080
        assert settings.backend == "starlette"
        assert settings.stream_rows is True
        assert settings.config_file is None
        assert settings.allowed_origins == []
        assert settings.base_url == "http://127.0.0.1:8080"

    def test_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("PARKA_PORT", "9000")
        monkeypatch.setenv("PARKA_BACKEND", "AIOHTTP")
        monkeypatch.setenv("PARKA_CONFIG_FILE", "/etc/parka/routes.yaml")
        monkeypatch.setenv("PARKA_STREAM_ROWS", "false")
        monkeypatch.setenv("PARKA_ALLOWED_ORIGINS", '["https://a.example"]')
        settings = ParkaSettings()
        assert settings.port == 9000
        assert settings.backend == "aiohttp"
        assert settings.config_file == Path("/etc/parka/routes.yaml")
        assert settings.stream_rows is False
        assert settings.allowed_origins == ["https://a.example"]

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("PARKA_SERVER_NAME=from-dotenv\n")
        assert ParkaSettings().server_name == "from-dotenv"

    def test_invalid_backend(self, clean_env):
        with pytest.raises(ValidationError, match="backend must be one of"):
            ParkaSettings(backend="flask")


def test_settings_are_cached(clean_env, monkeypatch):
    first = get_settings()
    monkeypatch.setenv("PARKA_PORT", "9999")
    assert get_settings() is first
    clear_settings_cache()
    assert get_settings().port == 9999
