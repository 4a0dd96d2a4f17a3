"""Tests for parka.core.logging."""

from __future__ import annotations

import json
import logging

import pytest

from parka.core.logging import (
    CommandRunLogger,
    JSONFormatter,
    StandardFormatter,
    configure_logging,
    correlation_context,
    get_correlation_id,
    set_correlation_id,
)


def make_record(msg: str = "hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("parka.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelation:
    def test_context_sets_and_resets(self):
        assert get_correlation_id() is None
        with correlation_context("abc") as cid:
            assert cid == "abc"
            assert get_correlation_id() == "abc"
        assert get_correlation_id() is None

    def test_generated(self):
        with correlation_context() as cid:
            assert len(cid) == 32

    def test_nested(self):
        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"


class TestFormatters:
    def test_json(self):
        set_correlation_id("cid-1")
        data = json.loads(JSONFormatter().format(make_record(extra_data={"rows": 3})))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["correlation_id"] == "cid-1"
        assert data["extra"] == {"rows": 3}
        assert "source" not in data

    def test_json_warning_has_source(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.WARNING)))
        assert data["source"]["line"] == 10

    def test_standard_prefixes_correlation(self):
        set_correlation_id("0123456789")
        line = StandardFormatter().format(make_record())
        assert "[01234567] hello" in line

    def test_standard_without_correlation(self):
        line = StandardFormatter().format(make_record())
        assert line.endswith("INFO     parka.test: hello")


class TestCommandRunLogger:
    @pytest.fixture
    def run_logger(self):
        return CommandRunLogger(logging.getLogger("parka.test.commands"))

    def test_sanitizes_secrets(self, run_logger, caplog):
        caplog.set_level(logging.DEBUG, logger="parka.test.commands")
        run_logger.log_run(
            "users",
            {"limit": 3, "api_key": "k", "conn": "dsn", "nested": {"password": "p"}},
            secret_names={"conn"},
        )
        data = caplog.records[0].extra_data
        assert data["parameters"] == {
            "limit": 3,
            "api_key": "[REDACTED]",
            "conn": "[REDACTED]",
            "nested": {"password": "[REDACTED]"},
        }

    def test_truncates_long_strings(self, run_logger):
        assert run_logger._sanitize(["x" * 600], set()) == ["x" * 500 + "..."]

    def test_result(self, run_logger, caplog):
        caplog.set_level(logging.DEBUG, logger="parka.test.commands")
        run_logger.log_result("users", False, 12.34)
        assert caplog.records[0].getMessage() == "Command result: users -> failure (12.3ms)"


def test_configure_logging(clean_env, tmp_path):
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    log_file = tmp_path / "parka.log"
    try:
        configure_logging(level="DEBUG", json_format=True, log_file=str(log_file))
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        logging.getLogger("parka.test").info("to file")
        for handler in root.handlers:
            handler.flush()
        assert json.loads(log_file.read_text().splitlines()[0])["message"] == "to file"
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved[0]:
            root.addHandler(handler)
        root.setLevel(saved[1])
