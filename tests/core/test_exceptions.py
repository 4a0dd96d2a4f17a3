"""Tests for parka.core.exceptions."""

from __future__ import annotations

import pytest

from parka.core.exceptions import (
    AmbiguousCommand,
    CommandNotFound,
    ConfigException,
    MissingParameterError,
    ParameterError,
    ParkaException,
    TemplateNotFound,
    UnsupportedOutputFormat,
)


@pytest.mark.parametrize(
    "exc",
    [
        ParameterError("x"),
        MissingParameterError("who"),
        CommandNotFound("a"),
        AmbiguousCommand("a"),
        ConfigException("x"),
        TemplateNotFound(["a"]),
        UnsupportedOutputFormat("x"),
    ],
)
def test_hierarchy(exc):
    assert isinstance(exc, ParkaException)


def test_to_dict():
    exc = ParameterError("invalid value", parameter="limit", value=10)
    assert exc.to_dict() == {
        "error": "ParameterError",
        "message": "invalid value",
        "details": {"parameter": "limit", "value": "10"},
    }


def test_missing_parameter():
    exc = MissingParameterError("who")
    assert isinstance(exc, ParameterError)
    assert str(exc) == "required parameter 'who' is missing"
    assert exc.parameter == "who"


def test_template_not_found_names():
    exc = TemplateNotFound(("a.html", "b.html"))
    assert exc.names == ["a.html", "b.html"]
    assert exc.message == "template not found: a.html, b.html"


def test_optional_details_are_omitted():
    assert ConfigException("bad").details == {}
    assert UnsupportedOutputFormat("bad", file_name="x.exe").details == {"file_name": "x.exe"}
