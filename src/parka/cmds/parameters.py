# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Typed parameter definitions and parsed parameter values.

A ``ParameterDefinition`` declares one input of a command: its name, type,
default and whether it is required. Raw strings coming from HTTP requests or
configuration files are coerced to typed values through
``ParameterDefinition.parse_parameter`` (one or more raw strings) and
``ParameterDefinition.parse_from_reader`` (file-backed values).

Parsed values are stored in ``ParsedParameters`` together with a log of where
each value came from (declared defaults, query string, overrides, ...).
"""

from __future__ import annotations

import copy
import io
import json
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, TextIO

import yaml

from ..core.exceptions import ParameterError


class ParameterType(str, Enum):
    """Types a parameter can be declared with."""

    STRING = "string"
    SECRET = "secret"
    STRING_LIST = "stringList"
    INTEGER = "integer"
    INTEGER_LIST = "integerList"
    FLOAT = "float"
    FLOAT_LIST = "floatList"
    BOOL = "bool"
    DATE = "date"
    CHOICE = "choice"
    CHOICE_LIST = "choiceList"
    KEY_VALUE = "keyValue"
    FILE = "file"
    FILE_LIST = "fileList"
    STRING_FROM_FILE = "stringFromFile"
    STRING_FROM_FILES = "stringFromFiles"
    STRING_LIST_FROM_FILE = "stringListFromFile"
    STRING_LIST_FROM_FILES = "stringListFromFiles"
    OBJECT_FROM_FILE = "objectFromFile"
    OBJECT_LIST_FROM_FILE = "objectListFromFile"
    OBJECT_LIST_FROM_FILES = "objectListFromFiles"


# Types accepting several raw inputs (repeated ``name[]`` or comma separated)
_LIST_TYPES = frozenset(
    {
        ParameterType.STRING_LIST,
        ParameterType.INTEGER_LIST,
        ParameterType.FLOAT_LIST,
        ParameterType.CHOICE_LIST,
        ParameterType.KEY_VALUE,
        ParameterType.FILE_LIST,
        ParameterType.STRING_FROM_FILES,
        ParameterType.STRING_LIST_FROM_FILES,
        ParameterType.OBJECT_LIST_FROM_FILES,
    }
)

_FILE_LOADING_TYPES = frozenset(
    {
        ParameterType.FILE,
        ParameterType.FILE_LIST,
        ParameterType.STRING_FROM_FILE,
        ParameterType.STRING_FROM_FILES,
        ParameterType.STRING_LIST_FROM_FILE,
        ParameterType.STRING_LIST_FROM_FILES,
        ParameterType.OBJECT_FROM_FILE,
        ParameterType.OBJECT_LIST_FROM_FILE,
        ParameterType.OBJECT_LIST_FROM_FILES,
    }
)

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")

_DATE_FORMATS = ("%Y/%m/%d", "%Y/%m/%d %H:%M:%S", "%d.%m.%Y", "%Y%m%d")


def is_list_parameter(parameter_type: ParameterType) -> bool:
    """Whether the type takes several raw values."""
    return parameter_type in _LIST_TYPES


def is_file_loading_parameter(parameter_type: ParameterType, value: str) -> bool:
    """Whether a raw value for this type is the content of a file.

    Key/value parameters are file-backed only when the value starts with ``@``.
    """
    if parameter_type == ParameterType.KEY_VALUE:
        return value.startswith("@")
    return parameter_type in _FILE_LOADING_TYPES


def parse_date(value: str) -> datetime:
    """Parse a date from a string.

    Accepts ISO dates and datetimes, a handful of common layouts and the
    relative words ``now``, ``today``, ``yesterday`` and ``tomorrow``.
    """
    raw = value.strip()
    lowered = raw.lower()
    now = datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    relative = {
        "now": now,
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if lowered in relative:
        return relative[lowered]

    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue

    raise ParameterError(f"could not parse date '{value}'", value=value)


@dataclass
class FileData:
    """A file uploaded or passed as a file-backed parameter value."""

    content: str
    path: str = ""
    size: int = 0

    @property
    def base_name(self) -> str:
        return os.path.basename(self.path)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.path)[1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "path": self.path,
            "base_name": self.base_name,
            "extension": self.extension,
            "size": self.size,
        }


def _load_structured(content: str, filename: str) -> Any:
    """Decode JSON or YAML content; YAML is picked by file extension."""
    lowered = filename.lower()
    try:
        if lowered.endswith((".yaml", ".yml")):
            return yaml.safe_load(content)
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ParameterError(f"could not decode '{filename or '<input>'}': {e}") from e


@dataclass
class ParameterDefinition:
    """Declaration of a single command parameter."""

    name: str
    type: ParameterType = ParameterType.STRING
    help: str = ""
    default: Any = None
    choices: list[str] = field(default_factory=list)
    required: bool = False
    short_flag: str = ""
    is_argument: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.type, ParameterType):
            self.type = ParameterType(self.type)

    def clone(self) -> ParameterDefinition:
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Raw string parsing
    # ------------------------------------------------------------------

    def parse_parameter(self, values: list[str]) -> Any:
        """Coerce raw string values to the typed value of this parameter.

        Single-valued types expect exactly one value. File-backed types treat
        each value as the content of a file.

        Raises:
            ParameterError: if the values can't be parsed.
        """
        t = self.type

        if not is_list_parameter(t) and len(values) != 1:
            raise ParameterError(
                f"parameter '{self.name}' expects exactly one value, got {len(values)}",
                parameter=self.name,
                value=values,
            )

        if t in _FILE_LOADING_TYPES:
            return self._parse_file_contents(values)

        if t in (ParameterType.STRING, ParameterType.SECRET):
            return values[0]
        if t == ParameterType.STRING_LIST:
            return list(values)
        if t == ParameterType.INTEGER:
            return self._parse_int(values[0])
        if t == ParameterType.INTEGER_LIST:
            return [self._parse_int(v) for v in values]
        if t == ParameterType.FLOAT:
            return self._parse_float(values[0])
        if t == ParameterType.FLOAT_LIST:
            return [self._parse_float(v) for v in values]
        if t == ParameterType.BOOL:
            return self._parse_bool(values[0])
        if t == ParameterType.DATE:
            try:
                return parse_date(values[0])
            except ParameterError as e:
                raise ParameterError(e.message, parameter=self.name, value=values[0]) from e
        if t == ParameterType.CHOICE:
            return self._check_choice(values[0])
        if t == ParameterType.CHOICE_LIST:
            return [self._check_choice(v) for v in values]
        if t == ParameterType.KEY_VALUE:
            return self._parse_key_values(values)

        raise ParameterError(f"unknown parameter type {t}", parameter=self.name)

    def parse_from_reader(self, reader: TextIO, filename: str = "") -> Any:
        """Load a file-backed value from a text stream.

        Raises:
            ParameterError: if the type can't be loaded from a file or the
                content can't be decoded.
        """
        content = reader.read()
        t = self.type

        if t in (ParameterType.STRING_FROM_FILE, ParameterType.STRING_FROM_FILES):
            return content
        if t in (ParameterType.STRING_LIST_FROM_FILE, ParameterType.STRING_LIST_FROM_FILES):
            return content.splitlines()
        if t == ParameterType.OBJECT_FROM_FILE:
            obj = _load_structured(content, filename)
            if not isinstance(obj, dict):
                raise ParameterError(
                    f"parameter '{self.name}' expects an object", parameter=self.name
                )
            return obj
        if t in (ParameterType.OBJECT_LIST_FROM_FILE, ParameterType.OBJECT_LIST_FROM_FILES):
            obj = _load_structured(content, filename)
            if isinstance(obj, dict):
                return [obj]
            if not isinstance(obj, list):
                raise ParameterError(
                    f"parameter '{self.name}' expects a list of objects", parameter=self.name
                )
            return obj
        if t == ParameterType.FILE:
            return FileData(content=content, path=filename, size=len(content.encode()))
        if t == ParameterType.FILE_LIST:
            return [FileData(content=content, path=filename, size=len(content.encode()))]
        if t == ParameterType.KEY_VALUE:
            obj = _load_structured(content.removeprefix("@"), filename)
            if not isinstance(obj, dict):
                raise ParameterError(
                    f"parameter '{self.name}' expects key/value pairs", parameter=self.name
                )
            return obj

        raise ParameterError(
            f"parameter '{self.name}' of type {t.value} can't be loaded from a file",
            parameter=self.name,
        )

    # ------------------------------------------------------------------
    # Typed value handling
    # ------------------------------------------------------------------

    def coerce_value(self, value: Any) -> Any:
        """Turn a value from a configuration map into a typed value.

        Strings (and lists of strings for list types) are parsed, typed values
        are validated as-is.
        """
        if value is None:
            return None
        if isinstance(value, str):
            if self.type in (ParameterType.STRING, ParameterType.SECRET):
                return value
            if is_file_loading_parameter(self.type, value):
                return self.parse_from_reader(io.StringIO(value), "")
            if is_list_parameter(self.type):
                return self.parse_parameter(value.split(","))
            return self.parse_parameter([value])
        if (
            isinstance(value, list)
            and self.type in (ParameterType.INTEGER_LIST, ParameterType.FLOAT_LIST, ParameterType.CHOICE_LIST)
            and all(isinstance(v, str) for v in value)
        ):
            return self.parse_parameter(value)
        if self.type == ParameterType.DATE and isinstance(value, date) and not isinstance(value, datetime):
            value = datetime.combine(value, time())
        self.check_value_validity(value)
        return value

    def check_value_validity(self, value: Any) -> None:
        """Validate an already typed value against the declared type.

        Raises:
            ParameterError: if the value doesn't fit the type or choices.
        """
        t = self.type
        ok = True
        if t in (ParameterType.STRING, ParameterType.SECRET, ParameterType.STRING_FROM_FILE):
            ok = isinstance(value, str)
        elif t == ParameterType.INTEGER:
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif t == ParameterType.FLOAT:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        elif t == ParameterType.BOOL:
            ok = isinstance(value, bool)
        elif t == ParameterType.DATE:
            ok = isinstance(value, datetime)
        elif t == ParameterType.CHOICE:
            self._check_choice(value)
        elif t == ParameterType.CHOICE_LIST:
            ok = isinstance(value, list)
            if ok:
                for v in value:
                    self._check_choice(v)
        elif t in (ParameterType.STRING_LIST, ParameterType.INTEGER_LIST, ParameterType.FLOAT_LIST):
            ok = isinstance(value, list)
        elif t in (ParameterType.KEY_VALUE, ParameterType.OBJECT_FROM_FILE):
            ok = isinstance(value, dict)

        if not ok:
            raise ParameterError(
                f"parameter '{self.name}' expects {t.value}, "
                f"got {type(value).__name__}",
                parameter=self.name,
                value=value,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parse_int(self, value: str) -> int:
        try:
            return int(value.strip())
        except ValueError as e:
            raise ParameterError(
                f"could not parse '{value}' as integer", parameter=self.name, value=value
            ) from e

    def _parse_float(self, value: str) -> float:
        try:
            return float(value.strip())
        except ValueError as e:
            raise ParameterError(
                f"could not parse '{value}' as float", parameter=self.name, value=value
            ) from e

    def _parse_bool(self, value: str) -> bool:
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ParameterError(f"could not parse '{value}' as bool", parameter=self.name, value=value)

    def _check_choice(self, value: str) -> str:
        if self.choices and value not in self.choices:
            raise ParameterError(
                f"value '{value}' must be one of {', '.join(self.choices)}",
                parameter=self.name,
                value=value,
            )
        return value

    def _parse_key_values(self, values: list[str]) -> dict[str, str]:
        if len(values) == 1 and values[0].startswith("@"):
            return self.parse_from_reader(io.StringIO(values[0][1:]), "")
        result: dict[str, str] = {}
        for v in values:
            key, sep, val = v.partition(":")
            if not sep:
                raise ParameterError(
                    f"could not parse '{v}' as key:value pair", parameter=self.name, value=v
                )
            result[key.strip()] = val.strip()
        return result

    def _parse_file_contents(self, values: list[str]) -> Any:
        t = self.type
        parsed = [self.parse_from_reader(io.StringIO(v), "") for v in values]
        if t == ParameterType.STRING_FROM_FILES:
            return "".join(parsed)
        if t in (
            ParameterType.STRING_LIST_FROM_FILES,
            ParameterType.OBJECT_LIST_FROM_FILES,
            ParameterType.FILE_LIST,
        ):
            return [item for chunk in parsed for item in chunk]
        return parsed[0]


class ParameterDefinitions:
    """Ordered, name-keyed collection of parameter definitions."""

    def __init__(self, definitions: Iterable[ParameterDefinition] = ()):
        self._definitions: dict[str, ParameterDefinition] = {}
        self.add(*definitions)

    def add(self, *definitions: ParameterDefinition) -> ParameterDefinitions:
        for d in definitions:
            self._definitions[d.name] = d
        return self

    def get(self, name: str) -> ParameterDefinition | None:
        return self._definitions.get(name)

    def delete(self, name: str) -> None:
        self._definitions.pop(name, None)

    def names(self) -> list[str]:
        return list(self._definitions)

    def get_flags(self) -> ParameterDefinitions:
        return ParameterDefinitions(d for d in self if not d.is_argument)

    def get_arguments(self) -> ParameterDefinitions:
        return ParameterDefinitions(d for d in self if d.is_argument)

    def clone(self) -> ParameterDefinitions:
        return ParameterDefinitions(d.clone() for d in self)

    def merge(self, other: ParameterDefinitions) -> ParameterDefinitions:
        """Add the definitions of ``other``, replacing same-named ones."""
        self.add(*other)
        return self

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[ParameterDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"ParameterDefinitions({self.names()!r})"


@dataclass
class ParseLogEntry:
    """One step in the history of a parsed parameter value."""

    source: str
    value: Any
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedParameter:
    """A typed parameter value together with where it came from."""

    definition: ParameterDefinition
    value: Any = None
    log: list[ParseLogEntry] = field(default_factory=list)

    def update(self, value: Any, source: str = "", **metadata: Any) -> None:
        self.value = value
        self.log.append(ParseLogEntry(source=source, value=value, metadata=metadata))

    @property
    def source(self) -> str | None:
        """Source of the current value, None if it was never logged."""
        return self.log[-1].source if self.log else None

    def clone(self) -> ParsedParameter:
        return ParsedParameter(
            definition=self.definition,
            value=copy.deepcopy(self.value),
            log=list(self.log),
        )


class ParsedParameters:
    """Ordered, name-keyed collection of parsed parameter values."""

    def __init__(self, parameters: dict[str, ParsedParameter] | None = None):
        self._parameters: dict[str, ParsedParameter] = dict(parameters or {})

    def get(self, name: str) -> ParsedParameter | None:
        return self._parameters.get(name)

    def get_value(self, name: str, default: Any = None) -> Any:
        p = self._parameters.get(name)
        return default if p is None else p.value

    def update_value(
        self,
        definition: ParameterDefinition,
        value: Any,
        source: str = "",
        **metadata: Any,
    ) -> ParsedParameter:
        """Set the value of a parameter, creating it if needed."""
        p = self._parameters.get(definition.name)
        if p is None:
            p = ParsedParameter(definition=definition)
            self._parameters[definition.name] = p
        p.update(value, source, **metadata)
        return p

    def update_with_log(
        self,
        definition: ParameterDefinition,
        value: Any,
        log: list[ParseLogEntry],
    ) -> ParsedParameter:
        """Set a value carrying over the history from another collection."""
        p = self._parameters.get(definition.name)
        if p is None:
            p = ParsedParameter(definition=definition)
            self._parameters[definition.name] = p
        p.value = value
        p.log.extend(log)
        return p

    def delete(self, name: str) -> None:
        self._parameters.pop(name, None)

    def merge(self, other: ParsedParameters) -> ParsedParameters:
        """Merge values of ``other`` into this collection, ``other`` winning."""
        for name, p in other.items():
            self.update_with_log(p.definition, p.value, p.log)
        return self

    def clone(self) -> ParsedParameters:
        return ParsedParameters({name: p.clone() for name, p in self._parameters.items()})

    def to_dict(self) -> dict[str, Any]:
        return {name: p.value for name, p in self._parameters.items()}

    def items(self) -> list[tuple[str, ParsedParameter]]:
        return list(self._parameters.items())

    def __contains__(self, name: object) -> bool:
        return name in self._parameters

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._parameters))

    def __len__(self) -> int:
        return len(self._parameters)

    def __repr__(self) -> str:
        return f"ParsedParameters({self.to_dict()!r})"
