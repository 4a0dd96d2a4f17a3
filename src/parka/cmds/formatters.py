"""Output formatters turning a collected ``Table`` into text or files."""

from __future__ import annotations

import csv
import html
import json
from abc import ABC, abstractmethod
from datetime import date, datetime
from pathlib import Path
from typing import Any, TextIO

import yaml
from openpyxl import Workbook

from ..core.exceptions import UnsupportedOutputFormat
from .parameters import FileData
from .processor import Row, Table

TABLE_FORMATS = ("ascii", "markdown", "html", "csv", "tsv")


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, FileData):
        return value.to_dict()
    return str(value)


def to_plain(value: Any) -> Any:
    """Convert a row value to something JSON and YAML encoders accept."""
    return json.loads(json.dumps(value, default=_json_default))


def cell_to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=_json_default)
    return str(value)


class OutputFormatter(ABC):
    """Writes a whole table to a text stream."""

    content_type = "text/plain"

    @abstractmethod
    def output(self, table: Table, stream: TextIO) -> None:
        """Write ``table`` to ``stream``."""

    def write_to_file(self, table: Table, path: str | Path) -> None:
        with open(path, "w", encoding="utf-8", newline="") as f:
            self.output(table, f)


class RowOutputFormatter(ABC):
    """Formats single rows, for outputs streamed row by row."""

    content_type = "text/plain"

    @abstractmethod
    def output_row(self, row: Row) -> str:
        """Format one row."""


class JSONOutputFormatter(OutputFormatter, RowOutputFormatter):
    content_type = "application/json"

    def __init__(self, indent: int | None = 2, output_individual_rows: bool = False):
        self.indent = indent
        self.output_individual_rows = output_individual_rows

    def output_row(self, row: Row) -> str:
        return json.dumps(row, default=_json_default)

    def output(self, table: Table, stream: TextIO) -> None:
        if self.output_individual_rows:
            for row in table.rows:
                stream.write(json.dumps(row, indent=self.indent, default=_json_default))
                stream.write("\n")
            return
        json.dump(table.rows, stream, indent=self.indent, default=_json_default)


class YAMLOutputFormatter(OutputFormatter):
    content_type = "application/x-yaml"

    def output(self, table: Table, stream: TextIO) -> None:
        yaml.safe_dump(to_plain(table.rows), stream, sort_keys=False, allow_unicode=True)


class TableOutputFormatter(OutputFormatter, RowOutputFormatter):
    """Tabular text output: ascii, markdown, html, csv or tsv."""

    _content_types = {
        "ascii": "text/plain",
        "markdown": "text/markdown",
        "html": "text/html",
        "csv": "text/csv",
        "tsv": "text/tab-separated-values",
    }

    def __init__(self, table_format: str = "ascii"):
        if table_format not in TABLE_FORMATS:
            raise UnsupportedOutputFormat(f"unknown table format '{table_format}'")
        self.table_format = table_format
        self.content_type = self._content_types[table_format]

    def output_row(self, row: Row) -> str:
        values = [cell_to_string(v) for v in row.values()]
        if self.table_format == "tsv":
            return "\t".join(values)
        if self.table_format == "markdown":
            return "| " + " | ".join(values) + " |"
        if self.table_format == "html":
            return "<tr>" + "".join(f"<td>{html.escape(v)}</td>" for v in values) + "</tr>"
        return ",".join(values)

    def output(self, table: Table, stream: TextIO) -> None:
        header = list(table.columns)
        rows = [[cell_to_string(v) for v in r] for r in table.cells()]

        if self.table_format in ("csv", "tsv"):
            writer = csv.writer(stream, delimiter="\t" if self.table_format == "tsv" else ",")
            writer.writerow(header)
            writer.writerows(rows)
        elif self.table_format == "markdown":
            stream.write(self._markdown(header, rows))
        elif self.table_format == "html":
            stream.write(render_html_table(header, rows))
        else:
            stream.write(self._ascii(header, rows))

    @staticmethod
    def _markdown(header: list[str], rows: list[list[str]]) -> str:
        def line(cells: list[str]) -> str:
            return "| " + " | ".join(c.replace("|", "\\|") for c in cells) + " |"

        lines = [line(header), "| " + " | ".join("---" for _ in header) + " |"]
        lines.extend(line(r) for r in rows)
        return "\n".join(lines) + "\n"

    @staticmethod
    def _ascii(header: list[str], rows: list[list[str]]) -> str:
        widths = [len(h) for h in header]
        for r in rows:
            for i, cell in enumerate(r):
                widths[i] = max(widths[i], len(cell))

        sep = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

        def line(cells: list[str]) -> str:
            return "|" + "|".join(f" {c.ljust(w)} " for c, w in zip(cells, widths, strict=True)) + "|"

        lines = [sep, line(header), sep]
        lines.extend(line(r) for r in rows)
        lines.append(sep)
        return "\n".join(lines) + "\n"


def render_html_table(header: list[str], rows: list[list[str]]) -> str:
    out = ["<table>", "<thead><tr>"]
    out.extend(f"<th>{html.escape(h)}</th>" for h in header)
    out.append("</tr></thead>")
    out.append("<tbody>")
    for r in rows:
        out.append("<tr>" + "".join(f"<td>{html.escape(c)}</td>" for c in r) + "</tr>")
    out.append("</tbody>")
    out.append("</table>")
    return "\n".join(out) + "\n"


class ExcelOutputFormatter(OutputFormatter):
    """Writes an ``.xlsx`` workbook; needs an output file."""

    content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def __init__(self, sheet_name: str = "Sheet1"):
        self.sheet_name = sheet_name

    def output(self, table: Table, stream: TextIO) -> None:
        raise UnsupportedOutputFormat("excel output requires an output file")

    def write_to_file(self, table: Table, path: str | Path) -> None:
        wb = Workbook()
        ws = wb.active
        ws.title = self.sheet_name
        ws.append(list(table.columns))
        for row in table.cells():
            ws.append([_excel_cell(v) for v in row])
        wb.save(path)


def _excel_cell(value: Any) -> Any:
    # openpyxl rejects timezone-aware datetimes
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    if value is None or isinstance(value, (bool, int, float, str, datetime, date)):
        return value
    return cell_to_string(value)
