"""Tests for table processing and output formatters."""

from __future__ import annotations

import asyncio
import csv
import io
import json
from datetime import datetime

import pytest
import yaml
from openpyxl import load_workbook

from parka.cmds.formatters import (
    ExcelOutputFormatter,
    JSONOutputFormatter,
    TableOutputFormatter,
    YAMLOutputFormatter,
    cell_to_string,
)
from parka.cmds.layers import ParsedLayer
from parka.cmds.processor import (
    FieldsFilterMiddleware,
    OutputChannelMiddleware,
    RowChannelMiddleware,
    SortColumnsMiddleware,
    Table,
    TableProcessor,
)
from parka.cmds.settings import create_output_formatter, new_glazed_layer, setup_table_processor
from parka.core.exceptions import UnsupportedOutputFormat


def sample_table() -> Table:
    table = Table()
    table.add_row({"id": 1, "name": "ann"})
    table.add_row({"id": 2, "email": "bob@example.com"})
    return table


def glazed(**values) -> ParsedLayer:
    layer = new_glazed_layer()
    parsed = ParsedLayer(layer=layer)
    for name, value in values.items():
        parsed.parameters.update_value(layer.definitions.get(name), value, "test")
    return parsed


# ============================================================================
# Processor
# ============================================================================


class TestTableProcessor:
    async def test_collects_union_of_columns(self):
        processor = TableProcessor()
        await processor.add_row({"a": 1})
        await processor.add_row({"b": 2, "a": 3})
        table = await processor.finalize()
        assert table.columns == ["a", "b"]
        assert table.cells() == [[1, None], [3, 2]]

    async def test_fields_and_filters(self):
        processor = TableProcessor([FieldsFilterMiddleware(["name", "id"], ["id"])])
        await processor.add_row({"id": 1, "name": "ann", "age": 3})
        table = await processor.finalize()
        assert table.rows == [{"name": "ann"}]

    async def test_sort_columns_keeps_first(self):
        processor = TableProcessor(table_middlewares=[SortColumnsMiddleware(["z"])])
        await processor.add_row({"b": 1, "z": 2, "a": 3})
        table = await processor.finalize()
        assert table.columns == ["z", "a", "b"]

    async def test_finalize_runs_once(self):
        processor = TableProcessor(table_middlewares=[SortColumnsMiddleware()])
        await processor.add_row({"b": 1, "a": 2})
        first = await processor.finalize()
        assert await processor.finalize() is first

    async def test_channels_and_no_collection(self):
        rows: asyncio.Queue = asyncio.Queue()
        lines: asyncio.Queue = asyncio.Queue()
        processor = TableProcessor(
            [RowChannelMiddleware(rows), OutputChannelMiddleware(JSONOutputFormatter(indent=None), lines)]
        )
        processor.replace_table_middleware()
        await processor.add_row({"id": 1})

        assert rows.get_nowait() == {"id": 1}
        assert json.loads(lines.get_nowait()) == {"id": 1}
        assert len(await processor.finalize()) == 0

    async def test_output_without_formatter(self):
        with pytest.raises(UnsupportedOutputFormat):
            await TableProcessor().output(io.StringIO())


class TestGlazedSettings:
    async def test_processor_from_layer(self):
        processor = setup_table_processor(glazed(fields=["name"], **{"sort-columns": True}))
        await processor.add_row({"id": 1, "name": "ann"})
        table = await processor.finalize()
        assert table.rows == [{"name": "ann"}]

    def test_formatter_selection(self):
        assert isinstance(create_output_formatter(None), TableOutputFormatter)
        assert isinstance(create_output_formatter(glazed(output="json")), JSONOutputFormatter)
        assert create_output_formatter(glazed(output="csv")).table_format == "csv"
        formatter = create_output_formatter(glazed(output="table", **{"table-format": "markdown"}))
        assert formatter.content_type == "text/markdown"


# ============================================================================
# Formatters
# ============================================================================


class TestFormatters:
    def test_json(self):
        buf = io.StringIO()
        JSONOutputFormatter().output(sample_table(), buf)
        assert json.loads(buf.getvalue()) == sample_table().rows

    def test_json_individual_rows(self):
        buf = io.StringIO()
        JSONOutputFormatter(indent=None, output_individual_rows=True).output(sample_table(), buf)
        assert [json.loads(line) for line in buf.getvalue().splitlines()] == sample_table().rows

    def test_yaml_converts_dates(self):
        table = Table()
        table.add_row({"when": datetime(2024, 1, 2, 3, 4, 5)})
        buf = io.StringIO()
        YAMLOutputFormatter().output(table, buf)
        assert yaml.safe_load(buf.getvalue()) == [{"when": "2024-01-02T03:04:05"}]

    def test_csv(self):
        buf = io.StringIO()
        TableOutputFormatter("csv").output(sample_table(), buf)
        rows = list(csv.reader(io.StringIO(buf.getvalue())))
        assert rows == [["id", "name", "email"], ["1", "ann", ""], ["2", "", "bob@example.com"]]

    def test_markdown_escapes_pipes(self):
        table = Table()
        table.add_row({"expr": "a|b"})
        buf = io.StringIO()
        TableOutputFormatter("markdown").output(table, buf)
        assert buf.getvalue().splitlines() == ["| expr |", "| --- |", "| a\\|b |"]

    def test_html_escapes(self):
        table = Table()
        table.add_row({"tag": "<b>"})
        buf = io.StringIO()
        TableOutputFormatter("html").output(table, buf)
        assert "<td>&lt;b&gt;</td>" in buf.getvalue()

    def test_ascii(self):
        buf = io.StringIO()
        TableOutputFormatter("ascii").output(sample_table(), buf)
        lines = buf.getvalue().splitlines()
        assert lines[0] == "+----+------+-----------------+"
        assert lines[1] == "| id | name | email           |"
        assert lines[3] == "| 1  | ann  |                 |"

    def test_unknown_table_format(self):
        with pytest.raises(UnsupportedOutputFormat):
            TableOutputFormatter("rst")

    def test_excel_needs_a_file(self):
        with pytest.raises(UnsupportedOutputFormat):
            ExcelOutputFormatter().output(sample_table(), io.StringIO())

    def test_excel_file(self, tmp_path):
        path = tmp_path / "out.xlsx"
        ExcelOutputFormatter().write_to_file(sample_table(), path)
        ws = load_workbook(path).active
        assert [list(r) for r in ws.iter_rows(values_only=True)] == [
            ["id", "name", "email"],
            [1, "ann", None],
            [2, None, "bob@example.com"],
        ]

    def test_cell_to_string(self):
        assert cell_to_string(None) == ""
        assert cell_to_string({"a": 1}) == '{"a": 1}'
        assert cell_to_string(datetime(2024, 1, 2)) == "2024-01-02T00:00:00"
