# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Parka Contributors

"""Row processing for glaze commands.

Commands push rows (plain dicts) into a ``TableProcessor``. Each row passes
through the row middlewares; surviving rows are collected into a ``Table``
which the table middlewares transform once the command is done.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TextIO

from ..core.exceptions import UnsupportedOutputFormat

if TYPE_CHECKING:
    from .formatters import OutputFormatter, RowOutputFormatter

Row = dict[str, Any]


@dataclass
class Table:
    """Collected rows and the union of their columns, in first-seen order."""

    columns: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)

    def add_row(self, row: Row) -> None:
        for column in row:
            if column not in self.columns:
                self.columns.append(column)
        self.rows.append(row)

    def cells(self) -> list[list[Any]]:
        """Rows as lists of values aligned on ``columns``; missing cells are None."""
        return [[row.get(c) for c in self.columns] for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)


class RowMiddleware(ABC):
    @abstractmethod
    async def process(self, row: Row) -> list[Row]:
        """Transform a row into zero or more rows."""

    async def close(self) -> None:
        return None


class TableMiddleware(ABC):
    @abstractmethod
    def process(self, table: Table) -> Table:
        """Transform the collected table."""


class FieldsFilterMiddleware(RowMiddleware):
    """Keep only ``fields`` (in that order) and drop ``filters``."""

    def __init__(self, fields: Iterable[str] = (), filters: Iterable[str] = ()):
        self.fields = [f for f in fields if f]
        self.filters = set(filters)

    async def process(self, row: Row) -> list[Row]:
        if self.fields:
            row = {f: row[f] for f in self.fields if f in row}
        if self.filters:
            row = {k: v for k, v in row.items() if k not in self.filters}
        return [row]


class OutputChannelMiddleware(RowMiddleware):
    """Format each row and push the resulting string onto a queue."""

    def __init__(self, formatter: RowOutputFormatter, queue: asyncio.Queue[str]):
        self.formatter = formatter
        self.queue = queue

    async def process(self, row: Row) -> list[Row]:
        await self.queue.put(self.formatter.output_row(row))
        return [row]


class RowChannelMiddleware(RowMiddleware):
    """Push a copy of each row onto a queue."""

    def __init__(self, queue: asyncio.Queue[Row]):
        self.queue = queue

    async def process(self, row: Row) -> list[Row]:
        await self.queue.put(dict(row))
        return [row]


class SortColumnsMiddleware(TableMiddleware):
    """Sort columns alphabetically, keeping ``first`` columns in front."""

    def __init__(self, first: Iterable[str] = ()):
        self.first = [c for c in first if c]

    def process(self, table: Table) -> Table:
        front = [c for c in self.first if c in table.columns]
        table.columns = front + sorted(c for c in table.columns if c not in front)
        return table


class TableProcessor:
    def __init__(
        self,
        row_middlewares: Iterable[RowMiddleware] = (),
        table_middlewares: Iterable[TableMiddleware] = (),
    ):
        self.row_middlewares: list[RowMiddleware] = list(row_middlewares)
        self.table_middlewares: list[TableMiddleware] = list(table_middlewares)
        self.collect_rows = True
        self.table = Table()
        self.output_formatter: OutputFormatter | None = None
        self._finalized = False

    def add_row_middleware(self, *middlewares: RowMiddleware) -> TableProcessor:
        self.row_middlewares.extend(middlewares)
        return self

    def add_table_middleware(self, *middlewares: TableMiddleware) -> TableProcessor:
        self.table_middlewares.extend(middlewares)
        return self

    def replace_table_middleware(self, *middlewares: TableMiddleware) -> TableProcessor:
        """Replace the table stage.

        Without middlewares rows are no longer collected, which is what
        streaming outputs want.
        """
        self.table_middlewares = list(middlewares)
        self.collect_rows = bool(middlewares)
        return self

    async def add_row(self, row: Row) -> None:
        rows = [dict(row)]
        for middleware in self.row_middlewares:
            next_rows: list[Row] = []
            for r in rows:
                next_rows.extend(await middleware.process(r))
            rows = next_rows
        if self.collect_rows:
            for r in rows:
                self.table.add_row(r)

    async def finalize(self) -> Table:
        """Close the row middlewares and run the table middlewares once."""
        if self._finalized:
            return self.table
        self._finalized = True
        for middleware in self.row_middlewares:
            await middleware.close()
        for table_middleware in self.table_middlewares:
            self.table = table_middleware.process(self.table)
        return self.table

    async def output(self, stream: TextIO) -> Table:
        """Finalize and write the table with the configured formatter."""
        table = await self.finalize()
        if self.output_formatter is None:
            raise UnsupportedOutputFormat("no output formatter configured")
        self.output_formatter.output(table, stream)
        return table
