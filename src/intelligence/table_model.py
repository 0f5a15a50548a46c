"""Render-ready table model shared by the on-screen grid and the workbook export."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pandas as pd

from src.intelligence.formatting import PLACEHOLDER, format_value

Row = dict[str, Any]

SERIAL_HEADER = 'S.No'
PROJECT_HEADER = 'Project Name'


@dataclass(frozen=True)
class TableColumn:
    """One rendered column.

    ``value`` pulls the raw cell out of a row, ``format_name`` names the field
    for value formatting (None leaves the cell unformatted) and ``field_key``
    gives the edit key for the cell (None makes it read-only).
    """

    header: str
    value: Callable[[Row], Any]
    format_name: Callable[[Row], str | None] | None = None
    field_key: Callable[[Row], str | None] | None = None
    width: float = 18.0
    placeholder: Any = PLACEHOLDER
    data_type: str | None = None


@dataclass(frozen=True)
class HeaderGroup:
    """A merged header spanning ``span`` columns starting at ``start`` (0-based)."""

    label: str
    start: int
    span: int


@dataclass
class TableModel:
    title: str
    header: list[str]
    rows: list[list[Any]]
    field_keys: list[list[str | None]]
    widths: list[float]
    groups: list[HeaderGroup] = field(default_factory=list)
    source_rows: list[Row] = field(default_factory=list)
    data_types: list[str | None] = field(default_factory=list)
    # (row, column) cells the screen marks, e.g. milestone dates that are actuals
    highlighted: set[tuple[int, int]] = field(default_factory=set)

    def data_type(self, column: int) -> str | None:
        return self.data_types[column] if column < len(self.data_types) else None

    def to_frame(self) -> pd.DataFrame:
        """DataFrame view with de-duplicated column labels for the grid widgets."""
        seen: dict[str, int] = {}
        columns: list[str] = []
        for label in self.header:
            count = seen.get(label, 0)
            seen[label] = count + 1
            columns.append(label if count == 0 else f'{label} ({count + 1})')
        return pd.DataFrame(self.rows, columns=columns)


def const(value: Any) -> Callable[[Row], Any]:
    return lambda _row: value


def row_value(key: str) -> Callable[[Row], Any]:
    return lambda row: row.get(key)


def nested_value(key: str, inner: Any) -> Callable[[Row], Any]:
    def _get(row: Row) -> Any:
        container = row.get(key)
        if isinstance(container, dict):
            return container.get(inner)
        if isinstance(container, (list, tuple)) and isinstance(inner, int):
            return container[inner] if inner < len(container) else None
        return None

    return _get


def render_cell(column: TableColumn, row: Row) -> Any:
    """Raw value with placeholder substitution, then the shared value formatter."""
    raw = column.value(row)
    if raw is None or raw == '':
        raw = column.placeholder
    if column.format_name is None:
        return raw
    return format_value(raw, column.format_name(row))


def serial_columns() -> list[TableColumn]:
    return [
        TableColumn(header=SERIAL_HEADER, value=row_value('_serial'), width=8.0),
        TableColumn(header=PROJECT_HEADER, value=row_value('project_name'), width=25.0),
    ]


def build_table(title: str, rows: list[Row], columns: list[TableColumn]) -> TableModel:
    """Apply columns to rows; serial numbers restart at 1 for every table."""
    rendered: list[list[Any]] = []
    keys: list[list[str | None]] = []
    for idx, row in enumerate(rows):
        numbered = {**row, '_serial': idx + 1}
        rendered.append([render_cell(col, numbered) for col in columns])
        keys.append([col.field_key(numbered) if col.field_key else None for col in columns])
    return TableModel(
        title=title,
        header=[col.header for col in columns],
        rows=rendered,
        field_keys=keys,
        widths=[col.width for col in columns],
        source_rows=list(rows),
        data_types=[col.data_type for col in columns],
    )
