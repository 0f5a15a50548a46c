"""Excel export of the intelligence tables."""

from __future__ import annotations

from datetime import date
from io import BytesIO
import re
from typing import Any, Iterable, Mapping

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from src.finance.registry import finance_table
from src.intelligence.table_model import Row, TableModel
from src.models.project import Project
from src.technical.table import ModuleView, technical_table
from src.utils.date_utils import today_iso

MAX_SHEET_NAME = 31
HEADER_FILL_COLOR = 'E5E7EB'
_INVALID_SHEET_CHARS = re.compile(r'[\[\]:*?/\\]')


def default_export_filename(page: str, today: date | None = None) -> str:
    """Return the dated export filename for a page, e.g. Finance_Intelligence_2024-05-01.xlsx."""
    safe_page = re.sub(r'[^A-Za-z0-9_-]+', '_', str(page or 'Intelligence')).strip('_') or 'Intelligence'
    return f'{safe_page}_{today_iso(today)}.xlsx'


def sheet_names(titles: Iterable[str]) -> list[str]:
    """Excel-safe sheet names: invalid characters replaced, 31 characters, unique."""
    names: list[str] = []
    used: set[str] = set()
    for title in titles:
        base = _INVALID_SHEET_CHARS.sub('-', str(title or 'Sheet')).strip("'")[:MAX_SHEET_NAME] or 'Sheet'
        name = base
        counter = 2
        while name.lower() in used:
            suffix = f' ({counter})'
            name = f'{base[:MAX_SHEET_NAME - len(suffix)]}{suffix}'
            counter += 1
        used.add(name.lower())
        names.append(name)
    return names


def build_finance_sheets(
    modules: Iterable[str],
    rows: list[Row],
    raw_data: Mapping[Any, Mapping[str, Any]],
) -> list[TableModel]:
    """One table per module, identical to what the Finance page renders."""
    return [finance_table(module, rows, raw_data) for module in modules]


def build_technical_sheets(
    views: Iterable[ModuleView],
    projects: list[Project],
    projects_data: Mapping[Any, Any],
) -> list[TableModel]:
    """One table per parent module, identical to what the Technical page renders."""
    return [technical_table(view, projects, projects_data) for view in views]


def _format_worksheet(ws, table: TableModel, *, header_row: int, header_fill: PatternFill | None) -> None:
    left = Alignment(horizontal='left', vertical='center')
    for row in ws.iter_rows(min_row=1, max_row=ws.max_row, max_col=len(table.header)):
        for cell in row:
            cell.alignment = left

    for col_idx in range(1, len(table.header) + 1):
        cell = ws.cell(row=header_row, column=col_idx)
        cell.font = Font(bold=True)
        if header_fill is not None:
            cell.fill = header_fill

    if table.groups:
        for group in table.groups:
            first = group.start + 1
            cell = ws.cell(row=1, column=first, value=group.label)
            cell.font = Font(bold=True)
            cell.alignment = Alignment(horizontal='center', vertical='center')
            if group.span > 1:
                ws.merge_cells(start_row=1, start_column=first, end_row=1, end_column=first + group.span - 1)

    for col_idx, width in enumerate(table.widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def build_export_workbook_bytes(
    tables: list[TableModel],
    *,
    workbook_title: str,
    header_fill: bool = True,
) -> bytes:
    """Serialize tables into a workbook, one sheet per table."""
    if not tables:
        raise ValueError('No tables to export.')
    output = BytesIO()
    fill = PatternFill(start_color=HEADER_FILL_COLOR, end_color=HEADER_FILL_COLOR, fill_type='solid') if header_fill else None
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        names = sheet_names(table.title for table in tables)
        for name, table in zip(names, tables):
            header_row = 2 if table.groups else 1
            frame = pd.DataFrame([table.header] + [list(row) for row in table.rows])
            frame.to_excel(writer, sheet_name=name, index=False, header=False, startrow=header_row - 1)

        wb = writer.book
        wb.properties.title = str(workbook_title)
        for name, table in zip(names, tables):
            _format_worksheet(writer.sheets[name], table, header_row=2 if table.groups else 1, header_fill=fill)

    output.seek(0)
    return output.getvalue()
