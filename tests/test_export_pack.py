from __future__ import annotations

from datetime import date
from io import BytesIO

from openpyxl import load_workbook
import pandas as pd
import pytest

from src.dashboard.reporting.export_pack import (
    build_export_workbook_bytes,
    build_finance_sheets,
    build_technical_sheets,
    default_export_filename,
    sheet_names,
)
from src.finance.base import LENDER_COMMITMENTS
from src.finance.registry import FINANCE_PAGE_CONFIG, finance_table, generate_rows, resolve_structure
from src.intelligence.selection import (
    SelectionState,
    StructureResolved,
    ToggleAllSubGroups,
    ToggleModule,
    ToggleProject,
    reduce_selection,
)
from src.models.project import Project
from src.models.structure import FieldMeta
from src.technical.catalog import MILESTONE, TECHNICAL_PAGE_CONFIG, resolve_technical_structure
from src.technical.table import organize_datapoints, technical_table
from tests.finance_payloads import lender_raw

ALPHA = Project(id=1, name='Alpha Solar')


def _finance_fixture():
    raw = lender_raw()
    state = SelectionState(config=FINANCE_PAGE_CONFIG)
    for action in (
        ToggleProject(ALPHA),
        ToggleModule(LENDER_COMMITMENTS),
        StructureResolved(LENDER_COMMITMENTS, resolve_structure(LENDER_COMMITMENTS, raw)),
    ):
        state = reduce_selection(state, action)
    raw_data = {ALPHA.id: {LENDER_COMMITMENTS: raw}}
    rows = generate_rows(state.projects, state.modules, state, raw_data)
    return state, rows, raw_data


def _technical_fixture():
    fields = {
        'Offtake Milestones': [FieldMeta('ppa_execution_date', 'PPA Execution', 'date', 'offtake_milestones')],
        'Finance Milestones': [
            FieldMeta('financial_close_date', 'Financial Close', 'date', 'finance_milestones'),
            FieldMeta('notes', 'Notes', 'text', 'finance_milestones'),
        ],
    }
    state = SelectionState(config=TECHNICAL_PAGE_CONFIG)
    for action in (
        ToggleProject(ALPHA),
        ToggleModule(MILESTONE),
        StructureResolved(MILESTONE, resolve_technical_structure(MILESTONE, fields)),
        ToggleAllSubGroups(MILESTONE),
    ):
        state = reduce_selection(state, action)
    projects_data = {
        1: {
            'milestones': {
                'offtake': [{'id': 1, 'ppa_execution_date': '2024-01-01'}],
                'finance': {'id': 2, 'financial_close_date': '2023-05-05', 'notes': 'closed'},
            }
        }
    }
    return organize_datapoints(state), projects_data


def test_default_export_filename() -> None:
    assert default_export_filename('Finance Intelligence', date(2024, 5, 1)) == 'Finance_Intelligence_2024-05-01.xlsx'
    assert default_export_filename('', date(2024, 5, 1)) == 'Intelligence_2024-05-01.xlsx'


def test_sheet_names_are_excel_safe_and_unique() -> None:
    long_title = 'x' * 40
    assert sheet_names(['A/B', long_title, long_title, 'Sheet[1]']) == [
        'A-B',
        'x' * 31,
        'x' * 27 + ' (2)',
        'Sheet-1-',
    ]


def test_finance_workbook_matches_screen_table() -> None:
    _state, rows, raw_data = _finance_fixture()
    tables = build_finance_sheets([LENDER_COMMITMENTS], rows, raw_data)
    screen = finance_table(LENDER_COMMITMENTS, rows, raw_data)

    data = build_export_workbook_bytes(tables, workbook_title='Finance Intelligence')
    assert isinstance(data, bytes)
    assert pd.ExcelFile(BytesIO(data)).sheet_names == ['Lender Commitments-Outstanding']

    wb = load_workbook(BytesIO(data))
    ws = wb['Lender Commitments-Outstanding']
    assert wb.properties.title == 'Finance Intelligence'
    assert [c.value for c in ws[1]] == screen.header
    assert [c.value for c in ws[2]] == screen.rows[0]
    assert ws['A1'].font.bold
    assert ws['A1'].fill.start_color.rgb.endswith('E5E7EB')
    assert ws.column_dimensions['A'].width == 8
    assert ws.column_dimensions['D'].width == 40
    assert ws.column_dimensions['E'].width == 18


def test_technical_workbook_has_merged_group_row_and_no_fill() -> None:
    views, projects_data = _technical_fixture()
    tables = build_technical_sheets(views, [ALPHA], projects_data)
    screen = technical_table(views[0], [ALPHA], projects_data)

    data = build_export_workbook_bytes(tables, workbook_title='Technical Intelligence', header_fill=False)
    ws = load_workbook(BytesIO(data))[MILESTONE]

    assert ws['C1'].value == 'Offtake Milestones'
    assert ws['D1'].value == 'Finance Milestones'
    assert [str(r) for r in ws.merged_cells.ranges] == ['D1:E1']
    assert [c.value for c in ws[2]] == screen.header
    assert [c.value for c in ws[3]] == [1, 'Alpha Solar', '2024-01-01', '2023-05-05', 'closed']
    assert ws['A2'].font.bold
    assert ws['A2'].fill.fill_type is None
    assert ws.column_dimensions['C'].width == 20


def test_export_without_tables_raises() -> None:
    with pytest.raises(ValueError):
        build_export_workbook_bytes([], workbook_title='Finance Intelligence')
