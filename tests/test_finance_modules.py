from __future__ import annotations

import pytest

from src.finance.base import (
    ASSOCIATED_PARTIES,
    CORPORATE_DEBT,
    DSCR,
    FINANCING_TERMS,
    LENDER_COMMITMENTS,
    LETTER_OF_CREDIT,
    NON_DESRI_OWNERSHIP,
    REFINANCING_SUMMARY,
    SWAPS,
    TAX_EQUITY,
)
from src.finance.columns import lc_columns, party_columns, refi_columns, swaps_columns
from src.finance.registry import (
    FINANCE_PAGE_CONFIG,
    finance_module,
    finance_table,
    generate_rows,
    resolve_structure,
)
from src.finance.swaps import AMORT_SCHEDULE, SWAPS_SUMMARY
from src.intelligence.formatting import NO_HISTORICAL_REFI
from src.intelligence.selection import (
    MODE_ALL,
    SelectionState,
    SetDatapointMode,
    StructureResolved,
    ToggleModule,
    ToggleProject,
    ToggleSubGroup,
    reduce_selection,
)
from src.models.project import Project
from src.models.structure import Datapoint
from tests.finance_payloads import (
    financing_terms_raw,
    lender_raw,
    letter_of_credit_raw,
    parties_raw,
    refinancing_raw,
    tax_equity_raw,
)

ALPHA = Project(id=1, name='Alpha Solar')
BRAVO = Project(id=2, name='Bravo Wind')


def _state(module: str, sample=None, sub_groups: tuple[str, ...] = (), mode_all: bool = False) -> SelectionState:
    state = SelectionState(config=FINANCE_PAGE_CONFIG)
    for action in (ToggleProject(ALPHA), ToggleModule(module), StructureResolved(module, resolve_structure(module, sample))):
        state = reduce_selection(state, action)
    structure = state.structures[module]
    for key in sub_groups:
        state = reduce_selection(state, ToggleSubGroup(module, structure.sub_group(key)))
    if mode_all:
        state = reduce_selection(state, SetDatapointMode(module, MODE_ALL))
    return state


def _table(module: str, raw, state: SelectionState | None = None):
    state = state or _state(module, raw)
    raw_data = {ALPHA.id: {module: raw}}
    rows = generate_rows([ALPHA], [module], state, raw_data)
    return rows, finance_table(module, rows, raw_data)


def test_lender_commitments_one_row_per_loan_type_and_lender() -> None:
    raw = {'data': {'Term Loan': {'BankA': {'Commitment ($)': 1000000}}}}
    rows, table = _table(LENDER_COMMITMENTS, raw)

    assert len(rows) == 1
    assert rows[0]['section'] == 'Term Loan'
    assert rows[0]['lender_name'] == 'BankA'
    assert rows[0]['commitment'] == 1000000
    assert table.header == [
        'S.No',
        'Project Name',
        'Loan Type',
        'Lender Name',
        'Commitment ($)',
        'Commitment Start Date',
        'Outstanding Amount ($)',
        'Proportional Share (%)',
    ]
    assert table.rows[0] == [1, 'Alpha Solar', 'Term Loan', 'BankA', '1,000,000', '-', '-', '-']
    assert table.widths == [8.0, 25.0, 25.0, 40.0, 18.0, 18.0, 18.0, 18.0]


def test_refinancing_missing_values_use_no_historical_refi() -> None:
    rows, table = _table(REFINANCING_SUMMARY, refinancing_raw())

    balance = next(row for row in rows if row['vital'] == 'term_loan_balance')
    assert balance['refi_values'][1] == NO_HISTORICAL_REFI
    assert table.header == ['S.No', 'Project Name', 'Vitals', 'Refi 1', 'Refi 2', 'Refi 3']
    assert table.rows[0] == [1, 'Alpha Solar', 'Refi Date', '2021-01-01', '2022-01-01', '2023-01-01']
    assert table.rows[1] == [2, 'Alpha Solar', 'Term Loan Balance', '100', NO_HISTORICAL_REFI, '300']


def test_financing_terms_rows_follow_selected_sections_and_datapoints() -> None:
    raw = financing_terms_raw()
    state = _state(FINANCING_TERMS, raw, sub_groups=('s1',), mode_all=True)
    rows, table = _table(FINANCING_TERMS, raw, state)

    assert [row['datapoint'] for row in rows] == ['Commitment ($)', 'Drawn Fee (%)']
    assert rows[0]['loan_type_ids'] == {'Term Loan': 11, 'Revolver': 12}
    assert table.header == ['S.No', 'Project Name', 'Section', 'Datapoint', 'Term Loan', 'Revolver']
    assert table.rows[0] == [1, 'Alpha Solar', 'Debt Terms', 'Commitment ($)', '1,000,000', '-']
    assert table.rows[1] == [2, 'Alpha Solar', 'Debt Terms', 'Drawn Fee (%)', '1.5%', '2%']
    assert table.field_keys[0][4:] == ['Commitment ($)_Term Loan', 'Commitment ($)_Revolver']


def test_generate_rows_is_deterministic_and_skips_missing_payloads() -> None:
    raw = lender_raw()
    state = _state(LENDER_COMMITMENTS, raw)
    state = reduce_selection(state, ToggleProject(BRAVO))
    raw_data = {ALPHA.id: {LENDER_COMMITMENTS: raw}, BRAVO.id: {LENDER_COMMITMENTS: None}}

    first = generate_rows(state.projects, state.modules, state, raw_data)
    second = generate_rows(state.projects, state.modules, state, raw_data)
    assert first == second
    assert [row['project_id'] for row in first] == [1]


def test_tax_equity_rows_per_vital_and_columns_per_type() -> None:
    rows, table = _table(TAX_EQUITY, tax_equity_raw())

    assert [row['vital'] for row in rows] == ['Investment Amount', 'Flip Date']
    assert table.header == ['S.No', 'Project Name', 'Vitals', 'TE Fund A', 'TE Fund B']
    assert table.rows[0] == [1, 'Alpha Solar', 'Investment Amount', '5,000,000', '2,500,000']
    assert table.rows[1] == [2, 'Alpha Solar', 'Flip Date', '2027-01-01', '-']
    assert table.field_keys[0][3] == 'Investment Amount_TE Fund A'


def test_associated_parties_party_slots_follow_longest_list() -> None:
    rows, table = _table(ASSOCIATED_PARTIES, parties_raw())

    assert party_columns([parties_raw()]) == [1, 2]
    assert table.header == ['S.No', 'Project Name', 'Financing Counterparties', 'Party 1', 'Party 2']
    assert table.rows[0] == [1, 'Alpha Solar', 'Administrative Agent', 'BankA', 'BankB']
    assert table.rows[1] == [2, 'Alpha Solar', 'Collateral Agent', 'BankC', '-']
    assert table.field_keys[1][4] == 'party_2'


def test_letter_of_credit_rows_per_instance() -> None:
    rows, table = _table(LETTER_OF_CREDIT, letter_of_credit_raw())

    assert [(row['lc_type'], row['record_id']) for row in rows] == [('Performance LC', 1), ('Performance LC', 2)]
    assert table.header == ['S.No', 'Project Name', 'LC Type', 'Amount ($)', 'Issuing Bank']
    assert table.rows[0] == [1, 'Alpha Solar', 'Performance LC', '250,000', 'BankA']
    assert table.rows[1] == [2, 'Alpha Solar', 'Performance LC', '100,000', '-']


def test_letter_of_credit_columns_skip_housekeeping_fields() -> None:
    raw = {
        'data': {
            'Performance LC': [
                {'id': 7, 'project_id': 1, 'Amount ($)': 5000, 'created_at': '2024-01-01', 'updated_at': '2024-02-01'}
            ]
        },
        'metadata': {'Performance LC': [{'Amount ($)': {'id': 501, 'lc_instance': 1}}]},
    }
    rows, table = _table(LETTER_OF_CREDIT, raw)

    assert lc_columns([raw]) == ['Amount ($)']
    assert rows[0]['values'] == {'Amount ($)': 5000}
    assert table.header == ['S.No', 'Project Name', 'LC Type', 'Amount ($)']
    assert table.rows[0] == [1, 'Alpha Solar', 'Performance LC', '5,000']


def test_swaps_summary_columns_are_discovered_without_housekeeping() -> None:
    raw = {
        SWAPS_SUMMARY: [
            {
                'id': 1,
                'project_id': 1,
                'created_at': '2024-01-01',
                'entity_name': 'HoldCo',
                'starting_notional_usd': 1000000,
                'trade_date': '2022-02-01T00:00:00.000Z',
            }
        ]
    }
    state = _state(SWAPS, None, sub_groups=(SWAPS_SUMMARY,))
    _rows, table = _table(SWAPS, raw, state)

    assert swaps_columns([raw]) == ['entity_name', 'starting_notional_usd', 'trade_date']
    assert table.header == ['S.No', 'Project Name', 'Vital', 'Entity Name', 'Starting Notional ($)', 'Trade Date']
    assert table.rows[0] == [1, 'Alpha Solar', 'Swaps Summary', 'HoldCo', '1,000,000', '2022-02-01']


def test_swaps_amort_schedule_rows() -> None:
    raw = {
        AMORT_SCHEDULE: [
            {'id': 7, 'startDate': '2024-01-01', 'beginningBalance': 1000, 'endingBalance': 900, 'notional': 800, 'hedgePercentage': 75}
        ]
    }
    state = _state(SWAPS, None, sub_groups=(AMORT_SCHEDULE,))
    _rows, table = _table(SWAPS, raw, state)

    assert table.header[2:] == [
        'Module',
        'Vital',
        'Start Date',
        'Beginning Balance ($)',
        'Ending Balance ($)',
        'Notional ($)',
        'Hedge (%)',
    ]
    assert table.rows[0] == [1, 'Alpha Solar', 'Swaps', 'Amort Schedule', '2024-01-01', '1,000', '900', '800', 75]


def test_dscr_corporate_debt_and_non_desri_rows() -> None:
    dscr_raw = [{'id': 1, 'parameter': 'Actual DSCR', 'parameter_id': 4, 'value': 1.35, 'asOfDate': '2024-06-30T00:00:00.000Z'}]
    _rows, dscr = _table(DSCR, dscr_raw)
    assert dscr.header == ['S.No', 'Project Name', 'Vitals', 'Value', 'As of Date']
    assert dscr.rows[0] == [1, 'Alpha Solar', 'Actual DSCR', 1.35, '2024-06-30']

    debt_raw = {'data': {'Facility Size ($)': 1000000}, 'metadata': {'Facility Size ($)': {'id': 3, 'parameter_id': 8}}}
    _rows, debt = _table(CORPORATE_DEBT, debt_raw)
    assert debt.rows[0] == [1, 'Alpha Solar', 'Facility Size ($)', '1,000,000']

    ownership_raw = [{'id': 5, 'parameter_id': 9, 'name': 'Sale to Allianz', 'commitment': 2500000, 'ownership': 49}]
    _rows, ownership = _table(NON_DESRI_OWNERSHIP, ownership_raw)
    assert ownership.rows[0] == [1, 'Alpha Solar', 'Allianz', '2,500,000', 49]


def test_structure_resolution_never_raises() -> None:
    assert resolve_structure(FINANCING_TERMS, {'sections': [{'parameters': []}]}).is_empty
    assert resolve_structure(LENDER_COMMITMENTS, ['unexpected']).is_empty
    dscr = resolve_structure(DSCR, [{'parameter': 'Actual DSCR'}, {'parameter': 'Actual DSCR'}, {'parameter': 'Forecast DSCR'}])
    assert [dp.key for dp in dscr.all_datapoints] == ['Actual DSCR', 'Forecast DSCR']


def test_amort_schedule_preview_truncates_long_lists() -> None:
    records = [{'notional': n} for n in (1, 2, 3, 4, 5)]
    preview = finance_module(AMORT_SCHEDULE)
    assert preview.lookup(records, Datapoint(key='notional', label='Notional ($)')) == '1, 2, 3... (5 records)'
    assert preview.lookup({'data': records[:2]}, Datapoint(key='notional', label='Notional ($)')) == '1, 2'


def test_refi_columns_follow_longest_history() -> None:
    assert refi_columns([refinancing_raw(), refinancing_raw()[:1], None]) == [1, 2, 3]


def test_unknown_finance_module_raises() -> None:
    with pytest.raises(ValueError):
        finance_module('Unknown Module')
