from __future__ import annotations

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
from src.finance.registry import FINANCE_PAGE_CONFIG, finance_module, generate_rows, resolve_structure
from src.finance.swaps import AMORT_SCHEDULE, DEBT_VS_SWAPS, SWAPS_SUMMARY
from src.intelligence.changes import ChangeKey, ChangeTracker
from src.intelligence.save import finance_save_batch
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
from src.models.save import TARGET_FINANCE
from tests.finance_payloads import (
    financing_terms_raw,
    lender_raw,
    letter_of_credit_raw,
    parties_raw,
    refinancing_raw,
    tax_equity_raw,
)

ALPHA = Project(id=1, name='Alpha Solar')


def _state(module: str, sample=None, sub_groups: tuple[str, ...] = ()) -> SelectionState:
    state = SelectionState(config=FINANCE_PAGE_CONFIG)
    for action in (ToggleProject(ALPHA), ToggleModule(module), StructureResolved(module, resolve_structure(module, sample))):
        state = reduce_selection(state, action)
    structure = state.structures[module]
    for key in sub_groups:
        state = reduce_selection(state, ToggleSubGroup(module, structure.sub_group(key)))
    if sub_groups and module not in FINANCE_PAGE_CONFIG.single_select_sub_groups:
        state = reduce_selection(state, SetDatapointMode(module, MODE_ALL))
    return state


def _rows(module: str, raw, state: SelectionState | None = None) -> list[dict]:
    state = state or _state(module, raw)
    return generate_rows([ALPHA], [module], state, {ALPHA.id: {module: raw}})


def _save(module: str, row: dict, changes: dict, raw):
    return finance_module(module).build_save_request(row, changes, raw)


def test_financing_terms_updates_by_loan_type_id() -> None:
    raw = financing_terms_raw()
    rows = _rows(FINANCING_TERMS, raw, _state(FINANCING_TERMS, raw, ('s1',)))
    request = _save(
        FINANCING_TERMS,
        rows[0],
        {'Commitment ($)_Term Loan': 2000000, 'Commitment ($)_Revolver': ''},
        raw,
    )
    assert request.target == TARGET_FINANCE
    assert request.name == 'financing-terms'
    assert request.project_id == 1
    assert request.payload == {'updates': [{'id': 11, 'value': 2000000}, {'id': 12, 'value': None}]}


def test_financing_terms_ignores_keys_for_other_datapoints() -> None:
    raw = financing_terms_raw()
    rows = _rows(FINANCING_TERMS, raw, _state(FINANCING_TERMS, raw, ('s1',)))
    assert _save(FINANCING_TERMS, rows[0], {'Drawn Fee (%)_Term Loan': '2%'}, raw) is None


def test_lender_value_edit_updates_existing_parameter() -> None:
    raw = lender_raw()
    row = _rows(LENDER_COMMITMENTS, raw)[0]
    request = _save(LENDER_COMMITMENTS, row, {'Commitment ($)': 1500000}, raw)
    assert request.name == 'lender-commitments'
    assert request.payload == {'updates': [{'id': 101, 'value': 1500000}], 'creates': []}


def test_lender_edit_without_metadata_creates_parameter() -> None:
    raw = lender_raw()
    row = _rows(LENDER_COMMITMENTS, raw)[0]
    request = _save(LENDER_COMMITMENTS, row, {'Proportional Share (%)': 50}, raw)
    assert request.payload == {
        'updates': [],
        'creates': [
            {
                'loan_type_name': 'Term Loan',
                'lender_name': 'BankA',
                'parameter_name': 'Proportional Share (%)',
                'value': 50,
            }
        ],
    }


def test_lender_rename_carries_stored_values() -> None:
    raw = lender_raw()
    row = _rows(LENDER_COMMITMENTS, raw)[0]
    request = _save(LENDER_COMMITMENTS, row, {"Lender's Name": 'BankZ'}, raw)
    assert request.payload['updates'] == [
        {'id': 101, 'value': 1000000, 'lender_name': 'BankZ'},
        {'id': 102, 'value': 400000, 'lender_name': 'BankZ'},
    ]
    assert request.payload['creates'] == []


def test_lender_without_metadata_is_skipped() -> None:
    raw = {'data': lender_raw()['data']}
    row = _rows(LENDER_COMMITMENTS, raw)[0]
    assert _save(LENDER_COMMITMENTS, row, {'Commitment ($)': 1}, raw) is None


def test_refinancing_update_sends_full_record() -> None:
    raw = refinancing_raw()
    row = next(r for r in _rows(REFINANCING_SUMMARY, raw) if r['vital'] == 'term_loan_balance')
    request = _save(REFINANCING_SUMMARY, row, {'term_loan_balance_refi_1': 250}, raw)
    assert request.name == 'refinancing'
    assert request.payload == {
        'updates': [{'refi_date': '2022-01-01', 'id': 2, 'term_loan_balance': 250}],
        'deletedIds': [],
    }
    assert _save(REFINANCING_SUMMARY, row, {'term_loan_balance_refi_5': 1}, raw) is None


def test_letter_of_credit_updates_and_creates_as_text() -> None:
    raw = letter_of_credit_raw()
    first, second = _rows(LETTER_OF_CREDIT, raw)

    update = _save(LETTER_OF_CREDIT, first, {'Amount ($)': 300000}, raw)
    assert update.name == 'letter-credit'
    assert update.payload == {'updates': [{'id': 501, 'value': '300000'}], 'creates': []}

    create = _save(LETTER_OF_CREDIT, second, {'Issuing Bank': 'BankB'}, raw)
    assert create.payload == {
        'updates': [],
        'creates': [{'lc_type_name': 'Performance LC', 'parameter_name': 'Issuing Bank', 'lc_instance': 2, 'value': 'BankB'}],
    }


def test_associated_parties_update_and_create_from_sibling() -> None:
    raw = parties_raw()
    admin, collateral = _rows(ASSOCIATED_PARTIES, raw)

    update = _save(ASSOCIATED_PARTIES, admin, {'party_2': 'BankQ'}, raw)
    assert update.name == 'parties'
    assert update.payload == {
        'updates': [{'id': 2, 'counterparty_type_id': 10, 'parameter_id': 20, 'party_instance': 2, 'value': 'BankQ'}]
    }

    create = _save(ASSOCIATED_PARTIES, collateral, {'party_2': 'BankD'}, raw)
    assert create.payload == {
        'updates': [],
        'creates': [{'counterparty_type_id': 10, 'parameter_id': 21, 'party_instance': 2, 'value': 'BankD'}],
    }


def test_tax_equity_updates_only_known_types() -> None:
    raw = tax_equity_raw()
    row = _rows(TAX_EQUITY, raw)[0]
    request = _save(TAX_EQUITY, row, {'Investment Amount_TE Fund A': 6000000}, raw)
    assert request.name == 'tax-equity'
    assert request.payload == {
        'updates': [{'id': 91, 'tax_equity_type_id': 7, 'parameter_id': 3, 'value': 6000000}]
    }
    assert _save(TAX_EQUITY, row, {'Investment Amount_TE Fund B': 1}, raw) is None


def test_null_metadata_entries_skip_the_save() -> None:
    lenders = {'data': lender_raw()['data'], 'metadata': {'Term Loan': None}}
    row = _rows(LENDER_COMMITMENTS, lenders)[0]
    assert _save(LENDER_COMMITMENTS, row, {'Commitment ($)': 2}, lenders) is None

    stored_null = {'data': {'Term Loan': None}, 'metadata': lender_raw()['metadata']}
    request = _save(LENDER_COMMITMENTS, row, {"Lender's Name": 'BankZ'}, stored_null)
    assert request.payload['updates'] == [
        {'id': 101, 'value': None, 'lender_name': 'BankZ'},
        {'id': 102, 'value': None, 'lender_name': 'BankZ'},
    ]

    equity = {'data': tax_equity_raw()['data'], 'metadata': {'TE Fund A': None}}
    te_row = _rows(TAX_EQUITY, equity)[0]
    assert _save(TAX_EQUITY, te_row, {'Investment Amount_TE Fund A': 1}, equity) is None


def test_letter_of_credit_ignores_housekeeping_edits() -> None:
    raw = letter_of_credit_raw()
    first = _rows(LETTER_OF_CREDIT, raw)[0]
    assert _save(LETTER_OF_CREDIT, first, {'id': 9, 'created_at': '2024-01-01'}, raw) is None


def test_dscr_value_and_as_of_date() -> None:
    raw = [{'id': 1, 'parameter': 'Actual DSCR', 'parameter_id': 4, 'value': 1.35, 'asOfDate': '2024-06-30T00:00:00.000Z'}]
    row = _rows(DSCR, raw)[0]
    request = _save(DSCR, row, {'Actual DSCR': 1.4, 'Actual DSCR_asOfDate': '2024-09-30T00:00:00.000Z'}, raw)
    assert request.payload == {
        'updates': [{'id': 1, 'parameter_id': 4, 'value': 1.4, 'as_of_date': '2024-09-30T00:00:00.000Z'}]
    }


def test_corporate_debt_requires_parameter_id() -> None:
    raw = {'data': {'Facility Size ($)': 1000000}, 'metadata': {'Facility Size ($)': {'id': 3, 'parameter_id': 8}}}
    row = _rows(CORPORATE_DEBT, raw)[0]
    request = _save(CORPORATE_DEBT, row, {'Facility Size ($)': 2000000}, raw)
    assert request.payload == {'updates': [{'id': 3, 'parameter_id': 8, 'value': 2000000}]}

    bare = {'data': {'Facility Size ($)': 1000000}, 'metadata': {'Facility Size ($)': {'id': 3}}}
    assert _save(CORPORATE_DEBT, _rows(CORPORATE_DEBT, bare)[0], {'Facility Size ($)': 1}, bare) is None


def test_non_desri_ownership_sends_both_fields() -> None:
    raw = [{'id': 5, 'parameter_id': 9, 'name': 'Sale to Allianz', 'commitment': 2500000, 'ownership': 49}]
    row = _rows(NON_DESRI_OWNERSHIP, raw)[0]
    request = _save(NON_DESRI_OWNERSHIP, row, {'commitment': 3000000}, raw)
    assert request.name == 'asset-co'
    assert request.payload == {
        'updates': [{'id': 5, 'parameter_id': 9, 'commitment_usd': 3000000, 'non_desri_ownership_percent': 49}]
    }


def test_swaps_requests_route_to_vital_endpoints() -> None:
    summary_raw = {SWAPS_SUMMARY: [{'id': 1, 'entity_name': 'HoldCo'}]}
    row = _rows(SWAPS, summary_raw, _state(SWAPS, None, (SWAPS_SUMMARY,)))[0]
    request = _save(SWAPS, row, {'entity_name': 'OpCo'}, summary_raw)
    assert request.name == 'swaps-summary'
    assert request.payload == {'updates': [{'id': 1, 'entity_name': 'OpCo'}], 'deletedIds': []}

    amort_raw = {AMORT_SCHEDULE: [{'id': 7, 'notional': 800}]}
    row = _rows(SWAPS, amort_raw, _state(SWAPS, None, (AMORT_SCHEDULE,)))[0]
    request = _save(SWAPS, row, {'notional': 850}, amort_raw)
    assert request.name == 'amort-schedule'
    assert request.payload == {'updates': [{'id': 7, 'notional': 850}]}

    debt_raw = {
        DEBT_VS_SWAPS: {'data': {'Debt Balance ($)': 100}, 'metadata': {'Debt Balance ($)': {'id': 44, 'parameter_id': 55}}}
    }
    row = _rows(SWAPS, debt_raw, _state(SWAPS, None, (DEBT_VS_SWAPS,)))[0]
    request = _save(SWAPS, row, {'value': 120}, debt_raw)
    assert request.name == 'debt-vs-swaps'
    assert request.payload == {'updates': [{'id': 44, 'parameter_id': 55, 'value': 120}]}


def test_read_only_preview_module_builds_no_request() -> None:
    row = {'project_id': 1, 'project_name': 'Alpha Solar', 'module': AMORT_SCHEDULE}
    assert finance_module(AMORT_SCHEDULE).build_save_request(row, {'value': 1}, []) is None


def test_finance_save_batch_rebuilds_rows_and_skips_missing() -> None:
    raw = lender_raw()
    state = _state(LENDER_COMMITMENTS, raw)
    raw_data = {ALPHA.id: {LENDER_COMMITMENTS: raw}}
    tracker = ChangeTracker()
    tracker.record(ChangeKey(1, 0, LENDER_COMMITMENTS, 'Commitment ($)'), 1500000, 1000000)
    tracker.record(ChangeKey(1, 4, LENDER_COMMITMENTS, 'Commitment ($)'), 1, 0)
    tracker.record(ChangeKey(2, 0, LENDER_COMMITMENTS, 'Commitment ($)'), 1, 0)

    batch = finance_save_batch(tracker, state, raw_data)
    assert batch.skipped == 2
    assert len(batch.requests) == 1
    assert batch.requests[0].row_index == 0
    assert batch.requests[0].payload == {'updates': [{'id': 101, 'value': 1500000}], 'creates': []}


def test_finance_save_batch_skips_groups_with_null_metadata() -> None:
    raw = {'data': lender_raw()['data'], 'metadata': {'Term Loan': None}}
    state = _state(LENDER_COMMITMENTS, raw)
    tracker = ChangeTracker()
    tracker.record(ChangeKey(1, 0, LENDER_COMMITMENTS, 'Commitment ($)'), 2, 1000000)

    batch = finance_save_batch(tracker, state, {ALPHA.id: {LENDER_COMMITMENTS: raw}})
    assert batch.requests == []
    assert batch.skipped == 1
