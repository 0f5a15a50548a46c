from __future__ import annotations

from src.data.store import FetchLedger
from src.intelligence.changes import ChangeKey, ChangeTracker

KEY = ChangeKey(project_id=1, row_index=0, module='DSCR', field_key='Actual DSCR')


def test_tracker_keeps_first_original_value() -> None:
    tracker = ChangeTracker()
    tracker.record(KEY, 1.4, 1.35)
    tracker.record(KEY, 1.5, 1.4)

    assert tracker.value_for(KEY) == 1.5
    assert tracker.is_changed(KEY)
    assert len(tracker) == 1


def test_tracker_forgets_edit_back_to_original() -> None:
    tracker = ChangeTracker()
    tracker.record(KEY, 1.4, 1.35)
    tracker.record(KEY, 1.35, 1.4)

    assert not tracker
    assert tracker.value_for(KEY, 'unchanged') == 'unchanged'


def test_tracker_groups_by_project_module_and_row_in_edit_order() -> None:
    tracker = ChangeTracker()
    tracker.record(ChangeKey(2, 1, 'Tax Equity', 'Flip Date_TE Fund A'), '2028-01-01', '2027-01-01')
    tracker.record(KEY, 1.4, 1.35)
    tracker.record(ChangeKey(2, 1, 'Tax Equity', 'Flip Date_TE Fund B'), '2029-01-01', '-')

    assert tracker.grouped() == {
        (2, 'Tax Equity', 1): {'Flip Date_TE Fund A': '2028-01-01', 'Flip Date_TE Fund B': '2029-01-01'},
        (1, 'DSCR', 0): {'Actual DSCR': 1.4},
    }

    tracker.discard(KEY)
    assert list(tracker.grouped()) == [(2, 'Tax Equity', 1)]
    tracker.clear()
    assert tracker.keys() == []


def test_ledger_commits_latest_fetch_and_drops_stale_ones() -> None:
    ledger = FetchLedger()
    old = ledger.begin(((1,), ('DSCR',)))
    new = ledger.begin(((1, 2), ('DSCR',)))

    assert not ledger.commit(old, {1: {'DSCR': ['stale']}})
    assert ledger.data == {}
    assert ledger.needs_fetch(new)

    assert ledger.commit(new, {1: {'DSCR': ['fresh']}, 2: {'DSCR': []}})
    assert ledger.data[1]['DSCR'] == ['fresh']
    assert not ledger.needs_fetch(new)


def test_ledger_prunes_deselected_projects_and_modules() -> None:
    ledger = FetchLedger()
    signature = ledger.begin(('sig',))
    ledger.commit(signature, {1: {'DSCR': [], 'Tax Equity': {}}, 2: {'DSCR': []}})

    ledger.prune_to_selection([1], ['Tax Equity'])
    assert ledger.data == {1: {'Tax Equity': {}}}

    ledger.prune_to_selection([1], [])
    assert ledger.data == {}

    ledger.clear()
    assert ledger.committed is None
    assert ledger.latest is None
