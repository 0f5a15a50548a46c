"""Refinancing Summary: one row per refinancing vital, one column per historical refi."""

from __future__ import annotations

import re
from typing import Any

from src.finance.base import (
    HOUSEKEEPING_FIELDS,
    REFINANCING_SUMMARY,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
)
from src.finance.columns import refi_columns
from src.intelligence.formatting import NO_HISTORICAL_REFI
from src.intelligence.selection import SelectionState
from src.intelligence.table_model import Row, TableColumn, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, build_structure

REFINANCING_DATAPOINTS = (
    ('refi_date', 'Refi Date'),
    ('term_loan_balance', 'Term Loan Balance'),
    ('revolver_balance', 'Revolver Balance'),
    ('lc_balance', 'LC Balance'),
)
_REFI_KEY_RE = re.compile(r'^(?P<vital>.+)_refi_(?P<index>\d+)$')


def vital_label(key: str) -> str:
    return ' '.join(part[:1].upper() + part[1:] for part in key.split('_'))


def refi_field_key(vital: str, index: int) -> str:
    return f'{vital}_refi_{index}'


def _records(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    return [record for record in raw if isinstance(record, dict)]


class RefinancingSummary(FinanceModule):
    name = REFINANCING_SUMMARY
    api_name = 'refinancing'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        return build_structure(flat=[Datapoint(key=key, label=label) for key, label in REFINANCING_DATAPOINTS])

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        records = _records(raw)
        if not records:
            return []
        vitals = [key for key in records[0] if key not in HOUSEKEEPING_FIELDS]
        return [
            base_row(
                project,
                self.name,
                vital=vital,
                vital_label=vital_label(vital),
                refi_values=[or_placeholder(record.get(vital), NO_HISTORICAL_REFI) for record in records],
                refi_ids=[record.get('id') for record in records],
            )
            for vital in vitals
        ]

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return refi_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [TableColumn(header='Vitals', value=row_value('vital_label'))]
        for slot in columns:
            out.append(
                TableColumn(
                    header=f'Refi {slot}',
                    value=nested_value('refi_values', slot - 1),
                    format_name=row_value('vital'),
                    field_key=lambda row, i=slot - 1: refi_field_key(row.get('vital', ''), i),
                    placeholder=NO_HISTORICAL_REFI,
                )
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        records = _records(raw)
        updates: dict[int, dict[str, Any]] = {}
        for field_key, value in changes.items():
            match = _REFI_KEY_RE.match(field_key)
            if not match:
                LOGGER.warning('Unexpected Refinancing Summary field %r.', field_key)
                continue
            index = int(match.group('index'))
            if index >= len(records) or not records[index].get('id'):
                LOGGER.warning('No refinancing record at position %s; skipping %s.', index, field_key)
                continue
            record = records[index]
            if index not in updates:
                updates[index] = {k: v for k, v in record.items() if k not in HOUSEKEEPING_FIELDS}
                updates[index]['id'] = record['id']
            updates[index][match.group('vital')] = blank_to_none(value)
        if not updates:
            return None
        return self.request(row, {'updates': [updates[i] for i in sorted(updates)], 'deletedIds': []})
