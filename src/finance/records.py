"""Record-per-row modules: DSCR, Corporate Debt and Non DESRI Ownership."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    CORPORATE_DEBT,
    DSCR,
    NON_DESRI_OWNERSHIP,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
    payload_data,
    payload_metadata,
)
from src.finance.columns import ordered_union
from src.intelligence.selection import SelectionState
from src.intelligence.table_model import Row, TableColumn, const, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, build_structure
from src.utils.date_utils import to_iso_date

NON_DESRI_DATAPOINTS = (
    ('name', 'Name'),
    ('commitment', 'Commitment ($)'),
    ('ownership', 'Non-DESRI Ownership (%)'),
)
DISPLAY_NAME_OVERRIDES = {'Sale to Allianz': 'Allianz'}


def as_of_field_key(vital: str) -> str:
    return f'{vital}_asOfDate'


def _records(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    return [record for record in raw if isinstance(record, dict)]


class Dscr(FinanceModule):
    name = DSCR
    api_name = 'dscr'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        names = ordered_union(r.get('parameter') for r in _records(sample) if r.get('parameter'))
        return build_structure(flat=[Datapoint(key=n, label=n) for n in names])

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        return [
            base_row(
                project,
                self.name,
                vital=record.get('parameter'),
                value=or_placeholder(record.get('value')),
                as_of_date=or_placeholder(to_iso_date(record.get('asOfDate'))),
                record_id=record.get('id'),
                parameter_id=record.get('parameter_id'),
            )
            for record in _records(raw)
        ]

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return [
            TableColumn(header='Vitals', value=row_value('vital')),
            TableColumn(
                header='Value',
                value=row_value('value'),
                format_name=row_value('vital'),
                field_key=row_value('vital'),
            ),
            TableColumn(
                header='As of Date',
                value=row_value('as_of_date'),
                format_name=const('As of Date'),
                field_key=lambda row: as_of_field_key(row.get('vital', '')),
            ),
        ]

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        if not row.get('record_id'):
            LOGGER.warning('DSCR row %r has no record id; skipping save.', row.get('vital'))
            return None
        vital = row.get('vital')
        update: dict[str, Any] = {'id': row['record_id'], 'parameter_id': row.get('parameter_id')}
        if vital in changes:
            update['value'] = blank_to_none(changes[vital])
        if as_of_field_key(vital) in changes:
            update['as_of_date'] = blank_to_none(changes[as_of_field_key(vital)])
        if len(update) == 2:
            return None
        return self.request(row, {'updates': [update]})


class CorporateDebt(FinanceModule):
    name = CORPORATE_DEBT
    api_name = 'corporate-debt'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        data = payload_data(sample)
        if data is None:
            return ModuleStructure.empty()
        return build_structure(flat=[Datapoint(key=key, label=key) for key in data])

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        data = payload_data(raw)
        if data is None:
            return []
        metadata = payload_metadata(raw)
        rows = []
        for param, value in data.items():
            meta = metadata.get(param) if isinstance(metadata.get(param), dict) else {}
            rows.append(
                base_row(
                    project,
                    self.name,
                    vital=param,
                    value=or_placeholder(value),
                    record_id=meta.get('id'),
                    parameter_id=meta.get('parameter_id'),
                )
            )
        return rows

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return [
            TableColumn(header='Vitals', value=row_value('vital')),
            TableColumn(header='Value', value=row_value('value'), format_name=row_value('vital'), field_key=row_value('vital')),
        ]

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        vital = row.get('vital')
        if not row.get('record_id') or not row.get('parameter_id'):
            LOGGER.warning('Corporate Debt parameter %r has no record metadata; skipping save.', vital)
            return None
        if vital not in changes:
            return None
        update = {'id': row['record_id'], 'parameter_id': row['parameter_id'], 'value': blank_to_none(changes[vital])}
        return self.request(row, {'updates': [update]})


class NonDesriOwnership(FinanceModule):
    name = NON_DESRI_OWNERSHIP
    api_name = 'asset-co'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        return build_structure(flat=[Datapoint(key=key, label=label) for key, label in NON_DESRI_DATAPOINTS])

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        rows = []
        for record in _records(raw):
            name = record.get('name')
            rows.append(
                base_row(
                    project,
                    self.name,
                    name=or_placeholder(DISPLAY_NAME_OVERRIDES.get(name, name)),
                    commitment=or_placeholder(record.get('commitment')),
                    non_desri_ownership=or_placeholder(record.get('ownership')),
                    record_id=record.get('id'),
                    parameter_id=record.get('parameter_id'),
                )
            )
        return rows

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return [
            TableColumn(header='Non DESRI Ownership/Sidecar', value=row_value('name')),
            TableColumn(
                header='Commitment ($)',
                value=row_value('commitment'),
                format_name=const('Commitment ($)'),
                field_key=const('commitment'),
            ),
            TableColumn(
                header='Non-DESRI Ownership (%)',
                value=row_value('non_desri_ownership'),
                format_name=const('Non-DESRI Ownership (%)'),
                field_key=const('non_desri_ownership'),
            ),
        ]

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        record_id = row.get('record_id')
        if not record_id:
            LOGGER.warning('Non DESRI Ownership row %r has no record id; skipping save.', row.get('name'))
            return None
        stored = next((r for r in _records(raw) if r.get('id') == record_id), {})
        commitment = changes['commitment'] if 'commitment' in changes else stored.get('commitment')
        ownership = changes['non_desri_ownership'] if 'non_desri_ownership' in changes else stored.get('ownership')
        update = {
            'id': record_id,
            'parameter_id': row.get('parameter_id'),
            'commitment_usd': blank_to_none(commitment),
            'non_desri_ownership_percent': blank_to_none(ownership),
        }
        return self.request(row, {'updates': [update]})
