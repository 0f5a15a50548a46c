"""Swaps: one vital at a time, each with its own record shape."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    AMORT_SCHEDULE,
    DEBT_VS_SWAPS,
    HOUSEKEEPING_FIELDS,
    SWAPS,
    SWAPS_SUMMARY,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
    payload_data,
    payload_metadata,
)
from src.finance.columns import swaps_column_label, swaps_columns
from src.intelligence.selection import SelectionState, selected_sub_groups
from src.intelligence.table_model import Row, TableColumn, const, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, SubGroup, build_structure

SWAPS_VITAL_API_NAMES = {
    SWAPS_SUMMARY: 'swaps-summary',
    AMORT_SCHEDULE: 'amort-schedule',
    DEBT_VS_SWAPS: 'debt-vs-swaps',
}
SWAPS_VITALS = tuple(SWAPS_VITAL_API_NAMES)

SWAPS_SUMMARY_FIELDS = (
    ('entity_name', 'Entity Name'),
    ('banks', 'Banks'),
    ('starting_notional_usd', 'Starting Notional ($)'),
    ('future_notional_usd', 'Future Notional ($)'),
    ('fixed_rate_percent', 'Fixed Rate (%)'),
    ('trade_date', 'Trade Date'),
    ('effective_date', 'Effective Date'),
    ('expiration_date', 'Expiration Date'),
    ('met_date', 'MET Date'),
)
# (API field, row attribute, display label)
AMORT_SCHEDULE_FIELDS = (
    ('startDate', 'start_date', 'Start Date'),
    ('beginningBalance', 'beginning_balance', 'Beginning Balance ($)'),
    ('endingBalance', 'ending_balance', 'Ending Balance ($)'),
    ('notional', 'notional', 'Notional ($)'),
    ('hedgePercentage', 'hedge_percentage', 'Hedge (%)'),
)
AMORT_SCHEDULE_DATAPOINTS = (
    ('startDate', 'Date'),
    ('beginningBalance', 'Beginning Balance ($)'),
    ('endingBalance', 'Ending Balance ($)'),
    ('notional', 'Notional ($)'),
    ('hedgePercentage', 'Hedge (%)'),
)


def swaps_api_name(vital: str) -> str:
    return SWAPS_VITAL_API_NAMES.get(vital, SWAPS_VITAL_API_NAMES[SWAPS_SUMMARY])


def amort_records(data: Any) -> list[dict[str, Any]]:
    """Amort Schedule rows arrive either bare or wrapped in ``{data: [...]}``."""
    if isinstance(data, dict):
        data = data.get('data')
    if not isinstance(data, list):
        return []
    return [record for record in data if isinstance(record, dict)]


class Swaps(FinanceModule):
    name = SWAPS
    api_name = 'swaps-summary'
    has_sub_groups = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        statics = {
            SWAPS_SUMMARY: SWAPS_SUMMARY_FIELDS,
            AMORT_SCHEDULE: AMORT_SCHEDULE_DATAPOINTS,
            DEBT_VS_SWAPS: (),
        }
        groups = []
        for vital in SWAPS_VITALS:
            sub = SubGroup(key=vital, label=vital)
            groups.append((sub, [Datapoint(key=key, label=label, scope=vital) for key, label in statics[vital]]))
        return build_structure(groups)

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        if not isinstance(raw, dict):
            return []
        selected = [sub.key for sub in selected_sub_groups(state, self.name)]
        vitals = [v for v in selected if v in raw] or [v for v in SWAPS_VITALS if v in raw]
        rows: list[Row] = []
        for vital in vitals:
            data = raw[vital]
            if vital == AMORT_SCHEDULE:
                rows.extend(self._amort_rows(project, data))
            elif vital == DEBT_VS_SWAPS:
                rows.extend(self._debt_vs_swaps_rows(project, data))
            else:
                rows.extend(self._summary_rows(project, vital, data))
        return rows

    def _amort_rows(self, project: Project, data: Any) -> list[Row]:
        rows = []
        for record in amort_records(data):
            fields = {attr: or_placeholder(record.get(api)) for api, attr, _label in AMORT_SCHEDULE_FIELDS}
            rows.append(base_row(project, self.name, vital=AMORT_SCHEDULE, record_id=record.get('id'), **fields))
        return rows

    def _debt_vs_swaps_rows(self, project: Project, data: Any) -> list[Row]:
        values = payload_data(data)
        if values is None:
            return []
        metadata = payload_metadata(data)
        rows = []
        for param, value in values.items():
            meta = metadata.get(param) if isinstance(metadata.get(param), dict) else {}
            rows.append(
                base_row(
                    project,
                    self.name,
                    vital=DEBT_VS_SWAPS,
                    parameter=param,
                    value=or_placeholder(value),
                    record_id=meta.get('id'),
                    parameter_id=meta.get('parameter_id'),
                )
            )
        return rows

    def _summary_rows(self, project: Project, vital: str, data: Any) -> list[Row]:
        if not isinstance(data, list):
            return []
        rows = []
        for record in data:
            if not isinstance(record, dict):
                continue
            swap_data = {k: or_placeholder(v) for k, v in record.items() if k not in HOUSEKEEPING_FIELDS}
            rows.append(base_row(project, self.name, vital=vital, swap_data=swap_data, record_id=record.get('id')))
        return rows

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return swaps_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        vital = rows[0].get('vital') if rows else SWAPS_SUMMARY
        if vital == AMORT_SCHEDULE:
            out = [
                TableColumn(header='Module', value=const(SWAPS)),
                TableColumn(header='Vital', value=row_value('vital')),
            ]
            for api, attr, label in AMORT_SCHEDULE_FIELDS:
                out.append(TableColumn(header=label, value=row_value(attr), format_name=const(label), field_key=const(api)))
            return out
        if vital == DEBT_VS_SWAPS:
            return [
                TableColumn(header='Vitals', value=row_value('parameter')),
                TableColumn(
                    header='Value',
                    value=row_value('value'),
                    format_name=row_value('parameter'),
                    field_key=const('value'),
                ),
            ]
        out = [TableColumn(header='Vital', value=row_value('vital'))]
        for key in columns:
            label = swaps_column_label(key)
            out.append(
                TableColumn(header=label, value=nested_value('swap_data', key), format_name=const(label), field_key=const(key))
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        record_id = row.get('record_id')
        if not record_id:
            LOGGER.warning('Swaps row for %s has no record id; skipping save.', row.get('project_name'))
            return None
        vital = row.get('vital')
        if vital == DEBT_VS_SWAPS:
            if not row.get('parameter_id'):
                LOGGER.warning('Debt vs Swaps parameter %r has no parameter id; skipping save.', row.get('parameter'))
                return None
            update = {'id': record_id, 'parameter_id': row['parameter_id'], 'value': blank_to_none(changes.get('value'))}
            return self.request(row, {'updates': [update]}, api_name=swaps_api_name(DEBT_VS_SWAPS))
        update = {'id': record_id}
        update.update({field: blank_to_none(value) for field, value in changes.items()})
        if vital == AMORT_SCHEDULE:
            return self.request(row, {'updates': [update]}, api_name=swaps_api_name(AMORT_SCHEDULE))
        return self.request(row, {'updates': [update], 'deletedIds': []}, api_name=swaps_api_name(SWAPS_SUMMARY))
