"""Read-only datapoint previews for the standalone swap vitals."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    AMORT_SCHEDULE,
    DEBT_VS_SWAPS,
    SWAPS_SUMMARY,
    FinanceModule,
    PLACEHOLDER,
    base_row,
    or_placeholder,
    payload_data,
)
from src.finance.swaps import AMORT_SCHEDULE_DATAPOINTS, SWAPS_SUMMARY_FIELDS, amort_records
from src.intelligence.selection import SelectionState, selected_datapoints
from src.intelligence.table_model import Row, TableColumn, row_value
from src.models.project import Project
from src.models.structure import Datapoint, ModuleStructure, build_structure

PREVIEW_LIMIT = 3


def _joined(records: list[dict[str, Any]], key: str) -> Any:
    values = [str(record[key]) for record in records if record.get(key) not in (None, '')]
    return ', '.join(values) if values else PLACEHOLDER


def _preview(records: list[dict[str, Any]], key: str) -> Any:
    values = [str(record[key]) for record in records if record.get(key) not in (None, '')]
    if not values:
        return PLACEHOLDER
    if len(values) <= PREVIEW_LIMIT:
        return ', '.join(values)
    return f"{', '.join(values[:PREVIEW_LIMIT])}... ({len(records)} records)"


class SimpleDatapointModule(FinanceModule):
    """A module rendered as one (section, datapoint, value) row per selected datapoint."""

    def __init__(self, name: str, api_name: str, static_datapoints: tuple[tuple[str, str], ...] = ()) -> None:
        self.name = name
        self.api_name = api_name
        self.static_datapoints = static_datapoints

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        if self.static_datapoints:
            flat = [Datapoint(key=key, label=label) for key, label in self.static_datapoints]
            return build_structure(flat=flat)
        data = payload_data(sample)
        if data is None:
            return ModuleStructure.empty()
        return build_structure(flat=[Datapoint(key=key, label=key) for key in data])

    def lookup(self, raw: Any, datapoint: Datapoint) -> Any:
        if self.name == AMORT_SCHEDULE:
            return _preview(amort_records(raw), datapoint.key)
        if isinstance(raw, list):
            return _joined([r for r in raw if isinstance(r, dict)], datapoint.key)
        data = payload_data(raw)
        if data is not None:
            return or_placeholder(data.get(datapoint.key))
        if isinstance(raw, dict):
            return or_placeholder(raw.get(datapoint.key))
        return PLACEHOLDER

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        if raw is None:
            return []
        return [
            base_row(project, self.name, section=self.name, datapoint=dp.label, value=self.lookup(raw, dp))
            for dp in selected_datapoints(state, self.name)
        ]

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return [
            TableColumn(header='Section', value=row_value('section')),
            TableColumn(header='Datapoint', value=row_value('datapoint')),
            TableColumn(header='Value', value=row_value('value'), format_name=row_value('datapoint')),
        ]


def preview_modules() -> list[SimpleDatapointModule]:
    return [
        SimpleDatapointModule(SWAPS_SUMMARY, 'swaps-summary', SWAPS_SUMMARY_FIELDS),
        SimpleDatapointModule(AMORT_SCHEDULE, 'amort-schedule', AMORT_SCHEDULE_DATAPOINTS),
        SimpleDatapointModule(DEBT_VS_SWAPS, 'debt-vs-swaps'),
    ]
