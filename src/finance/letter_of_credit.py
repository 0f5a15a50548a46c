"""Letter of Credit: one row per (LC type, instance)."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    HOUSEKEEPING_FIELDS,
    LETTER_OF_CREDIT,
    FinanceModule,
    LOGGER,
    base_row,
    or_placeholder,
    payload_data,
    payload_metadata,
)
from src.finance.columns import lc_columns
from src.intelligence.selection import SelectionState
from src.intelligence.table_model import Row, TableColumn, const, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, build_structure


def instance_id(instance_meta: Any) -> Any:
    """The ``lc_instance`` carried by the first parameter of an instance's metadata."""
    if not isinstance(instance_meta, dict):
        return None
    first = next(iter(instance_meta.values()), None)
    return first.get('lc_instance') if isinstance(first, dict) else None


def _as_text(value: Any) -> str:
    return '' if value is None else str(value)


class LetterOfCredit(FinanceModule):
    name = LETTER_OF_CREDIT
    api_name = 'letter-credit'
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
        rows: list[Row] = []
        for lc_type, instances in data.items():
            if not isinstance(instances, list):
                continue
            type_meta = metadata.get(lc_type) if isinstance(metadata.get(lc_type), list) else []
            for idx, values in enumerate(instances):
                values = values if isinstance(values, dict) else {}
                meta = type_meta[idx] if idx < len(type_meta) else None
                rows.append(
                    base_row(
                        project,
                        self.name,
                        lc_type=lc_type,
                        instance_index=idx,
                        values={k: or_placeholder(v) for k, v in values.items() if k not in HOUSEKEEPING_FIELDS},
                        record_id=instance_id(meta),
                    )
                )
        return rows

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return lc_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [TableColumn(header='LC Type', value=row_value('lc_type'))]
        for param in columns:
            out.append(
                TableColumn(header=param, value=nested_value('values', param), format_name=const(param), field_key=const(param))
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        lc_type = row.get('lc_type')
        record_id = row.get('record_id')
        type_meta = payload_metadata(raw).get(lc_type)
        if record_id is None or not isinstance(type_meta, list):
            LOGGER.warning('Letter of Credit row %r has no instance metadata; skipping save.', lc_type)
            return None
        instance_meta = next((m for m in type_meta if instance_id(m) == record_id), None)
        if instance_meta is None:
            LOGGER.warning('Letter of Credit instance %r of %r not found; skipping save.', record_id, lc_type)
            return None

        updates: list[dict[str, Any]] = []
        creates: list[dict[str, Any]] = []
        for param, value in changes.items():
            if param in HOUSEKEEPING_FIELDS:
                continue
            param_meta = instance_meta.get(param)
            if isinstance(param_meta, dict) and param_meta.get('id'):
                updates.append({'id': param_meta['id'], 'value': _as_text(value)})
            elif any(isinstance(m, dict) and param in m for m in type_meta):
                creates.append(
                    {
                        'lc_type_name': lc_type,
                        'parameter_name': param,
                        'lc_instance': record_id,
                        'value': _as_text(value),
                    }
                )
            else:
                LOGGER.warning('Letter of Credit parameter %r is unknown for %r.', param, lc_type)
        if not updates and not creates:
            return None
        return self.request(row, {'updates': updates, 'creates': creates})
