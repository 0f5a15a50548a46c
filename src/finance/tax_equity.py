"""Tax Equity: parameters as rows, tax-equity types as columns."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    TAX_EQUITY,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
    payload_data,
    payload_metadata,
)
from src.finance.columns import ordered_union, tax_equity_columns
from src.intelligence.selection import SCOPE_SEPARATOR, SelectionState
from src.intelligence.table_model import Row, TableColumn, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, SubGroup, build_structure


def te_field_key(vital: str, te_type: str) -> str:
    return f'{vital}_{te_type}'


class TaxEquity(FinanceModule):
    name = TAX_EQUITY
    api_name = 'tax-equity'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        data = payload_data(sample)
        if data is None:
            return ModuleStructure.empty()
        groups = []
        for te_type, params in data.items():
            params = params if isinstance(params, dict) else {}
            sub = SubGroup(key=te_type, label=te_type)
            groups.append((sub, [Datapoint(key=f'{te_type}{SCOPE_SEPARATOR}{p}', label=p, scope=te_type) for p in params]))
        return build_structure(groups)

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        data = payload_data(raw)
        if data is None:
            return []
        types = {t: p for t, p in data.items() if isinstance(p, dict)}
        vitals = ordered_union(param for params in types.values() for param in params)
        return [
            base_row(
                project,
                self.name,
                vital=vital,
                te_type_values={t: or_placeholder(params.get(vital)) for t, params in types.items()},
            )
            for vital in vitals
        ]

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return tax_equity_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [TableColumn(header='Vitals', value=row_value('vital'))]
        for te_type in columns:
            out.append(
                TableColumn(
                    header=te_type,
                    value=nested_value('te_type_values', te_type),
                    format_name=row_value('vital'),
                    field_key=lambda row, t=te_type: te_field_key(row.get('vital', ''), t),
                )
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        vital = row.get('vital')
        metadata = payload_metadata(raw)
        by_key = {te_field_key(vital, t): t for t in metadata}
        updates = []
        for field_key, value in changes.items():
            te_type = by_key.get(field_key)
            type_meta = metadata.get(te_type) if te_type is not None else None
            meta = type_meta.get(vital) if isinstance(type_meta, dict) else None
            if not isinstance(meta, dict) or not meta.get('id'):
                LOGGER.warning('No Tax Equity record for %r; skipping.', field_key)
                continue
            updates.append(
                {
                    'id': meta['id'],
                    'tax_equity_type_id': meta.get('tax_equity_type_id'),
                    'parameter_id': meta.get('parameter_id'),
                    'value': blank_to_none(value),
                }
            )
        if not updates:
            return None
        return self.request(row, {'updates': updates})
