"""Lender Commitments/Outstanding: one row per (loan type, lender)."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    LENDER_COMMITMENTS,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
    payload_data,
    payload_metadata,
)
from src.intelligence.selection import SelectionState
from src.intelligence.table_model import Row, TableColumn, const, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, SubGroup, build_structure

LENDER_NAME_FIELD = "Lender's Name"
# (row attribute, stored parameter name)
LENDER_PARAMETERS = (
    ('commitment', 'Commitment ($)'),
    ('commitment_start_date', 'Commitment Start Date'),
    ('outstanding_amount', 'Outstanding Amount ($)'),
    ('proportional_share', 'Proportional Share (%)'),
)
LENDER_DATAPOINTS = (('lender_name', 'Lender Name'),) + LENDER_PARAMETERS


class LenderCommitments(FinanceModule):
    name = LENDER_COMMITMENTS
    api_name = 'lender-commitments'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        data = payload_data(sample)
        if data is None:
            LOGGER.warning('No loan types found for %s.', self.name)
            return ModuleStructure.empty()
        groups = []
        for loan_type in data:
            sub = SubGroup(key=loan_type, label=loan_type)
            points = [
                Datapoint(key=f'{loan_type}___{attr}', label=label, scope=loan_type)
                for attr, label in LENDER_DATAPOINTS
            ]
            groups.append((sub, points))
        return build_structure(groups)

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        data = payload_data(raw)
        if data is None:
            return []
        rows: list[Row] = []
        for loan_type, lenders in data.items():
            if not isinstance(lenders, dict):
                continue
            for lender_name, values in lenders.items():
                values = values if isinstance(values, dict) else {}
                fields = {attr: or_placeholder(values.get(param)) for attr, param in LENDER_PARAMETERS}
                rows.append(base_row(project, self.name, section=loan_type, lender_name=lender_name, **fields))
        return rows

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [
            TableColumn(header='Loan Type', value=row_value('section')),
            TableColumn(header='Lender Name', value=row_value('lender_name'), field_key=const(LENDER_NAME_FIELD)),
        ]
        for attr, param in LENDER_PARAMETERS:
            out.append(
                TableColumn(
                    header=param,
                    value=row_value(attr),
                    format_name=None if 'Date' in param else const(param),
                    field_key=const(param),
                )
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        loan_type = row.get('section')
        lender = row.get('lender_name')
        type_meta = payload_metadata(raw).get(loan_type)
        lender_meta = type_meta.get(lender) if isinstance(type_meta, dict) else None
        if not isinstance(lender_meta, dict):
            LOGGER.warning('No lender metadata for %r / %r; skipping save.', loan_type, lender)
            return None
        type_data = (payload_data(raw) or {}).get(loan_type)
        stored = type_data.get(lender) if isinstance(type_data, dict) else None
        if not isinstance(stored, dict):
            stored = {}
        new_name = blank_to_none(changes[LENDER_NAME_FIELD]) if LENDER_NAME_FIELD in changes else None
        renaming = LENDER_NAME_FIELD in changes

        updates: list[dict[str, Any]] = []
        creates: list[dict[str, Any]] = []
        for _attr, param in LENDER_PARAMETERS:
            changed = param in changes
            if not changed and not renaming:
                continue
            value = blank_to_none(changes[param]) if changed else stored.get(param)
            meta = lender_meta.get(param)
            if isinstance(meta, dict) and meta.get('id'):
                update = {'id': meta['id'], 'value': value}
                if renaming:
                    update['lender_name'] = new_name
                updates.append(update)
            elif changed:
                creates.append(
                    {
                        'loan_type_name': loan_type,
                        'lender_name': new_name if renaming else lender,
                        'parameter_name': param,
                        'value': value,
                    }
                )
        if not updates and not creates:
            return None
        return self.request(row, {'updates': updates, 'creates': creates})
