"""Associated Parties: counterparties per financing role, in numbered party slots."""

from __future__ import annotations

import re
from typing import Any

from src.finance.base import (
    ASSOCIATED_PARTIES,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    payload_data,
    payload_metadata,
)
from src.finance.columns import party_columns
from src.intelligence.selection import SCOPE_SEPARATOR, SelectionState
from src.intelligence.table_model import Row, TableColumn, const, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, SubGroup, build_structure

_PARTY_KEY_RE = re.compile(r'^party_(\d+)$')


def party_field_key(slot: int) -> str:
    return f'party_{slot}'


class AssociatedParties(FinanceModule):
    name = ASSOCIATED_PARTIES
    api_name = 'parties'
    auto_datapoints = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        data = payload_data(sample)
        if data is None:
            return ModuleStructure.empty()
        groups = []
        for cp_type, params in data.items():
            sub = SubGroup(key=cp_type, label=cp_type)
            params = params if isinstance(params, dict) else {}
            points = [Datapoint(key=f'{cp_type}{SCOPE_SEPARATOR}{p}', label=p, scope=cp_type) for p in params]
            groups.append((sub, points))
        return build_structure(groups)

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        data = payload_data(raw)
        if data is None:
            return []
        metadata = payload_metadata(raw)
        rows: list[Row] = []
        for cp_type, params in data.items():
            if not isinstance(params, dict):
                continue
            type_meta = metadata.get(cp_type) if isinstance(metadata.get(cp_type), dict) else {}
            for param, parties in params.items():
                rows.append(
                    base_row(
                        project,
                        self.name,
                        counterparty_type=cp_type,
                        financing_counterparty=param,
                        parties=list(parties) if isinstance(parties, list) else [],
                        party_metadata=list(type_meta.get(param) or []),
                    )
                )
        return rows

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return party_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [TableColumn(header='Financing Counterparties', value=row_value('financing_counterparty'))]
        for slot in columns:
            out.append(
                TableColumn(
                    header=f'Party {slot}',
                    value=nested_value('parties', slot - 1),
                    field_key=const(party_field_key(slot)),
                )
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        party_meta = [m for m in row.get('party_metadata') or [] if isinstance(m, dict)]
        updates: list[dict[str, Any]] = []
        creates: list[dict[str, Any]] = []
        for field_key, value in changes.items():
            match = _PARTY_KEY_RE.match(field_key)
            if not match:
                LOGGER.warning('Unexpected Associated Parties field %r.', field_key)
                continue
            slot = int(match.group(1))
            meta = party_meta[slot - 1] if slot - 1 < len(party_meta) else None
            if meta is not None and meta.get('id'):
                updates.append(
                    {
                        'id': meta['id'],
                        'counterparty_type_id': meta.get('counterparty_type_id'),
                        'parameter_id': meta.get('parameter_id'),
                        'party_instance': meta.get('party_instance'),
                        'value': blank_to_none(value),
                    }
                )
            elif party_meta:
                sibling = party_meta[0]
                creates.append(
                    {
                        'counterparty_type_id': sibling.get('counterparty_type_id'),
                        'parameter_id': sibling.get('parameter_id'),
                        'party_instance': slot,
                        'value': blank_to_none(value),
                    }
                )
            else:
                LOGGER.warning(
                    'No party metadata for %r / %r; skipping %s.',
                    row.get('counterparty_type'),
                    row.get('financing_counterparty'),
                    field_key,
                )
        if not updates and not creates:
            return None
        payload: dict[str, Any] = {'updates': updates}
        if creates:
            payload['creates'] = creates
        return self.request(row, payload)
