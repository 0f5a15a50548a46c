"""Financing Terms: sections of parameters valued per loan type."""

from __future__ import annotations

from typing import Any

from src.finance.base import (
    FINANCING_TERMS,
    FinanceModule,
    LOGGER,
    base_row,
    blank_to_none,
    or_placeholder,
)
from src.finance.columns import loan_type_columns
from src.intelligence.selection import SelectionState, selected_datapoints, selected_sub_groups
from src.intelligence.table_model import Row, TableColumn, nested_value, row_value
from src.models.project import Project
from src.models.save import SaveRequest
from src.models.structure import Datapoint, ModuleStructure, SubGroup, build_structure


def loan_type_field_key(datapoint_label: str, loan_type: str) -> str:
    return f'{datapoint_label}_{loan_type}'


class FinancingTerms(FinanceModule):
    name = FINANCING_TERMS
    api_name = 'financing-terms'
    has_sub_groups = True

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        if not isinstance(sample, dict) or not isinstance(sample.get('sections'), list):
            return ModuleStructure.empty()
        groups = []
        for section in sample['sections']:
            sub = SubGroup(key=section['sectionId'], label=str(section.get('sectionName', section['sectionId'])))
            points = [
                Datapoint(key=param['parameterId'], label=str(param['parameterName']), scope=sub.key)
                for param in section.get('parameters') or []
            ]
            groups.append((sub, points))
        return build_structure(groups)

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        if not isinstance(raw, dict):
            return []
        sections = {section.get('sectionId'): section for section in raw.get('sections') or []}
        fallback_loan_types = loan_type_columns([raw])
        rows: list[Row] = []
        for sub in selected_sub_groups(state, self.name):
            section = sections.get(sub.key)
            if section is None:
                continue
            params = {p.get('parameterId'): p for p in section.get('parameters') or []}
            for datapoint in selected_datapoints(state, self.name, sub.key):
                param = params.get(datapoint.key)
                values: dict[str, Any] = {}
                ids: dict[str, Any] = {}
                if param is not None and isinstance(param.get('loanTypes'), dict):
                    values = {lt: or_placeholder(v) for lt, v in param['loanTypes'].items()}
                    ids = dict(param.get('loanTypeIds') or {})
                elif param is not None:
                    direct = or_placeholder(param.get('value', param.get('parameterValue')))
                    values = {lt: direct for lt in fallback_loan_types}
                rows.append(
                    base_row(
                        project,
                        self.name,
                        section=sub.label,
                        datapoint=datapoint.label,
                        parameter_id=param.get('parameterId') if param else None,
                        loan_type_values=values,
                        loan_type_ids=ids,
                    )
                )
        return rows

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        return loan_type_columns(raw_by_project)

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        out = [
            TableColumn(header='Section', value=row_value('section')),
            TableColumn(header='Datapoint', value=row_value('datapoint')),
        ]
        for loan_type in columns:
            out.append(
                TableColumn(
                    header=str(loan_type),
                    value=nested_value('loan_type_values', loan_type),
                    format_name=lambda row: row.get('datapoint'),
                    field_key=lambda row, lt=loan_type: loan_type_field_key(row.get('datapoint', ''), lt),
                )
            )
        return out

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        prefix = f"{row.get('datapoint')}_"
        ids = row.get('loan_type_ids') or {}
        updates = []
        for field_key, value in changes.items():
            if not field_key.startswith(prefix):
                LOGGER.warning('Financing Terms change %r does not match datapoint %r.', field_key, row.get('datapoint'))
                continue
            loan_type = field_key[len(prefix):]
            record_id = ids.get(loan_type)
            if not record_id:
                LOGGER.warning('No Financing Terms record for loan type %r.', loan_type)
                continue
            updates.append({'id': record_id, 'value': blank_to_none(value)})
        if not updates:
            return None
        return self.request(row, {'updates': updates})
