"""Technical tables: selected datapoints grouped by module, one row per project record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from src.intelligence.formatting import TECHNICAL_MISSING, format_for_display
from src.intelligence.selection import SelectionState, available_scopes, scope_key
from src.intelligence.table_model import (
    PROJECT_HEADER,
    SERIAL_HEADER,
    HeaderGroup,
    Row,
    TableModel,
)
from src.models.project import Project
from src.models.structure import Datapoint
from src.technical.catalog import data_path, has_sub_modules, is_hidden_field
from src.technical.values import DC_AC_RATIO_FIELD, dc_ac_ratio, is_actual_date, max_records, value_from_path

TECHNICAL_COLUMN_WIDTHS = (8.0, 25.0)
TECHNICAL_DEFAULT_WIDTH = 20.0
FIELD_KEY_SEPARATOR = '___'


@dataclass(frozen=True)
class DatapointGroup:
    """Selected datapoints of one sub-module (or of a module without sub-modules)."""

    name: str
    datapoints: tuple[Datapoint, ...]


@dataclass(frozen=True)
class ModuleView:
    module: str
    has_sub_modules: bool
    groups: tuple[DatapointGroup, ...]

    @property
    def names(self) -> list[str]:
        return [group.name for group in self.groups]

    @property
    def column_count(self) -> int:
        return sum(len(group.datapoints) for group in self.groups)


def technical_field_key(table_name: str, field_key: str) -> str:
    return f'{table_name}{FIELD_KEY_SEPARATOR}{field_key}'


def split_technical_field_key(key: str) -> tuple[str, str]:
    table_name, _, field_key = key.partition(FIELD_KEY_SEPARATOR)
    return table_name, field_key


def organize_datapoints(state: SelectionState) -> list[ModuleView]:
    """Selected datapoints by parent module, then sub-module, in selection order."""
    views: list[ModuleView] = []
    scopes = available_scopes(state)
    for module in state.modules:
        groups: list[DatapointGroup] = []
        for scope in scopes:
            if scope != module and not scope.startswith(scope_key(module, '')):
                continue
            points = tuple(dp for dp in state.datapoints.get(scope, ()) if not is_hidden_field(dp.key, module))
            if not points:
                continue
            name = points[0].scope or module
            groups.append(DatapointGroup(name=name, datapoints=points))
        if groups:
            views.append(ModuleView(module=module, has_sub_modules=has_sub_modules(module), groups=tuple(groups)))
    return views


def _cell(project_data: Any, group: DatapointGroup, dp: Datapoint, record_index: int) -> tuple[Any, bool]:
    value, exists = value_from_path(project_data, data_path(group.name), dp.key, record_index)
    if not exists:
        return '', False
    if dp.key == DC_AC_RATIO_FIELD:
        ratio = dc_ac_ratio(project_data, group.name, record_index)
        if ratio is not None:
            return ratio, True
    return format_for_display(None if value == TECHNICAL_MISSING else value, dp.data_type), True


def technical_rows(view: ModuleView, projects: list[Project], projects_data: Mapping[Any, Any]) -> list[Row]:
    """One row per (project, record index) up to the longest record list in the module."""
    rows: list[Row] = []
    for project_idx, project in enumerate(projects):
        project_data = projects_data.get(project.id)
        for record_index in range(max_records(project_data, view.names)):
            values: list[Any] = []
            editable: list[bool] = []
            actual: list[bool] = []
            for group in view.groups:
                for dp in group.datapoints:
                    value, exists = _cell(project_data, group, dp, record_index)
                    values.append(value)
                    editable.append(exists and dp.key != DC_AC_RATIO_FIELD and bool(dp.table_name))
                    actual.append(exists and is_actual_date(project_data, group.name, dp.key, record_index, view.module))
            rows.append(
                {
                    'project_serial': project_idx + 1,
                    'project_name': project.name,
                    'project_id': project.id,
                    'module': view.module,
                    'record_index': record_index,
                    'values': values,
                    'editable': editable,
                    'actual': actual,
                }
            )
    return rows


def technical_table(view: ModuleView, projects: list[Project], projects_data: Mapping[Any, Any]) -> TableModel:
    """Table for one parent module; screen and workbook both render this model."""
    rows = technical_rows(view, projects, projects_data)
    datapoints = [(group, dp) for group in view.groups for dp in group.datapoints]
    header = [SERIAL_HEADER, PROJECT_HEADER] + [dp.label for _, dp in datapoints]
    widths = list(TECHNICAL_COLUMN_WIDTHS) + [TECHNICAL_DEFAULT_WIDTH] * len(datapoints)
    groups: list[HeaderGroup] = []
    if view.has_sub_modules:
        start = len(TECHNICAL_COLUMN_WIDTHS)
        for group in view.groups:
            groups.append(HeaderGroup(label=group.name, start=start, span=len(group.datapoints)))
            start += len(group.datapoints)

    rendered: list[list[Any]] = []
    keys: list[list[str | None]] = []
    highlighted: set[tuple[int, int]] = set()
    offset = len(TECHNICAL_COLUMN_WIDTHS)
    for row_idx, row in enumerate(rows):
        rendered.append([row['project_serial'], row['project_name']] + list(row['values']))
        row_keys: list[str | None] = [None, None]
        for col_idx, (group, dp) in enumerate(datapoints):
            row_keys.append(technical_field_key(dp.table_name, dp.key) if row['editable'][col_idx] else None)
            if row['actual'][col_idx]:
                highlighted.add((row_idx, offset + col_idx))
        keys.append(row_keys)

    return TableModel(
        title=view.module,
        header=header,
        rows=rendered,
        field_keys=keys,
        widths=widths,
        groups=groups,
        source_rows=rows,
        data_types=[None, None] + [dp.data_type for _, dp in datapoints],
        highlighted=highlighted,
    )


def group_name_for_column(view: ModuleView, column: int) -> str | None:
    """Sub-module (or module) a data column belongs to; None for the serial and project columns."""
    index = column - len(TECHNICAL_COLUMN_WIDTHS)
    if index < 0:
        return None
    for group in view.groups:
        if index < len(group.datapoints):
            return group.name
        index -= len(group.datapoints)
    return None
