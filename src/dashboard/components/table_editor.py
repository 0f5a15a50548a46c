"""Editable intelligence grids and the bridge from grid edits to the change tracker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping

import pandas as pd
import streamlit as st

from src.dashboard.components.controls import bump_widget_version
from src.dashboard.components.formatting import display_frame, style_table
from src.intelligence.changes import ChangeKey, ChangeTracker
from src.intelligence.formatting import (
    FIELD_TYPE_DROPDOWN,
    FIELD_TYPE_PERCENTAGE,
    coerce_input,
    field_type_for,
    normalize_metadata_type,
)
from src.intelligence.table_model import TableModel
from src.technical.catalog import MILESTONE
from src.technical.table import ModuleView, group_name_for_column, split_technical_field_key, technical_field_key
from src.technical.values import DATE_QUALIFIERS, date_qualifier, date_type_field

KeyFactory = Callable[[int, int, str], ChangeKey]
QUALIFIER_SUFFIX = ' Type'


@dataclass(frozen=True)
class QualifierColumn:
    """Actual/forecast selector shown beside a milestone date column on screen only."""

    header: str
    group_name: str
    field_key: str
    type_field_key: str
    table_name: str


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    return str(value)


def finance_key_factory(table: TableModel) -> KeyFactory:
    """Finance edits are keyed by the row position within the module table."""

    def _key(row: int, _column: int, field_key: str) -> ChangeKey:
        return ChangeKey(
            project_id=table.source_rows[row].get('project_id'),
            row_index=row,
            module=table.title,
            field_key=field_key,
        )

    return _key


def technical_key_factory(view: ModuleView, table: TableModel) -> KeyFactory:
    """Technical edits are keyed by sub-module and record index."""

    def _key(row: int, column: int, field_key: str) -> ChangeKey:
        source = table.source_rows[row]
        return ChangeKey(
            project_id=source.get('project_id'),
            row_index=int(source.get('record_index', 0)),
            module=group_name_for_column(view, column) or view.module,
            field_key=field_key,
        )

    return _key


def percentage_error(value: Any, label: str) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f'{label}: enter a number between 0 and 100.'
    if not 0 <= value <= 100:
        return f'{label}: {value} is outside 0 to 100.'
    return None


def discard_edits(tracker: ChangeTracker, prefix: str, session: MutableMapping[str, Any] | None = None) -> int:
    """Drop every pending edit and recreate the editors so they show the stored values again."""
    count = len(tracker)
    tracker.clear()
    bump_widget_version(prefix, session)
    return count


def sync_edits(
    tracker: ChangeTracker,
    table: TableModel,
    original: pd.DataFrame,
    edited: pd.DataFrame,
    *,
    key_for: KeyFactory,
    field_name: Callable[[str], str] = lambda key: key,
    validate_percentage: bool = False,
) -> list[str]:
    """Record every edited cell that differs from what was rendered; return rejected-input messages.

    Cells edited back to their rendered text are forgotten, and cells without
    an edit key (read-only values inside an editable column) are ignored.
    """
    errors: list[str] = []
    for row_idx, keys in enumerate(table.field_keys):
        if row_idx >= len(edited):
            break
        for col_idx, field_key in enumerate(keys):
            if field_key is None:
                continue
            key = key_for(row_idx, col_idx, field_key)
            new_text = _text(edited.iat[row_idx, col_idx])
            old_text = _text(original.iat[row_idx, col_idx])
            if new_text == old_text:
                tracker.discard(key)
                continue
            name = field_name(field_key)
            data_type = table.data_type(col_idx)
            current = table.rows[row_idx][col_idx]
            value = coerce_input(new_text, name, current_value=current, metadata_type=data_type)
            if validate_percentage and new_text and field_type_for(name, data_type) == FIELD_TYPE_PERCENTAGE:
                error = percentage_error(value, table.header[col_idx])
                if error is not None:
                    errors.append(error)
                    tracker.discard(key)
                    continue
            tracker.record(key, value, current)
    return errors


def qualifier_columns(view: ModuleView, table: TableModel) -> list[QualifierColumn]:
    """Milestone date columns that get an actual/forecast selector."""
    if view.module != MILESTONE:
        return []
    columns: list[QualifierColumn] = []
    column = len(table.header) - view.column_count
    for group in view.groups:
        for dp in group.datapoints:
            if 'date' in str(dp.key).lower() and dp.table_name:
                columns.append(
                    QualifierColumn(
                        header=f'{table.header[column]}{QUALIFIER_SUFFIX}',
                        group_name=group.name,
                        field_key=str(dp.key),
                        type_field_key=date_type_field(dp.key),
                        table_name=dp.table_name,
                    )
                )
            column += 1
    return columns


def qualifier_values(
    qualifiers: list[QualifierColumn],
    table: TableModel,
    projects_data: Mapping[Any, Any],
) -> list[list[tuple[str | None, bool]]]:
    """Per row, the (qualifier, exists) pair of every qualifier column."""
    values = []
    for source in table.source_rows:
        project_data = projects_data.get(source.get('project_id'))
        values.append(
            [
                date_qualifier(project_data, q.group_name, q.field_key, int(source.get('record_index', 0)))
                for q in qualifiers
            ]
        )
    return values


def sync_qualifier_edits(
    tracker: ChangeTracker,
    table: TableModel,
    qualifiers: list[QualifierColumn],
    values: list[list[tuple[str | None, bool]]],
    edited: pd.DataFrame,
) -> None:
    offset = len(table.header)
    for row_idx, row_values in enumerate(values):
        if row_idx >= len(edited):
            break
        source = table.source_rows[row_idx]
        for q_idx, (q, (current, exists)) in enumerate(zip(qualifiers, row_values)):
            if not exists:
                continue
            key = ChangeKey(
                project_id=source.get('project_id'),
                row_index=int(source.get('record_index', 0)),
                module=q.group_name,
                field_key=technical_field_key(q.table_name, q.type_field_key),
            )
            chosen = _text(edited.iat[row_idx, offset + q_idx]) or None
            if chosen == current:
                tracker.discard(key)
            else:
                tracker.record(key, chosen, current)


def _disabled_columns(table: TableModel, frame: pd.DataFrame) -> list[str]:
    labels = list(frame.columns)
    disabled = []
    for col_idx in range(len(table.header)):
        if not any(keys[col_idx] for keys in table.field_keys):
            disabled.append(labels[col_idx])
    return disabled


def render_finance_table(table: TableModel, tracker: ChangeTracker, *, key: str) -> list[str]:
    """Render one finance module grid and track its edits."""
    if not table.rows:
        st.info(f'No {table.title} data for the selected projects.')
        return []
    frame = display_frame(table.to_frame())
    disabled = _disabled_columns(table, frame)
    if len(disabled) == len(frame.columns):
        st.dataframe(frame, hide_index=True, width='stretch')
        return []
    edited = st.data_editor(frame, hide_index=True, disabled=disabled, width='stretch', key=key)
    return sync_edits(tracker, table, frame, edited, key_for=finance_key_factory(table))


def render_technical_table(
    view: ModuleView,
    table: TableModel,
    tracker: ChangeTracker,
    projects_data: Mapping[Any, Any],
    dropdown_options: Mapping[tuple[str, str], list[str]],
    *,
    key: str,
) -> list[str]:
    """Render one technical module grid, with dropdowns and milestone date qualifiers, and track its edits."""
    if not table.rows:
        st.info(f'No {view.module} data for the selected projects.')
        return []
    if table.groups:
        st.caption(' | '.join(f'{group.label}: {group.span} column(s)' for group in table.groups))

    frame = display_frame(table.to_frame())
    qualifiers = qualifier_columns(view, table)
    q_values = qualifier_values(qualifiers, table, projects_data)
    for q_idx, q in enumerate(qualifiers):
        frame[q.header] = [row[q_idx][0] or '' for row in q_values]

    column_config: dict[str, Any] = {}
    labels = list(frame.columns)
    for col_idx in range(len(table.header)):
        if normalize_metadata_type(table.data_type(col_idx)) != FIELD_TYPE_DROPDOWN:
            continue
        table_field = next((keys[col_idx] for keys in table.field_keys if keys[col_idx]), None)
        if table_field is None:
            continue
        options = list(dropdown_options.get(split_technical_field_key(table_field), []))
        if options:
            column_config[labels[col_idx]] = st.column_config.SelectboxColumn(labels[col_idx], options=[''] + options)
    for q in qualifiers:
        column_config[q.header] = st.column_config.SelectboxColumn(q.header, options=[''] + list(DATE_QUALIFIERS))

    disabled = _disabled_columns(table, frame)
    styled = style_table(frame, highlighted=table.highlighted)
    if len(disabled) == len(table.header) and not qualifiers:
        st.dataframe(styled, hide_index=True, width='stretch')
        return []
    edited = st.data_editor(
        styled,
        hide_index=True,
        disabled=disabled,
        column_config=column_config,
        width='stretch',
        key=key,
    )
    errors = sync_edits(
        tracker,
        table,
        frame,
        edited,
        key_for=technical_key_factory(view, table),
        field_name=lambda field_key: split_technical_field_key(field_key)[1],
        validate_percentage=True,
    )
    sync_qualifier_edits(tracker, table, qualifiers, q_values, edited)
    return errors
