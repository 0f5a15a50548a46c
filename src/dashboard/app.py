"""Streamlit app entrypoint for the OneView intelligence dashboard."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Any, Callable

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import streamlit as st

from src.dashboard.components.controls import (
    _stable_radio,
    apply_actions,
    bump_widget_version,
    render_datapoint_panel,
    render_module_panel,
    render_project_panel,
    render_sub_group_panel,
    selection_state,
    widget_version,
)
from src.dashboard.components.table_editor import discard_edits, render_finance_table, render_technical_table
from src.dashboard.reporting.export_pack import (
    build_export_workbook_bytes,
    build_finance_sheets,
    build_technical_sheets,
    default_export_filename,
)
from src.data.api_client import OneViewApiClient
from src.data.loader import (
    load_dropdown_options,
    load_finance_data,
    load_module_structure,
    load_projects,
    load_projects_data,
    load_technical_structure,
)
from src.data.store import FetchLedger
from src.finance.registry import FINANCE_PAGE, FINANCE_PAGE_CONFIG, generate_rows
from src.intelligence.changes import ChangeTracker
from src.intelligence.save import SaveOrchestrator, SaveOutcome
from src.intelligence.selection import (
    SelectionAction,
    SelectionState,
    StructureResolved,
    is_ready_to_fetch,
    reduce_selection,
    selection_signature,
)
from src.intelligence.table_model import TableModel
from src.models.project import Project
from src.models.structure import Datapoint, ModuleStructure
from src.technical.catalog import TECHNICAL_PAGE, TECHNICAL_PAGE_CONFIG
from src.technical.table import organize_datapoints
from src.utils.logging import configure_logging, get_logger
from src.utils.settings import Settings, load_settings

LOGGER = get_logger(__name__)

PAGES = [FINANCE_PAGE, TECHNICAL_PAGE]
FINANCE_PREFIX = 'finance'
TECHNICAL_PREFIX = 'technical'
PROJECT_PAYLOAD = 'project'
XLSX_MIME = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


@st.cache_data
def _settings() -> Settings:
    return load_settings()


def _client(settings: Settings) -> OneViewApiClient:
    client = st.session_state.get('api_client')
    if not isinstance(client, OneViewApiClient) or client.settings != settings:
        client = OneViewApiClient(settings)
        st.session_state['api_client'] = client
    return client


@st.cache_data(show_spinner='Loading projects...')
def _cached_projects(settings: Settings) -> list[Project]:
    return load_projects(OneViewApiClient(settings))


@st.cache_data(show_spinner=False)
def _cached_finance_structure(settings: Settings, module: str, sample_project_id: Any) -> ModuleStructure:
    return load_module_structure(OneViewApiClient(settings), module, sample_project_id)


@st.cache_data(show_spinner=False)
def _cached_technical_structure(settings: Settings, module: str) -> ModuleStructure:
    return load_technical_structure(OneViewApiClient(settings), module, max_workers=settings.max_workers)


@st.cache_data(show_spinner=False)
def _cached_dropdown_options(settings: Settings, datapoints: tuple[Datapoint, ...]) -> dict[tuple[str, str], list[str]]:
    return load_dropdown_options(OneViewApiClient(settings), datapoints, max_workers=settings.max_workers)


def _tracker(prefix: str) -> ChangeTracker:
    key = f'{prefix}_changes'
    if not isinstance(st.session_state.get(key), ChangeTracker):
        st.session_state[key] = ChangeTracker()
    return st.session_state[key]


def _ledger(prefix: str) -> FetchLedger:
    key = f'{prefix}_ledger'
    if not isinstance(st.session_state.get(key), FetchLedger):
        st.session_state[key] = FetchLedger()
    return st.session_state[key]


def _dispatch(prefix: str, state: SelectionState, actions: list[SelectionAction]) -> None:
    """Apply selection actions, drop edits and exports made for the old selection, and rerun."""
    if not actions:
        return
    st.session_state[f'{prefix}_selection'] = apply_actions(state, actions)
    _tracker(prefix).clear()
    st.session_state.pop(f'{prefix}_export_bytes', None)
    bump_widget_version(prefix)
    st.rerun()


def _resolve_structures(
    prefix: str,
    state: SelectionState,
    loader: Callable[[str], ModuleStructure],
) -> SelectionState:
    for module in state.modules:
        if module in state.structures:
            continue
        try:
            structure = loader(module)
        except Exception as exc:
            LOGGER.error('Failed to resolve %s structure: %s', module, exc)
            st.warning(f'Could not load the datapoints of `{module}`: {exc}')
            structure = ModuleStructure.empty()
        state = reduce_selection(state, StructureResolved(module=module, structure=structure))
    st.session_state[f'{prefix}_selection'] = state
    return state


def _render_selection_sidebar(prefix: str, state: SelectionState, projects: list[Project]) -> None:
    with st.sidebar:
        actions = render_project_panel(state, projects, prefix=prefix)
        actions += render_module_panel(state, prefix=prefix)
    _dispatch(prefix, state, actions)


def _render_datapoint_selection(prefix: str, state: SelectionState, *, sub_group_label: str) -> None:
    actions: list[SelectionAction] = []
    for module in state.modules:
        structure = state.structures.get(module)
        if structure is None or structure.is_empty:
            st.caption(f'No selectable datapoints for {module}.')
            continue
        with st.expander(f'{module} selection', expanded=True):
            actions += render_sub_group_panel(state, module, prefix=prefix, label=sub_group_label)
            actions += render_datapoint_panel(state, module, prefix=prefix)
    _dispatch(prefix, state, actions)


def _render_save(prefix: str, settings: Settings, run_save: Callable[[SaveOrchestrator], SaveOutcome]) -> None:
    tracker = _tracker(prefix)
    message = st.session_state.pop(f'{prefix}_save_message', None)
    if message:
        st.success(message)
    c_save, c_discard, c_info = st.columns([1, 1, 2])
    with c_info:
        st.caption(f'{len(tracker)} pending edit(s). Changing the selection discards unsaved edits.')
    with c_discard:
        if st.button('Discard changes', key=f'{prefix}_discard', disabled=not tracker):
            count = discard_edits(tracker, prefix)
            st.session_state[f'{prefix}_save_message'] = f'Discarded {count} pending edit(s).'
            st.rerun()
    with c_save:
        clicked = st.button('Save changes', key=f'{prefix}_save', type='primary', disabled=not tracker)
    if not clicked:
        return
    orchestrator = SaveOrchestrator(_client(settings), tracker, max_workers=settings.max_workers)
    with st.spinner('Saving changes...'):
        outcome = run_save(orchestrator)
    if not outcome.ok:
        st.error(f'{len(outcome.failures)} of {outcome.attempted} update(s) failed: {outcome.first_error}')
        return
    skipped = f' {outcome.skipped} edit group(s) had no matching record and were skipped.' if outcome.skipped else ''
    st.session_state[f'{prefix}_save_message'] = f'Saved {outcome.succeeded} update(s).{skipped}'
    _ledger(prefix).clear()
    bump_widget_version(prefix)
    st.rerun()


def _render_export(prefix: str, page: str, tables: list[TableModel], *, header_fill: bool) -> None:
    c_export_1, c_export_2 = st.columns([1, 1])
    with c_export_1:
        if st.button('Generate Excel Export', key=f'{prefix}_generate_export'):
            try:
                st.session_state[f'{prefix}_export_bytes'] = build_export_workbook_bytes(
                    tables,
                    workbook_title=f'{page} Export',
                    header_fill=header_fill,
                )
                st.session_state[f'{prefix}_export_filename'] = default_export_filename(page)
                st.success('Export generated. Use the download button to save the workbook.')
            except Exception as exc:
                st.error(f'Failed to generate export: {exc}')

    if st.session_state.get(f'{prefix}_export_bytes') is not None:
        with c_export_2:
            st.download_button(
                label='Download Excel (.xlsx)',
                data=st.session_state[f'{prefix}_export_bytes'],
                file_name=st.session_state.get(f'{prefix}_export_filename', default_export_filename(page)),
                mime=XLSX_MIME,
                key=f'{prefix}_download_export',
            )


def _fetch_finance_data(state: SelectionState, settings: Settings) -> dict[Any, dict[str, Any]]:
    ledger = _ledger(FINANCE_PREFIX)
    project_ids = [p.id for p in state.projects]
    signature = selection_signature(state)
    if ledger.needs_fetch(signature):
        ledger.begin(signature)
        fetched: dict[Any, dict[str, Any]] = {}
        with st.spinner('Loading finance data...'):
            for module in state.modules:
                sub_groups = [sg.key for sg in state.sub_groups.get(module, ())]
                loaded = load_finance_data(
                    _client(settings),
                    project_ids,
                    module,
                    sub_groups,
                    max_workers=settings.max_workers,
                )
                for project_id, modules in loaded.items():
                    fetched.setdefault(project_id, {}).update(modules)
        ledger.commit(signature, fetched)
    ledger.prune_to_selection(project_ids, state.modules)
    return ledger.data


def _fetch_projects_data(state: SelectionState, settings: Settings) -> dict[Any, Any]:
    ledger = _ledger(TECHNICAL_PREFIX)
    project_ids = [p.id for p in state.projects]
    signature = (tuple(project_ids),)
    if ledger.needs_fetch(signature):
        ledger.begin(signature)
        with st.spinner('Loading project data...'):
            loaded = load_projects_data(_client(settings), project_ids, max_workers=settings.max_workers)
        ledger.commit(signature, {pid: {PROJECT_PAYLOAD: data} for pid, data in loaded.items() if data is not None})
    ledger.prune_to_selection(project_ids, [PROJECT_PAYLOAD])
    return {pid: modules.get(PROJECT_PAYLOAD) for pid, modules in ledger.data.items()}


def _finance_page(settings: Settings, projects: list[Project]) -> None:
    prefix = FINANCE_PREFIX
    state = selection_state(f'{prefix}_selection', FINANCE_PAGE_CONFIG)
    _render_selection_sidebar(prefix, state, projects)

    sample_id = state.projects[0].id if state.projects else projects[0].id
    state = _resolve_structures(prefix, state, lambda m: _cached_finance_structure(settings, m, sample_id))
    _render_datapoint_selection(prefix, state, sub_group_label='Sub-groups')

    if not is_ready_to_fetch(state):
        st.info('Select projects, a module and its datapoints to load data.')
        return

    raw_data = _fetch_finance_data(state, settings)
    rows = generate_rows(state.projects, state.modules, state, raw_data)
    tables = build_finance_sheets(state.modules, rows, raw_data)
    tracker = _tracker(prefix)
    version = widget_version(prefix)
    for table in tables:
        st.subheader(table.title)
        for error in render_finance_table(table, tracker, key=f'{prefix}_editor_{table.title}_{version}'):
            st.warning(error)

    _render_save(prefix, settings, lambda orchestrator: orchestrator.save_finance(state, raw_data))
    _render_export(prefix, FINANCE_PAGE, tables, header_fill=True)


def _technical_page(settings: Settings, projects: list[Project]) -> None:
    prefix = TECHNICAL_PREFIX
    state = selection_state(f'{prefix}_selection', TECHNICAL_PAGE_CONFIG)
    _render_selection_sidebar(prefix, state, projects)

    state = _resolve_structures(prefix, state, lambda m: _cached_technical_structure(settings, m))
    _render_datapoint_selection(prefix, state, sub_group_label='Sub-modules')

    views = organize_datapoints(state)
    if not state.projects or not views:
        st.info('Select projects, modules and datapoints to load data.')
        return

    projects_data = _fetch_projects_data(state, settings)
    datapoints = tuple(dp for view in views for group in view.groups for dp in group.datapoints)
    try:
        dropdown_options = _cached_dropdown_options(settings, datapoints)
    except Exception as exc:
        LOGGER.error('Failed to load dropdown options: %s', exc)
        dropdown_options = {}

    projects_selected = list(state.projects)
    tables = build_technical_sheets(views, projects_selected, projects_data)
    tracker = _tracker(prefix)
    version = widget_version(prefix)
    for view, table in zip(views, tables):
        st.subheader(view.module)
        errors = render_technical_table(
            view,
            table,
            tracker,
            projects_data,
            dropdown_options,
            key=f'{prefix}_editor_{view.module}_{version}',
        )
        for error in errors:
            st.warning(error)

    _render_save(prefix, settings, lambda orchestrator: orchestrator.save_technical(projects_data))
    _render_export(prefix, TECHNICAL_PAGE, tables, header_fill=False)


def main() -> None:
    st.set_page_config(page_title='OneView Intelligence', layout='wide')
    settings = _settings()
    configure_logging(settings.log_level)

    with st.sidebar:
        page = _stable_radio(label='Page', options=PAGES, key='page', default=FINANCE_PAGE, horizontal=False)
        if st.button('Refresh Data', key='global_refresh_data'):
            st.cache_data.clear()
            for prefix in (FINANCE_PREFIX, TECHNICAL_PREFIX):
                _ledger(prefix).clear()
            st.rerun()

    st.title(page)
    try:
        projects = _cached_projects(settings)
    except Exception as exc:
        st.error(f'Failed to load projects from `{settings.api_base_url}`: {exc}')
        st.stop()
    if not projects:
        st.warning('No projects available.')
        return

    if page == FINANCE_PAGE:
        _finance_page(settings, projects)
    else:
        _technical_page(settings, projects)


if __name__ == '__main__':
    main()
