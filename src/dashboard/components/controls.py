"""Shared UI controls and state normalization helpers."""

from __future__ import annotations

from typing import Any, Callable, Iterable, MutableMapping

import streamlit as st

from src.intelligence.selection import (
    DATAPOINT_MODES,
    MODE_ALL,
    MODE_CUSTOM,
    SCOPE_SEPARATOR,
    PageConfig,
    SelectionAction,
    SelectionState,
    SetDatapointMode,
    ToggleAllDatapoints,
    ToggleAllModules,
    ToggleAllProjects,
    ToggleAllSubGroups,
    ToggleDatapoint,
    ToggleModule,
    ToggleProject,
    ToggleSubGroup,
    available_datapoints,
    available_scopes,
    module_of_scope,
    reduce_selection,
)
from src.models.project import Project

NO_MODULE = ''
DATAPOINT_MODE_LABELS = {MODE_ALL: 'All datapoints', MODE_CUSTOM: 'Custom selection'}


def coerce_option(current: Any, options: list[Any], default: Any) -> Any:
    """Return a stable option value that is guaranteed to be in options."""
    if not options:
        return default
    if current in options:
        return current
    if default in options:
        return default
    return options[0]


def _stable_radio(
    *,
    label: str,
    options: list[str],
    key: str,
    default: str,
    horizontal: bool = True,
    format_func=None,
) -> str:
    current = coerce_option(st.session_state.get(key, default), options, default)
    st.session_state[key] = current
    idx = options.index(current)
    if format_func is None:
        return st.radio(label, options=options, index=idx, horizontal=horizontal, key=key)
    return st.radio(label, options=options, index=idx, horizontal=horizontal, key=key, format_func=format_func)


def toggle_actions(
    current: Iterable[Any],
    chosen: Iterable[Any],
    make_action: Callable[[Any], SelectionAction],
) -> list[SelectionAction]:
    """Toggle actions that turn the current keys into the chosen ones: removals first, then additions in order."""
    current = list(current)
    chosen = list(chosen)
    actions = [make_action(key) for key in current if key not in chosen]
    actions.extend(make_action(key) for key in chosen if key not in current)
    return actions


def apply_actions(state: SelectionState, actions: Iterable[SelectionAction]) -> SelectionState:
    for action in actions:
        state = reduce_selection(state, action)
    return state


def selection_state(key: str, config: PageConfig) -> SelectionState:
    """Page selection held in session state, created on first use."""
    state = st.session_state.get(key)
    if not isinstance(state, SelectionState) or state.config != config:
        state = SelectionState(config=config)
        st.session_state[key] = state
    return state


def widget_version(prefix: str, session: MutableMapping[str, Any] | None = None) -> int:
    session = st.session_state if session is None else session
    return int(session.get(f'{prefix}_widget_version', 0))


def bump_widget_version(prefix: str, session: MutableMapping[str, Any] | None = None) -> None:
    """Recreate the page widgets so their defaults follow the selection state again."""
    session = st.session_state if session is None else session
    session[f'{prefix}_widget_version'] = widget_version(prefix, session) + 1


def _widget_key(prefix: str, name: str) -> str:
    return f'{prefix}_{name}_{widget_version(prefix)}'


def render_project_panel(state: SelectionState, projects: list[Project], *, prefix: str) -> list[SelectionAction]:
    """Project multiselect plus a select-all toggle."""
    by_id = {p.id: p for p in projects}
    st.subheader('Projects')
    all_selected = bool(projects) and {p.id for p in state.projects} == set(by_id)
    if st.button(
        'Clear all projects' if all_selected else 'Select all projects',
        key=_widget_key(prefix, 'all_projects'),
        disabled=not projects,
    ):
        return [ToggleAllProjects(projects=tuple(projects))]
    chosen = st.multiselect(
        'Projects',
        options=list(by_id),
        default=[p.id for p in state.projects if p.id in by_id],
        format_func=lambda pid: by_id[pid].name,
        key=_widget_key(prefix, 'projects'),
        label_visibility='collapsed',
    )
    known = {**{p.id: p for p in state.projects}, **by_id}
    return toggle_actions([p.id for p in state.projects], chosen, lambda pid: ToggleProject(project=known[pid]))


def render_module_panel(state: SelectionState, *, prefix: str) -> list[SelectionAction]:
    """Single-select module picker on exclusive pages, a multiselect elsewhere."""
    config = state.config
    options = list(config.module_options)
    st.subheader('Modules')
    if config.exclusive_modules:
        current = state.modules[0] if state.modules else NO_MODULE
        choice = st.selectbox(
            'Module',
            [NO_MODULE] + options,
            index=([NO_MODULE] + options).index(current),
            format_func=lambda m: m or 'Select a module',
            key=_widget_key(prefix, 'module'),
            label_visibility='collapsed',
        )
        if choice == current:
            return []
        return [ToggleModule(module=choice or current)]

    all_selected = set(state.modules) == set(options)
    if st.button('Clear all modules' if all_selected else 'Select all modules', key=_widget_key(prefix, 'all_modules')):
        return [ToggleAllModules()]
    chosen = st.multiselect(
        'Modules',
        options=options,
        default=list(state.modules),
        key=_widget_key(prefix, 'modules'),
        label_visibility='collapsed',
    )
    return toggle_actions(state.modules, chosen, lambda m: ToggleModule(module=m))


def render_sub_group_panel(state: SelectionState, module: str, *, prefix: str, label: str) -> list[SelectionAction]:
    structure = state.structures.get(module)
    if structure is None or not structure.has_sub_groups:
        return []
    by_key = {sub.key: sub for sub in structure.sub_groups}
    current = [sub.key for sub in state.sub_groups.get(module, ()) if sub.key in by_key]
    widget = f'sub_groups_{module}'

    if module in state.config.single_select_sub_groups:
        options = list(by_key)
        choice = st.radio(
            f'{module} {label}',
            options=options,
            index=options.index(current[0]) if current else None,
            format_func=lambda k: by_key[k].label,
            key=_widget_key(prefix, widget),
        )
        if choice is None or (current and choice == current[0]):
            return []
        return [ToggleSubGroup(module=module, sub_group=by_key[choice])]

    all_selected = len(current) == len(by_key)
    if st.button(
        f'Clear all {label.lower()}' if all_selected else f'Select all {label.lower()}',
        key=_widget_key(prefix, f'{widget}_all'),
    ):
        return [ToggleAllSubGroups(module=module)]
    chosen = st.multiselect(
        f'{module} {label}',
        options=list(by_key),
        default=current,
        format_func=lambda k: by_key[k].label,
        key=_widget_key(prefix, widget),
    )
    return toggle_actions(current, chosen, lambda k: ToggleSubGroup(module=module, sub_group=by_key[k]))


def render_datapoint_panel(state: SelectionState, module: str, *, prefix: str) -> list[SelectionAction]:
    """Datapoint mode plus, in custom mode, one multiselect per available scope."""
    if module in state.config.auto_datapoint_modules or module in state.config.single_select_sub_groups:
        return []
    scopes = [scope for scope in available_scopes(state) if module_of_scope(scope) == module]
    if not scopes:
        return []

    current_mode = state.datapoint_mode.get(module, MODE_CUSTOM)
    mode = st.radio(
        f'{module} datapoints',
        options=list(DATAPOINT_MODES),
        index=list(DATAPOINT_MODES).index(current_mode),
        format_func=lambda m: DATAPOINT_MODE_LABELS[m],
        horizontal=True,
        key=_widget_key(prefix, f'mode_{module}'),
    )
    if mode != current_mode:
        return [SetDatapointMode(module=module, mode=mode)]
    if mode == MODE_ALL:
        return []

    actions: list[SelectionAction] = []
    for scope in scopes:
        points = available_datapoints(state, scope)
        if not points:
            continue
        by_key = {dp.key: dp for dp in points}
        selected = [dp.key for dp in state.datapoints.get(scope, ()) if dp.key in by_key]
        _, _, sub_key = scope.partition(SCOPE_SEPARATOR)
        sub = state.structures[module].sub_group(sub_key) if sub_key else None
        label = sub.label if sub is not None else module
        if st.button(
            f'Toggle all in {label}',
            key=_widget_key(prefix, f'dp_all_{scope}'),
        ):
            return [ToggleAllDatapoints(scope=scope)]
        chosen = st.multiselect(
            label,
            options=list(by_key),
            default=selected,
            format_func=lambda k, by_key=by_key: by_key[k].label,
            key=_widget_key(prefix, f'dp_{scope}'),
        )
        actions.extend(toggle_actions(selected, chosen, lambda k, s=scope, b=by_key: ToggleDatapoint(scope=s, datapoint=b[k])))
    return actions
