"""Selection state for the intelligence pages and the reducer that mutates it."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Union

from src.models.project import Project
from src.models.structure import Datapoint, ModuleStructure, SubGroup

SCOPE_SEPARATOR = '___'
MODE_ALL = 'all'
MODE_CUSTOM = 'custom'
DATAPOINT_MODES = (MODE_ALL, MODE_CUSTOM)


@dataclass(frozen=True)
class PageConfig:
    """Behavioural switches that differ between the Finance and Technical pages."""

    page: str
    module_options: tuple[str, ...]
    exclusive_modules: bool = False
    reset_on_empty_projects: bool = False
    single_select_sub_groups: frozenset[str] = frozenset()
    auto_datapoint_modules: frozenset[str] = frozenset()
    mode_follows_sub_groups: bool = False


@dataclass(frozen=True)
class SelectionState:
    config: PageConfig
    projects: tuple[Project, ...] = ()
    modules: tuple[str, ...] = ()
    sub_groups: dict[str, tuple[SubGroup, ...]] = field(default_factory=dict)
    datapoint_mode: dict[str, str] = field(default_factory=dict)
    datapoints: dict[str, tuple[Datapoint, ...]] = field(default_factory=dict)
    structures: dict[str, ModuleStructure] = field(default_factory=dict)


@dataclass(frozen=True)
class ToggleProject:
    project: Project


@dataclass(frozen=True)
class ToggleAllProjects:
    projects: tuple[Project, ...]


@dataclass(frozen=True)
class ToggleModule:
    module: str


@dataclass(frozen=True)
class ToggleAllModules:
    pass


@dataclass(frozen=True)
class StructureResolved:
    module: str
    structure: ModuleStructure


@dataclass(frozen=True)
class ToggleSubGroup:
    module: str
    sub_group: SubGroup


@dataclass(frozen=True)
class ToggleAllSubGroups:
    module: str


@dataclass(frozen=True)
class SetDatapointMode:
    module: str
    mode: str


@dataclass(frozen=True)
class ToggleDatapoint:
    scope: str
    datapoint: Datapoint


@dataclass(frozen=True)
class ToggleAllDatapoints:
    scope: str | None = None


@dataclass(frozen=True)
class ResetSelection:
    pass


SelectionAction = Union[
    ToggleProject,
    ToggleAllProjects,
    ToggleModule,
    ToggleAllModules,
    StructureResolved,
    ToggleSubGroup,
    ToggleAllSubGroups,
    SetDatapointMode,
    ToggleDatapoint,
    ToggleAllDatapoints,
    ResetSelection,
]


def scope_key(module: str, sub_group_key: Any = None) -> str:
    """Datapoint scope for a module, or for one of its sub-groups."""
    if sub_group_key is None:
        return module
    return f'{module}{SCOPE_SEPARATOR}{sub_group_key}'


def module_of_scope(scope: str) -> str:
    return scope.split(SCOPE_SEPARATOR, 1)[0]


def _module_scopes(datapoints: dict[str, tuple[Datapoint, ...]], module: str) -> list[str]:
    prefix = f'{module}{SCOPE_SEPARATOR}'
    return [key for key in datapoints if key == module or key.startswith(prefix)]


def _put(mapping: dict[str, tuple], key: str, items: tuple) -> None:
    if items:
        mapping[key] = tuple(items)
    else:
        mapping.pop(key, None)


def _clear_module(state: SelectionState, module: str) -> SelectionState:
    sub_groups = dict(state.sub_groups)
    modes = dict(state.datapoint_mode)
    datapoints = dict(state.datapoints)
    structures = dict(state.structures)
    sub_groups.pop(module, None)
    modes.pop(module, None)
    structures.pop(module, None)
    for key in _module_scopes(datapoints, module):
        datapoints.pop(key)
    return replace(state, sub_groups=sub_groups, datapoint_mode=modes, datapoints=datapoints, structures=structures)


def _fill_all(state: SelectionState, module: str, datapoints: dict[str, tuple[Datapoint, ...]]) -> None:
    structure = state.structures.get(module)
    if structure is None:
        return
    if structure.has_sub_groups:
        for sub in state.sub_groups.get(module, ()):
            _put(datapoints, scope_key(module, sub.key), structure.datapoints_for(sub.key))
    else:
        _put(datapoints, scope_key(module), structure.all_datapoints)


def _toggle_project(state: SelectionState, project: Project) -> SelectionState:
    selected_ids = [p.id for p in state.projects]
    if project.id in selected_ids:
        projects = tuple(p for p in state.projects if p.id != project.id)
    else:
        projects = state.projects + (project,)
    if not projects and state.config.reset_on_empty_projects:
        return SelectionState(config=state.config)
    return replace(state, projects=projects)


def _toggle_all_projects(state: SelectionState, projects: tuple[Project, ...]) -> SelectionState:
    all_ids = {p.id for p in projects}
    selected_ids = {p.id for p in state.projects}
    if all_ids and all_ids == selected_ids:
        if state.config.reset_on_empty_projects:
            return SelectionState(config=state.config)
        return replace(state, projects=())
    return replace(state, projects=tuple(projects))


def _toggle_module(state: SelectionState, module: str) -> SelectionState:
    if module not in state.config.module_options:
        raise ValueError(f'Unknown module for {state.config.page} page: {module}')
    if state.config.exclusive_modules:
        modules = () if state.modules == (module,) else (module,)
        if state.modules:
            return replace(
                state,
                modules=modules,
                sub_groups={},
                datapoint_mode={},
                datapoints={},
                structures={},
            )
        return replace(state, modules=modules)
    if module in state.modules:
        cleared = _clear_module(state, module)
        return replace(cleared, modules=tuple(m for m in state.modules if m != module))
    return replace(state, modules=state.modules + (module,))


def _toggle_all_modules(state: SelectionState) -> SelectionState:
    if state.config.exclusive_modules:
        raise ValueError(f'Module selection on the {state.config.page} page is single-select')
    options = state.config.module_options
    if options and set(state.modules) == set(options):
        return SelectionState(config=state.config, projects=state.projects)
    return replace(state, modules=tuple(options))


def _structure_resolved(state: SelectionState, module: str, structure: ModuleStructure) -> SelectionState:
    if module not in state.modules:
        return state
    structures = dict(state.structures)
    structures[module] = structure
    resolved = replace(state, structures=structures)
    if state.datapoint_mode.get(module) == MODE_ALL:
        datapoints = dict(resolved.datapoints)
        _fill_all(resolved, module, datapoints)
        resolved = replace(resolved, datapoints=datapoints)
    return resolved


def _toggle_sub_group(state: SelectionState, module: str, sub_group: SubGroup) -> SelectionState:
    if module not in state.modules:
        return state
    config = state.config
    current = state.sub_groups.get(module, ())
    is_selected = any(sg.key == sub_group.key for sg in current)
    structure = state.structures.get(module, ModuleStructure.empty())
    sub_groups = dict(state.sub_groups)
    datapoints = dict(state.datapoints)
    modes = dict(state.datapoint_mode)
    key = scope_key(module, sub_group.key)

    if module in config.single_select_sub_groups:
        if is_selected:
            sub_groups.pop(module, None)
            datapoints.pop(key, None)
        else:
            for scope in _module_scopes(datapoints, module):
                datapoints.pop(scope)
            sub_groups[module] = (sub_group,)
            _put(datapoints, key, structure.datapoints_for(sub_group.key))
        return replace(state, sub_groups=sub_groups, datapoints=datapoints)

    if is_selected:
        _put(sub_groups, module, tuple(sg for sg in current if sg.key != sub_group.key))
        datapoints.pop(key, None)
    else:
        sub_groups[module] = current + (sub_group,)
        if module in config.auto_datapoint_modules or modes.get(module) == MODE_ALL:
            _put(datapoints, key, structure.datapoints_for(sub_group.key))
    return replace(state, sub_groups=sub_groups, datapoints=datapoints, datapoint_mode=modes)


def _toggle_all_sub_groups(state: SelectionState, module: str) -> SelectionState:
    structure = state.structures.get(module)
    if module not in state.modules or structure is None or not structure.sub_groups:
        return state
    if module in state.config.single_select_sub_groups:
        return state
    current = state.sub_groups.get(module, ())
    all_selected = len(current) == len(structure.sub_groups)
    sub_groups = dict(state.sub_groups)
    datapoints = dict(state.datapoints)
    modes = dict(state.datapoint_mode)
    if all_selected:
        sub_groups.pop(module, None)
        for scope in _module_scopes(datapoints, module):
            if scope != module:
                datapoints.pop(scope)
        if state.config.mode_follows_sub_groups:
            modes[module] = MODE_CUSTOM
        return replace(state, sub_groups=sub_groups, datapoints=datapoints, datapoint_mode=modes)

    sub_groups[module] = tuple(structure.sub_groups)
    if state.config.mode_follows_sub_groups:
        modes[module] = MODE_ALL
    updated = replace(state, sub_groups=sub_groups, datapoint_mode=modes)
    if module in state.config.auto_datapoint_modules or modes.get(module) == MODE_ALL:
        _fill_all(updated, module, datapoints)
    return replace(updated, datapoints=datapoints)


def _set_datapoint_mode(state: SelectionState, module: str, mode: str) -> SelectionState:
    if mode not in DATAPOINT_MODES:
        raise ValueError(f'Invalid datapoint mode: {mode}')
    modes = dict(state.datapoint_mode)
    modes[module] = mode
    datapoints = dict(state.datapoints)
    updated = replace(state, datapoint_mode=modes)
    if mode == MODE_ALL:
        _fill_all(updated, module, datapoints)
    else:
        structure = state.structures.get(module)
        if structure is not None and structure.has_sub_groups:
            for sub in state.sub_groups.get(module, ()):
                datapoints.pop(scope_key(module, sub.key), None)
        else:
            datapoints.pop(scope_key(module), None)
    return replace(updated, datapoints=datapoints)


def _toggle_datapoint(state: SelectionState, scope: str, datapoint: Datapoint) -> SelectionState:
    current = state.datapoints.get(scope, ())
    if any(dp.key == datapoint.key for dp in current):
        items = tuple(dp for dp in current if dp.key != datapoint.key)
    else:
        items = current + (datapoint,)
    datapoints = dict(state.datapoints)
    _put(datapoints, scope, items)
    return replace(state, datapoints=datapoints)


def _toggle_all_datapoints(state: SelectionState, scope: str | None) -> SelectionState:
    scopes = [scope] if scope is not None else list(available_scopes(state))
    available = {s: available_datapoints(state, s) for s in scopes}
    total_available = sum(len(points) for points in available.values())
    total_selected = sum(len(state.datapoints.get(s, ())) for s in scopes)
    datapoints = dict(state.datapoints)
    for s, points in available.items():
        if total_available and total_selected == total_available:
            datapoints.pop(s, None)
        else:
            _put(datapoints, s, points)
    return replace(state, datapoints=datapoints)


def reduce_selection(state: SelectionState, action: SelectionAction) -> SelectionState:
    """Apply one user action and return the next selection state."""
    if isinstance(action, ToggleProject):
        return _toggle_project(state, action.project)
    if isinstance(action, ToggleAllProjects):
        return _toggle_all_projects(state, tuple(action.projects))
    if isinstance(action, ToggleModule):
        return _toggle_module(state, action.module)
    if isinstance(action, ToggleAllModules):
        return _toggle_all_modules(state)
    if isinstance(action, StructureResolved):
        return _structure_resolved(state, action.module, action.structure)
    if isinstance(action, ToggleSubGroup):
        return _toggle_sub_group(state, action.module, action.sub_group)
    if isinstance(action, ToggleAllSubGroups):
        return _toggle_all_sub_groups(state, action.module)
    if isinstance(action, SetDatapointMode):
        return _set_datapoint_mode(state, action.module, action.mode)
    if isinstance(action, ToggleDatapoint):
        return _toggle_datapoint(state, action.scope, action.datapoint)
    if isinstance(action, ToggleAllDatapoints):
        return _toggle_all_datapoints(state, action.scope)
    if isinstance(action, ResetSelection):
        return SelectionState(config=state.config)
    raise ValueError(f'Unsupported selection action: {action!r}')


def available_scopes(state: SelectionState) -> list[str]:
    """Scopes the user can currently pick datapoints in, in module then sub-group order."""
    scopes: list[str] = []
    for module in state.modules:
        structure = state.structures.get(module)
        if structure is None:
            continue
        if structure.has_sub_groups:
            scopes.extend(scope_key(module, sub.key) for sub in state.sub_groups.get(module, ()))
        else:
            scopes.append(scope_key(module))
    return scopes


def available_datapoints(state: SelectionState, scope: str) -> tuple[Datapoint, ...]:
    module, _, sub_key = scope.partition(SCOPE_SEPARATOR)
    structure = state.structures.get(module)
    if structure is None:
        return ()
    if not sub_key:
        return () if structure.has_sub_groups else structure.all_datapoints
    for sub in structure.sub_groups:
        if str(sub.key) == sub_key:
            return structure.datapoints_for(sub.key)
    return ()


def selected_datapoints(state: SelectionState, module: str, sub_group_key: Any = None) -> tuple[Datapoint, ...]:
    return state.datapoints.get(scope_key(module, sub_group_key), ())


def selected_sub_groups(state: SelectionState, module: str) -> tuple[SubGroup, ...]:
    return state.sub_groups.get(module, ())


def total_selected_datapoints(state: SelectionState) -> int:
    return sum(len(points) for points in state.datapoints.values())


def is_ready_to_fetch(state: SelectionState) -> bool:
    """True once there is something selected that warrants fetching module data."""
    if not state.projects or not state.modules:
        return False
    if any(m in state.config.auto_datapoint_modules for m in state.modules):
        return True
    if any(m in state.config.single_select_sub_groups and state.sub_groups.get(m) for m in state.modules):
        return True
    return total_selected_datapoints(state) > 0


def selection_signature(state: SelectionState, module: str | None = None) -> tuple:
    """Hashable fingerprint of the parts of the selection that drive data fetches."""
    modules = (module,) if module is not None else state.modules
    return (
        tuple(p.id for p in state.projects),
        tuple(modules),
        tuple((m, tuple(sg.key for sg in state.sub_groups.get(m, ()))) for m in modules),
    )
