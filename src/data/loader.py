"""API loaders: concurrent fetches, payload unwrapping and normalization."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Hashable, Iterable

import pandas as pd

from src.data.api_client import OneViewApiClient
from src.data.validator import validate_field_metadata, validate_projects
from src.finance.base import AMORT_SCHEDULE, SWAPS, SWAPS_SUMMARY
from src.finance.registry import finance_api_name, resolve_structure
from src.finance.swaps import swaps_api_name
from src.models.project import Project, project_from_record
from src.models.structure import Datapoint, FieldMeta, ModuleStructure
from src.technical.catalog import datapoint_api_name, metadata_sources, resolve_technical_structure
from src.utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


def fan_out(
    tasks: dict[Hashable, Callable[[], Any]],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    default: Any = None,
) -> dict[Hashable, Any]:
    """Run independent fetches concurrently; a failed task yields ``default`` for its key only."""
    results: dict[Hashable, Any] = {}
    if not tasks:
        return results
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks)))) as executor:
        futures = {executor.submit(task): key for key, task in tasks.items()}
        for future in as_completed(futures):
            key = futures[future]
            try:
                results[key] = future.result()
            except Exception as exc:
                LOGGER.error('Fetch failed for %s: %s', key, exc)
                results[key] = default
    return {key: results[key] for key in tasks}


def unwrap_payload(body: Any) -> Any:
    """The ``data`` member of a ``{success, data}`` envelope, or the body itself."""
    if isinstance(body, dict) and 'data' in body and ('success' in body or 'submoduleName' in body):
        return body['data']
    return body


def unwrap_finance_payload(api_name: str, body: Any) -> Any:
    data = unwrap_payload(body)
    if api_name == swaps_api_name(AMORT_SCHEDULE) and isinstance(data, dict) and isinstance(data.get('data'), list):
        return data['data']
    return data


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out.columns = [str(c).strip() for c in out.columns]
    return out


def load_projects(client: OneViewApiClient) -> list[Project]:
    """Load, validate and normalize the project list."""
    records = unwrap_payload(client.get_project_data()) or []
    if not isinstance(records, list):
        raise ValueError(f'Project list response is not a list: {type(records).__name__}')
    # object dtype keeps integer ids intact when some records lack one
    df = _normalize_columns(pd.DataFrame([r for r in records if isinstance(r, dict)], dtype=object))
    for warning in validate_projects(df):
        LOGGER.warning(warning)
    if df.empty:
        return []

    df = df.loc[df['id'].notna()].drop_duplicates(subset=['id'], keep='first')
    projects = []
    for record in df.to_dict(orient='records'):
        clean = {k: (None if isinstance(v, float) and pd.isna(v) else v) for k, v in record.items()}
        projects.append(project_from_record(clean))
    LOGGER.info('Loaded %s projects.', len(projects))
    return projects


def parse_field_metadata(records: Any, source: str = '') -> list[FieldMeta]:
    if not isinstance(records, list) or not records:
        return []
    df = _normalize_columns(pd.DataFrame.from_records([r for r in records if isinstance(r, dict)]))
    for warning in validate_field_metadata(df, source):
        LOGGER.warning(warning)
    fields = []
    for record in records:
        if isinstance(record, dict) and str(record.get('field_key') or '').strip():
            fields.append(FieldMeta.from_record(record))
    return fields


def load_field_metadata(
    client: OneViewApiClient,
    names: Iterable[str],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[str, list[FieldMeta]]:
    """Datapoint metadata per (sub-)module name; a failed fetch leaves that name empty."""
    names = list(dict.fromkeys(names))
    bodies = fan_out(
        {name: (lambda n=name: client.get_data_points(datapoint_api_name(n))) for name in names},
        max_workers=max_workers,
        default=[],
    )
    return {name: parse_field_metadata(unwrap_payload(body), name) for name, body in bodies.items()}


def load_technical_structure(
    client: OneViewApiClient,
    module: str,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ModuleStructure:
    fields = load_field_metadata(client, metadata_sources(module), max_workers=max_workers)
    return resolve_technical_structure(module, fields)


def load_dropdown_options(
    client: OneViewApiClient,
    datapoints: Iterable[Datapoint],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[tuple[str, str], list[str]]:
    """Option values for dropdown datapoints keyed by (table, field)."""
    keys = list(
        dict.fromkeys(
            (dp.table_name, dp.key)
            for dp in datapoints
            if dp.table_name and str(dp.data_type or '').lower() == 'dropdown'
        )
    )
    bodies = fan_out(
        {key: (lambda k=key: client.get_dropdown_options(k[0], k[1])) for key in keys},
        max_workers=max_workers,
        default=None,
    )
    options: dict[tuple[str, str], list[str]] = {}
    for key, body in bodies.items():
        rows = unwrap_payload(body) or []
        options[key] = [
            str(row['option_value']) for row in rows if isinstance(row, dict) and row.get('option_value') is not None
        ]
    return options


def load_projects_data(
    client: OneViewApiClient,
    project_ids: Iterable[Any],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[Any, Any]:
    """Full technical payload per project; None for projects whose fetch failed."""
    ids = list(dict.fromkeys(project_ids))
    return fan_out(
        {pid: (lambda p=pid: unwrap_payload(client.get_project_by_id(p))) for pid in ids},
        max_workers=max_workers,
        default=None,
    )


def _fetch_finance(client: OneViewApiClient, api_name: str, project_id: Any) -> Any:
    return unwrap_finance_payload(api_name, client.get_finance_submodule(api_name, project_id))


def load_module_structure(client: OneViewApiClient, module: str, sample_project_id: Any) -> ModuleStructure:
    """Resolve a finance module's selectable shape from one project's payload."""
    if module == SWAPS:
        return resolve_structure(module, None)
    api_name = finance_api_name(module)
    try:
        sample = _fetch_finance(client, api_name, sample_project_id)
    except Exception as exc:
        LOGGER.error('Structure fetch failed for %s (project %s): %s', module, sample_project_id, exc)
        return ModuleStructure.empty()
    return resolve_structure(module, sample)


def load_finance_data(
    client: OneViewApiClient,
    project_ids: Iterable[Any],
    module: str,
    sub_groups: Iterable[str] = (),
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[Any, dict[str, Any]]:
    """Raw module payload per project as ``{project_id: {module: raw}}``.

    Swaps payloads are keyed by vital (``{vital: raw}``) and default to the
    summary when no vital is selected. A failed fetch leaves that slot None.
    """
    ids = list(dict.fromkeys(project_ids))
    if module == SWAPS:
        vitals = list(sub_groups) or [SWAPS_SUMMARY]
        tasks = {
            (pid, vital): (lambda p=pid, v=vital: _fetch_finance(client, swaps_api_name(v), p))
            for pid in ids
            for vital in vitals
        }
        results = fan_out(tasks, max_workers=max_workers)
        out: dict[Any, dict[str, Any]] = {}
        for pid in ids:
            fetched = {v: results[(pid, v)] for v in vitals if results[(pid, v)] is not None}
            out[pid] = {module: fetched or None}
        return out

    api_name = finance_api_name(module)
    results = fan_out({pid: (lambda p=pid: _fetch_finance(client, api_name, p)) for pid in ids}, max_workers=max_workers)
    return {pid: {module: results[pid]} for pid in ids}
