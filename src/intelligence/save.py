"""Turn tracked edits into update calls and dispatch them concurrently."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Protocol

from src.finance.registry import finance_module, finance_table, generate_rows
from src.intelligence.changes import ChangeTracker
from src.intelligence.selection import SelectionState
from src.models.save import TARGET_FINANCE, TARGET_PROJECT, SaveRequest
from src.technical.table import split_technical_field_key
from src.technical.values import record_at
from src.utils.logging import get_logger

LOGGER = get_logger(__name__)


class UpdateClient(Protocol):
    def update_finance_submodule(self, submodule_name: str, project_id: Any, payload: dict[str, Any]) -> Any: ...

    def update_project_data(self, table_name: str, project_id: Any, payload: dict[str, Any]) -> Any: ...


@dataclass
class SaveOutcome:
    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failures: list[tuple[SaveRequest, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def first_error(self) -> str | None:
        return self.failures[0][1] if self.failures else None


@dataclass
class SaveBatch:
    requests: list[SaveRequest] = field(default_factory=list)
    skipped: int = 0


def _send(client: UpdateClient, request: SaveRequest) -> Any:
    if request.target == TARGET_FINANCE:
        return client.update_finance_submodule(request.name, request.project_id, request.payload)
    if request.target == TARGET_PROJECT:
        return client.update_project_data(request.name, request.project_id, request.payload)
    raise ValueError(f'Unknown save target: {request.target}')


def dispatch_save_requests(client: UpdateClient, requests: list[SaveRequest], *, max_workers: int = 8) -> SaveOutcome:
    """Send every request concurrently and wait for all of them; failures are collected, not raised."""
    outcome = SaveOutcome(attempted=len(requests))
    if not requests:
        return outcome
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(requests)))) as pool:
        futures = {pool.submit(_send, client, request): request for request in requests}
        for future in as_completed(futures):
            request = futures[future]
            try:
                future.result()
            except Exception as exc:
                LOGGER.error('Save failed for %s (project %s): %s', request.name, request.project_id, exc)
                outcome.failures.append((request, str(exc)))
            else:
                outcome.succeeded += 1
    return outcome


def finance_save_batch(
    tracker: ChangeTracker,
    state: SelectionState,
    raw_data: Mapping[Any, Mapping[str, Any]],
) -> SaveBatch:
    """Rebuild each edited row from the fetched data and let its module shape the payload."""
    batch = SaveBatch()
    tables: dict[str, Any] = {}
    for (project_id, module, row_index), changes in tracker.grouped().items():
        if module not in tables:
            rows = generate_rows(state.projects, [module], state, raw_data)
            tables[module] = finance_table(module, rows, raw_data)
        source_rows = tables[module].source_rows
        row = source_rows[row_index] if 0 <= row_index < len(source_rows) else None
        if row is None or row.get('project_id') != project_id:
            LOGGER.warning('Edited %s row %s for project %s no longer exists; skipping.', module, row_index, project_id)
            batch.skipped += 1
            continue
        raw = (raw_data.get(project_id) or {}).get(module)
        request = finance_module(module).build_save_request(row, changes, raw)
        if request is None:
            batch.skipped += 1
            continue
        batch.requests.append(replace(request, row_index=row_index))
    return batch


def technical_save_batch(tracker: ChangeTracker, projects_data: Mapping[Any, Any]) -> SaveBatch:
    """Patch the record each edited technical row points at, one request per table."""
    batch = SaveBatch()
    for (project_id, group_name, record_index), changes in tracker.grouped().items():
        record = record_at(projects_data.get(project_id), group_name, record_index)
        if record is None or not record.get('id'):
            LOGGER.warning('No %s record at index %s for project %s; skipping.', group_name, record_index, project_id)
            batch.skipped += 1
            continue
        by_table: dict[str, dict[str, Any]] = {}
        for key, value in changes.items():
            table_name, field_key = split_technical_field_key(key)
            by_table.setdefault(table_name, {})[field_key] = value
        for table_name, fields in by_table.items():
            batch.requests.append(
                SaveRequest(
                    target=TARGET_PROJECT,
                    name=table_name,
                    project_id=project_id,
                    payload={'id': record['id'], **fields},
                    module=group_name,
                    row_index=record_index,
                )
            )
    return batch


class SaveOrchestrator:
    """Dispatch a batch and clear the pending edits only when nothing failed."""

    def __init__(self, client: UpdateClient, tracker: ChangeTracker, *, max_workers: int = 8) -> None:
        self.client = client
        self.tracker = tracker
        self.max_workers = max_workers

    def save(self, batch: SaveBatch) -> SaveOutcome:
        outcome = dispatch_save_requests(self.client, batch.requests, max_workers=self.max_workers)
        outcome.skipped = batch.skipped
        if outcome.ok:
            LOGGER.info('Saved %s request(s); %s group(s) skipped.', outcome.succeeded, outcome.skipped)
            self.tracker.clear()
        else:
            LOGGER.warning('%s of %s save request(s) failed.', len(outcome.failures), outcome.attempted)
        return outcome

    def save_finance(self, state: SelectionState, raw_data: Mapping[Any, Mapping[str, Any]]) -> SaveOutcome:
        return self.save(finance_save_batch(self.tracker, state, raw_data))

    def save_technical(self, projects_data: Mapping[Any, Any]) -> SaveOutcome:
        return self.save(technical_save_batch(self.tracker, projects_data))
