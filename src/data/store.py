"""Fetched module data keyed by project, guarded against stale responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from src.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class FetchLedger:
    """Holds ``{project_id: {module: raw}}`` plus the selection signature it was fetched for.

    A fetch is started with ``begin(signature)``. Its response is only kept by
    ``commit`` while that signature is still the latest one begun, so a slow
    response for an old selection never overwrites newer data.
    """

    data: dict[Any, dict[str, Any]] = field(default_factory=dict)
    committed: tuple | None = None
    latest: tuple | None = None

    def begin(self, signature: tuple) -> tuple:
        self.latest = signature
        return signature

    def is_stale(self, signature: tuple) -> bool:
        return signature != self.latest

    def needs_fetch(self, signature: tuple) -> bool:
        return signature != self.committed

    def commit(self, signature: tuple, fetched: dict[Any, dict[str, Any]]) -> bool:
        if self.is_stale(signature):
            LOGGER.info('Discarding stale fetch for %s.', signature)
            return False
        for project_id, modules in fetched.items():
            self.data.setdefault(project_id, {}).update(modules)
        self.committed = signature
        return True

    def prune_to_selection(self, project_ids: Iterable[Any], modules: Iterable[str]) -> None:
        """Drop data for projects and modules that are no longer selected."""
        keep_projects = set(project_ids)
        keep_modules = set(modules)
        for project_id in list(self.data):
            if project_id not in keep_projects:
                del self.data[project_id]
                continue
            project_data = self.data[project_id]
            for module in list(project_data):
                if module not in keep_modules:
                    del project_data[module]
            if not project_data:
                del self.data[project_id]

    def clear(self) -> None:
        self.data.clear()
        self.committed = None
        self.latest = None
