"""Pending cell edits, kept apart from the fetched data until saved."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from src.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ChangeKey:
    """Identity of one edited cell.

    On the Finance page ``module`` is the finance module name and
    ``row_index`` the row position within that module's rows. On the Technical
    page ``module`` is the sub-module (group) name, ``field_key`` is
    ``<table>___<field>`` and ``row_index`` is the record index.
    """

    project_id: Any
    row_index: int
    module: str
    field_key: str


@dataclass(frozen=True)
class ChangedField:
    value: Any
    original_value: Any


class ChangeTracker:
    def __init__(self) -> None:
        self._changes: dict[ChangeKey, ChangedField] = {}

    def record(self, key: ChangeKey, value: Any, original_value: Any) -> None:
        """Track an edit; editing a cell back to its original value forgets it."""
        previous = self._changes.get(key)
        original = previous.original_value if previous is not None else original_value
        if value == original:
            self._changes.pop(key, None)
            return
        self._changes[key] = ChangedField(value=value, original_value=original)
        LOGGER.debug('Tracked edit %s.%s for project %s row %s', key.module, key.field_key, key.project_id, key.row_index)

    def discard(self, key: ChangeKey) -> None:
        self._changes.pop(key, None)

    def clear(self) -> None:
        self._changes.clear()

    def value_for(self, key: ChangeKey, default: Any = None) -> Any:
        change = self._changes.get(key)
        return default if change is None else change.value

    def is_changed(self, key: ChangeKey) -> bool:
        return key in self._changes

    def grouped(self) -> dict[tuple[Any, str, int], dict[str, Any]]:
        """Edits grouped by (project, module, row) in the order they were first made."""
        groups: dict[tuple[Any, str, int], dict[str, Any]] = {}
        for key, change in self._changes.items():
            groups.setdefault((key.project_id, key.module, key.row_index), {})[key.field_key] = change.value
        return groups

    def keys(self) -> list[ChangeKey]:
        return list(self._changes)

    def __iter__(self) -> Iterator[ChangeKey]:
        return iter(list(self._changes))

    def __len__(self) -> int:
        return len(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)
