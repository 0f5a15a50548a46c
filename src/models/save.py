"""Outbound save request model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TARGET_FINANCE = 'finance'
TARGET_PROJECT = 'project'


@dataclass(frozen=True)
class SaveRequest:
    """One update call: a finance submodule payload or a project-table record patch."""

    target: str
    name: str
    project_id: Any
    payload: dict[str, Any]
    module: str = ''
    row_index: int = -1
