"""Project domain model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PROJECT_CORE_FIELDS = ('id', 'name', 'location', 'technology', 'status', 'capacity')


@dataclass(frozen=True)
class Project:
    """A portfolio project, the unit of selection on both intelligence pages."""

    id: int | str
    name: str
    location: str | None = None
    technology: str | None = None
    status: str | None = None
    capacity: Any = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


def project_from_record(record: dict[str, Any]) -> Project:
    """Build a Project from a project-list API record."""
    if not isinstance(record, dict) or record.get('id') is None:
        raise ValueError(f'Project record is missing an id: {record!r}')
    name = record.get('name') or record.get('project_name') or str(record['id'])
    return Project(
        id=record['id'],
        name=str(name),
        location=record.get('location'),
        technology=record.get('technology'),
        status=record.get('status'),
        capacity=record.get('capacity'),
        extra={k: v for k, v in record.items() if k not in PROJECT_CORE_FIELDS},
    )
