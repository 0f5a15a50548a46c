"""Module shape descriptors: sub-groups, datapoints and field metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SubGroup:
    """Named partition of a module (section, loan type, counterparty type, swap vital)."""

    key: str
    label: str


@dataclass(frozen=True)
class Datapoint:
    """One selectable field; ``scope`` is the sub-group key or technical sub-module it belongs to."""

    key: Any
    label: str
    scope: str | None = None
    data_type: str | None = None
    table_name: str | None = None


@dataclass(frozen=True)
class FieldMeta:
    """Field metadata record as served by the field-metadata and datapoint endpoints."""

    field_key: str
    display_label: str
    data_type: str | None = None
    table_name: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> FieldMeta:
        if not isinstance(record, dict) or not record.get('field_key'):
            raise ValueError(f'Field metadata record is missing field_key: {record!r}')
        key = str(record['field_key'])
        return cls(
            field_key=key,
            display_label=str(record.get('display_label') or key),
            data_type=(str(record['data_type']).lower() if record.get('data_type') else None),
            table_name=record.get('table_name'),
        )

    def to_datapoint(self, scope: str | None = None) -> Datapoint:
        return Datapoint(
            key=self.field_key,
            label=self.display_label,
            scope=scope,
            data_type=self.data_type,
            table_name=self.table_name,
        )


@dataclass(frozen=True)
class ModuleStructure:
    """Normalized shape of one module, whatever its raw payload looked like."""

    sub_groups: tuple[SubGroup, ...] = ()
    datapoints_by_sub_group: dict[str, tuple[Datapoint, ...]] = field(default_factory=dict, hash=False)
    all_datapoints: tuple[Datapoint, ...] = ()

    @classmethod
    def empty(cls) -> ModuleStructure:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.sub_groups and not self.all_datapoints

    @property
    def has_sub_groups(self) -> bool:
        return bool(self.sub_groups)

    def datapoints_for(self, sub_group_key: str) -> tuple[Datapoint, ...]:
        return self.datapoints_by_sub_group.get(sub_group_key, ())

    def sub_group(self, key: str) -> SubGroup | None:
        for sub in self.sub_groups:
            if sub.key == key:
                return sub
        return None


def build_structure(
    groups: list[tuple[SubGroup, list[Datapoint]]] | None = None,
    flat: list[Datapoint] | None = None,
) -> ModuleStructure:
    """Assemble a ModuleStructure from ordered (sub-group, datapoints) pairs or a flat list."""
    if not groups:
        return ModuleStructure(all_datapoints=tuple(flat or ()))
    by_group: dict[str, tuple[Datapoint, ...]] = {}
    all_points: list[Datapoint] = []
    for sub, points in groups:
        by_group[sub.key] = tuple(points)
        all_points.extend(points)
    return ModuleStructure(
        sub_groups=tuple(sub for sub, _ in groups),
        datapoints_by_sub_group=by_group,
        all_datapoints=tuple(all_points),
    )
