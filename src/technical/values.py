"""Reading technical values out of nested project payloads."""

from __future__ import annotations

import re
from typing import Any, Iterable

from src.intelligence.formatting import TECHNICAL_MISSING, parse_leading_float
from src.technical.catalog import MILESTONE, data_path

_ISO_DATETIME_RE = re.compile(r'^\d{4}-\d{2}-\d{2}T')

DC_AC_RATIO_FIELD = 'dc_ac_ratio'
ACTUAL_DATE_TYPE = 'actual'
FORECAST_DATE_TYPE = 'forecast'
DATE_QUALIFIERS = (ACTUAL_DATE_TYPE, FORECAST_DATE_TYPE)
QUALIFIER_NOT_APPLICABLE = frozenset({'not applicable', 'n/a', 'na'})
# Date fields whose qualifier does not follow the ``<field>_type`` pattern.
DATE_TYPE_FIELD_OVERRIDES = {
    'gia_utility_backfeed_readiness_date': 'gia_utility_backfeed_readiness_type',
}


def walk_path(project_data: Any, path: str | None) -> Any:
    """Follow a dotted path; None when any step is missing."""
    if project_data is None or not path:
        return None
    node = project_data
    for key in path.split('.'):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def record_at(project_data: Any, name: str, record_index: int) -> dict[str, Any] | None:
    """The record a (sub-)module row points at: array element, or the single object for row 0."""
    node = walk_path(project_data, data_path(name))
    if isinstance(node, list):
        record = node[record_index] if 0 <= record_index < len(node) else None
    else:
        record = node if record_index == 0 else None
    return record if isinstance(record, dict) else None


def value_from_path(project_data: Any, path: str | None, field_key: str, record_index: int = 0) -> tuple[Any, bool]:
    """(value, exists) for one field of one record.

    A missing path reads as ('N/A', False); a record index past the end of an
    array, or above 0 for a single object, reads as ('', False). ISO datetimes
    are cut to their date and an absent field on an existing record is 'N/A'.
    """
    if project_data is None or not path:
        return TECHNICAL_MISSING, False
    node = walk_path(project_data, path)
    if node is None:
        return TECHNICAL_MISSING, False
    if isinstance(node, list):
        if record_index >= len(node):
            return '', False
        node = node[record_index]
    elif record_index > 0:
        return '', False

    result = node.get(field_key) if isinstance(node, dict) else None
    if isinstance(result, str) and _ISO_DATETIME_RE.match(result):
        result = result.split('T')[0]
    return (TECHNICAL_MISSING if result is None else result), True


def max_records(project_data: Any, names: Iterable[str]) -> int:
    """Row count a project needs for a set of (sub-)modules: the longest array, at least one."""
    longest = 1
    for name in names:
        node = walk_path(project_data, data_path(name))
        if isinstance(node, list):
            longest = max(longest, len(node))
    return longest


def date_type_field(field_key: str) -> str:
    key = str(field_key).lower()
    return DATE_TYPE_FIELD_OVERRIDES.get(key, f'{key}_type')


def is_actual_date(project_data: Any, name: str, field_key: str, record_index: int, module: str) -> bool:
    """Milestone dates whose qualifier field says the date is an actual, not a forecast."""
    if module != MILESTONE or 'date' not in str(field_key).lower():
        return False
    value, exists = value_from_path(project_data, data_path(name), field_key, record_index)
    if not exists or value in ('', TECHNICAL_MISSING):
        return False
    qualifier, _ = value_from_path(project_data, data_path(name), date_type_field(field_key), record_index)
    return isinstance(qualifier, str) and qualifier.strip().lower() == ACTUAL_DATE_TYPE


def dc_ac_ratio(project_data: Any, name: str, record_index: int) -> str | None:
    """DC capacity over POI AC capacity to two decimals, when both are present and the divisor is non-zero."""
    dc, _ = value_from_path(project_data, data_path(name), 'dc_capacity', record_index)
    ac, _ = value_from_path(project_data, data_path(name), 'poi_ac_capacity', record_index)
    dc_num = parse_leading_float(dc) if dc not in ('', TECHNICAL_MISSING) else None
    ac_num = parse_leading_float(ac) if ac not in ('', TECHNICAL_MISSING) else None
    if dc_num is None or not ac_num:
        return None
    return f'{dc_num / ac_num:.2f}'


def date_qualifier(project_data: Any, name: str, field_key: str, record_index: int) -> tuple[str | None, bool]:
    """(qualifier, exists) for a milestone date: 'actual', 'forecast' or None when unset or not applicable."""
    record = record_at(project_data, name, record_index)
    type_field = date_type_field(field_key)
    if record is None or type_field not in record:
        return None, False
    raw = record.get(type_field)
    if raw is None:
        return None, True
    text = str(raw).strip().lower()
    if text in QUALIFIER_NOT_APPLICABLE or not text:
        return None, True
    return text, True
