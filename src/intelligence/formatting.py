"""Cell value formatting and edit coercion shared by screen and export."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from typing import Any

import numpy as np

from src.utils.date_utils import iso_datetime_at_midnight, to_iso_date

PLACEHOLDER = '-'
NO_HISTORICAL_REFI = 'No historical refi'
TECHNICAL_MISSING = 'N/A'

FIELD_TYPE_DATE = 'date'
FIELD_TYPE_CURRENCY = 'currency'
FIELD_TYPE_PERCENTAGE = 'percentage'
FIELD_TYPE_NUMBER = 'number'
FIELD_TYPE_DROPDOWN = 'dropdown'
FIELD_TYPE_TEXT = 'text'
FIELD_TYPES = (
    FIELD_TYPE_DATE,
    FIELD_TYPE_CURRENCY,
    FIELD_TYPE_PERCENTAGE,
    FIELD_TYPE_NUMBER,
    FIELD_TYPE_DROPDOWN,
    FIELD_TYPE_TEXT,
)

CURRENCY_MARKERS = ('$', 'amount', 'commitment', 'balance', 'proceeds', 'price', 'basis', 'insurance', 'notional')
INPUT_CURRENCY_MARKERS = ('$', 'amount', 'commitment')
PERCENTAGE_MARKERS = ('%', 'percent', 'share', 'ownership')
# Display label that stays free text even though it carries a percent sign.
PERCENTAGE_EXEMPT_LABELS = frozenset({'Drawn Fee (%)'})

METADATA_TYPE_ALIASES = {
    'date': FIELD_TYPE_DATE,
    'datetime': FIELD_TYPE_DATE,
    'currency': FIELD_TYPE_CURRENCY,
    'dollar': FIELD_TYPE_CURRENCY,
    'percentage': FIELD_TYPE_PERCENTAGE,
    'percent': FIELD_TYPE_PERCENTAGE,
    'number': FIELD_TYPE_NUMBER,
    'integer': FIELD_TYPE_NUMBER,
    'decimal': FIELD_TYPE_NUMBER,
    'dropdown': FIELD_TYPE_DROPDOWN,
    'text': FIELD_TYPE_TEXT,
    'string': FIELD_TYPE_TEXT,
}

_LEADING_FLOAT_RE = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_TWO_PLACES = Decimal('0.01')


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (float, np.floating)) and np.isnan(value):
        return True
    return not value


def parse_leading_float(value: Any) -> float | None:
    """Parse the numeric prefix of a value after dropping thousands separators."""
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, np.number)):
        number = float(value)
        return None if np.isnan(number) else number
    match = _LEADING_FLOAT_RE.match(str(value).replace(',', ''))
    if not match:
        return None
    return float(match.group(0))


def format_grouped_number(number: float) -> str:
    """Thousands separators with at most two decimals, rounding half away from zero."""
    if np.isinf(number):
        return '∞' if number > 0 else '-∞'
    try:
        quantized = Decimal(repr(float(number))).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return str(number)
    text = f'{quantized:,.2f}'
    return text.rstrip('0').rstrip('.')


def is_currency_name(field_name: str | None) -> bool:
    name = str(field_name or '').lower()
    return bool(name) and any(marker in name for marker in CURRENCY_MARKERS)


def is_date_name(field_name: str | None) -> bool:
    return 'date' in str(field_name or '').lower()


def format_value(value: Any, field_name: str | None) -> Any:
    """Render one cell for display or export.

    Blank values and the placeholder pass through untouched. Fields whose name
    mentions a date are normalised to YYYY-MM-DD; currency-like names get
    thousands separators and at most two decimals. Everything else is returned
    as-is.
    """
    if _is_blank(value) or value == PLACEHOLDER:
        return value
    if is_date_name(field_name):
        iso = to_iso_date(value)
        if iso is not None:
            return iso
    if is_currency_name(field_name):
        number = parse_leading_float(value)
        if number is not None:
            return format_grouped_number(number)
    return value


def normalize_metadata_type(data_type: str | None) -> str | None:
    if not data_type:
        return None
    return METADATA_TYPE_ALIASES.get(str(data_type).strip().lower())


def infer_field_type(field_key: str | None) -> str:
    """Type tag derived from field-name substrings, used only when metadata is missing."""
    name = str(field_key or '')
    lowered = name.lower()
    if 'date' in lowered:
        return FIELD_TYPE_DATE
    if any(marker in lowered for marker in INPUT_CURRENCY_MARKERS):
        return FIELD_TYPE_CURRENCY
    if name not in PERCENTAGE_EXEMPT_LABELS and any(marker in lowered for marker in PERCENTAGE_MARKERS):
        return FIELD_TYPE_PERCENTAGE
    return FIELD_TYPE_TEXT


def field_type_for(field_key: str | None, metadata_type: str | None = None) -> str:
    """Explicit metadata type when known, otherwise the substring fallback."""
    return normalize_metadata_type(metadata_type) or infer_field_type(field_key)


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, (bool, np.bool_))


def _to_number(text: str) -> int | float | None:
    cleaned = text.strip()
    if not cleaned:
        return None
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if number.is_integer() and re.fullmatch(r'[+-]?\d+', cleaned):
        return int(number)
    return number


def coerce_input(
    value: Any,
    field_key: str,
    current_value: Any = None,
    metadata_type: str | None = None,
) -> Any:
    """Convert a raw edit into the value the save endpoint expects.

    Empty input becomes None. Dates expand to the midnight UTC datetime form,
    currency and percentage inputs lose their symbols and separators and become
    numbers, and plain inputs become numbers when the original value was numeric.
    Input that does not parse is kept as typed.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    if value == '':
        return None

    field_type = field_type_for(field_key, metadata_type)
    if field_type == FIELD_TYPE_DATE:
        return iso_datetime_at_midnight(value)
    if field_type == FIELD_TYPE_CURRENCY:
        number = _to_number(value.replace('$', '').replace(',', ''))
        return value if number is None else number
    if field_type == FIELD_TYPE_PERCENTAGE:
        number = _to_number(value.replace('%', ''))
        return value if number is None else number
    if field_type == FIELD_TYPE_NUMBER or (field_type == FIELD_TYPE_TEXT and _is_numeric(current_value)):
        number = _to_number(value)
        return value if number is None else number
    return value


def format_for_input(value: Any, data_type: str | None, options: list[str] | None = None) -> str:
    """Editable representation of a stored value."""
    if value is None or value == '':
        return ''
    field_type = normalize_metadata_type(data_type)
    text = str(value)
    if field_type == FIELD_TYPE_DROPDOWN and options:
        for option in options:
            if str(option).lower() == text.lower():
                return str(option)
        return text
    if field_type == FIELD_TYPE_PERCENTAGE:
        return text.replace('%', '')
    if field_type == FIELD_TYPE_CURRENCY:
        return text.replace('$', '').replace(',', '')
    if field_type == FIELD_TYPE_DATE and re.match(r'^\d{4}-\d{2}-\d{2}', text):
        return text[:10]
    return text


def format_for_display(value: Any, data_type: str | None) -> Any:
    """Read-only rendering of a metadata-typed technical value."""
    if value is None or value == '':
        return TECHNICAL_MISSING
    field_type = normalize_metadata_type(data_type)
    if field_type == FIELD_TYPE_CURRENCY:
        number = parse_leading_float(re.sub(r'[^0-9.\-]', '', str(value)))
        if number is None:
            return value
        return f'${format_grouped_number(number)}'
    if field_type == FIELD_TYPE_NUMBER:
        number = parse_leading_float(value)
        if number is not None and abs(number) > 999:
            return format_grouped_number(number)
        return value
    if field_type == FIELD_TYPE_DATE and isinstance(value, str) and re.match(r'^\d{4}-\d{2}-\d{2}', value):
        return value[:10]
    return value
