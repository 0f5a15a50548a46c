from __future__ import annotations

import numpy as np

from src.intelligence.formatting import (
    FIELD_TYPE_CURRENCY,
    FIELD_TYPE_DATE,
    FIELD_TYPE_PERCENTAGE,
    FIELD_TYPE_TEXT,
    coerce_input,
    field_type_for,
    format_for_display,
    format_for_input,
    format_value,
    parse_leading_float,
)


def test_format_value_currency_dates_and_placeholder() -> None:
    assert format_value(1234567.5, 'Commitment ($)') == '1,234,567.5'
    assert format_value('2024-03-15T00:00:00.000Z', 'Commitment Start Date') == '2024-03-15'
    assert format_value('-', 'Outstanding Amount ($)') == '-'


def test_format_value_rounds_half_up_to_two_decimals() -> None:
    assert format_value(2.345, 'Amount') == '2.35'
    assert format_value('1000', 'Term Loan Balance') == '1,000'
    assert format_value(-1500.125, 'Notional ($)') == '-1,500.13'


def test_format_value_keeps_blank_and_unparseable_values() -> None:
    assert format_value(None, 'Commitment ($)') is None
    assert format_value('', 'Commitment ($)') == ''
    assert format_value(0, 'Commitment ($)') == 0
    assert format_value('TBD', 'Commitment ($)') == 'TBD'
    assert format_value('Yes', 'Notes') == 'Yes'


def test_format_value_leaves_non_date_strings_in_date_fields() -> None:
    assert format_value('Pending', 'Maturity Date') == 'Pending'


def test_field_type_prefers_metadata_then_infers_from_name() -> None:
    assert field_type_for('anything', 'Currency') == FIELD_TYPE_CURRENCY
    assert field_type_for('Commitment ($)', 'unknown-type') == FIELD_TYPE_CURRENCY
    assert field_type_for('Maturity Date') == FIELD_TYPE_DATE
    assert field_type_for('Fixed Rate (%)') == FIELD_TYPE_PERCENTAGE
    assert field_type_for('Proportional Share (%)') == FIELD_TYPE_PERCENTAGE


def test_drawn_fee_label_is_not_treated_as_percentage() -> None:
    assert field_type_for('Drawn Fee (%)') == FIELD_TYPE_TEXT


def test_coerce_input_by_field_type() -> None:
    assert coerce_input('2024-05-01', 'Start Date') == '2024-05-01T00:00:00.000Z'
    assert coerce_input('$1,234.50', 'Commitment ($)') == 1234.5
    assert coerce_input('45%', 'Proportional Share (%)') == 45
    assert coerce_input('', 'Commitment ($)') is None
    assert coerce_input('abc', 'Commitment ($)') == 'abc'


def test_coerce_input_plain_fields_follow_original_value_type() -> None:
    assert coerce_input('12', 'Notes', current_value=5) == 12
    assert coerce_input('12.5', 'Notes', current_value=5) == 12.5
    assert coerce_input('12', 'Notes', current_value='a') == '12'
    assert coerce_input(7, 'Notes') == 7


def test_parse_leading_float_handles_separators_and_numpy() -> None:
    assert parse_leading_float('1,234.5abc') == 1234.5
    assert parse_leading_float('abc') is None
    assert parse_leading_float(np.int64(5)) == 5.0
    assert parse_leading_float(float('nan')) is None
    assert parse_leading_float(True) is None


def test_format_for_display_by_metadata_type() -> None:
    assert format_for_display('1234567', 'currency') == '$1,234,567'
    assert format_for_display(None, 'text') == 'N/A'
    assert format_for_display(12345, 'number') == '12,345'
    assert format_for_display(999, 'number') == 999
    assert format_for_display('2024-01-02T00:00:00Z', 'date') == '2024-01-02'


def test_format_for_input_strips_symbols_and_matches_dropdown_case() -> None:
    assert format_for_input('active', 'dropdown', ['Active', 'Inactive']) == 'Active'
    assert format_for_input('45%', 'percentage') == '45'
    assert format_for_input('$1,000', 'currency') == '1000'
    assert format_for_input('2024-01-02T00:00:00Z', 'date') == '2024-01-02'
    assert format_for_input(None, 'text') == ''
