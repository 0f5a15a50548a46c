"""Data-dependent column discovery across every fetched project."""

from __future__ import annotations

from typing import Any, Iterable

from src.finance.base import HOUSEKEEPING_FIELDS, payload_data

SWAPS_COLUMN_LABELS = {
    'entity_name': 'Entity Name',
    'banks': 'Banks',
    'starting_notional_usd': 'Starting Notional ($)',
    'future_notional_usd': 'Future Notional ($)',
    'fixed_rate_percent': 'Fixed Rate (%)',
    'trade_date': 'Trade Date',
    'effective_date': 'Effective Date',
    'expiration_date': 'Expiration Date',
    'met_date': 'MET Date',
    'date': 'Date',
    'debt_balance': 'Debt Balance ($)',
    'swap_balance': 'Swap Balance ($)',
    'difference': 'Difference ($)',
}


def ordered_union(keys: Iterable[Any]) -> list[Any]:
    seen: dict[Any, None] = {}
    for key in keys:
        seen.setdefault(key, None)
    return list(seen)


def loan_type_columns(raw_by_project: list[Any]) -> list[str]:
    """Loan types appearing under any Financing Terms parameter."""
    keys: list[str] = []
    for raw in raw_by_project:
        if not isinstance(raw, dict):
            continue
        for section in raw.get('sections') or []:
            for param in section.get('parameters') or []:
                if isinstance(param.get('loanTypes'), dict):
                    keys.extend(param['loanTypes'])
    return ordered_union(keys)


def refi_columns(raw_by_project: list[Any]) -> list[int]:
    """1-based refinancing slots, as many as the longest project history."""
    longest = max((len(raw) for raw in raw_by_project if isinstance(raw, list)), default=0)
    return list(range(1, longest + 1))


def party_columns(raw_by_project: list[Any]) -> list[int]:
    """1-based party slots, as many as the longest party list of any counterparty."""
    longest = 0
    for raw in raw_by_project:
        data = payload_data(raw)
        if data is None:
            continue
        for params in data.values():
            if not isinstance(params, dict):
                continue
            for parties in params.values():
                if isinstance(parties, list):
                    longest = max(longest, len(parties))
    return list(range(1, longest + 1))


def swaps_columns(raw_by_project: list[Any]) -> list[str]:
    """Parameter keys of the first record of every fetched list-shaped swap vital."""
    keys: list[str] = []
    for raw in raw_by_project:
        if not isinstance(raw, dict):
            continue
        for vital_data in raw.values():
            if isinstance(vital_data, list) and vital_data and isinstance(vital_data[0], dict):
                keys.extend(k for k in vital_data[0] if k not in HOUSEKEEPING_FIELDS)
    return ordered_union(keys)


def lc_columns(raw_by_project: list[Any]) -> list[str]:
    """Parameter names from the first instance of each letter-of-credit type."""
    keys: list[str] = []
    for raw in raw_by_project:
        data = payload_data(raw)
        if data is None:
            continue
        for instances in data.values():
            if isinstance(instances, list) and instances and isinstance(instances[0], dict):
                keys.extend(k for k in instances[0] if k not in HOUSEKEEPING_FIELDS)
    return ordered_union(keys)


def tax_equity_columns(raw_by_project: list[Any]) -> list[str]:
    keys: list[str] = []
    for raw in raw_by_project:
        data = payload_data(raw)
        if data is not None:
            keys.extend(data)
    return ordered_union(keys)


def swaps_column_label(key: str) -> str:
    return SWAPS_COLUMN_LABELS.get(key, key)
