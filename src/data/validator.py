"""Validation for project and field-metadata records."""

from __future__ import annotations

import pandas as pd

from src.intelligence.formatting import normalize_metadata_type

PROJECT_REQUIRED_COLUMNS = ['id', 'name']
FIELD_METADATA_REQUIRED_COLUMNS = ['field_key']


def _missing_columns(df: pd.DataFrame, required: list[str]) -> list[str]:
    cols = set(df.columns)
    return [col for col in required if col not in cols]


def validate_projects(df: pd.DataFrame) -> list[str]:
    """Validate normalized project records and return non-fatal warnings."""
    if df.empty:
        return []
    missing = _missing_columns(df, PROJECT_REQUIRED_COLUMNS)
    if 'id' in missing:
        raise ValueError(f'Missing required project columns: {missing}')

    warnings: list[str] = []
    if missing:
        warnings.append(f'Project records are missing columns {missing}; ids will be used as names.')

    null_ids = int(df['id'].isna().sum())
    if null_ids:
        warnings.append(f'{null_ids} projects have no id and will be excluded.')

    dupes = int(df['id'].dropna().duplicated().sum())
    if dupes:
        warnings.append(f'{dupes} duplicate project ids found; keeping the first of each.')

    if 'name' in df.columns:
        unnamed = int(df['name'].isna().sum())
        if unnamed:
            warnings.append(f'{unnamed} projects have no name.')

    return warnings


def validate_field_metadata(df: pd.DataFrame, source: str = '') -> list[str]:
    """Validate datapoint metadata records and return non-fatal warnings."""
    if df.empty:
        return []
    label = f' for {source}' if source else ''
    missing = _missing_columns(df, FIELD_METADATA_REQUIRED_COLUMNS)
    if missing:
        raise ValueError(f'Missing required field metadata columns{label}: {missing}')

    warnings: list[str] = []

    blank_keys = int(df['field_key'].isna().sum() + (df['field_key'].astype(str).str.strip() == '').sum())
    if blank_keys:
        warnings.append(f'{blank_keys} field metadata records{label} have no field_key and will be skipped.')

    if 'table_name' in df.columns:
        dupes = int(df.dropna(subset=['field_key']).duplicated(subset=['table_name', 'field_key']).sum())
    else:
        dupes = int(df['field_key'].dropna().duplicated().sum())
    if dupes:
        warnings.append(f'{dupes} duplicate field_key values found{label}.')

    if 'data_type' in df.columns:
        types = df['data_type'].dropna().astype(str)
        unknown = sorted({t for t in types if normalize_metadata_type(t) is None})
        if unknown:
            warnings.append(f'Unknown data_type values{label} {unknown}; types will be inferred from field names.')

    return warnings
