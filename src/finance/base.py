"""Finance module descriptor interface and shared helpers."""

from __future__ import annotations

from dataclasses import replace
import math
from typing import Any

from src.intelligence.formatting import PLACEHOLDER
from src.intelligence.selection import SelectionState
from src.intelligence.table_model import Row, TableColumn, serial_columns
from src.models.project import Project
from src.models.save import TARGET_FINANCE, SaveRequest
from src.models.structure import ModuleStructure
from src.utils.logging import get_logger

LOGGER = get_logger(__name__)

FINANCING_TERMS = 'Financing Terms'
LENDER_COMMITMENTS = 'Lender Commitments/Outstanding'
REFINANCING_SUMMARY = 'Refinancing Summary'
LETTER_OF_CREDIT = 'Letter of Credit'
DSCR = 'DSCR'
TAX_EQUITY = 'Tax Equity'
NON_DESRI_OWNERSHIP = 'Non DESRI Ownership'
CORPORATE_DEBT = 'Corporate Debt'
ASSOCIATED_PARTIES = 'Associated Parties'
SWAPS = 'Swaps'
SWAPS_SUMMARY = 'Swaps Summary'
AMORT_SCHEDULE = 'Amort Schedule'
DEBT_VS_SWAPS = 'Debt vs Swaps'

HOUSEKEEPING_FIELDS = ('id', 'project_id', 'created_at', 'updated_at')

FINANCE_COLUMN_WIDTHS = (8.0, 25.0, 25.0, 40.0)
FINANCE_DEFAULT_WIDTH = 18.0


def blank_to_none(value: Any) -> Any:
    return None if value == '' else value


def or_placeholder(value: Any, placeholder: Any = PLACEHOLDER) -> Any:
    """Missing values (None, empty string, NaN) become the placeholder; zero is kept."""
    if value is None or value == '':
        return placeholder
    if isinstance(value, float) and math.isnan(value):
        return placeholder
    return value


def payload_data(raw: Any) -> dict[str, Any] | None:
    """The ``data`` map of a ``{data, metadata}`` payload, when present."""
    if isinstance(raw, dict) and isinstance(raw.get('data'), dict):
        return raw['data']
    return None


def payload_metadata(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict) and isinstance(raw.get('metadata'), dict):
        return raw['metadata']
    return {}


def base_row(project: Project, module: str, **fields: Any) -> Row:
    return {'project_name': project.name, 'project_id': project.id, 'module': module, **fields}


def with_finance_widths(columns: list[TableColumn]) -> list[TableColumn]:
    """Fixed widths by position: serial, project, third and fourth columns, then values."""
    out: list[TableColumn] = []
    for idx, col in enumerate(columns):
        width = FINANCE_COLUMN_WIDTHS[idx] if idx < len(FINANCE_COLUMN_WIDTHS) else FINANCE_DEFAULT_WIDTH
        out.append(replace(col, width=width))
    return out


class FinanceModule:
    """Per-module behaviour for structure discovery, rows, columns and saves.

    Subclasses override the hooks that differ; the defaults describe a module
    with no sub-groups, no dynamic columns and no persistence.
    """

    name: str = ''
    api_name: str = ''
    has_sub_groups: bool = False
    auto_datapoints: bool = False

    def resolve_structure(self, sample: Any) -> ModuleStructure:
        return ModuleStructure.empty()

    def extract_rows(self, project: Project, raw: Any, state: SelectionState) -> list[Row]:
        return []

    def derive_columns(self, raw_by_project: list[Any]) -> list[Any]:
        """Data-dependent column keys (loan types, parties, refis...) across all fetched projects."""
        return []

    def value_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return []

    def table_columns(self, rows: list[Row], columns: list[Any]) -> list[TableColumn]:
        return with_finance_widths(serial_columns() + self.value_columns(rows, columns))

    def build_save_request(self, row: Row, changes: dict[str, Any], raw: Any) -> SaveRequest | None:
        LOGGER.warning('%s rows are read-only; dropping %s change(s).', self.name, len(changes))
        return None

    def request(self, row: Row, payload: dict[str, Any], api_name: str | None = None) -> SaveRequest:
        return SaveRequest(
            target=TARGET_FINANCE,
            name=api_name or self.api_name,
            project_id=row.get('project_id'),
            payload=payload,
            module=self.name,
        )
