"""Finance module registry: structure, rows, columns and tables by module name."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from src.finance.base import (
    ASSOCIATED_PARTIES,
    CORPORATE_DEBT,
    DSCR,
    FINANCING_TERMS,
    LENDER_COMMITMENTS,
    LETTER_OF_CREDIT,
    NON_DESRI_OWNERSHIP,
    REFINANCING_SUMMARY,
    SWAPS,
    TAX_EQUITY,
    FinanceModule,
    LOGGER,
)
from src.finance.financing_terms import FinancingTerms
from src.finance.lenders import LenderCommitments
from src.finance.letter_of_credit import LetterOfCredit
from src.finance.parties import AssociatedParties
from src.finance.records import CorporateDebt, Dscr, NonDesriOwnership
from src.finance.refinancing import RefinancingSummary
from src.finance.simple import preview_modules
from src.finance.swaps import Swaps
from src.finance.tax_equity import TaxEquity
from src.intelligence.selection import PageConfig, SelectionState
from src.intelligence.table_model import Row, TableModel, build_table
from src.models.project import Project
from src.models.structure import ModuleStructure

FINANCE_PAGE = 'Finance Intelligence'

FINANCE_MODULE_OPTIONS = (
    FINANCING_TERMS,
    LENDER_COMMITMENTS,
    REFINANCING_SUMMARY,
    LETTER_OF_CREDIT,
    DSCR,
    TAX_EQUITY,
    NON_DESRI_OWNERSHIP,
    CORPORATE_DEBT,
    ASSOCIATED_PARTIES,
    SWAPS,
)

_MODULES: dict[str, FinanceModule] = {
    module.name: module
    for module in [
        FinancingTerms(),
        LenderCommitments(),
        RefinancingSummary(),
        LetterOfCredit(),
        Dscr(),
        TaxEquity(),
        NonDesriOwnership(),
        CorporateDebt(),
        AssociatedParties(),
        Swaps(),
        *preview_modules(),
    ]
}

FINANCE_API_NAMES = {name: module.api_name for name, module in _MODULES.items()}
MODULES_WITH_SUB_GROUPS = frozenset(name for name, module in _MODULES.items() if module.has_sub_groups)
AUTO_DATAPOINT_MODULES = frozenset(name for name, module in _MODULES.items() if module.auto_datapoints)

FINANCE_PAGE_CONFIG = PageConfig(
    page=FINANCE_PAGE,
    module_options=FINANCE_MODULE_OPTIONS,
    exclusive_modules=True,
    reset_on_empty_projects=True,
    single_select_sub_groups=frozenset({SWAPS}),
    auto_datapoint_modules=AUTO_DATAPOINT_MODULES,
)


def finance_module(name: str) -> FinanceModule:
    try:
        return _MODULES[name]
    except KeyError as exc:
        raise ValueError(f'Unknown finance module: {name}') from exc


def finance_api_name(module: str) -> str:
    return finance_module(module).api_name


def resolve_structure(module: str, sample: Any) -> ModuleStructure:
    """Selectable sub-groups and datapoints for a module, discovered from one project's payload.

    Malformed payloads never raise: the module simply offers nothing to select.
    """
    descriptor = finance_module(module)
    try:
        return descriptor.resolve_structure(sample)
    except Exception as exc:
        LOGGER.warning('Could not resolve structure for %s: %s', module, exc)
        return ModuleStructure.empty()


def generate_rows(
    projects: Iterable[Project],
    modules: Iterable[str],
    state: SelectionState,
    raw_data: Mapping[Any, Mapping[str, Any]],
) -> list[Row]:
    """Rows for every (project, module) pair, in project order then module order."""
    rows: list[Row] = []
    modules = list(modules)
    for project in projects:
        project_data = raw_data.get(project.id) or {}
        for module in modules:
            raw = project_data.get(module)
            if raw is None:
                continue
            rows.extend(finance_module(module).extract_rows(project, raw, state))
    return rows


def raw_for_module(raw_data: Mapping[Any, Mapping[str, Any]], module: str) -> list[Any]:
    return [data.get(module) for data in raw_data.values() if data and data.get(module) is not None]


def derive_columns(module: str, raw_data: Mapping[Any, Mapping[str, Any]]) -> list[Any]:
    return finance_module(module).derive_columns(raw_for_module(raw_data, module))


def finance_table(module: str, rows: list[Row], raw_data: Mapping[Any, Mapping[str, Any]]) -> TableModel:
    """Table for one module; screen and workbook both render this model."""
    descriptor = finance_module(module)
    module_rows = [row for row in rows if row.get('module') == module]
    columns = descriptor.derive_columns(raw_for_module(raw_data, module))
    return build_table(module, module_rows, descriptor.table_columns(module_rows, columns))
