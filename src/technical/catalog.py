"""Technical modules, their sub-modules and where their records live in project data."""

from __future__ import annotations

from typing import Iterable, Mapping

from src.intelligence.selection import PageConfig
from src.models.structure import FieldMeta, ModuleStructure, SubGroup, build_structure

TECHNICAL_PAGE = 'Technical Intelligence'

OVERVIEW = 'Overview'
MILESTONE = 'Milestone'
OFFTAKE = 'Offtake'
CONSTRUCTION = 'Construction'
EQUIPMENT = 'Equipment'
INTERCONNECTION = 'Interconnection'
ASSET_MANAGEMENT = 'Asset Management'
ENERGY = 'Energy'
POC = 'POC'

TECHNICAL_MODULE_OPTIONS = (
    OVERVIEW,
    MILESTONE,
    OFFTAKE,
    CONSTRUCTION,
    EQUIPMENT,
    INTERCONNECTION,
    ASSET_MANAGEMENT,
    ENERGY,
    POC,
)

SUB_MODULES: dict[str, tuple[str, ...]] = {
    MILESTONE: (
        'Offtake Milestones',
        'Finance Milestones',
        'Interconnection Milestones',
        'EPC Milestones',
        'Regulatory Milestones',
        'O&M Milestones',
        'Other Milestones',
    ),
    OFFTAKE: (
        'Offtake Contract Details',
        'Offtake REC',
        'Offtake Product & Delivery',
        'Offtake Prices & Damages',
        'Offtake Market Risks',
        'Offtake Security',
        'Offtake Merchant',
    ),
    ASSET_MANAGEMENT: ('O&M', 'Telecom', 'Utility'),
    EQUIPMENT: (
        'Equipment Modules',
        'Equipment Racking',
        'Equipment Inverters',
        'Equipment SCADA',
        'Equipment Transformers',
        'Equipment HV',
        'Equipment BOP',
    ),
}

DATA_PATHS: dict[str, str] = {
    OVERVIEW: 'overview',
    ENERGY: 'energy',
    INTERCONNECTION: 'interconnection',
    CONSTRUCTION: 'construction',
    POC: 'poc',
    'Offtake Milestones': 'milestones.offtake',
    'Finance Milestones': 'milestones.finance',
    'Interconnection Milestones': 'milestones.interconnect',
    'EPC Milestones': 'milestones.epc',
    'Regulatory Milestones': 'milestones.regulatory',
    'O&M Milestones': 'milestones.om',
    'Other Milestones': 'milestones.other',
    'Offtake Contract Details': 'offtake.contract_details',
    'Offtake REC': 'offtake.rec',
    'Offtake Product & Delivery': 'offtake.product_delivery',
    'Offtake Prices & Damages': 'offtake.prices_damage',
    'Offtake Market Risks': 'offtake.market_risks',
    'Offtake Security': 'offtake.security',
    'Offtake Merchant': 'offtake.merchant',
    'O&M': 'assetManagement.om',
    'Telecom': 'assetManagement.telecom',
    'Utility': 'assetManagement.utility',
    'Equipment Modules': 'equipments.modules',
    'Equipment Racking': 'equipments.racking',
    'Equipment Inverters': 'equipments.inverters',
    'Equipment SCADA': 'equipments.scada',
    'Equipment Transformers': 'equipments.transformers',
    'Equipment HV': 'equipments.hv',
    'Equipment BOP': 'equipments.bop',
}

# The datapoint endpoint still knows the equipment sub-modules by their plural names.
DATAPOINT_API_NAMES = {name: name.replace('Equipment ', 'Equipments ', 1) for name in SUB_MODULES[EQUIPMENT]}

TECHNICAL_PAGE_CONFIG = PageConfig(
    page=TECHNICAL_PAGE,
    module_options=TECHNICAL_MODULE_OPTIONS,
    mode_follows_sub_groups=True,
)


def has_sub_modules(module: str) -> bool:
    return module in SUB_MODULES


def parent_module(name: str) -> str:
    """Parent module of a sub-module; a top-level module is its own parent."""
    for module, subs in SUB_MODULES.items():
        if name in subs:
            return module
    return name


def data_path(name: str) -> str | None:
    return DATA_PATHS.get(name)


def datapoint_api_name(name: str) -> str:
    return DATAPOINT_API_NAMES.get(name, name)


def metadata_sources(module: str) -> tuple[str, ...]:
    """Names whose field metadata make up a module: its sub-modules, or the module itself."""
    if module not in TECHNICAL_MODULE_OPTIONS:
        raise ValueError(f'Unknown technical module: {module}')
    return SUB_MODULES.get(module, (module,))


def is_hidden_field(field_key: str, module: str) -> bool:
    """Milestone ``*_type`` fields only qualify their dates and are never shown as columns."""
    return module == MILESTONE and 'type' in str(field_key).lower()


def _visible(fields: Iterable[FieldMeta], module: str) -> list[FieldMeta]:
    return [f for f in fields if not is_hidden_field(f.field_key, module)]


def resolve_technical_structure(module: str, fields_by_name: Mapping[str, list[FieldMeta]]) -> ModuleStructure:
    """Selectable shape of a technical module from the datapoint metadata of its sources."""
    if has_sub_modules(module):
        groups = []
        for sub in SUB_MODULES[module]:
            fields = _visible(fields_by_name.get(sub) or [], module)
            groups.append((SubGroup(key=sub, label=sub), [f.to_datapoint(scope=sub) for f in fields]))
        return build_structure(groups)
    fields = _visible(fields_by_name.get(module) or [], module)
    return build_structure(flat=[f.to_datapoint(scope=module) for f in fields])
