"""Closed set of document categories and the rules attached to each."""

from dataclasses import dataclass, field
from enum import Enum

from facility_docs.config import MB, settings
from facility_docs.services.mime import GENERAL_MIME_TYPES, PDF_ONLY


class Area(str, Enum):
    CONTRACT = "contract"
    MAINTENANCE = "maintenance"
    LIFELINE = "lifeline"


class Category(str, Enum):
    CONTRACTS = "contracts"
    MAINTENANCE_EXTERIOR = "maintenance_exterior"
    MAINTENANCE_INTERIOR = "maintenance_interior"
    MAINTENANCE_OTHER = "maintenance_other"
    LIFELINE_ELECTRICAL = "lifeline_electrical"
    LIFELINE_GAS = "lifeline_gas"
    LIFELINE_WATER = "lifeline_water"
    LIFELINE_ELEVATOR = "lifeline_elevator"
    LIFELINE_HVAC_LIGHTING = "lifeline_hvac_lighting"
    LIFELINE_SECURITY_DISASTER = "lifeline_security_disaster"


@dataclass(frozen=True)
class UploadPolicy:
    max_bytes: int
    allowed_mime_types: frozenset[str]


@dataclass(frozen=True)
class CategoryRule:
    area: Area
    root_folder_name: str
    upload: UploadPolicy
    default_subfolders: tuple[str, ...] = field(default=())


MAINTENANCE_SUBFOLDERS = (
    "Contracts",
    "Estimates",
    "Invoices",
    "Construction Photos",
    "Reports",
    "Warranties",
)

LIFELINE_SUBFOLDERS = (
    "Inspection Reports",
    "Maintenance Records",
    "Manuals",
    "Certificates",
    "Past Reports",
)

_GENERAL_UPLOAD = UploadPolicy(max_bytes=50 * MB, allowed_mime_types=GENERAL_MIME_TYPES)
_LIFELINE_UPLOAD = UploadPolicy(max_bytes=10 * MB, allowed_mime_types=PDF_ONLY)


def _maintenance(label: str) -> CategoryRule:
    return CategoryRule(Area.MAINTENANCE, label, _GENERAL_UPLOAD, MAINTENANCE_SUBFOLDERS)


def _lifeline(label: str) -> CategoryRule:
    return CategoryRule(Area.LIFELINE, label, _LIFELINE_UPLOAD, LIFELINE_SUBFOLDERS)


CATEGORY_RULES: dict[Category, CategoryRule] = {
    Category.CONTRACTS: CategoryRule(Area.CONTRACT, "Contracts", _GENERAL_UPLOAD),
    Category.MAINTENANCE_EXTERIOR: _maintenance("Exterior"),
    Category.MAINTENANCE_INTERIOR: _maintenance("Interior Renewal"),
    Category.MAINTENANCE_OTHER: _maintenance("Other"),
    Category.LIFELINE_ELECTRICAL: _lifeline("Electrical Equipment"),
    Category.LIFELINE_GAS: _lifeline("Gas Equipment"),
    Category.LIFELINE_WATER: _lifeline("Water Equipment"),
    Category.LIFELINE_ELEVATOR: _lifeline("Elevator Equipment"),
    Category.LIFELINE_HVAC_LIGHTING: _lifeline("HVAC & Lighting"),
    Category.LIFELINE_SECURITY_DISASTER: _lifeline("Security & Disaster Prevention"),
}


def rule_for(category: Category) -> CategoryRule:
    return CATEGORY_RULES[category]


def upload_policy_for(category: Category | str | None) -> UploadPolicy:
    """Main tree (``None``) uses the configured ceiling and the general allow-list."""
    if category is None:
        return UploadPolicy(max_bytes=settings.main_max_upload_bytes, allowed_mime_types=GENERAL_MIME_TYPES)
    return CATEGORY_RULES[Category(category)].upload
