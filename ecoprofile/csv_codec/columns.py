"""
CSV Column Layout

Fixed, documented column order for the census interchange files.
Headers are the public contract: imports address cells by header text.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

# Cell kinds
TEXT = "text"
INTEGER = "integer"
MULTI = "multi"
YES_NO = "yes_no"
STATUS = "status"
TIMESTAMP = "timestamp"
MEMBER_COUNT = "member_count"
MEMBERS_JSON = "members_json"

MULTI_VALUE_SEPARATOR = "; "

HOUSEHOLD_NUMBER_HEADER = "Household Number"
MEMBERS_HEADER = "Members (JSON)"


@dataclass(frozen=True)
class Column:
    """One CSV column bound to a record field."""
    header: str
    field: Optional[str]
    kind: str = TEXT
    importable: bool = True


SUBMISSION_COLUMNS: List[Column] = [
    Column("Submission Number", "submission_number", importable=False),
    Column("Status", "status", STATUS, importable=False),
    Column(HOUSEHOLD_NUMBER_HEADER, "household_number"),
    Column("House Number", "house_number"),
    Column("Street/Purok", "street_purok"),
    Column("Address", "address"),
    Column("Barangay", "barangay"),
    Column("City", "city"),
    Column("Province", "province"),
    Column("District", "district"),
    Column("Respondent Name", "respondent_name"),
    Column("Respondent Relation", "respondent_relation"),
    Column("Interview Date", "interview_date"),
    Column("Years Staying", "years_staying", INTEGER),
    Column("Place of Origin", "place_of_origin"),
    Column("Ethnic Group", "ethnic_group"),
    Column("House Ownership", "house_ownership"),
    Column("Lot Ownership", "lot_ownership"),
    Column("Dwelling Type", "dwelling_type"),
    Column("Lighting Source", "lighting_source"),
    Column("Water Supply Level", "water_supply_level"),
    Column("Water Storage", "water_storage", MULTI),
    Column("Food Storage Type", "food_storage_type", MULTI),
    Column("Toilet Facilities", "toilet_facilities", MULTI),
    Column("Drainage Facilities", "drainage_facilities", MULTI),
    Column("Garbage Disposal", "garbage_disposal", MULTI),
    Column("Communication Services", "communication_services", MULTI),
    Column("Means of Transport", "means_of_transport", MULTI),
    Column("Info Sources", "info_sources", MULTI),
    Column("4Ps Beneficiary", "is_4ps_beneficiary", YES_NO),
    Column("Solo Parent Count", "solo_parent_count", INTEGER),
    Column("PWD Count", "pwd_count", INTEGER),
    Column("Member Count", None, MEMBER_COUNT, importable=False),
    Column(MEMBERS_HEADER, "household_members", MEMBERS_JSON),
    Column("Additional Notes", "additional_notes"),
    Column("Reviewed By", "reviewed_by", importable=False),
    Column("Reviewed At", "reviewed_at", TIMESTAMP, importable=False),
    Column("Created At", "created_at", TIMESTAMP, importable=False),
]

EXPORT_HEADERS: List[str] = [c.header for c in SUBMISSION_COLUMNS]

IMPORT_COLUMNS: List[Column] = [c for c in SUBMISSION_COLUMNS if c.importable]

# Template keeps notes ahead of the wide members cell
TEMPLATE_HEADERS: List[str] = [
    c.header for c in IMPORT_COLUMNS if c.header != MEMBERS_HEADER
] + [MEMBERS_HEADER]

MEMBER_COLUMNS: List[Column] = [
    Column("Full Name", "full_name"),
    Column("Relation to Head", "relation_to_head"),
    Column("Birth Date", "birth_date"),
    Column("Age", "age", INTEGER),
    Column("Gender", "gender"),
    Column("Civil Status", "civil_status"),
    Column("Religion", "religion"),
    Column("Contact Number", "contact_number"),
    Column("Occupation", "occupation"),
    Column("Education", "education_attainment"),
    Column("Schooling Status", "schooling_status"),
    Column("Employment Status", "employment_status"),
    Column("Employment Category", "employment_category"),
    Column("Monthly Income (Cash)", "monthly_income_cash"),
    Column("Monthly Income (Kind)", "monthly_income_kind"),
    Column("Is Head of Household", "is_head_of_household", YES_NO),
    Column("Is PWD", "is_pwd", YES_NO),
    Column("Is Solo Parent", "is_solo_parent", YES_NO),
]

MEMBER_EXPORT_HEADERS: List[str] = ["Submission Number", HOUSEHOLD_NUMBER_HEADER] + [
    c.header for c in MEMBER_COLUMNS
]

# Legacy member keys seen in older import files -> canonical field
MEMBER_FIELD_ALIASES: Dict[str, str] = {
    "relationship_to_head": "relation_to_head",
    "education_level": "education_attainment",
    "monthly_income": "monthly_income_cash",
}


def canonical_member_keys(raw: Dict[str, object]) -> Dict[str, object]:
    """
    Rename legacy member keys. A canonical key present in the same
    object wins over its alias.
    """
    renamed: Dict[str, object] = {}
    for key, value in raw.items():
        if key in MEMBER_FIELD_ALIASES:
            continue
        renamed[key] = value
    for alias, canonical in MEMBER_FIELD_ALIASES.items():
        if alias in raw and renamed.get(canonical) in (None, ""):
            renamed[canonical] = raw[alias]
    return renamed
