"""
Ecological Profile Record Models

Pydantic models for the census pipeline:
- Submission: resident-reported household snapshot under moderation
- Household: canonical dwelling record
- MemberSnapshot / HouseholdMember: embedded vs canonical person records
- Census statistics: tagged union of the nested count blocks

Version: ecoprofile_v1
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .vocabulary import FACILITY_VOCABULARY


class SubmissionStatus(str, Enum):
    """Moderation states."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ModerationAction(str, Enum):
    """Staff actions on a submission."""
    BEGIN_REVIEW = "begin_review"
    APPROVE = "approve"
    REJECT = "reject"


MULTI_VALUED_FIELDS = tuple(FACILITY_VOCABULARY)


def distinct_values(values: Any) -> List[str]:
    """Order-preserving de-duplication. Blank entries are dropped."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    seen = set()
    result = []
    for value in values:
        text = str(value).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


# =============================================
# Members
# =============================================

class MemberSnapshot(BaseModel):
    """
    Household member as reported inside a submission.

    Embedded by value: the person may not exist as a canonical record yet.
    """
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = None
    relation_to_head: Optional[str] = None
    birth_date: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    gender: Optional[str] = None
    civil_status: Optional[str] = None
    religion: Optional[str] = None
    contact_number: Optional[str] = None
    occupation: Optional[str] = None
    education_attainment: Optional[str] = None
    schooling_status: Optional[str] = None
    employment_status: Optional[str] = None
    employment_category: Optional[str] = None
    monthly_income_cash: Optional[str] = None
    monthly_income_kind: Optional[str] = None
    is_head_of_household: bool = False
    is_pwd: bool = False
    is_solo_parent: bool = False

    @field_validator("monthly_income_cash", "monthly_income_kind", "contact_number", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        # Older intake stored incomes as numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


MEMBER_FIELDS = tuple(MemberSnapshot.model_fields)


class HouseholdMember(MemberSnapshot):
    """Canonical person record linked to a household."""
    id: Optional[str] = None
    household_id: Optional[str] = None

    def attributes(self) -> Dict[str, Any]:
        """Snapshot-level attributes only (no identity)."""
        return {name: getattr(self, name) for name in MEMBER_FIELDS}


# =============================================
# Census statistics (tagged union)
# =============================================

class DegreeCount(BaseModel):
    first: int = Field(default=0, ge=0)
    second: int = Field(default=0, ge=0)


class MalnutritionData(BaseModel):
    """Malnourished children by age bracket and degree."""
    kind: Literal["malnutrition"] = "malnutrition"
    months_0_11: DegreeCount = Field(default_factory=DegreeCount)
    years_1_4: DegreeCount = Field(default_factory=DegreeCount)
    years_5_7: DegreeCount = Field(default_factory=DegreeCount)


class RegistrationCount(BaseModel):
    registered: int = Field(default=0, ge=0)
    not_registered: int = Field(default=0, ge=0)


class ImmunizationData(BaseModel):
    """Births by outcome and civil registration."""
    kind: Literal["immunization"] = "immunization"
    born_alive: RegistrationCount = Field(default_factory=RegistrationCount)
    born_dead: RegistrationCount = Field(default_factory=RegistrationCount)
    still_birth: RegistrationCount = Field(default_factory=RegistrationCount)


class AttainmentCount(BaseModel):
    graduate: int = Field(default=0, ge=0)
    undergraduate: int = Field(default=0, ge=0)


class EducationData(BaseModel):
    """Members by highest schooling level reached."""
    kind: Literal["education"] = "education"
    preschool: AttainmentCount = Field(default_factory=AttainmentCount)
    primary: AttainmentCount = Field(default_factory=AttainmentCount)
    secondary: AttainmentCount = Field(default_factory=AttainmentCount)
    vocational: AttainmentCount = Field(default_factory=AttainmentCount)
    college: AttainmentCount = Field(default_factory=AttainmentCount)
    post_graduate: AttainmentCount = Field(default_factory=AttainmentCount)


class DisabilityData(BaseModel):
    """Persons with disability by type."""
    kind: Literal["disability"] = "disability"
    visual: int = Field(default=0, ge=0)
    hearing: int = Field(default=0, ge=0)
    speech: int = Field(default=0, ge=0)
    orthopedic: int = Field(default=0, ge=0)
    intellectual: int = Field(default=0, ge=0)
    psychosocial: int = Field(default=0, ge=0)
    multiple: int = Field(default=0, ge=0)


class DeathData(BaseModel):
    """Deaths in the household during the census year, by category."""
    kind: Literal["death"] = "death"
    neonatal: int = Field(default=0, ge=0)
    infant: int = Field(default=0, ge=0)
    under_five: int = Field(default=0, ge=0)
    maternal: int = Field(default=0, ge=0)
    illness: int = Field(default=0, ge=0)
    accident: int = Field(default=0, ge=0)
    old_age: int = Field(default=0, ge=0)
    other: int = Field(default=0, ge=0)


class ProductionData(BaseModel):
    """Backyard food production."""
    kind: Literal["production"] = "production"
    crops: List[str] = Field(default_factory=list)
    animals: Dict[str, int] = Field(default_factory=dict)

    @field_validator("crops", mode="before")
    @classmethod
    def dedupe_crops(cls, v: Any) -> List[str]:
        return distinct_values(v)


CensusStatistic = Annotated[
    Union[
        MalnutritionData,
        ImmunizationData,
        EducationData,
        DisabilityData,
        DeathData,
        ProductionData,
    ],
    Field(discriminator="kind"),
]


# =============================================
# Household profile (shared by Submission and Household)
# =============================================

class HouseholdProfile(BaseModel):
    """Location, housing and facility fields copied on reconciliation."""
    house_number: Optional[str] = None
    street_purok: Optional[str] = None
    address: Optional[str] = None
    barangay: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    years_staying: Optional[int] = Field(default=None, ge=0)
    place_of_origin: Optional[str] = None
    ethnic_group: Optional[str] = None

    house_ownership: Optional[str] = None
    lot_ownership: Optional[str] = None
    dwelling_type: Optional[str] = None
    lighting_source: Optional[str] = None
    water_supply_level: Optional[str] = None

    water_storage: List[str] = Field(default_factory=list)
    food_storage_type: List[str] = Field(default_factory=list)
    toilet_facilities: List[str] = Field(default_factory=list)
    drainage_facilities: List[str] = Field(default_factory=list)
    garbage_disposal: List[str] = Field(default_factory=list)
    communication_services: List[str] = Field(default_factory=list)
    means_of_transport: List[str] = Field(default_factory=list)
    info_sources: List[str] = Field(default_factory=list)

    @field_validator(*MULTI_VALUED_FIELDS, mode="before")
    @classmethod
    def as_distinct_list(cls, v: Any) -> List[str]:
        return distinct_values(v)

    def profile_fields(self) -> Dict[str, Any]:
        """The reconciled subset, as plain values."""
        return {
            name: list(getattr(self, name)) if name in MULTI_VALUED_FIELDS else getattr(self, name)
            for name in HOUSEHOLD_FIELDS
        }


HOUSEHOLD_FIELDS = tuple(HouseholdProfile.model_fields)


class Household(HouseholdProfile):
    """Canonical, long-lived dwelling record."""
    id: Optional[str] = None
    household_number: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================
# Submission
# =============================================

class Submission(HouseholdProfile):
    """
    One household's census interview as reported by a resident.

    Profile and member fields are immutable after intake. Only the
    moderation orchestrator changes status and soft-delete metadata.
    """
    id: Optional[str] = None
    submission_number: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING

    household_number: Optional[str] = None
    respondent_name: Optional[str] = None
    respondent_relation: Optional[str] = None
    interview_date: Optional[str] = None
    submitted_by_resident_id: Optional[str] = None

    is_4ps_beneficiary: bool = False
    solo_parent_count: Optional[int] = Field(default=None, ge=0)
    pwd_count: Optional[int] = Field(default=None, ge=0)
    additional_notes: Optional[str] = None

    household_members: List[MemberSnapshot] = Field(default_factory=list)
    statistics: List[CensusStatistic] = Field(default_factory=list)

    # Moderation metadata
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    staff_notes: Optional[str] = None

    # Soft-delete metadata
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None

    created_at: Optional[datetime] = None

    @field_validator("household_members", "statistics", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("statistics")
    @classmethod
    def one_block_per_kind(cls, v: List[Any]) -> List[Any]:
        kinds = [block.kind for block in v]
        duplicates = sorted({k for k in kinds if kinds.count(k) > 1})
        if duplicates:
            raise ValueError(f"Duplicate census statistics blocks: {', '.join(duplicates)}")
        return v

    @model_validator(mode="after")
    def rejection_reason_matches_status(self) -> "Submission":
        has_reason = bool(self.rejection_reason and self.rejection_reason.strip())
        is_rejected = self.status == SubmissionStatus.REJECTED
        if has_reason != is_rejected:
            raise ValueError("rejection_reason must be set if and only if status is 'rejected'")
        return self

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def head_count(self) -> int:
        return sum(1 for m in self.household_members if m.is_head_of_household)

    def statistic(self, kind: str) -> Optional[BaseModel]:
        """Census statistics block of the given kind, if reported."""
        for block in self.statistics:
            if block.kind == kind:
                return block
        return None

    def with_changes(self, **changes: Any) -> "Submission":
        """Copy with changes applied, re-running every validator."""
        data = self.model_dump()
        data.update(changes)
        return Submission.model_validate(data)
