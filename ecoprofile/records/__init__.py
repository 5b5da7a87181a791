"""
Ecological Profile Record Model

Plain data definitions shared by the codec, state machine,
reconciliation engine and orchestrator.
"""

from .models import (
    SubmissionStatus,
    ModerationAction,
    MemberSnapshot,
    HouseholdMember,
    HouseholdProfile,
    Household,
    Submission,
    CensusStatistic,
    MalnutritionData,
    ImmunizationData,
    EducationData,
    DisabilityData,
    DeathData,
    ProductionData,
    HOUSEHOLD_FIELDS,
    MEMBER_FIELDS,
    MULTI_VALUED_FIELDS,
    distinct_values,
)
from .vocabulary import FACILITY_VOCABULARY, HOUSING_VOCABULARY

__all__ = [
    "SubmissionStatus",
    "ModerationAction",
    "MemberSnapshot",
    "HouseholdMember",
    "HouseholdProfile",
    "Household",
    "Submission",
    "CensusStatistic",
    "MalnutritionData",
    "ImmunizationData",
    "EducationData",
    "DisabilityData",
    "DeathData",
    "ProductionData",
    "HOUSEHOLD_FIELDS",
    "MEMBER_FIELDS",
    "MULTI_VALUED_FIELDS",
    "distinct_values",
    "FACILITY_VOCABULARY",
    "HOUSING_VOCABULARY",
]
