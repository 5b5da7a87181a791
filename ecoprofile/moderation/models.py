"""
Moderation Models

- StaffActor: who is performing a moderation action
- ReviewOutcome / LifecycleOutcome / ImportBatchResult: orchestrator results
- Request/response models for the staff HTTP surface

Version: moderation_v1
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ecoprofile.errors import ImportRowError, ReconciliationPartialFailure
from ecoprofile.records.models import ModerationAction, Submission, SubmissionStatus

from .permissions import ECOLOGICAL_SUBMISSIONS, has_permission


class ActorType(str, Enum):
    STAFF = "staff"
    ADMIN = "admin"
    RESIDENT = "resident"
    SYSTEM = "system"


class StaffActor(BaseModel):
    """Authenticated person issuing a moderation action."""
    full_name: str
    role: Optional[str] = None
    actor_type: ActorType = ActorType.STAFF

    @property
    def can_moderate(self) -> bool:
        return self.actor_type in (ActorType.STAFF, ActorType.ADMIN) and has_permission(
            self.role, ECOLOGICAL_SUBMISSIONS
        )


# =============================================
# Orchestrator results
# =============================================

@dataclass
class ReviewOutcome:
    """Result of a review action. warnings carry partial reconciliation failures."""
    submission: Submission
    action: ModerationAction
    reconciliation: Optional[Any] = None
    warnings: List[ReconciliationPartialFailure] = field(default_factory=list)

    @property
    def fully_synced(self) -> bool:
        return not self.warnings


@dataclass
class LifecycleOutcome:
    """Result of soft-delete or recover. changed is False for no-op repeats."""
    submission: Submission
    changed: bool


@dataclass
class ImportBatchResult:
    """Per-batch import summary. Failures never abort the batch."""
    inserted: List[Submission] = field(default_factory=list)
    failures: List[ImportRowError] = field(default_factory=list)
    dropped_records: int = 0

    @property
    def success_count(self) -> int:
        return len(self.inserted)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "dropped_records": self.dropped_records,
            "inserted": [s.submission_number for s in self.inserted],
            "failures": [{"row": f.row, "errors": f.messages} for f in self.failures],
        }


# =============================================
# HTTP request models
# =============================================

class ReviewRequest(BaseModel):
    """Request to move a submission through moderation."""
    decision: ModerationAction = Field(..., description="begin_review, approve or reject")
    reason: Optional[str] = Field(None, description="Required when rejecting")
    notes: Optional[str] = Field(None, description="Optional staff notes")


class ImportRequest(BaseModel):
    """CSV payload posted by the import dialog."""
    csv: str = Field(..., description="Raw CSV text (UTF-8, BOM allowed)")

    @field_validator("csv")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("csv must not be empty")
        return v


# =============================================
# HTTP response models
# =============================================

class SubmissionListResponse(BaseModel):
    status: str = "success"
    total: int
    pending: int = 0
    submissions: List[Submission]


class ReviewResponse(BaseModel):
    status: str = "success"
    submission: Submission
    household_number: Optional[str] = None
    household_synced: bool = True
    warnings: List[str] = Field(default_factory=list)


class LifecycleResponse(BaseModel):
    status: str = "success"
    submission: Submission
    changed: bool
    workflow_status: SubmissionStatus
