"""
Persistence Service Interface

Named, typed operations the moderation core calls against the shared
record store. The core never issues raw queries. Implementations wrap
every store failure in PersistenceError and make exactly one attempt.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ecoprofile.errors import TransitionError
from ecoprofile.records.models import Household, HouseholdMember, Submission, SubmissionStatus


def stale_status_error(current, expected, target) -> TransitionError:
    """Status moved under a concurrent review between read and write."""
    current = SubmissionStatus(current).value
    expected = SubmissionStatus(expected).value
    target = SubmissionStatus(target).value
    return TransitionError(
        f"Submission is now {current} (expected {expected}); refusing to set {target}",
        current_status=current,
        action=target,
    )


class PersistenceService(ABC):
    """Record store used by the moderation orchestrator."""

    @abstractmethod
    def list_submissions(
        self,
        status_filter: Optional[SubmissionStatus] = None,
        include_deleted: bool = False,
    ) -> List[Submission]:
        """Submissions, optionally one status only. Soft-deleted rows only when asked."""

    @abstractmethod
    def get_submission(self, submission_id: str) -> Optional[Submission]:
        """None when the id is unknown."""

    @abstractmethod
    def get_household(self, household_number: str) -> Optional[Household]:
        pass

    @abstractmethod
    def list_members(self, household_id: str) -> List[HouseholdMember]:
        pass

    @abstractmethod
    def upsert_household(self, record: Household) -> Household:
        """
        Insert or update by household number. Must be atomic per row;
        concurrent approvals for one household resolve as last write wins.
        """

    @abstractmethod
    def upsert_member(self, record: HouseholdMember) -> HouseholdMember:
        """Update by id when set, otherwise insert."""

    @abstractmethod
    def set_submission_status(
        self,
        submission_id: str,
        status: SubmissionStatus,
        reviewer: Optional[str],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        expected_status: Optional[SubmissionStatus] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> Submission:
        """
        Compare-and-set on status when expected_status is given: raises
        TransitionError if the stored status no longer matches.
        reviewed_at defaults to the store clock.
        """

    @abstractmethod
    def set_submission_deleted(
        self,
        submission_id: str,
        deleted: bool,
        actor: Optional[str] = None,
        deleted_at: Optional[datetime] = None,
    ) -> Submission:
        """deleted_at defaults to the store clock."""

    @abstractmethod
    def insert_submission(self, record: Submission) -> Submission:
        pass

    @abstractmethod
    def next_submission_number(self) -> str:
        """Allocate the next human-readable submission number. Never reused."""
