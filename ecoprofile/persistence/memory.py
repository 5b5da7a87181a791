"""
In-Memory Persistence

Process-local record store. Used in dev mode when no DATABASE_URL is
configured and by the test suite. Not shared across processes.
"""

import logging
import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from ecoprofile import config
from ecoprofile.errors import NotFoundError, PersistenceError
from ecoprofile.records.models import Household, HouseholdMember, Submission, SubmissionStatus

from .service import PersistenceService, stale_status_error

logger = logging.getLogger(__name__)


class InMemoryPersistence(PersistenceService):
    """Dictionary-backed PersistenceService."""

    def __init__(self, prefix: Optional[str] = None):
        self._prefix = prefix or config.SUBMISSION_NUMBER_PREFIX
        self._lock = Lock()
        self._sequence = 0
        self.submissions: Dict[str, Submission] = {}
        self.households: Dict[str, Household] = {}
        self.members: Dict[str, HouseholdMember] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _require(self, submission_id: str) -> Submission:
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        return submission

    # ===== Submissions =====

    def list_submissions(self, status_filter=None, include_deleted=False) -> List[Submission]:
        rows = []
        for submission in self.submissions.values():
            if submission.is_deleted and not include_deleted:
                continue
            if status_filter is not None and submission.status != status_filter:
                continue
            rows.append(submission)
        return sorted(rows, key=lambda s: s.created_at or self._now(), reverse=True)

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        return self.submissions.get(submission_id)

    def insert_submission(self, record: Submission) -> Submission:
        if not record.submission_number:
            raise PersistenceError("submission_number is required", operation="insert_submission")
        if any(s.submission_number == record.submission_number for s in self.submissions.values()):
            raise PersistenceError(
                f"duplicate submission number {record.submission_number}",
                operation="insert_submission",
            )
        stored = record.with_changes(
            id=record.id or str(uuid.uuid4()),
            created_at=record.created_at or self._now(),
        )
        self.submissions[stored.id] = stored
        return stored

    def set_submission_status(
        self,
        submission_id,
        status,
        reviewer,
        reason=None,
        notes=None,
        expected_status=None,
        reviewed_at=None,
    ) -> Submission:
        with self._lock:
            current = self._require(submission_id)
            status = SubmissionStatus(status)
            if expected_status is not None and current.status != SubmissionStatus(expected_status):
                raise stale_status_error(current.status, expected_status, status)
            return self._write_status(current, status, reviewer, reason, notes, reviewed_at)

    def _write_status(self, current, status, reviewer, reason, notes, reviewed_at) -> Submission:
        changes = {
            "status": status,
            "rejection_reason": reason if status == SubmissionStatus.REJECTED else None,
        }
        if status in (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED):
            changes["reviewed_by"] = reviewer
            changes["reviewed_at"] = reviewed_at or self._now()
        if notes is not None:
            changes["staff_notes"] = notes
        updated = current.with_changes(**changes)
        self.submissions[current.id] = updated
        return updated

    def set_submission_deleted(self, submission_id, deleted, actor=None, deleted_at=None) -> Submission:
        current = self._require(submission_id)
        if deleted:
            updated = current.with_changes(deleted_at=deleted_at or self._now(), deleted_by=actor)
        else:
            updated = current.with_changes(deleted_at=None, deleted_by=None)
        self.submissions[submission_id] = updated
        return updated

    def next_submission_number(self) -> str:
        with self._lock:
            self._sequence += 1
            return f"{self._prefix}-{self._now().year}-{self._sequence:05d}"

    # ===== Households =====

    def get_household(self, household_number: str) -> Optional[Household]:
        return self.households.get(household_number)

    def list_members(self, household_id: str) -> List[HouseholdMember]:
        return [m for m in self.members.values() if m.household_id == household_id]

    def upsert_household(self, record: Household) -> Household:
        existing = self.households.get(record.household_number)
        now = self._now()
        stored = record.model_copy(update={
            "id": existing.id if existing else (record.id or str(uuid.uuid4())),
            "created_at": existing.created_at if existing else now,
            "updated_at": now,
        })
        self.households[stored.household_number] = stored
        return stored

    def upsert_member(self, record: HouseholdMember) -> HouseholdMember:
        if not record.household_id:
            raise PersistenceError("household_id is required", operation="upsert_member")
        if record.id and record.id not in self.members:
            raise PersistenceError(f"member {record.id} not found", operation="upsert_member")
        stored = record if record.id else record.model_copy(update={"id": str(uuid.uuid4())})
        self.members[stored.id] = stored
        return stored
