"""
Soft-Delete Manager

Hides a submission behind a deleted_at/deleted_by stamp without touching
its moderation status or history. Both operations are idempotent.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ecoprofile.records.models import Submission


def soft_delete(submission: Submission, actor: str, now: Optional[datetime] = None) -> Submission:
    """Stamp as deleted. An already-deleted submission keeps its original stamp."""
    if submission.is_deleted:
        return submission
    return submission.with_changes(
        deleted_at=now or datetime.now(timezone.utc),
        deleted_by=actor,
    )


def recover(submission: Submission) -> Submission:
    """Clear the delete stamp. Status, reason and reviewer are untouched."""
    if not submission.is_deleted:
        return submission
    return submission.with_changes(deleted_at=None, deleted_by=None)


def active(submissions: Iterable[Submission]) -> List[Submission]:
    return [s for s in submissions if not s.is_deleted]


def deleted(submissions: Iterable[Submission]) -> List[Submission]:
    return [s for s in submissions if s.is_deleted]
