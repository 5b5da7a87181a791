"""
Submission Listing

In-memory filter, search and sort for the staff submissions table.

Status filter values:
- "all": every moderation status
- a SubmissionStatus value: that status only
- "deleted": soft-deleted rows only, regardless of moderation status

Soft-deleted rows are excluded unless include_deleted is set or the
filter is "deleted".
"""

from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from ecoprofile.errors import ValidationError
from ecoprofile.records.models import Submission, SubmissionStatus

STATUS_FILTER_ALL = "all"
STATUS_FILTER_DELETED = "deleted"

STATUS_FILTERS = (STATUS_FILTER_ALL, STATUS_FILTER_DELETED) + tuple(s.value for s in SubmissionStatus)

SEARCH_FIELDS = ("submission_number", "household_number", "respondent_name", "address")

SORT_FIELDS = (
    "created_at",
    "submission_number",
    "household_number",
    "respondent_name",
    "status",
    "reviewed_at",
    "deleted_at",
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_status_filter(value: Optional[str]) -> str:
    value = (value or STATUS_FILTER_ALL).strip().lower()
    if value not in STATUS_FILTERS:
        raise ValidationError(
            f"Unknown status filter '{value}'. Expected one of: {', '.join(STATUS_FILTERS)}",
            field="status",
        )
    return value


def store_filter(status_filter: str, include_deleted: bool) -> Tuple[Optional[SubmissionStatus], bool]:
    """Translate a listing filter into persistence arguments."""
    if status_filter == STATUS_FILTER_DELETED:
        return None, True
    if status_filter == STATUS_FILTER_ALL:
        return None, include_deleted
    return SubmissionStatus(status_filter), include_deleted


def matches_search(submission: Submission, search: Optional[str]) -> bool:
    if not search or not search.strip():
        return True
    needle = search.strip().lower()
    for name in SEARCH_FIELDS:
        value = getattr(submission, name)
        if value and needle in value.lower():
            return True
    return False


def filter_submissions(
    submissions: List[Submission],
    status_filter: str = STATUS_FILTER_ALL,
    include_deleted: bool = False,
    search: Optional[str] = None,
) -> List[Submission]:
    status_filter = parse_status_filter(status_filter)
    result = []
    for submission in submissions:
        if status_filter == STATUS_FILTER_DELETED:
            if not submission.is_deleted:
                continue
        else:
            if submission.is_deleted and not include_deleted:
                continue
            if status_filter != STATUS_FILTER_ALL and submission.status.value != status_filter:
                continue
        if matches_search(submission, search):
            result.append(submission)
    return result


def _sort_key(submission: Submission, sort_by: str) -> Tuple[int, Any]:
    value = getattr(submission, sort_by)
    if value is None:
        return (0, _EPOCH if sort_by.endswith("_at") else "")
    if isinstance(value, SubmissionStatus):
        return (1, value.value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        value = value.lower()
    return (1, value)


def sort_submissions(
    submissions: List[Submission],
    sort_by: str = "created_at",
    descending: bool = True,
) -> List[Submission]:
    """Stable sort. Missing values sort first ascending, last descending."""
    if sort_by not in SORT_FIELDS:
        raise ValidationError(
            f"Cannot sort by '{sort_by}'. Expected one of: {', '.join(SORT_FIELDS)}",
            field="sort_by",
        )
    return sorted(submissions, key=lambda s: _sort_key(s, sort_by), reverse=descending)
