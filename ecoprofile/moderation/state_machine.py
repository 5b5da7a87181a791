"""
Submission State Machine

Legal moderation moves and who may make them:

    pending      --begin_review-->  under_review
    pending      --approve------->  approved
    pending      --reject-------->  rejected
    under_review --approve------->  approved
    under_review --reject-------->  rejected

approved and rejected are terminal. Soft-delete is a separate axis
and is not governed here.

PURE: returns a new Submission, never mutates the input.

Version: moderation_v1
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ecoprofile.errors import (
    AuthorizationError,
    HeadOfHouseholdError,
    TransitionError,
    ValidationError,
)
from ecoprofile.records.models import ModerationAction, Submission, SubmissionStatus

from .models import StaffActor

TRANSITIONS: Dict[Tuple[SubmissionStatus, ModerationAction], SubmissionStatus] = {
    (SubmissionStatus.PENDING, ModerationAction.BEGIN_REVIEW): SubmissionStatus.UNDER_REVIEW,
    (SubmissionStatus.PENDING, ModerationAction.APPROVE): SubmissionStatus.APPROVED,
    (SubmissionStatus.PENDING, ModerationAction.REJECT): SubmissionStatus.REJECTED,
    (SubmissionStatus.UNDER_REVIEW, ModerationAction.APPROVE): SubmissionStatus.APPROVED,
    (SubmissionStatus.UNDER_REVIEW, ModerationAction.REJECT): SubmissionStatus.REJECTED,
}

TERMINAL_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED})


def allowed_actions(status: SubmissionStatus) -> List[ModerationAction]:
    """Actions the dashboard should offer for a status."""
    return [action for (source, action) in TRANSITIONS if source == status]


def next_status(status: SubmissionStatus, action: ModerationAction) -> SubmissionStatus:
    target = TRANSITIONS.get((status, action))
    if target is None:
        if status in TERMINAL_STATUSES:
            message = f"Submission is already {status.value} and cannot be re-reviewed"
        else:
            message = f"Cannot {action.value} a submission that is {status.value}"
        raise TransitionError(message, current_status=status.value, action=action.value)
    return target


def check_head_of_household(submission: Submission) -> None:
    """Members, when present, must flag exactly one head of household."""
    if submission.household_members and submission.head_count != 1:
        raise HeadOfHouseholdError(submission.head_count)


def apply_transition(
    submission: Submission,
    action: ModerationAction,
    actor: StaffActor,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Submission:
    """
    Validate and apply one moderation move.

    Raises:
        AuthorizationError: actor may not moderate submissions
        TransitionError: move not legal from the current status, or
            reject without a reason
        ValidationError: approve of a submission that cannot be reconciled
    """
    action = ModerationAction(action)

    if not actor.can_moderate:
        raise AuthorizationError(
            f"{actor.full_name} is not permitted to moderate ecological submissions",
            current_status=submission.status.value,
            action=action.value,
        )

    target = next_status(submission.status, action)

    if action == ModerationAction.REJECT and not (reason and reason.strip()):
        raise TransitionError(
            "A rejection reason is required",
            current_status=submission.status.value,
            action=action.value,
        )

    if action == ModerationAction.APPROVE:
        if not (submission.household_number and submission.household_number.strip()):
            raise ValidationError(
                "Cannot approve a submission without a household number",
                field="household_number",
            )
        check_head_of_household(submission)

    changes = {"status": target}
    if action in (ModerationAction.APPROVE, ModerationAction.REJECT):
        changes["reviewed_by"] = actor.full_name
        changes["reviewed_at"] = now or datetime.now(timezone.utc)
        changes["rejection_reason"] = reason.strip() if action == ModerationAction.REJECT else None
    if notes is not None:
        changes["staff_notes"] = notes.strip() or None

    return submission.with_changes(**changes)
