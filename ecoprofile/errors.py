"""
Ecological Profile Error Taxonomy

Every failure the moderation core surfaces derives from EcoProfileError.
Nothing here is retried; callers decide how to report.
"""

from typing import List, Optional


class EcoProfileError(Exception):
    """Base exception for the ecological profile core."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EcoProfileError):
    """Malformed or missing field. Carries a field and optional row reference."""

    def __init__(self, message: str, field: Optional[str] = None, row: Optional[int] = None):
        super().__init__(message)
        self.field = field
        self.row = row


class HeadOfHouseholdError(ValidationError):
    """Member list does not flag exactly one head of household."""

    def __init__(self, head_count: int, row: Optional[int] = None):
        prefix = f"Row {row}: " if row is not None else ""
        super().__init__(
            f"{prefix}Household members must flag exactly one head of household (found {head_count})",
            field="household_members",
            row=row,
        )
        self.head_count = head_count


class TransitionError(EcoProfileError):
    """Illegal state-machine move. The record is left unchanged."""

    def __init__(self, message: str, current_status: Optional[str] = None, action: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.action = action


class AuthorizationError(TransitionError):
    """Actor is not permitted to moderate submissions."""
    pass


class NotFoundError(EcoProfileError):
    """Submission id unknown to the store."""
    pass


class PersistenceError(EcoProfileError):
    """External store call failed. Message is surfaced verbatim."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class ReconciliationPartialFailure(EcoProfileError):
    """
    Status write landed but the household merge only partially synced.

    Returned as a warning on the review outcome, never raised.
    The operator re-runs the approval merge manually.
    """

    def __init__(self, household_number: Optional[str], failed_members: List[str], detail: str):
        super().__init__(
            f"Submission approved but household {household_number} was not fully updated: {detail}"
        )
        self.household_number = household_number
        self.failed_members = failed_members


class ImportRowError(EcoProfileError):
    """Per-row import failure. Collected, never stops the batch."""

    def __init__(self, row: int, messages: List[str]):
        super().__init__("; ".join(messages))
        self.row = row
        self.messages = messages
