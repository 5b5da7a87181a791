"""
Ecological Profile Moderation Orchestrator

The only component with side effects. Ties the state machine,
reconciliation engine and soft-delete manager to the persistence
service and audit sink.

Approval write order:
1. Compute the merge (pure)
2. Upsert household            -> failure aborts, status unchanged
3. Upsert changed members      -> failures collected
4. Persist approved status (compare-and-set on the status read)
5. Member failures surface as a ReconciliationPartialFailure warning

Every store call is a single attempt. Audit writes never block or
reverse the primary operation.

Version: moderation_v1
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ecoprofile.audit import AuditAction, AuditSink, EntityType
from ecoprofile.csv_codec import (
    decode_with_stats,
    encode_members,
    encode_submissions,
    validate,
)
from ecoprofile.errors import (
    AuthorizationError,
    ImportRowError,
    NotFoundError,
    PersistenceError,
    ReconciliationPartialFailure,
    ValidationError,
)
from ecoprofile.persistence import PersistenceService
from ecoprofile.reconciliation import ReconciliationResult, reconcile
from ecoprofile.records.models import ModerationAction, Submission, SubmissionStatus

from .soft_delete import recover as recover_submission, soft_delete as soft_delete_submission
from .listing import filter_submissions, parse_status_filter, sort_submissions, store_filter
from .models import ImportBatchResult, LifecycleOutcome, ReviewOutcome, StaffActor
from .state_machine import apply_transition

logger = logging.getLogger(__name__)

EXPORT_VIEWS = ("submissions", "members")

_AUDIT_ACTIONS = {
    ModerationAction.BEGIN_REVIEW: AuditAction.UPDATE,
    ModerationAction.APPROVE: AuditAction.APPROVE,
    ModerationAction.REJECT: AuditAction.REJECT,
}


class ModerationOrchestrator:
    """Staff-facing operations on ecological profile submissions."""

    def __init__(
        self,
        store: PersistenceService,
        audit: AuditSink,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.audit = audit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # =============================================
    # Reads
    # =============================================

    def list_submissions(
        self,
        status_filter: Optional[str] = None,
        include_deleted: bool = False,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> List[Submission]:
        status_filter = parse_status_filter(status_filter)
        status, with_deleted = store_filter(status_filter, include_deleted)
        rows = self.store.list_submissions(status, with_deleted)
        rows = filter_submissions(rows, status_filter, include_deleted, search)
        return sort_submissions(rows, sort_by, descending)

    def get_submission(self, submission_id: str) -> Submission:
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        return submission

    def pending_count(self) -> int:
        return len(self.store.list_submissions(SubmissionStatus.PENDING, False))

    # =============================================
    # Review
    # =============================================

    def review(
        self,
        submission_id: str,
        decision: ModerationAction,
        actor: StaffActor,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ReviewOutcome:
        """
        Apply one moderation decision and persist it.

        Raises:
            NotFoundError: unknown submission
            AuthorizationError / TransitionError / ValidationError: rejected
                by the state machine, nothing written
            TransitionError: status changed by a concurrent review since
                it was read (nothing further written)
            PersistenceError: household or status write failed
        """
        decision = ModerationAction(decision)
        current = self.get_submission(submission_id)
        staged = apply_transition(current, decision, actor, reason, notes, now=self._clock())

        reconciliation = None
        warnings: List[ReconciliationPartialFailure] = []
        if decision == ModerationAction.APPROVE:
            reconciliation, warning = self._sync_household(staged)
            if warning:
                warnings.append(warning)

        saved = self.store.set_submission_status(
            submission_id,
            staged.status,
            staged.reviewed_by,
            staged.rejection_reason,
            staged.staff_notes if notes is not None else None,
            expected_status=current.status,
            reviewed_at=staged.reviewed_at,
        )
        logger.info(
            f"{saved.submission_number}: {current.status.value} -> {saved.status.value} "
            f"by {actor.full_name}"
        )

        details: Dict[str, Any] = {
            "submission_number": saved.submission_number,
            "household_number": saved.household_number,
            "respondent": saved.respondent_name,
            "previous_status": current.status.value,
            "new_status": saved.status.value,
        }
        if decision == ModerationAction.REJECT:
            details["reason"] = saved.rejection_reason
        if reconciliation is not None:
            details["reconciliation"] = reconciliation.summary()
        if warnings:
            details["partial_failure"] = [w.message for w in warnings]
        self._audit(_AUDIT_ACTIONS[decision], EntityType.SUBMISSION, saved.id, actor, details)

        return ReviewOutcome(
            submission=saved,
            action=decision,
            reconciliation=reconciliation,
            warnings=warnings,
        )

    def _sync_household(self, approved: Submission):
        household = self.store.get_household(approved.household_number)
        members = self.store.list_members(household.id) if household and household.id else []
        result: ReconciliationResult = reconcile(approved, household, members)

        if result.household_changed or household is None:
            try:
                saved_household = self.store.upsert_household(result.household)
            except PersistenceError as e:
                logger.error(f"Household {approved.household_number} upsert failed: {e.message}")
                raise
        else:
            saved_household = household
        result.household = saved_household

        failed: List[str] = []
        errors: List[str] = []
        for member in result.member_upserts:
            if not member.household_id:
                member = member.model_copy(update={"household_id": saved_household.id})
            try:
                self.store.upsert_member(member)
            except PersistenceError as e:
                failed.append(member.full_name)
                errors.append(f"{member.full_name}: {e.message}")

        if not failed:
            return result, None

        warning = ReconciliationPartialFailure(
            approved.household_number,
            failed,
            "; ".join(errors),
        )
        logger.error(warning.message)
        return result, warning

    # =============================================
    # Soft-delete lifecycle
    # =============================================

    def remove(self, submission_id: str, actor: StaffActor) -> LifecycleOutcome:
        self._require_moderator(actor, "delete")
        current = self.get_submission(submission_id)
        if current.is_deleted:
            return LifecycleOutcome(submission=current, changed=False)

        staged = soft_delete_submission(current, actor.full_name, now=self._clock())
        saved = self.store.set_submission_deleted(
            submission_id, staged.is_deleted, staged.deleted_by, deleted_at=staged.deleted_at,
        )
        self._audit(AuditAction.DELETE, EntityType.SUBMISSION, saved.id, actor, {
            "submission_number": saved.submission_number,
            "household_number": saved.household_number,
            "respondent": saved.respondent_name,
            "status": saved.status.value,
        })
        return LifecycleOutcome(submission=saved, changed=True)

    def recover(self, submission_id: str, actor: StaffActor) -> LifecycleOutcome:
        self._require_moderator(actor, "recover")
        current = self.get_submission(submission_id)
        if not current.is_deleted:
            return LifecycleOutcome(submission=current, changed=False)

        restored = recover_submission(current)
        saved = self.store.set_submission_deleted(submission_id, restored.is_deleted, restored.deleted_by)
        self._audit(AuditAction.RECOVER, EntityType.SUBMISSION, saved.id, actor, {
            "submission_number": saved.submission_number,
            "household_number": saved.household_number,
            "respondent": saved.respondent_name,
            "status": saved.status.value,
            "deleted_by": current.deleted_by,
        })
        return LifecycleOutcome(submission=saved, changed=True)

    # =============================================
    # CSV interchange
    # =============================================

    def import_batch(self, rows: List[Dict[str, str]], actor: StaffActor) -> ImportBatchResult:
        """
        Insert one pending submission per valid row, in order.

        A bad row is recorded as an ImportRowError and never aborts the batch.
        """
        self._require_moderator(actor, "import")
        validation = validate(rows)
        result = ImportBatchResult()

        for index, candidate in enumerate(validation.data):
            row_num = index + 1
            row_errors = validation.errors_for_row(row_num)
            if row_errors:
                result.failures.append(ImportRowError(row_num, [e.message for e in row_errors]))
                continue
            try:
                record = candidate.with_changes(
                    id=None,
                    submission_number=self.store.next_submission_number(),
                    status=SubmissionStatus.PENDING,
                    created_at=None,
                )
                result.inserted.append(self.store.insert_submission(record))
            except PersistenceError as e:
                result.failures.append(ImportRowError(row_num, [f"Row {row_num}: {e.message}"]))

        logger.info(
            f"Import by {actor.full_name}: {result.success_count} inserted, "
            f"{result.failure_count} failed"
        )
        self._audit(AuditAction.IMPORT, EntityType.SUBMISSION, None, actor, {
            "success_count": result.success_count,
            "failure_count": result.failure_count,
            "submission_numbers": [s.submission_number for s in result.inserted],
        })
        return result

    def import_csv(self, text: str, actor: StaffActor) -> ImportBatchResult:
        decoded = decode_with_stats(text)
        if not decoded.headers:
            raise ValidationError("CSV file is empty", field="csv")
        result = self.import_batch(decoded.rows, actor)
        result.dropped_records = decoded.dropped
        return result

    def export_csv(
        self,
        view: str = "submissions",
        status_filter: Optional[str] = None,
        include_deleted: bool = False,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> str:
        """Filtered, sorted view as CSV text (no BOM)."""
        if view not in EXPORT_VIEWS:
            raise ValidationError(
                f"Unknown export view '{view}'. Expected one of: {', '.join(EXPORT_VIEWS)}",
                field="view",
            )
        rows = self.list_submissions(status_filter, include_deleted, search, sort_by, descending)
        if view == "members":
            return encode_members(rows)
        return encode_submissions(rows)

    # =============================================
    # Helpers
    # =============================================

    @staticmethod
    def _require_moderator(actor: StaffActor, action: str) -> None:
        if not actor.can_moderate:
            raise AuthorizationError(
                f"{actor.full_name} is not permitted to {action} ecological submissions",
                action=action,
            )

    def _audit(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: Optional[str],
        actor: StaffActor,
        details: Dict[str, Any],
    ) -> None:
        try:
            self.audit.record(action, entity_type, entity_id, actor.full_name, actor.actor_type, details)
        except Exception as e:
            logger.warning(f"Audit sink raised for {action.value} {entity_id}: {e}")
