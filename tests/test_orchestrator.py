"""
Moderation Orchestrator Tests

Runs against InMemoryPersistence with MagicMock wrappers for failure
injection.

Coverage:
- Approve: household + members persisted before status; audit details
- Approve of an existing household updates matched members only
- Household upsert failure leaves the submission untouched
- Member upsert failure -> approved with a partial-failure warning
- Reject / begin_review paths
- Stale reads: a concurrent decision is never overwritten
- Review and delete stamps come from the injected clock
- Remove / recover idempotence and audit
- Batch import: per-row failures never abort the batch
- Export views
- Audit sink failures never block the primary operation

Version: moderation_v1
"""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ecoprofile.audit import MemoryAuditSink
from ecoprofile.csv_codec import decode, encode_submissions, escape_cell
from ecoprofile.errors import (
    AuthorizationError,
    HeadOfHouseholdError,
    NotFoundError,
    PersistenceError,
    TransitionError,
)
from ecoprofile.moderation.models import ActorType, StaffActor
from ecoprofile.moderation.orchestrator import ModerationOrchestrator
from ecoprofile.persistence import InMemoryPersistence
from ecoprofile.records.models import Household, HouseholdMember, Submission, SubmissionStatus

NOW = datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def store():
    return InMemoryPersistence(prefix="ECO")


@pytest.fixture
def audit():
    return MemoryAuditSink(enabled=True)


@pytest.fixture
def orchestrator(store, audit):
    return ModerationOrchestrator(store, audit, clock=lambda: NOW)


@pytest.fixture
def staff():
    return StaffActor(full_name="Ana Reyes", role="barangay_official")


def submit(store, **overrides):
    data = {
        "submission_number": store.next_submission_number(),
        "household_number": "HH-001",
        "respondent_name": "Juan Dela Cruz",
        "address": "123 Sample Street",
        "water_storage": ["Tank"],
        "household_members": [
            {"full_name": "Juan Dela Cruz", "age": 44, "is_head_of_household": True},
            {"full_name": "Maria Santos", "age": 19},
        ],
    }
    data.update(overrides)
    return store.insert_submission(Submission.model_validate(data))


def seed_household(store):
    household = store.upsert_household(Household(household_number="HH-001", address="Old Address"))
    store.upsert_member(HouseholdMember(
        household_id=household.id, full_name="Juan Dela Cruz", age=43, is_head_of_household=True,
    ))
    store.upsert_member(HouseholdMember(household_id=household.id, full_name="Pedro Dela Cruz", age=70))
    return household


# ============================================================
# TEST: READS
# ============================================================

class TestReads:
    def test_get_unknown(self, orchestrator):
        with pytest.raises(NotFoundError):
            orchestrator.get_submission("missing")

    def test_list_filters_and_counts(self, orchestrator, store, staff):
        first = submit(store)
        submit(store, household_number="HH-002", respondent_name="Liza")
        orchestrator.remove(first.id, staff)

        assert [s.household_number for s in orchestrator.list_submissions()] == ["HH-002"]
        assert [s.id for s in orchestrator.list_submissions("deleted")] == [first.id]
        assert len(orchestrator.list_submissions("all", include_deleted=True)) == 2
        assert orchestrator.list_submissions(search="liza")[0].household_number == "HH-002"
        assert orchestrator.pending_count() == 1

    def test_submission_numbers_sequential(self, store):
        first = submit(store)
        second = submit(store)
        year = datetime.now(timezone.utc).year
        assert first.submission_number == f"ECO-{year}-00001"
        assert second.submission_number == f"ECO-{year}-00002"


# ============================================================
# TEST: APPROVE
# ============================================================

class TestApprove:
    def test_new_household_created(self, orchestrator, store, staff):
        submission = submit(store)
        outcome = orchestrator.review(submission.id, "approve", staff)

        assert outcome.submission.status == SubmissionStatus.APPROVED
        assert outcome.submission.reviewed_by == "Ana Reyes"
        assert outcome.submission.reviewed_at == NOW
        assert outcome.fully_synced

        household = store.get_household("HH-001")
        assert household.address == "123 Sample Street"
        members = store.list_members(household.id)
        assert sorted(m.full_name for m in members) == ["Juan Dela Cruz", "Maria Santos"]
        assert all(m.household_id == household.id for m in members)

    def test_existing_household_merged(self, orchestrator, store, staff):
        household = seed_household(store)
        submission = submit(store)

        orchestrator.review(submission.id, "approve", staff)

        assert store.get_household("HH-001").id == household.id
        assert store.get_household("HH-001").address == "123 Sample Street"
        by_name = {m.full_name: m for m in store.list_members(household.id)}
        assert by_name["Juan Dela Cruz"].age == 44
        assert by_name["Maria Santos"].age == 19
        assert by_name["Pedro Dela Cruz"].age == 70
        assert len(by_name) == 3

    def test_audit_entry(self, orchestrator, store, audit, staff):
        submission = submit(store)
        orchestrator.review(submission.id, "approve", staff)

        entry = audit.entries[-1]
        assert entry["action"] == "approve"
        assert entry["entity_type"] == "ecological_submission"
        assert entry["entity_id"] == submission.id
        assert entry["performed_by"] == "Ana Reyes"
        assert entry["performed_by_type"] == "staff"
        assert entry["details"]["household_number"] == "HH-001"
        assert entry["details"]["respondent"] == "Juan Dela Cruz"
        assert entry["details"]["reconciliation"]["created_household"] is True

    def test_household_written_before_status(self, store, audit, staff):
        calls = []
        wrapped = MagicMock(wraps=store)
        wrapped.upsert_household.side_effect = lambda r: calls.append("household") or store.upsert_household(r)
        wrapped.upsert_member.side_effect = lambda r: calls.append("member") or store.upsert_member(r)
        wrapped.set_submission_status.side_effect = (
            lambda *a, **k: calls.append("status") or store.set_submission_status(*a, **k)
        )
        submission = submit(store)

        ModerationOrchestrator(wrapped, audit, clock=lambda: NOW).review(submission.id, "approve", staff)

        assert calls == ["household", "member", "member", "status"]

    def test_household_failure_aborts(self, store, audit, staff):
        wrapped = MagicMock(wraps=store)
        wrapped.upsert_household.side_effect = PersistenceError("connection reset", operation="upsert_household")
        submission = submit(store)

        with pytest.raises(PersistenceError):
            ModerationOrchestrator(wrapped, audit).review(submission.id, "approve", staff)

        assert store.get_submission(submission.id).status == SubmissionStatus.PENDING
        wrapped.set_submission_status.assert_not_called()
        wrapped.upsert_member.assert_not_called()
        assert audit.entries == []

    def test_member_failure_is_partial(self, store, audit, staff):
        wrapped = MagicMock(wraps=store)

        def flaky(record):
            if record.full_name == "Maria Santos":
                raise PersistenceError("value too long")
            return store.upsert_member(record)

        wrapped.upsert_member.side_effect = flaky
        submission = submit(store)

        outcome = ModerationOrchestrator(wrapped, audit).review(submission.id, "approve", staff)

        assert outcome.submission.status == SubmissionStatus.APPROVED
        assert not outcome.fully_synced
        assert outcome.warnings[0].failed_members == ["Maria Santos"]
        assert "HH-001" in outcome.warnings[0].message
        names = [m.full_name for m in store.list_members(store.get_household("HH-001").id)]
        assert names == ["Juan Dela Cruz"]
        assert audit.entries[-1]["details"]["partial_failure"]

    def test_head_invariant_blocks_write(self, orchestrator, store, staff):
        submission = submit(store, household_members=[{"full_name": "A"}, {"full_name": "B"}])
        with pytest.raises(HeadOfHouseholdError):
            orchestrator.review(submission.id, "approve", staff)
        assert store.get_household("HH-001") is None
        assert store.get_submission(submission.id).status == SubmissionStatus.PENDING

    def test_re_approval_rejected(self, orchestrator, store, staff):
        submission = submit(store)
        orchestrator.review(submission.id, "approve", staff)
        with pytest.raises(TransitionError):
            orchestrator.review(submission.id, "approve", staff)

    def test_unauthorized_actor(self, orchestrator, store):
        submission = submit(store)
        with pytest.raises(AuthorizationError):
            orchestrator.review(submission.id, "approve", StaffActor(full_name="Leo", role="sk_chairman"))
        assert store.get_household("HH-001") is None


# ============================================================
# TEST: REJECT / BEGIN REVIEW
# ============================================================

class TestReject:
    def test_reject_records_reason(self, orchestrator, store, audit, staff):
        submission = submit(store)
        outcome = orchestrator.review(submission.id, "reject", staff, reason="Duplicate household")

        assert outcome.submission.status == SubmissionStatus.REJECTED
        assert outcome.submission.rejection_reason == "Duplicate household"
        assert store.get_household("HH-001") is None
        assert audit.entries[-1]["action"] == "reject"
        assert audit.entries[-1]["details"]["reason"] == "Duplicate household"

    def test_reject_without_reason(self, orchestrator, store, staff):
        submission = submit(store)
        with pytest.raises(TransitionError):
            orchestrator.review(submission.id, "reject", staff)

    def test_begin_review(self, orchestrator, store, audit, staff):
        submission = submit(store)
        outcome = orchestrator.review(submission.id, "begin_review", staff, notes="Calling respondent")

        assert outcome.submission.status == SubmissionStatus.UNDER_REVIEW
        assert outcome.submission.reviewed_by is None
        assert outcome.submission.staff_notes == "Calling respondent"
        assert audit.entries[-1]["action"] == "update"


class TestConcurrentReview:
    """Two sessions that both read the submission while it was pending."""

    def _stale_session(self, store, audit, snapshot):
        wrapped = MagicMock(wraps=store)
        wrapped.get_submission.return_value = snapshot
        return ModerationOrchestrator(wrapped, audit, clock=lambda: NOW)

    def test_stale_reject_cannot_overwrite_approval(self, orchestrator, store, audit, staff):
        submission = submit(store)
        snapshot = store.get_submission(submission.id)
        orchestrator.review(submission.id, "approve", staff)

        with pytest.raises(TransitionError) as exc:
            self._stale_session(store, audit, snapshot).review(submission.id, "reject", staff, reason="dup")

        assert exc.value.current_status == "approved"
        stored = store.get_submission(submission.id)
        assert stored.status == SubmissionStatus.APPROVED
        assert stored.rejection_reason is None
        assert audit.actions() == ["approve"]

    def test_stale_approve_cannot_overwrite_rejection(self, orchestrator, store, audit, staff):
        submission = submit(store)
        snapshot = store.get_submission(submission.id)
        orchestrator.review(submission.id, "reject", staff, reason="Duplicate")

        with pytest.raises(TransitionError):
            self._stale_session(store, audit, snapshot).review(submission.id, "approve", staff)

        assert store.get_submission(submission.id).status == SubmissionStatus.REJECTED
        assert audit.actions() == ["reject"]


# ============================================================
# TEST: SOFT DELETE
# ============================================================

class TestLifecycle:
    def test_remove_and_recover(self, orchestrator, store, audit, staff):
        submission = submit(store)
        orchestrator.review(submission.id, "reject", staff, reason="Incomplete")

        removed = orchestrator.remove(submission.id, staff)
        assert removed.changed
        assert removed.submission.deleted_by == "Ana Reyes"
        assert removed.submission.status == SubmissionStatus.REJECTED

        restored = orchestrator.recover(submission.id, staff)
        assert restored.changed
        assert restored.submission.deleted_at is None
        assert restored.submission.status == SubmissionStatus.REJECTED
        assert restored.submission.rejection_reason == "Incomplete"
        assert audit.actions()[-2:] == ["delete", "recover"]

    def test_delete_stamp_comes_from_clock(self, orchestrator, store, staff):
        submission = submit(store)
        removed = orchestrator.remove(submission.id, staff)
        assert removed.submission.deleted_at == NOW
        assert store.get_submission(submission.id).deleted_at == NOW

    def test_repeat_is_no_op(self, orchestrator, store, audit, staff):
        submission = submit(store)
        orchestrator.remove(submission.id, staff)
        again = orchestrator.remove(submission.id, staff)
        assert not again.changed
        assert audit.actions() == ["delete"]

        orchestrator.recover(submission.id, staff)
        assert not orchestrator.recover(submission.id, staff).changed

    def test_remove_unknown(self, orchestrator, staff):
        with pytest.raises(NotFoundError):
            orchestrator.remove("missing", staff)

    def test_remove_requires_permission(self, orchestrator, store):
        submission = submit(store)
        resident = StaffActor(full_name="Juan", actor_type=ActorType.RESIDENT)
        with pytest.raises(AuthorizationError):
            orchestrator.remove(submission.id, resident)


# ============================================================
# TEST: IMPORT
# ============================================================

def _import_rows():
    head = json.dumps([{"full_name": "Juan", "is_head_of_household": True}])
    lines = [
        "Household Number,Respondent Name,Years Staying,Members (JSON)",
        ",".join(["HH-101", "Juan", "3", escape_cell(head)]),
        ",".join(["HH-102", "Bad Row", "3", "[oops"]),
        ",".join(["HH-103", "Liza", "", ""]),
    ]
    return "\n".join(lines)


class TestImport:
    def test_bad_row_does_not_abort(self, orchestrator, store, audit, staff):
        result = orchestrator.import_csv(_import_rows(), staff)

        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.failures[0].row == 2
        assert "Invalid JSON" in result.failures[0].messages[0]

        stored = orchestrator.list_submissions()
        assert sorted(s.household_number for s in stored) == ["HH-101", "HH-103"]
        assert all(s.status == SubmissionStatus.PENDING for s in stored)

    def test_numbers_allocated_in_row_order(self, orchestrator, staff):
        result = orchestrator.import_csv(_import_rows(), staff)
        numbers = [s.submission_number for s in result.inserted]
        assert numbers == sorted(numbers)
        assert len(set(numbers)) == 2

    def test_one_audit_entry_with_counts(self, orchestrator, audit, staff):
        orchestrator.import_csv(_import_rows(), staff)
        assert audit.actions() == ["import"]
        details = audit.entries[0]["details"]
        assert details["success_count"] == 2
        assert details["failure_count"] == 1

    def test_insert_failure_collected(self, store, audit, staff):
        wrapped = MagicMock(wraps=store)
        original = store.insert_submission

        def fail_for_103(record):
            if record.household_number == "HH-103":
                raise PersistenceError("duplicate key value")
            return original(record)

        wrapped.insert_submission.side_effect = fail_for_103
        result = ModerationOrchestrator(wrapped, audit).import_csv(_import_rows(), staff)

        assert result.success_count == 1
        assert [f.row for f in result.failures] == [2, 3]
        assert result.failures[1].messages == ["Row 3: duplicate key value"]

    def test_dropped_records_counted(self, orchestrator, staff):
        text = _import_rows() + "\nHH-104,too,few"
        result = orchestrator.import_csv(text, staff)
        assert result.dropped_records == 1
        assert result.to_dict()["dropped_records"] == 1

    def test_export_reimports(self, orchestrator, store, staff):
        submit(store, address='12 Rizal St, "Corner"')
        text = orchestrator.export_csv()
        result = orchestrator.import_batch(decode(text), staff)
        assert result.success_count == 1
        assert result.inserted[0].address == '12 Rizal St, "Corner"'


# ============================================================
# TEST: EXPORT
# ============================================================

class TestExport:
    def test_submissions_view(self, orchestrator, store):
        submit(store)
        rows = decode(orchestrator.export_csv("submissions"))
        assert rows[0]["Household Number"] == "HH-001"

    def test_members_view(self, orchestrator, store):
        submit(store)
        rows = decode(orchestrator.export_csv("members"))
        assert [r["Full Name"] for r in rows] == ["Juan Dela Cruz", "Maria Santos"]

    def test_unknown_view(self, orchestrator):
        from ecoprofile.errors import ValidationError
        with pytest.raises(ValidationError):
            orchestrator.export_csv("households")

    def test_export_matches_encoder(self, orchestrator, store):
        submit(store)
        assert orchestrator.export_csv() == encode_submissions(orchestrator.list_submissions())


# ============================================================
# TEST: AUDIT RESILIENCE
# ============================================================

class TestAuditResilience:
    def test_audit_write_failure_ignored(self, store, staff):
        sink = MemoryAuditSink(enabled=True)
        with patch.object(MemoryAuditSink, "_write", side_effect=RuntimeError("audit down")):
            outcome = ModerationOrchestrator(store, sink).review(submit(store).id, "approve", staff)
        assert outcome.submission.status == SubmissionStatus.APPROVED
        assert sink.entries == []

    def test_raising_sink_ignored(self, store, staff):
        sink = MagicMock()
        sink.record.side_effect = RuntimeError("boom")
        outcome = ModerationOrchestrator(store, sink).review(submit(store).id, "approve", staff)
        assert outcome.submission.status == SubmissionStatus.APPROVED

    def test_disabled_sink_records_nothing(self, store, staff):
        sink = MemoryAuditSink(enabled=False)
        ModerationOrchestrator(store, sink).review(submit(store).id, "approve", staff)
        assert sink.entries == []
