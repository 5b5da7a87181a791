"""
PostgreSQL Persistence

psycopg2-backed PersistenceService over the tables created by
migrations/001_ecological_profile.sql:
- ecological_profile_submissions
- households
- household_members

One connection per operation, one attempt, committed on success.
Every driver error surfaces as PersistenceError.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from ecoprofile import config
from ecoprofile.errors import NotFoundError, PersistenceError
from ecoprofile.records.models import (
    HOUSEHOLD_FIELDS,
    MEMBER_FIELDS,
    Household,
    HouseholdMember,
    Submission,
    SubmissionStatus,
)

from .service import PersistenceService, stale_status_error

logger = logging.getLogger(__name__)

SUBMISSIONS_TABLE = "ecological_profile_submissions"

SUBMISSION_INSERT_FIELDS = (
    "submission_number",
    "status",
    "household_number",
    *HOUSEHOLD_FIELDS,
    "respondent_name",
    "respondent_relation",
    "interview_date",
    "submitted_by_resident_id",
    "is_4ps_beneficiary",
    "solo_parent_count",
    "pwd_count",
    "additional_notes",
    "household_members",
    "statistics",
)


def _submission_params(record: Submission) -> List[Any]:
    params = []
    for name in SUBMISSION_INSERT_FIELDS:
        value = getattr(record, name)
        if name == "status":
            value = value.value
        elif name == "household_members":
            value = Json([m.model_dump() for m in value])
        elif name == "statistics":
            value = Json([block.model_dump() for block in value])
        params.append(value)
    return params


def _to_submission(row: Dict[str, Any]) -> Submission:
    return Submission.model_validate(dict(row))


class PostgresPersistence(PersistenceService):
    """PersistenceService over PostgreSQL."""

    def __init__(self, database_url: Optional[str] = None, prefix: Optional[str] = None):
        self._db_url = database_url or config.DATABASE_URL
        self._prefix = prefix or config.SUBMISSION_NUMBER_PREFIX
        if not self._db_url:
            raise PersistenceError("DATABASE_URL is not configured", operation="connect")

    def _connect(self):
        try:
            return psycopg2.connect(self._db_url, cursor_factory=RealDictCursor)
        except psycopg2.Error as e:
            logger.error(f"Database connection error: {e}")
            raise PersistenceError(f"Database connection failed: {e}", operation="connect") from e

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[Any]:
        conn = self._connect()
        try:
            with conn:
                with conn.cursor() as cur:
                    yield cur
        except psycopg2.Error as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceError(str(e).strip(), operation=operation) from e
        finally:
            conn.close()

    # ===== Submissions =====

    def list_submissions(self, status_filter=None, include_deleted=False) -> List[Submission]:
        status_value = SubmissionStatus(status_filter).value if status_filter else None
        with self._cursor("list_submissions") as cur:
            cur.execute(f"""
                SELECT * FROM {SUBMISSIONS_TABLE}
                WHERE (%s::text IS NULL OR status = %s)
                  AND (%s OR deleted_at IS NULL)
                ORDER BY created_at DESC
            """, (status_value, status_value, include_deleted))
            rows = cur.fetchall()
        return [_to_submission(row) for row in rows]

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        with self._cursor("get_submission") as cur:
            cur.execute(f"SELECT * FROM {SUBMISSIONS_TABLE} WHERE id = %s", (submission_id,))
            row = cur.fetchone()
        return _to_submission(row) if row else None

    def insert_submission(self, record: Submission) -> Submission:
        columns = ", ".join(SUBMISSION_INSERT_FIELDS)
        placeholders = ", ".join(["%s"] * len(SUBMISSION_INSERT_FIELDS))
        with self._cursor("insert_submission") as cur:
            cur.execute(
                f"INSERT INTO {SUBMISSIONS_TABLE} ({columns}) VALUES ({placeholders}) RETURNING *",
                _submission_params(record),
            )
            row = cur.fetchone()
        return _to_submission(row)

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
        status = SubmissionStatus(status)
        expected = SubmissionStatus(expected_status).value if expected_status else None
        decided = status in (SubmissionStatus.APPROVED, SubmissionStatus.REJECTED)
        with self._cursor("set_submission_status") as cur:
            cur.execute(f"""
                UPDATE {SUBMISSIONS_TABLE}
                SET status = %s,
                    reviewed_by = CASE WHEN %s THEN %s ELSE reviewed_by END,
                    reviewed_at = CASE WHEN %s THEN COALESCE(%s::timestamptz, NOW()) ELSE reviewed_at END,
                    rejection_reason = %s,
                    staff_notes = COALESCE(%s, staff_notes)
                WHERE id = %s
                  AND (%s::text IS NULL OR status = %s)
                RETURNING *
            """, (
                status.value,
                decided, reviewer,
                decided, reviewed_at,
                reason if status == SubmissionStatus.REJECTED else None,
                notes,
                submission_id,
                expected, expected,
            ))
            row = cur.fetchone()
            if not row:
                cur.execute(f"SELECT status FROM {SUBMISSIONS_TABLE} WHERE id = %s", (submission_id,))
                current = cur.fetchone()
        if not row:
            if not current:
                raise NotFoundError(f"Submission {submission_id} not found")
            raise stale_status_error(current["status"], expected, status)
        return _to_submission(row)

    def set_submission_deleted(self, submission_id, deleted, actor=None, deleted_at=None) -> Submission:
        with self._cursor("set_submission_deleted") as cur:
            cur.execute(f"""
                UPDATE {SUBMISSIONS_TABLE}
                SET deleted_at = CASE WHEN %s THEN COALESCE(%s::timestamptz, NOW()) ELSE NULL END,
                    deleted_by = CASE WHEN %s THEN %s ELSE NULL END
                WHERE id = %s
                RETURNING *
            """, (deleted, deleted_at, deleted, actor, submission_id))
            row = cur.fetchone()
        if not row:
            raise NotFoundError(f"Submission {submission_id} not found")
        return _to_submission(row)

    def next_submission_number(self) -> str:
        with self._cursor("next_submission_number") as cur:
            cur.execute("SELECT nextval('ecological_submission_seq') AS n")
            row = cur.fetchone()
        year = datetime.now(timezone.utc).year
        return f"{self._prefix}-{year}-{int(row['n']):05d}"

    # ===== Households =====

    def get_household(self, household_number: str) -> Optional[Household]:
        with self._cursor("get_household") as cur:
            cur.execute("SELECT * FROM households WHERE household_number = %s", (household_number,))
            row = cur.fetchone()
        return Household.model_validate(dict(row)) if row else None

    def list_members(self, household_id: str) -> List[HouseholdMember]:
        with self._cursor("list_members") as cur:
            cur.execute(
                "SELECT * FROM household_members WHERE household_id = %s ORDER BY created_at",
                (household_id,),
            )
            rows = cur.fetchall()
        return [HouseholdMember.model_validate(dict(row)) for row in rows]

    def upsert_household(self, record: Household) -> Household:
        fields = ("household_number",) + HOUSEHOLD_FIELDS
        updates = ", ".join(f"{name} = EXCLUDED.{name}" for name in HOUSEHOLD_FIELDS)
        with self._cursor("upsert_household") as cur:
            cur.execute(f"""
                INSERT INTO households ({", ".join(fields)})
                VALUES ({", ".join(["%s"] * len(fields))})
                ON CONFLICT (household_number) DO UPDATE SET
                    {updates},
                    updated_at = NOW()
                RETURNING *
            """, [getattr(record, name) for name in fields])
            row = cur.fetchone()
        return Household.model_validate(dict(row))

    def upsert_member(self, record: HouseholdMember) -> HouseholdMember:
        values = [getattr(record, name) for name in MEMBER_FIELDS]
        with self._cursor("upsert_member") as cur:
            if record.id:
                assignments = ", ".join(f"{name} = %s" for name in MEMBER_FIELDS)
                cur.execute(f"""
                    UPDATE household_members
                    SET {assignments}, updated_at = NOW()
                    WHERE id = %s
                    RETURNING *
                """, values + [record.id])
            else:
                fields = ("household_id",) + MEMBER_FIELDS
                cur.execute(f"""
                    INSERT INTO household_members ({", ".join(fields)})
                    VALUES ({", ".join(["%s"] * len(fields))})
                    RETURNING *
                """, [record.household_id] + values)
            row = cur.fetchone()
        if not row:
            raise PersistenceError(f"Member {record.id} not found", operation="upsert_member")
        return HouseholdMember.model_validate(dict(row))
