"""
Ecological Profile Audit Sink

Records moderation and import actions to audit_logs.
Non-blocking: a failed write is logged and reported as False, never raised.

Usage:
    sink = PostgresAuditSink()
    sink.record(AuditAction.APPROVE, EntityType.SUBMISSION, submission.id,
                actor="Ana Reyes", actor_type="staff",
                details={"household_number": "HH-001"})

Version: audit_v1
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from ecoprofile import config

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    RECOVER = "recover"
    IMPORT = "import"


class EntityType(str, Enum):
    SUBMISSION = "ecological_submission"
    HOUSEHOLD = "household"
    MEMBER = "household_member"


def _value(v: Any) -> Any:
    return v.value if isinstance(v, Enum) else v


class AuditSink:
    """Base sink. Subclasses implement _write."""

    def __init__(self, enabled: Optional[bool] = None):
        self._enabled = config.AUDIT_ENABLED if enabled is None else enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def record(
        self,
        action: AuditAction,
        entity_type: EntityType,
        entity_id: Optional[str],
        actor: Optional[str],
        actor_type: Any = "staff",
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Write one audit entry. Returns True when it was stored."""
        if not self._enabled:
            return False
        entry = {
            "action": _value(action),
            "entity_type": _value(entity_type),
            "entity_id": entity_id,
            "performed_by": actor,
            "performed_by_type": _value(actor_type),
            "details": details or {},
        }
        try:
            self._write(entry)
            return True
        except Exception as e:
            logger.warning(f"Audit write failed for {entry['action']} {entry['entity_id']}: {e}")
            return False

    def _write(self, entry: Dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryAuditSink(AuditSink):
    """Keeps entries in process. Used in dev mode and tests."""

    def __init__(self, enabled: Optional[bool] = None):
        super().__init__(enabled)
        self.entries: List[Dict[str, Any]] = []
        self._lock = Lock()

    def _write(self, entry: Dict[str, Any]) -> None:
        entry = dict(entry, created_at=datetime.now(timezone.utc))
        with self._lock:
            self.entries.append(entry)
        logger.info(
            f"audit {entry['action']} {entry['entity_type']} {entry['entity_id']} "
            f"by {entry['performed_by']}"
        )

    def actions(self) -> List[str]:
        return [e["action"] for e in self.entries]


class PostgresAuditSink(AuditSink):
    """Writes to the audit_logs table."""

    def __init__(self, database_url: Optional[str] = None, enabled: Optional[bool] = None):
        super().__init__(enabled)
        self._db_url = database_url or config.DATABASE_URL
        if not self._db_url:
            self._enabled = False

    def _write(self, entry: Dict[str, Any]) -> None:
        conn = psycopg2.connect(self._db_url, cursor_factory=RealDictCursor)
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute("""
                        INSERT INTO audit_logs
                            (action, entity_type, entity_id, performed_by, performed_by_type, details)
                        VALUES (%s, %s, %s, %s, %s, %s)
                    """, (
                        entry["action"],
                        entry["entity_type"],
                        entry["entity_id"],
                        entry["performed_by"],
                        entry["performed_by_type"],
                        Json(entry["details"], dumps=_dumps),
                    ))
        finally:
            conn.close()


def _dumps(obj: Any) -> str:
    return json.dumps(obj, default=str)


def build_audit_sink() -> AuditSink:
    if config.DATABASE_URL:
        return PostgresAuditSink(config.DATABASE_URL)
    return MemoryAuditSink()
