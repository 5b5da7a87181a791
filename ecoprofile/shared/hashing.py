"""
Household State Fingerprints

Stable sha256 digests of reconciled household state. Two states that
differ only in store-assigned identity or timestamps hash the same,
so re-applying an approved submission can be detected as a no-op.
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

HASH_PREFIX = "sha256:"

# Assigned by the store, never by the merge
STORE_ASSIGNED_FIELDS = frozenset([
    "id",
    "household_id",
    "created_at",
    "updated_at",
])


def _normalize(value: Any, drop_store_fields: bool) -> Any:
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    if isinstance(value, dict):
        return {
            str(key): _normalize(item, drop_store_fields)
            for key, item in value.items()
            if not (drop_store_fields and key in STORE_ASSIGNED_FIELDS)
        }
    if isinstance(value, (list, tuple)):
        return [_normalize(item, drop_store_fields) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def canonical_json(value: Any, drop_store_fields: bool = True) -> str:
    """Compact, key-sorted JSON. Same state in, same text out."""
    return json.dumps(
        _normalize(value, drop_store_fields),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )


def state_hash(value: Any, drop_store_fields: bool = True) -> str:
    """Returns "sha256:<64-char-hex>"."""
    text = canonical_json(value, drop_store_fields)
    return HASH_PREFIX + hashlib.sha256(text.encode("utf-8")).hexdigest()

