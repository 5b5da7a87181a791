"""Shared helpers."""

from .hashing import (
    HASH_PREFIX,
    canonical_json,
    state_hash,
)

__all__ = [
    "HASH_PREFIX",
    "canonical_json",
    "state_hash",
]
