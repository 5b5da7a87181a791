"""
Household Reconciliation

Deterministic merge of approved submissions into canonical
household and member records.
"""

from .merge import (
    ReconciliationResult,
    household_state_hash,
    merge_household,
    reconcile,
)

__all__ = [
    "ReconciliationResult",
    "household_state_hash",
    "merge_household",
    "reconcile",
]
