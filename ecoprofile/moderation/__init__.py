"""
Ecological Submission Moderation

State machine, soft-delete lifecycle, listing, orchestrator and the
staff HTTP router.
"""

from .models import (
    ActorType,
    StaffActor,
    ReviewOutcome,
    LifecycleOutcome,
    ImportBatchResult,
)
from .state_machine import allowed_actions, apply_transition, next_status
from .soft_delete import soft_delete, recover, active, deleted
from .listing import filter_submissions, sort_submissions
from .orchestrator import ModerationOrchestrator
from .admin import router

__all__ = [
    "ActorType",
    "StaffActor",
    "ReviewOutcome",
    "LifecycleOutcome",
    "ImportBatchResult",
    "allowed_actions",
    "apply_transition",
    "next_status",
    "soft_delete",
    "recover",
    "active",
    "deleted",
    "filter_submissions",
    "sort_submissions",
    "ModerationOrchestrator",
    "router",
]
