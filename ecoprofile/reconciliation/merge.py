"""
Household Reconciliation Engine

Merges an approved submission into the canonical household and its members.

Algorithm:
1. No household yet -> create one from the submission's profile fields
2. Household exists -> overwrite its profile fields (last approved wins)
3. Each member snapshot is matched to a canonical member by exact
   full-name string equality (a name repeated in the submission counts
   once, with its last snapshot): matched -> overwritten, unmatched -> created
   (head-of-household flag carried through)
4. Canonical members missing from the submission are left untouched

PURE: no I/O. The orchestrator persists the result.
IDEMPOTENT: re-applying the same submission yields no upserts.

Version: reconciliation_v1
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ecoprofile.errors import TransitionError, ValidationError
from ecoprofile.records.models import (
    Household,
    HouseholdMember,
    MEMBER_FIELDS,
    MemberSnapshot,
    Submission,
    SubmissionStatus,
)
from ecoprofile.shared import hashing


@dataclass
class ReconciliationResult:
    """Merged household state plus the writes needed to reach it."""
    household: Household
    members: List[HouseholdMember]
    member_upserts: List[HouseholdMember] = field(default_factory=list)
    created_household: bool = False
    household_changed: bool = False
    created_members: List[str] = field(default_factory=list)
    updated_members: List[str] = field(default_factory=list)
    unchanged_members: List[str] = field(default_factory=list)
    skipped_members: int = 0
    state_hash: str = ""
    previous_hash: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.household_changed or bool(self.member_upserts)

    @property
    def state_unchanged(self) -> bool:
        return self.previous_hash == self.state_hash

    def summary(self) -> Dict[str, object]:
        return {
            "household_number": self.household.household_number,
            "created_household": self.created_household,
            "household_changed": self.household_changed,
            "created_members": self.created_members,
            "updated_members": self.updated_members,
            "unchanged_members": len(self.unchanged_members),
            "skipped_members": self.skipped_members,
            "state_hash": self.state_hash,
            "state_unchanged": self.state_unchanged,
        }


def household_state_hash(household: Household, members: List[HouseholdMember]) -> str:
    """Fingerprint of the reconciled state, independent of store-assigned ids."""
    return hashing.state_hash({
        "household_number": household.household_number,
        "profile": household.profile_fields(),
        "members": sorted(
            (m.attributes() for m in members),
            key=lambda attrs: attrs.get("full_name") or "",
        ),
    })


def merge_household(submission: Submission, household: Optional[Household]) -> Household:
    """Steps 1-2: create or overwrite the household profile."""
    profile = submission.profile_fields()
    if household is None:
        return Household(household_number=submission.household_number, **profile)
    data = household.model_dump()
    data.update(profile)
    return Household.model_validate(data)


def reconcile(
    submission: Submission,
    household: Optional[Household] = None,
    members: Optional[List[HouseholdMember]] = None,
) -> ReconciliationResult:
    """
    Compute the canonical household state after approving a submission.

    Args:
        submission: submission already moved to approved
        household: existing canonical household for the number, if any
        members: canonical members currently linked to that household

    Returns:
        ReconciliationResult with the merged household, full member list
        and only the member records that actually need writing
    """
    if submission.status != SubmissionStatus.APPROVED:
        raise TransitionError(
            f"Only approved submissions can be reconciled (status is {submission.status.value})",
            current_status=submission.status.value,
            action="reconcile",
        )
    if not (submission.household_number and submission.household_number.strip()):
        raise ValidationError("Submission has no household number", field="household_number")
    if household is not None and household.household_number != submission.household_number:
        raise ValidationError(
            f"Household {household.household_number} does not match "
            f"submission household {submission.household_number}",
            field="household_number",
        )

    merged = merge_household(submission, household)
    created_household = household is None
    household_changed = created_household or household.profile_fields() != merged.profile_fields()

    working: List[HouseholdMember] = [m.model_copy() for m in (members if household else [])]
    by_name: Dict[str, int] = {}
    for position, member in enumerate(working):
        if member.full_name and member.full_name not in by_name:
            by_name[member.full_name] = position

    result = ReconciliationResult(
        household=merged,
        members=working,
        created_household=created_household,
        household_changed=household_changed,
    )
    dirty: Dict[int, None] = {}

    # A name repeated within one submission resolves to its last snapshot
    latest: Dict[str, MemberSnapshot] = {}
    for snapshot in submission.household_members:
        name = snapshot.full_name
        if not name or not name.strip():
            result.skipped_members += 1
            continue
        latest[name] = snapshot

    for name, snapshot in latest.items():
        attrs = {key: getattr(snapshot, key) for key in MEMBER_FIELDS}
        position = by_name.get(name)

        if position is None:
            working.append(HouseholdMember(id=None, household_id=merged.id, **attrs))
            position = len(working) - 1
            by_name[name] = position
            dirty[position] = None
            result.created_members.append(name)
            continue

        current = working[position]
        if current.attributes() == attrs:
            if name not in result.created_members and name not in result.updated_members:
                result.unchanged_members.append(name)
            continue

        working[position] = HouseholdMember(
            id=current.id,
            household_id=current.household_id or merged.id,
            **attrs,
        )
        dirty[position] = None
        if name not in result.created_members and name not in result.updated_members:
            result.updated_members.append(name)

    result.member_upserts = [working[position] for position in dirty]
    if household is not None:
        result.previous_hash = household_state_hash(household, members or [])
    result.state_hash = household_state_hash(merged, working)
    return result
