"""
Staff Role Permissions

Role-based access table for the staff dashboard features this
package serves. Only roles granted ECOLOGICAL_SUBMISSIONS may
moderate, delete, recover or import submissions.
"""

from typing import Dict, List, Optional

ADMIN = "admin"
BARANGAY_CAPTAIN = "barangay_captain"
BARANGAY_OFFICIAL = "barangay_official"
SECRETARY = "secretary"
SK_CHAIRMAN = "sk_chairman"

STAFF_ROLES = (ADMIN, BARANGAY_CAPTAIN, BARANGAY_OFFICIAL, SECRETARY, SK_CHAIRMAN)

ECOLOGICAL_SUBMISSIONS = "ecological_submissions"
ECOLOGICAL_PROFILE = "ecological_profile"
MANAGE_HOUSEHOLDS = "manage_households"
AUDIT_LOGS = "audit_logs"

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    ECOLOGICAL_SUBMISSIONS: [ADMIN, BARANGAY_CAPTAIN, BARANGAY_OFFICIAL, SECRETARY],
    MANAGE_HOUSEHOLDS: [ADMIN, BARANGAY_CAPTAIN, BARANGAY_OFFICIAL, SECRETARY],
    AUDIT_LOGS: [ADMIN, BARANGAY_CAPTAIN],
    # Read-only census views
    ECOLOGICAL_PROFILE: [ADMIN, BARANGAY_CAPTAIN, BARANGAY_OFFICIAL, SECRETARY, SK_CHAIRMAN],
}

ROLE_DISPLAY_NAMES: Dict[str, str] = {
    ADMIN: "Administrator",
    BARANGAY_CAPTAIN: "Barangay Captain",
    BARANGAY_OFFICIAL: "Barangay Official",
    SECRETARY: "Secretary",
    SK_CHAIRMAN: "SK Chairman",
}


def has_permission(role: Optional[str], feature: str) -> bool:
    """True if the role may use the feature. Unknown roles and features get nothing."""
    if not role:
        return False
    return role in ROLE_PERMISSIONS.get(feature, [])


def permitted_features(role: Optional[str]) -> List[str]:
    if not role:
        return []
    return [feature for feature, roles in ROLE_PERMISSIONS.items() if role in roles]
