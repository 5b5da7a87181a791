"""
Ecological Profile Submissions

Resident-submitted household census records with:
- Staff-gated moderation (pending -> under_review -> approved/rejected)
- Household reconciliation on approval
- CSV interchange (export, template, import validation)
- Soft-delete / recover without losing moderation history

Version: ecoprofile_v1
"""

__version__ = "1.0.0"
