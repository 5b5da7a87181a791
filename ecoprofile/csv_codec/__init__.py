"""
Census CSV Interchange

Export (submission and member views), import template,
decode and row validation for ecological profile submissions.
"""

from .codec import (
    escape_cell,
    join_values,
    split_values,
    encode_submissions,
    encode_members,
    generate_template,
    export_bytes,
    decode,
    decode_with_stats,
    validate,
    DecodeResult,
    ImportIssue,
    ImportValidationResult,
)
from .columns import (
    EXPORT_HEADERS,
    MEMBER_EXPORT_HEADERS,
    TEMPLATE_HEADERS,
    MEMBER_FIELD_ALIASES,
)

__all__ = [
    "escape_cell",
    "join_values",
    "split_values",
    "encode_submissions",
    "encode_members",
    "generate_template",
    "export_bytes",
    "decode",
    "decode_with_stats",
    "validate",
    "DecodeResult",
    "ImportIssue",
    "ImportValidationResult",
    "EXPORT_HEADERS",
    "MEMBER_EXPORT_HEADERS",
    "TEMPLATE_HEADERS",
    "MEMBER_FIELD_ALIASES",
]
