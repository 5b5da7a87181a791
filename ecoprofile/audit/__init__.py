"""
Ecological Profile Audit Trail
"""

from .sink import (
    AuditAction,
    EntityType,
    AuditSink,
    MemoryAuditSink,
    PostgresAuditSink,
    build_audit_sink,
)

__all__ = [
    "AuditAction",
    "EntityType",
    "AuditSink",
    "MemoryAuditSink",
    "PostgresAuditSink",
    "build_audit_sink",
]
