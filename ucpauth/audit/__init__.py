"""
Audit logging for negotiation milestones.
"""

from .logger import (
    AuditLogger,
    MemoryAuditLogger,
    FileAuditLogger,
    create_audit_logger,
    TICKET_ISSUED,
    CLAIMS_REQUIRED,
    CLAIMS_REJECTED,
    ACCESS_DENIED,
    TOKEN_ISSUED,
)
from ..core.types import AuditEvent

__all__ = [
    'AuditEvent',
    'AuditLogger',
    'MemoryAuditLogger',
    'FileAuditLogger',
    'create_audit_logger',
    'TICKET_ISSUED',
    'CLAIMS_REQUIRED',
    'CLAIMS_REJECTED',
    'ACCESS_DENIED',
    'TOKEN_ISSUED',
]
