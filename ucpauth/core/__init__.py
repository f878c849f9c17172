"""
Core configuration and types.
"""

from .config import (
    Config,
    TokenConfig,
    TicketConfig,
    DecisionConfig,
    StorageConfig,
    default_action_mapping,
    default_rule_paths,
    parse_duration,
)
from .types import (
    AccessMode,
    AuditEvent,
    ClaimSet,
    Clock,
    Permission,
    UconRequest,
    utc_now,
)

__all__ = [
    'Config',
    'TokenConfig',
    'TicketConfig',
    'DecisionConfig',
    'StorageConfig',
    'default_action_mapping',
    'default_rule_paths',
    'parse_duration',
    'AccessMode',
    'AuditEvent',
    'ClaimSet',
    'Clock',
    'Permission',
    'UconRequest',
    'utc_now',
]
