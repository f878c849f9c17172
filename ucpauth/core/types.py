"""
Core types shared by the decision engine and the negotiation protocol.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


ClaimSet = Dict[str, Any]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


class AccessMode(str, Enum):
    """Protocol-neutral access modes"""
    READ = "read"
    APPEND = "append"
    WRITE = "write"
    CREATE = "create"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


@dataclass
class Permission:
    """A resource together with the scopes requested or granted on it"""
    resource_id: str
    resource_scopes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resource_id': self.resource_id,
            'resource_scopes': list(self.resource_scopes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Permission":
        """Create from the wire representation; raises ValueError on bad shape"""
        if not isinstance(data, dict):
            raise ValueError("permission must be an object")
        resource_id = data.get('resource_id')
        scopes = data.get('resource_scopes', [])
        if not isinstance(resource_id, str) or not resource_id:
            raise ValueError("resource_id must be a non-empty string")
        if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            raise ValueError("resource_scopes must be a list of strings")
        return cls(resource_id=resource_id, resource_scopes=list(scopes))


@dataclass
class UconRequest:
    """An access request as seen by the decision engine"""
    subject: str
    action: List[str]
    resource: str
    owner: Optional[str] = None
    claims: ClaimSet = field(default_factory=dict)
    identifier: str = field(default_factory=lambda: f"urn:ucp:request:{uuid.uuid4()}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'subject': self.subject,
            'action': list(self.action),
            'resource': self.resource,
            'owner': self.owner,
            'claims': dict(self.claims),
        }


@dataclass
class AuditEvent:
    """Audit event for logging and compliance"""
    event_id: str
    event_type: str  # e.g., "ticket_issued", "claims_rejected", "token_issued"
    subject: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    details: Dict[str, Any] = field(default_factory=dict)
    resource: Optional[str] = None

    def __post_init__(self):
        if not self.event_id:
            self.event_id = str(uuid.uuid4())
