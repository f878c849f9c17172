"""
Registry of protected resources and their owners.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ResourceDescription:
    """A resource registered by a resource server."""
    resource_id: str
    resource_scopes: List[str] = field(default_factory=list)
    owner: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resource_id': self.resource_id,
            'resource_scopes': list(self.resource_scopes),
            'owner': self.owner,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceDescription":
        """Create from a registration body; raises ValueError on bad shape"""
        if not isinstance(data, dict):
            raise ValueError("resource description must be an object")
        scopes = data.get('resource_scopes', [])
        if not isinstance(scopes, list) or not all(isinstance(s, str) for s in scopes):
            raise ValueError("resource_scopes must be a list of strings")
        resource_id = data.get('resource_id') or data.get('name') or f"urn:ucp:resource:{uuid.uuid4()}"
        if not isinstance(resource_id, str):
            raise ValueError("resource_id must be a string")
        owner = data.get('owner')
        if owner is not None and not isinstance(owner, str):
            raise ValueError("owner must be a string")
        return cls(resource_id=resource_id, resource_scopes=list(scopes), owner=owner, name=data.get('name'))


class ResourceRegistry:
    """In-memory map of resource identifiers to their descriptions."""

    def __init__(self):
        self._resources: Dict[str, ResourceDescription] = {}
        self._lock = asyncio.Lock()

    async def register(self, description: ResourceDescription) -> str:
        async with self._lock:
            self._resources[description.resource_id] = description
        logger.info(f"Registered resource {description.resource_id} owned by {description.owner}")
        return description.resource_id

    async def get(self, resource_id: str) -> Optional[ResourceDescription]:
        async with self._lock:
            return self._resources.get(resource_id)

    async def delete(self, resource_id: str) -> bool:
        async with self._lock:
            return self._resources.pop(resource_id, None) is not None

    async def owner_of(self, resource_id: str) -> Optional[str]:
        description = await self.get(resource_id)
        return description.owner if description else None
