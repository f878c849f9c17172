"""
Contracts: the ODRL agreement recorded for each issued token.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..core.types import Clock, Permission, utc_now
from ..core.config import default_action_mapping

logger = logging.getLogger(__name__)

ODRL_CONTEXT = "http://www.w3.org/ns/odrl.jsonld"


class ContractManager:
    """Mints and keeps the agreements justifying access tokens."""

    def __init__(self, action_mapping: Optional[Dict[str, str]] = None, clock: Optional[Clock] = None):
        self.action_mapping = action_mapping if action_mapping is not None else default_action_mapping()
        self.clock = clock or utc_now
        self._contracts: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def create_contract(
        self,
        permissions: List[Permission],
        assignee: Optional[str],
        policies: List[str],
        owners: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Create an agreement granting `permissions` to `assignee`.

        Args:
            permissions: The permissions embedded in the token
            assignee: WebID of the requesting party
            policies: Identifiers of the policies the agreement derives from
            owners: Resource owners by resource id, used as assigner
        """
        owners = owners or {}
        uid = f"urn:ucp:contract:{uuid.uuid4()}"
        entries = []
        for permission in permissions:
            for scope in permission.resource_scopes:
                entry = {
                    'action': self.action_mapping.get(scope, scope),
                    'target': permission.resource_id,
                }
                if assignee:
                    entry['assignee'] = assignee
                if owners.get(permission.resource_id):
                    entry['assigner'] = owners[permission.resource_id]
                entries.append(entry)

        contract = {
            '@context': ODRL_CONTEXT,
            '@type': 'Agreement',
            'uid': uid,
            'issued': self.clock().isoformat(),
            'permission': entries,
            'wasDerivedFrom': list(policies),
        }
        async with self._lock:
            self._contracts[uid] = contract
        logger.info(f"Created contract {uid} derived from {policies}")
        return contract

    async def get_contract(self, uid: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            return self._contracts.get(uid)

    async def list_contracts(self) -> List[Dict[str, Any]]:
        async with self._lock:
            return list(self._contracts.values())
