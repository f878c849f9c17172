"""
Permission tickets and the strategy that resolves them.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..core.types import ClaimSet, Clock, Permission, utc_now
from .authorizers import AuthorizationDecision, Authorizer

logger = logging.getLogger(__name__)


@dataclass
class Ticket:
    """State of one pending negotiation."""
    permissions: List[Permission]
    provided: ClaimSet = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)

    def missing_claims(self) -> List[str]:
        return [claim for claim in self.required if claim not in self.provided]


@dataclass
class TicketResolution:
    """Outcome of resolving a ticket: granted permissions or unmet scopes."""
    success: bool
    permissions: List[Permission] = field(default_factory=list)
    policies: List[str] = field(default_factory=list)
    unmatched: List[Permission] = field(default_factory=list)


class MemoryTicketStore:
    """
    In-memory ticket store.

    Tickets expire after `ttl` and are single-use: `take` removes the ticket
    it returns, so a ticket can be redeemed at most once. Expired tickets
    are purged whenever a new one is stored.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5), clock: Optional[Clock] = None):
        self.ttl = ttl
        self.clock = clock or utc_now
        self._store: Dict[str, Ticket] = {}
        self._expires: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def put(self, ticket: Ticket, ticket_id: Optional[str] = None) -> str:
        """Store a ticket under a new (or the given) identifier"""
        ticket_id = ticket_id or str(uuid.uuid4())
        async with self._lock:
            now = self.clock()
            purged = self._purge(now)
            self._store[ticket_id] = ticket
            self._expires[ticket_id] = now + self.ttl
        logger.debug(f"Stored ticket {ticket_id}, purged {purged} expired")
        return ticket_id

    async def take(self, ticket_id: str) -> Optional[Ticket]:
        """Remove and return a ticket; None when unknown or expired"""
        async with self._lock:
            ticket = self._store.pop(ticket_id, None)
            expires = self._expires.pop(ticket_id, None)
        if ticket is None:
            return None
        if expires is not None and self.clock() >= expires:
            logger.debug(f"Ticket {ticket_id} expired")
            return None
        return ticket

    async def exists(self, ticket_id: str) -> bool:
        async with self._lock:
            expires = self._expires.get(ticket_id)
            return expires is not None and self.clock() < expires

    async def cleanup(self) -> int:
        """Remove expired tickets from the store"""
        async with self._lock:
            removed = self._purge(self.clock())
        if removed:
            logger.info(f"Cleaned up {removed} expired tickets")
        return removed

    def _purge(self, now: datetime) -> int:
        expired = [tid for tid, expires in self._expires.items() if now >= expires]
        for tid in expired:
            self._store.pop(tid, None)
            self._expires.pop(tid, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)


class ImmediateAuthorizerStrategy:
    """
    Stores provided claims on the ticket and asks the authorizer for all
    available permissions when the ticket is resolved.
    """

    def __init__(self, authorizer: Authorizer, required_claims: Optional[List[str]] = None):
        self.authorizer = authorizer
        self.required_claims = list(required_claims or [])

    async def initialize_ticket(self, permissions: List[Permission]) -> Ticket:
        logger.info(f"Initializing ticket for {[p.resource_id for p in permissions]}")
        return Ticket(permissions=list(permissions), required=list(self.required_claims))

    async def validate_claims(self, ticket: Ticket, claims: ClaimSet) -> Ticket:
        ticket.provided.update(claims)
        return ticket

    async def resolve_ticket(self, ticket: Ticket) -> TicketResolution:
        """
        All requested scopes must be granted; partial grants fail and report
        the unmatched scopes.
        """
        decision: AuthorizationDecision = await self.authorizer.authorize(ticket.provided, ticket.permissions)
        granted = [p for p in decision.permissions if p.resource_scopes]
        if not granted:
            return TicketResolution(success=False, unmatched=list(ticket.permissions))

        unmatched = []
        for required in ticket.permissions:
            available = set()
            for result in granted:
                if result.resource_id == required.resource_id:
                    available.update(result.resource_scopes)
            missing = [s for s in required.resource_scopes if s not in available]
            if missing:
                unmatched.append(Permission(required.resource_id, missing))

        if unmatched:
            return TicketResolution(success=False, unmatched=unmatched)

        # only the requested scopes go into the token
        permissions = []
        for required in ticket.permissions:
            permissions.append(Permission(required.resource_id, list(required.resource_scopes)))
        return TicketResolution(success=True, permissions=permissions, policies=list(decision.policies))
