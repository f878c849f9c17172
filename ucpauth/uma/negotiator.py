"""
UMA grant negotiation: ticket -> claims -> token.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..audit.logger import (
    ACCESS_DENIED,
    CLAIMS_REJECTED,
    CLAIMS_REQUIRED,
    TICKET_ISSUED,
    TOKEN_ISSUED,
    AuditLogger,
    MemoryAuditLogger,
)
from ..core.types import AuditEvent, Permission
from ..errors import BadRequestError, ClaimVerificationError, ForbiddenError, NeedInfoError
from .contracts import ContractManager
from .credentials import CLIENTID, UNSECURE, WEBID, Credential
from .resources import ResourceRegistry
from .tickets import ImmediateAuthorizerStrategy, MemoryTicketStore, Ticket
from .tokens import AccessToken, JwtTokenFactory
from .verifiers import TypedVerifier, Verifier

logger = logging.getLogger(__name__)

UMA_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:uma-ticket"


@dataclass
class TokenRequest:
    """Body of a token endpoint request."""
    grant_type: str = UMA_GRANT_TYPE
    ticket: Optional[str] = None
    permissions: Optional[List[Permission]] = None
    claim_token: Optional[str] = None
    claim_token_format: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenRequest":
        """
        Raises:
            BadRequestError: If a field has the wrong type
        """
        if not isinstance(data, dict):
            raise BadRequestError("Token request must be an object")
        for key in ("grant_type", "ticket", "claim_token", "claim_token_format"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise BadRequestError(f"{key} must be a string")

        permissions = None
        if data.get("permissions") is not None:
            if not isinstance(data["permissions"], list):
                raise BadRequestError("permissions must be a list")
            try:
                permissions = [Permission.from_dict(p) for p in data["permissions"]]
            except ValueError as e:
                raise BadRequestError(f"Invalid permissions: {e}")

        return cls(
            grant_type=data.get("grant_type") or "",
            ticket=data.get("ticket"),
            permissions=permissions,
            claim_token=data.get("claim_token"),
            claim_token_format=data.get("claim_token_format"),
        )


@dataclass
class TokenResponse:
    """Body of a successful token endpoint response."""
    access_token: str
    token_type: str
    permissions: List[Permission]
    contract: Dict[str, Any]
    expires_in: int
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'access_token': self.access_token,
            'token_type': self.token_type,
            'permissions': [p.to_dict() for p in self.permissions],
            'contract': self.contract,
            'expires_in': self.expires_in,
        }
        result.update(self.extra)
        return result


class Negotiator:
    """
    Drives one negotiation step per token request.

    A ticket is consumed by every step; when more claims are needed a
    fresh ticket carrying the state so far is issued in its place.
    """

    def __init__(
        self,
        verifier: Verifier,
        tickets: MemoryTicketStore,
        strategy: ImmediateAuthorizerStrategy,
        token_factory: JwtTokenFactory,
        contracts: Optional[ContractManager] = None,
        resources: Optional[ResourceRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.verifier = verifier
        self.tickets = tickets
        self.strategy = strategy
        self.token_factory = token_factory
        self.contracts = contracts or ContractManager()
        self.resources = resources or ResourceRegistry()
        self.audit_logger = audit_logger or MemoryAuditLogger()

    def claim_formats(self) -> List[str]:
        if isinstance(self.verifier, TypedVerifier):
            return self.verifier.formats()
        return [UNSECURE]

    async def _audit(self, event_type: str, subject: Optional[str] = None,
                     resource: Optional[str] = None, **details) -> None:
        await self.audit_logger.log(AuditEvent(
            event_id="",
            event_type=event_type,
            subject=subject,
            resource=resource,
            details=details,
        ))

    async def create_ticket(self, permissions: List[Permission]) -> str:
        """Register requested permissions and return the ticket identifier"""
        if not permissions:
            raise BadRequestError("At least one permission is required")
        ticket = await self.strategy.initialize_ticket(permissions)
        ticket_id = await self.tickets.put(ticket)
        await self._audit(
            TICKET_ISSUED,
            resource=permissions[0].resource_id,
            ticket=ticket_id,
            permissions=[p.to_dict() for p in permissions],
        )
        return ticket_id

    async def _get_ticket(self, request: TokenRequest) -> Ticket:
        if request.ticket:
            ticket = await self.tickets.take(request.ticket)
            if ticket is None:
                logger.warning("Token request with an unknown or expired ticket")
                raise BadRequestError("The provided ticket is not valid")
            return ticket

        if not request.permissions:
            raise BadRequestError("A token request without a ticket must include the requested permissions")
        return await self.strategy.initialize_ticket(request.permissions)

    async def _process_credentials(self, request: TokenRequest, ticket: Ticket) -> Ticket:
        token, claim_format = request.claim_token, request.claim_token_format
        if not token and not claim_format:
            return ticket
        if not token:
            raise BadRequestError('Request with a "claim_token_format" must contain a "claim_token"')
        if not claim_format:
            raise BadRequestError('Request with a "claim_token" must contain a "claim_token_format"')

        try:
            claims = await self.verifier.verify(Credential(token=token, format=claim_format))
        except ClaimVerificationError as e:
            logger.warning(f"Claim verification failed: {e.message}")
            await self._audit(CLAIMS_REJECTED, format=claim_format, reason=e.message)
            raise ForbiddenError()
        return await self.strategy.validate_claims(ticket, claims)

    async def negotiate(self, request: TokenRequest) -> TokenResponse:
        """
        Perform one negotiation step.

        Returns:
            TokenResponse when access is granted

        Raises:
            BadRequestError: Malformed request or unknown ticket
            NeedInfoError: Claims are missing; carries a fresh ticket
            ForbiddenError: Claims were rejected or access is denied
        """
        if request.grant_type != UMA_GRANT_TYPE:
            raise BadRequestError(f"Unsupported grant_type {request.grant_type}")

        ticket = await self._get_ticket(request)
        ticket = await self._process_credentials(request, ticket)
        webid = ticket.provided.get(WEBID)
        resource = ticket.permissions[0].resource_id if ticket.permissions else None

        missing = ticket.missing_claims()
        if missing:
            ticket_id = await self.tickets.put(ticket)
            await self._audit(CLAIMS_REQUIRED, subject=webid, resource=resource, ticket=ticket_id, missing=missing)
            raise NeedInfoError(
                "Need more info to authorize request",
                ticket_id,
                {'claim_token_format': self.claim_formats(), 'claim_type': missing},
            )

        resolution = await self.strategy.resolve_ticket(ticket)
        if not resolution.success:
            await self._audit(
                ACCESS_DENIED,
                subject=webid,
                resource=resource,
                unmatched=[p.to_dict() for p in resolution.unmatched],
            )
            raise ForbiddenError()

        owners = {}
        for permission in resolution.permissions:
            owner = await self.resources.owner_of(permission.resource_id)
            if owner:
                owners[permission.resource_id] = owner
        contract = await self.contracts.create_contract(
            resolution.permissions, webid, resolution.policies, owners
        )

        client_id = ticket.provided.get(CLIENTID)
        token, token_type = self.token_factory.serialize(AccessToken(
            permissions=resolution.permissions,
            webid=webid if isinstance(webid, str) else None,
            client_id=client_id if isinstance(client_id, str) else None,
            contract=contract,
        ))
        await self._audit(
            TOKEN_ISSUED,
            subject=webid,
            resource=resource,
            contract=contract['uid'],
            permissions=[p.to_dict() for p in resolution.permissions],
        )
        logger.info(f"Issued token to {webid} under contract {contract['uid']}")

        return TokenResponse(
            access_token=token,
            token_type=token_type,
            permissions=resolution.permissions,
            contract=contract,
            expires_in=int(self.token_factory.expiration.total_seconds()),
        )
