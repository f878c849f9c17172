"""
Client used by resource servers to talk to an authorization server.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp
import jwt

from ..core.types import Permission
from ..errors import DiscoveryError, TokenError, UcpError
from .discovery import UmaConfiguration, UmaDiscovery

logger = logging.getLogger(__name__)


def challenge_header(issuer: str, ticket: str, realm: str = "solid") -> str:
    """Value of the WWW-Authenticate header sent with a 401"""
    return f'UMA realm="{realm}", as_uri="{issuer}", ticket="{ticket}"'


class UmaClient:
    """
    Resource server side of the protocol: ticket requests and access token
    verification. Discovery documents are cached per issuer.
    """

    def __init__(self, audience: str = "solid", discovery: Optional[UmaDiscovery] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.audience = audience
        self.discovery = discovery or UmaDiscovery(session)

    async def close(self) -> None:
        await self.discovery.close()

    async def fetch_uma_config(self, issuer: str) -> UmaConfiguration:
        return await self.discovery.fetch_config(issuer)

    async def request_ticket(self, issuer: str, permissions: List[Permission]) -> str:
        """
        Register the requested permissions at the permission endpoint.

        Raises:
            DiscoveryError: If the authorization server cannot be discovered
            UcpError: If the ticket request fails
        """
        config = await self.fetch_uma_config(issuer)
        body = [p.to_dict() for p in permissions]
        session = self.discovery.get_session()
        try:
            async with session.post(config.permission_endpoint, json=body) as response:
                if response.status != 201:
                    raise UcpError(f"Ticket request returned {response.status}")
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise UcpError(f"Ticket request failed: {e}", cause=e)

        ticket = data.get("ticket") if isinstance(data, dict) else None
        if not isinstance(ticket, str):
            raise UcpError("Ticket response carries no ticket")
        logger.debug(f"Received ticket for {[p.resource_id for p in permissions]}")
        return ticket

    async def verify_token(self, token: str, issuer: str) -> Dict[str, Any]:
        """
        Verify an access token against the issuer's published keys.

        Returns:
            The token payload with validated permissions

        Raises:
            TokenError: If the token is invalid, expired, or not meant for us
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Malformed token: {e}", cause=e)

        try:
            jwks = jwt.PyJWKSet.from_dict(await self.discovery.fetch_jwks(issuer))
        except DiscoveryError as e:
            raise TokenError(f"Unable to fetch keys of {issuer}", cause=e)
        except (jwt.PyJWKError, jwt.PyJWKSetError) as e:
            raise TokenError(f"Unusable key set of {issuer}", cause=e)

        key = next((k for k in jwks.keys if k.key_id == header.get("kid")), None)
        if key is None:
            raise TokenError("Token signed with an unknown key")

        try:
            payload = jwt.decode(
                token, key.key, algorithms=["ES256"], audience=self.audience, issuer=issuer,
                options={"require": ["exp", "iat", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenError("Token has expired", cause=e)
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}", cause=e)

        permissions = payload.get("permissions")
        if not isinstance(permissions, list):
            raise TokenError("Token carries no permissions")
        try:
            payload["permissions"] = [Permission.from_dict(p) for p in permissions]
        except ValueError as e:
            raise TokenError(f"Token permissions are malformed: {e}", cause=e)
        return payload
