"""
Minimal resource server guarding an in-memory document map.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import Dict, Optional

import aiohttp
from aiohttp import web

from ..core.types import Permission
from ..errors import TokenError, UcpError
from ..uma.client import UmaClient, challenge_header

logger = logging.getLogger(__name__)


class ProtectedResourceServer:
    """
    Serves documents only to bearers of an access token carrying `scope`
    on the requested document.

    Documents are keyed by their full URL (`base_url` + path). Requests
    without a bearer token get a 401 carrying a fresh ticket.
    """

    def __init__(
        self,
        base_url: str,
        issuer: str,
        documents: Optional[Dict[str, str]] = None,
        owners: Optional[Dict[str, str]] = None,
        client: Optional[UmaClient] = None,
        scope: str = "read",
    ):
        self.base_url = base_url.rstrip("/")
        self.issuer = issuer
        self.documents = dict(documents or {})
        self.owners = dict(owners or {})
        self.client = client or UmaClient()
        self.scope = scope

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/{path:.*}", self.handle_get)
        app.on_cleanup.append(self._cleanup)
        return app

    async def _cleanup(self, app: web.Application) -> None:
        await self.client.close()

    async def register_resources(self) -> None:
        """Announce every document and its owner at the authorization server"""
        config = await self.client.fetch_uma_config(self.issuer)
        session = self.client.discovery.get_session()
        for resource_id in self.documents:
            body = {
                'resource_id': resource_id,
                'resource_scopes': [self.scope],
                'owner': self.owners.get(resource_id),
            }
            async with session.post(config.resource_registration_endpoint, json=body) as response:
                if response.status != 201:
                    raise UcpError(f"Registering {resource_id} returned {response.status}")
            logger.info(f"Registered {resource_id} at {self.issuer}")

    def resource_id(self, request: web.Request) -> str:
        return self.base_url + request.path

    async def handle_get(self, request: web.Request) -> web.Response:
        resource_id = self.resource_id(request)
        authorization = request.headers.get("Authorization", "")
        if not authorization.startswith("Bearer "):
            return await self._challenge(resource_id)

        try:
            payload = await self.client.verify_token(authorization[len("Bearer "):], self.issuer)
        except TokenError as e:
            logger.info(f"Rejected bearer token for {resource_id}: {e.message}")
            return web.json_response({'error': 'invalid_token'}, status=401)

        allowed = any(
            p.resource_id == resource_id and self.scope in p.resource_scopes
            for p in payload['permissions']
        )
        if not allowed or resource_id not in self.documents:
            # missing documents look the same as forbidden ones
            return web.json_response({'error': 'access_denied'}, status=403)

        logger.debug(f"Serving {resource_id} to {payload.get('sub')}")
        return web.Response(text=self.documents[resource_id], content_type="text/plain")

    async def _challenge(self, resource_id: str) -> web.Response:
        try:
            ticket = await self.client.request_ticket(self.issuer, [Permission(resource_id, [self.scope])])
        except (UcpError, aiohttp.ClientError) as e:
            logger.error(f"Unable to obtain a ticket for {resource_id}: {e}")
            return web.json_response({'error': 'temporarily_unavailable'}, status=503)
        return web.Response(
            status=401,
            headers={'WWW-Authenticate': challenge_header(self.issuer, ticket)},
        )
