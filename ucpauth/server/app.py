"""
aiohttp application of the authorization server.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from aiohttp import web

from ..audit.logger import AuditLogger, MemoryAuditLogger
from ..core.config import Config
from ..core.types import Clock, Permission
from ..decision.context import ContextBuilder
from ..decision.enforcement import UcpPatternEnforcement
from ..decision.executor import PolicyExecutor, default_registry
from ..decision.reasoner import create_reasoner
from ..errors import BadRequestError, ClaimVerificationError, ErrorCode, UcpError, UnauthorizedError
from ..policy.conversion import graph_to_string, turtle_to_graph
from ..policy.validation import find_policies, find_rules
from ..storage.factory import create_rules_storage
from ..storage.ownership import check_assigners, owned_deletion, owned_view
from ..storage.types import RulesStorage
from ..uma.authorizers import PatternAuthorizer
from ..uma.contracts import ContractManager
from ..uma.credentials import CLIENTID, JWT, LEGAL_BASIS, PURPOSE, UNSECURE, WEBID, Credential
from ..uma.discovery import WELL_KNOWN_PATH, UmaConfiguration
from ..uma.negotiator import UMA_GRANT_TYPE, Negotiator, TokenRequest
from ..uma.resources import ResourceDescription, ResourceRegistry
from ..uma.tickets import ImmediateAuthorizerStrategy, MemoryTicketStore
from ..uma.tokens import JwksKeyHolder, JwtTokenFactory
from ..uma.verifiers import JwtVerifier, TypedVerifier, UnsecureVerifier, Verifier

logger = logging.getLogger(__name__)

TURTLE = "text/turtle"

# Authorization header schemes accepted on the policy endpoints
AUTHORIZATION_SCHEMES = {
    'webid': UNSECURE,
    'bearer': JWT,
}

ERROR_STATUS = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_POLICY: 400,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.NEED_INFO: 403,
    ErrorCode.INVALID_CLAIMS: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DISCOVERY_FAILED: 502,
    ErrorCode.STORAGE_FAILED: 502,
}


@web.middleware
async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Turn UcpError into JSON responses; anything unexpected becomes an opaque 500"""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except UcpError as e:
        status = ERROR_STATUS.get(e.error_code, 500)
        if status >= 500:
            logger.error(f"{request.method} {request.path} failed: {e}")
        else:
            logger.info(f"{request.method} {request.path} rejected: {e}")
        body = e.to_dict() if status < 500 else {'error': e.error_code.value, 'message': "Server error"}
        return web.json_response(body, status=status)
    except Exception as e:
        logger.exception(f"Unhandled error in {request.method} {request.path}: {e}")
        return web.json_response(
            {'error': ErrorCode.INTERNAL_ERROR.value, 'message': "Internal server error"},
            status=500,
        )


async def _json_body(request: web.Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise BadRequestError("Request body is not valid JSON")


def _parse_permissions(data: Any) -> List[Permission]:
    items = data if isinstance(data, list) else [data]
    try:
        return [Permission.from_dict(item) for item in items]
    except ValueError as e:
        raise BadRequestError(f"Invalid permissions: {e}")


class AuthorizationServer:
    """
    HTTP surface of the authorization server.

    Every route lives under the path of `config.base_url`, so the discovery
    document is served at `<base_url>/.well-known/uma2-configuration`.

    The policy endpoints identify the caller from the `Authorization`
    header (`WebID <urlencoded webid>` or `Bearer <jwt>`) and only act on
    rules the caller assigned.
    """

    def __init__(
        self,
        config: Config,
        storage: RulesStorage,
        negotiator: Negotiator,
        key_holder: JwksKeyHolder,
        resources: ResourceRegistry,
        verifier: Optional[Verifier] = None,
    ):
        self.config = config
        self.storage = storage
        self.negotiator = negotiator
        self.key_holder = key_holder
        self.resources = resources
        self.verifier = verifier or negotiator.verifier
        self.prefix = urlparse(config.base_url).path.rstrip("/")

    def uma_configuration(self) -> UmaConfiguration:
        base = self.config.base_url
        return UmaConfiguration(
            issuer=self.config.token.issuer,
            jwks_uri=f"{base}/keys",
            token_endpoint=f"{base}/token",
            permission_endpoint=f"{base}/ticket",
            introspection_endpoint=f"{base}/introspect",
            resource_registration_endpoint=f"{base}/resources",
        )

    def create_app(self) -> web.Application:
        app = web.Application(middlewares=[error_middleware])
        p = self.prefix
        app.router.add_get(p + WELL_KNOWN_PATH, self.handle_configuration)
        app.router.add_get(p + "/keys", self.handle_keys)
        app.router.add_post(p + "/ticket", self.handle_ticket)
        app.router.add_post(p + "/token", self.handle_token)
        app.router.add_post(p + "/introspect", self.handle_introspect)
        app.router.add_get(p + "/policies", self.handle_get_policies)
        app.router.add_post(p + "/policies", self.handle_add_policies)
        app.router.add_delete(p + "/policies", self.handle_delete_policies)
        app.router.add_post(p + "/resources", self.handle_register_resource)
        app.router.add_delete(p + "/resources", self.handle_delete_resource)
        app.on_cleanup.append(self._cleanup)
        return app

    async def _cleanup(self, app: web.Application) -> None:
        await self.storage.close()

    async def handle_configuration(self, request: web.Request) -> web.Response:
        data = self.uma_configuration().to_dict()
        data['grant_types_supported'] = [UMA_GRANT_TYPE]
        data['claim_token_formats_supported'] = self.negotiator.claim_formats()
        return web.json_response(data)

    async def handle_keys(self, request: web.Request) -> web.Response:
        return web.json_response(self.key_holder.get_public_jwks())

    async def handle_ticket(self, request: web.Request) -> web.Response:
        permissions = _parse_permissions(await _json_body(request))
        ticket = await self.negotiator.create_ticket(permissions)
        return web.json_response({'ticket': ticket}, status=201)

    async def _token_request_body(self, request: web.Request) -> Dict[str, Any]:
        if request.content_type == "application/json":
            return await _json_body(request)
        data = dict(await request.post())
        if isinstance(data.get('permissions'), str):
            try:
                data['permissions'] = json.loads(data['permissions'])
            except ValueError:
                raise BadRequestError("permissions must be a JSON array")
        return data

    async def handle_token(self, request: web.Request) -> web.Response:
        token_request = TokenRequest.from_dict(await self._token_request_body(request))
        response = await self.negotiator.negotiate(token_request)
        return web.json_response(response.to_dict(), headers={'Cache-Control': 'no-store'})

    async def handle_introspect(self, request: web.Request) -> web.Response:
        if request.content_type == "application/json":
            data = await _json_body(request)
        else:
            data = dict(await request.post())
        token = data.get('token') if isinstance(data, dict) else None
        if not isinstance(token, str):
            raise BadRequestError("token is required")
        try:
            payload = self.negotiator.token_factory.deserialize(token)
        except UcpError as e:
            logger.debug(f"Introspected inactive token: {e}")
            return web.json_response({'active': False})
        payload['active'] = True
        return web.json_response(payload)

    async def authenticate(self, request: web.Request) -> str:
        """
        Identify the caller of a policy endpoint.

        Raises:
            UnauthorizedError: If the header is missing, unsupported or fails verification
        """
        header = request.headers.get('Authorization', "")
        scheme, _, token = header.partition(" ")
        claim_format = AUTHORIZATION_SCHEMES.get(scheme.lower())
        if claim_format is None or not token.strip():
            raise UnauthorizedError("Missing or unsupported Authorization header")
        try:
            claims = await self.verifier.verify(Credential(token=token.strip(), format=claim_format))
        except (ClaimVerificationError, BadRequestError) as e:
            logger.info(f"Rejected policy client credentials: {e}")
            raise UnauthorizedError("Invalid client credentials", cause=e)
        client = claims.get(WEBID)
        if not isinstance(client, str):
            raise UnauthorizedError("Client credentials carry no WebID")
        return client

    async def handle_get_policies(self, request: web.Request) -> web.Response:
        client = await self.authenticate(request)
        identifier = request.query.get('id')
        view = owned_view(await self.storage.get_store(), client, identifier or None)
        if identifier and len(view) == 0:
            return web.json_response(
                {'error': ErrorCode.NOT_FOUND.value, 'message': f"No rule {identifier}"}, status=404
            )
        return web.Response(text=graph_to_string(view), content_type=TURTLE)

    async def handle_add_policies(self, request: web.Request) -> web.Response:
        client = await self.authenticate(request)
        graph = turtle_to_graph(await request.text(), base_iri=self.config.base_url + "/policies/")
        check_assigners(graph, client)
        await self.storage.add_rule(graph)
        body = {
            'policies': sorted(str(p) for p in find_policies(graph)),
            'rules': sorted(str(r) for r in find_rules(graph)),
        }
        logger.info(f"{client} stored {len(body['rules'])} rules in {len(body['policies'])} policies")
        return web.json_response(body, status=201)

    async def handle_delete_policies(self, request: web.Request) -> web.Response:
        client = await self.authenticate(request)
        identifier = request.query.get('id')
        if not identifier:
            raise BadRequestError("id is required")
        removal = owned_deletion(await self.storage.get_store(), client, identifier)
        if len(removal) == 0:
            return web.json_response(
                {'error': ErrorCode.NOT_FOUND.value, 'message': f"No rule {identifier}"}, status=404
            )
        removed = await self.storage.remove_data(removal)
        logger.info(f"{client} deleted {identifier} ({removed} triples)")
        return web.json_response({'removed': removed})

    async def handle_register_resource(self, request: web.Request) -> web.Response:
        try:
            description = ResourceDescription.from_dict(await _json_body(request))
        except ValueError as e:
            raise BadRequestError(f"Invalid resource description: {e}")
        resource_id = await self.resources.register(description)
        return web.json_response({'_id': resource_id}, status=201)

    async def handle_delete_resource(self, request: web.Request) -> web.Response:
        identifier = request.query.get('id')
        if not identifier:
            raise BadRequestError("id is required")
        if not await self.resources.delete(identifier):
            return web.json_response(
                {'error': ErrorCode.NOT_FOUND.value, 'message': f"No resource {identifier}"}, status=404
            )
        return web.Response(status=204)


def default_verifier() -> Verifier:
    return TypedVerifier({
        UNSECURE: UnsecureVerifier(),
        JWT: JwtVerifier(allowed_claims=[WEBID, CLIENTID, PURPOSE, LEGAL_BASIS]),
    })


def build_authorization_server(
    config: Config,
    verifier: Optional[Verifier] = None,
    audit_logger: Optional[AuditLogger] = None,
    key_holder: Optional[JwksKeyHolder] = None,
    clock: Optional[Clock] = None,
) -> AuthorizationServer:
    """
    Wire storage, decision engine and negotiator from a configuration.

    Raises:
        ConfigurationError: If the configuration is invalid or rule files are unreadable
    """
    config.validate()
    storage = create_rules_storage(config.storage)
    enforcement = UcpPatternEnforcement(
        storage=storage,
        rules=config.decision.load_rules(),
        reasoner=create_reasoner(config.decision),
        executor=PolicyExecutor(default_registry()),
        context_builder=ContextBuilder(config.decision.action_mapping, clock),
    )
    resources = ResourceRegistry()
    key_holder = key_holder or JwksKeyHolder(config.token.algorithm)
    negotiator = Negotiator(
        verifier=verifier or default_verifier(),
        tickets=MemoryTicketStore(config.ticket.ttl, clock),
        strategy=ImmediateAuthorizerStrategy(
            PatternAuthorizer(enforcement, resources), config.ticket.required_claims
        ),
        token_factory=JwtTokenFactory(
            key_holder,
            issuer=config.token.issuer,
            audience=config.token.audience,
            expiration=config.token.expiration,
            clock=clock,
        ),
        contracts=ContractManager(config.decision.action_mapping, clock),
        resources=resources,
        audit_logger=audit_logger or MemoryAuditLogger(),
    )
    logger.info(f"Authorization server configured at {config.base_url} with {config.storage.store_type} storage")
    return AuthorizationServer(config, storage, negotiator, key_holder, resources)


async def run_server(server: AuthorizationServer, host: str = "0.0.0.0", port: int = 4000) -> web.AppRunner:
    """Start serving; the caller keeps the runner and calls cleanup() to stop"""
    runner = web.AppRunner(server.create_app())
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Authorization server listening on {host}:{port}")
    return runner
