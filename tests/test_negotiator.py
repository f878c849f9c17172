"""
Tests for the UMA grant negotiator.
"""

from urllib.parse import quote

import pytest

from ucpauth.audit import (
    ACCESS_DENIED,
    CLAIMS_REJECTED,
    CLAIMS_REQUIRED,
    TICKET_ISSUED,
    TOKEN_ISSUED,
    MemoryAuditLogger,
)
from ucpauth.core.types import Permission
from ucpauth.errors import BadRequestError, ForbiddenError, NeedInfoError
from ucpauth.uma import (
    UMA_GRANT_TYPE,
    UNSECURE,
    WEBID,
    ContractManager,
    ImmediateAuthorizerStrategy,
    JwksKeyHolder,
    JwtTokenFactory,
    MemoryTicketStore,
    Negotiator,
    PatternAuthorizer,
    ResourceDescription,
    ResourceRegistry,
    TokenRequest,
    TypedVerifier,
    UnsecureVerifier,
)

from conftest import ALICE, BOB, CAROL, RESOURCE

ISSUER = "http://localhost:4000/uma"


@pytest.fixture
def make_negotiator(storage, make_enforcement, clock):
    """Negotiator over the shared storage with RESOURCE owned by ALICE"""
    async def build():
        resources = ResourceRegistry()
        await resources.register(ResourceDescription(RESOURCE, ["read"], owner=ALICE))
        return Negotiator(
            verifier=TypedVerifier({UNSECURE: UnsecureVerifier()}),
            tickets=MemoryTicketStore(),
            strategy=ImmediateAuthorizerStrategy(
                PatternAuthorizer(make_enforcement(storage), resources),
                required_claims=[WEBID],
            ),
            token_factory=JwtTokenFactory(JwksKeyHolder(), ISSUER),
            contracts=ContractManager(clock=clock),
            resources=resources,
            audit_logger=MemoryAuditLogger(),
        )
    return build


def claims_of(party):
    return {'claim_token': quote(party), 'claim_token_format': UNSECURE}


class TestTokenRequest:
    """Test parsing of token endpoint bodies"""

    def test_from_dict(self):
        request = TokenRequest.from_dict({
            'grant_type': UMA_GRANT_TYPE,
            'ticket': "t-1",
            'permissions': [{'resource_id': RESOURCE, 'resource_scopes': ["read"]}],
            'claim_token': "token",
            'claim_token_format': UNSECURE,
        })
        assert request.ticket == "t-1"
        assert request.permissions == [Permission(RESOURCE, ["read"])]
        assert request.claim_token_format == UNSECURE

    def test_wrong_types(self):
        with pytest.raises(BadRequestError):
            TokenRequest.from_dict({'grant_type': UMA_GRANT_TYPE, 'ticket': 42})
        with pytest.raises(BadRequestError):
            TokenRequest.from_dict({'grant_type': UMA_GRANT_TYPE, 'permissions': {'resource_id': RESOURCE}})
        with pytest.raises(BadRequestError):
            TokenRequest.from_dict({'grant_type': UMA_GRANT_TYPE, 'permissions': [{'resource_scopes': []}]})
        with pytest.raises(BadRequestError):
            TokenRequest.from_dict(["not", "an", "object"])

    def test_missing_grant_type(self):
        assert TokenRequest.from_dict({}).grant_type == ""


class TestNegotiation:
    """Test the ticket -> claims -> token flow"""

    @pytest.mark.asyncio
    async def test_ticket_requires_permissions(self, make_negotiator):
        negotiator = await make_negotiator()
        with pytest.raises(BadRequestError):
            await negotiator.create_ticket([])

    @pytest.mark.asyncio
    async def test_need_info_then_token(self, storage, make_negotiator, read_permission):
        """Test the two-step negotiation ending in an access token"""
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])

        with pytest.raises(NeedInfoError) as exc_info:
            await negotiator.negotiate(TokenRequest(ticket=ticket))
        need_info = exc_info.value
        assert need_info.ticket != ticket
        assert need_info.required_claims == {'claim_token_format': [UNSECURE], 'claim_type': [WEBID]}
        assert need_info.to_dict()['ticket'] == need_info.ticket

        response = await negotiator.negotiate(TokenRequest(ticket=need_info.ticket, **claims_of(BOB)))

        assert response.token_type == "Bearer"
        assert response.permissions == [Permission(RESOURCE, ["read"])]
        assert response.expires_in == 30 * 60
        payload = negotiator.token_factory.deserialize(response.access_token)
        assert payload['webid'] == BOB
        assert payload['permissions'] == [{'resource_id': RESOURCE, 'resource_scopes': ["read"]}]
        assert payload['contract']['uid'] == response.contract['uid']

        contract = response.contract
        assert contract['wasDerivedFrom'] == [read_permission.policy_iri]
        assert contract['permission'][0]['assigner'] == ALICE
        assert contract['permission'][0]['assignee'] == BOB

    @pytest.mark.asyncio
    async def test_claims_with_first_request(self, storage, make_negotiator, read_permission):
        """Test that claims sent with the ticket skip the need_info round"""
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])

        response = await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(BOB)))
        assert response.permissions == [Permission(RESOURCE, ["read"])]

    @pytest.mark.asyncio
    async def test_permissions_without_ticket(self, storage, make_negotiator, read_permission):
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()

        response = await negotiator.negotiate(
            TokenRequest(permissions=[Permission(RESOURCE, ["read"])], **claims_of(BOB))
        )
        assert response.permissions == [Permission(RESOURCE, ["read"])]

    @pytest.mark.asyncio
    async def test_ticket_is_consumed(self, storage, make_negotiator, read_permission):
        """Test that a redeemed ticket cannot be used again"""
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(BOB)))

        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(BOB)))

    @pytest.mark.asyncio
    async def test_no_policy_is_forbidden(self, make_negotiator):
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])

        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(BOB)))

    @pytest.mark.asyncio
    async def test_other_party_is_forbidden(self, storage, make_negotiator, read_permission):
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])

        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(CAROL)))

    @pytest.mark.asyncio
    async def test_partial_grant_is_forbidden(self, storage, make_negotiator, read_permission):
        """Test that all requested scopes must be granted"""
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read", "write"])])

        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, **claims_of(BOB)))

    @pytest.mark.asyncio
    async def test_rejected_claims_are_forbidden(self, make_negotiator):
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])

        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, claim_token="bob", claim_token_format=UNSECURE))


class TestBadRequests:
    """Test malformed negotiation steps"""

    @pytest.mark.asyncio
    async def test_wrong_grant_type(self, make_negotiator):
        negotiator = await make_negotiator()
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(grant_type="client_credentials"))

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, make_negotiator):
        negotiator = await make_negotiator()
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(ticket="no-such-ticket"))

    @pytest.mark.asyncio
    async def test_no_ticket_no_permissions(self, make_negotiator):
        negotiator = await make_negotiator()
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(**claims_of(BOB)))

    @pytest.mark.asyncio
    async def test_token_without_format(self, make_negotiator):
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, claim_token=quote(BOB)))

    @pytest.mark.asyncio
    async def test_format_without_token(self, make_negotiator):
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(TokenRequest(ticket=ticket, claim_token_format=UNSECURE))

    @pytest.mark.asyncio
    async def test_unsupported_format(self, make_negotiator):
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(BadRequestError):
            await negotiator.negotiate(
                TokenRequest(ticket=ticket, claim_token="x", claim_token_format="urn:example:unknown")
            )


class TestAuditTrail:
    """Test that negotiation milestones are audited"""

    @pytest.mark.asyncio
    async def test_successful_negotiation(self, storage, make_negotiator, read_permission):
        await storage.add_rule(read_permission.representation)
        negotiator = await make_negotiator()
        ticket = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(NeedInfoError) as exc_info:
            await negotiator.negotiate(TokenRequest(ticket=ticket))
        await negotiator.negotiate(TokenRequest(ticket=exc_info.value.ticket, **claims_of(BOB)))

        audit = negotiator.audit_logger
        assert [e.event_type for e in await audit.get_events()] == [TICKET_ISSUED, CLAIMS_REQUIRED, TOKEN_ISSUED]
        issued = (await audit.get_events(event_type=TOKEN_ISSUED))[0]
        assert issued.subject == BOB
        assert issued.resource == RESOURCE
        assert issued.details['permissions'] == [{'resource_id': RESOURCE, 'resource_scopes': ["read"]}]

    @pytest.mark.asyncio
    async def test_denials(self, make_negotiator):
        negotiator = await make_negotiator()

        first = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=first, claim_token="bob", claim_token_format=UNSECURE))

        second = await negotiator.create_ticket([Permission(RESOURCE, ["read"])])
        with pytest.raises(ForbiddenError):
            await negotiator.negotiate(TokenRequest(ticket=second, **claims_of(BOB)))

        audit = negotiator.audit_logger
        assert len(await audit.get_events(event_type=CLAIMS_REJECTED)) == 1
        denied = await audit.get_events(event_type=ACCESS_DENIED)
        assert denied[0].subject == BOB
        assert denied[0].details['unmatched'] == [{'resource_id': RESOURCE, 'resource_scopes': ["read"]}]
