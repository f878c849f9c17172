"""
Tests for tickets, the immediate authorizer strategy and the authorizers.
"""

from datetime import timedelta

import pytest

from ucpauth.core.types import Permission
from ucpauth.decision import BasicComplianceEvaluator, PrioritizeProhibitionStrategy
from ucpauth.policy import UCPPolicy, UCPRule, basic_policy
from ucpauth.policy.vocab import ODRL
from ucpauth.uma import (
    WEBID,
    AuthorizationDecision,
    Authorizer,
    ImmediateAuthorizerStrategy,
    MemoryTicketStore,
    PatternAuthorizer,
    ReportAuthorizer,
    ResourceDescription,
    ResourceRegistry,
    Ticket,
)

from conftest import ALICE, BOB, CAROL, NOW, OTHER_RESOURCE, RESOURCE


class MovableClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class StaticAuthorizer(Authorizer):
    """Grants a fixed set of permissions and records what it was asked"""

    def __init__(self, permissions, policies=None):
        self.permissions = permissions
        self.policies = policies or []
        self.calls = []

    async def authorize(self, claims, query):
        self.calls.append((dict(claims), list(query)))
        return AuthorizationDecision(list(self.permissions), list(self.policies))


async def owned_registry(*resource_ids):
    registry = ResourceRegistry()
    for resource_id in resource_ids:
        await registry.register(ResourceDescription(resource_id, ["read"], owner=ALICE))
    return registry


class TestMemoryTicketStore:
    """Test ticket storage"""

    @pytest.mark.asyncio
    async def test_put_and_take(self):
        store = MemoryTicketStore(clock=MovableClock(NOW))
        ticket = Ticket([Permission(RESOURCE, ["read"])])

        ticket_id = await store.put(ticket)

        assert await store.exists(ticket_id)
        assert await store.take(ticket_id) is ticket

    @pytest.mark.asyncio
    async def test_tickets_are_single_use(self):
        """Test that a ticket can be redeemed only once"""
        store = MemoryTicketStore(clock=MovableClock(NOW))
        ticket_id = await store.put(Ticket([Permission(RESOURCE, ["read"])]))

        assert await store.take(ticket_id) is not None
        assert await store.take(ticket_id) is None
        assert not await store.exists(ticket_id)

    @pytest.mark.asyncio
    async def test_expired_ticket(self):
        """Test that tickets stop working after their TTL"""
        clock = MovableClock(NOW)
        store = MemoryTicketStore(ttl=timedelta(minutes=5), clock=clock)
        ticket_id = await store.put(Ticket([Permission(RESOURCE, ["read"])]))

        clock.now = NOW + timedelta(minutes=5)

        assert not await store.exists(ticket_id)
        assert await store.take(ticket_id) is None

    @pytest.mark.asyncio
    async def test_cleanup(self):
        clock = MovableClock(NOW)
        store = MemoryTicketStore(ttl=timedelta(minutes=5), clock=clock)
        old = await store.put(Ticket([Permission(RESOURCE, ["read"])]))
        clock.now = NOW + timedelta(minutes=3)
        fresh = await store.put(Ticket([Permission(RESOURCE, ["read"])]))
        clock.now = NOW + timedelta(minutes=6)

        assert await store.cleanup() == 1
        assert not await store.exists(old)
        assert await store.exists(fresh)

    @pytest.mark.asyncio
    async def test_unredeemed_tickets_are_evicted(self):
        """Test that storing a ticket drops the expired ones"""
        clock = MovableClock(NOW)
        store = MemoryTicketStore(ttl=timedelta(minutes=5), clock=clock)
        for _ in range(10):
            await store.put(Ticket([Permission(RESOURCE, ["read"])]))
        assert len(store) == 10

        clock.now = NOW + timedelta(minutes=5)
        latest = await store.put(Ticket([Permission(RESOURCE, ["read"])]))

        assert len(store) == 1
        assert await store.exists(latest)

    @pytest.mark.asyncio
    async def test_explicit_identifier(self):
        store = MemoryTicketStore()
        assert await store.put(Ticket([]), "ticket-1") == "ticket-1"

    def test_missing_claims(self):
        ticket = Ticket([], provided={WEBID: BOB}, required=[WEBID, "urn:example:claims:age"])
        assert ticket.missing_claims() == ["urn:example:claims:age"]


class TestImmediateAuthorizerStrategy:
    """Test ticket resolution"""

    @pytest.mark.asyncio
    async def test_initialize_carries_required_claims(self):
        strategy = ImmediateAuthorizerStrategy(StaticAuthorizer([]), required_claims=[WEBID])
        ticket = await strategy.initialize_ticket([Permission(RESOURCE, ["read"])])
        assert ticket.required == [WEBID]
        assert ticket.missing_claims() == [WEBID]

    @pytest.mark.asyncio
    async def test_claims_accumulate(self):
        strategy = ImmediateAuthorizerStrategy(StaticAuthorizer([]))
        ticket = Ticket([Permission(RESOURCE, ["read"])], provided={"a": "1"})
        ticket = await strategy.validate_claims(ticket, {"b": "2"})
        assert ticket.provided == {"a": "1", "b": "2"}

    @pytest.mark.asyncio
    async def test_full_grant(self):
        """Test that only the requested scopes end up in the resolution"""
        authorizer = StaticAuthorizer([Permission(RESOURCE, ["read", "write"])], ["urn:p:1"])
        strategy = ImmediateAuthorizerStrategy(authorizer)
        ticket = Ticket([Permission(RESOURCE, ["read"])], provided={WEBID: BOB})

        resolution = await strategy.resolve_ticket(ticket)

        assert resolution.success
        assert resolution.permissions == [Permission(RESOURCE, ["read"])]
        assert resolution.policies == ["urn:p:1"]
        assert authorizer.calls[0][0] == {WEBID: BOB}

    @pytest.mark.asyncio
    async def test_partial_grant_fails(self):
        """Test that a partial grant reports the unmatched scopes"""
        authorizer = StaticAuthorizer([Permission(RESOURCE, ["read"])])
        strategy = ImmediateAuthorizerStrategy(authorizer)
        ticket = Ticket([Permission(RESOURCE, ["read", "write"]), Permission(OTHER_RESOURCE, ["read"])])

        resolution = await strategy.resolve_ticket(ticket)

        assert not resolution.success
        assert resolution.permissions == []
        assert resolution.unmatched == [Permission(RESOURCE, ["write"]), Permission(OTHER_RESOURCE, ["read"])]

    @pytest.mark.asyncio
    async def test_nothing_granted(self):
        authorizer = StaticAuthorizer([Permission(RESOURCE, [])])
        strategy = ImmediateAuthorizerStrategy(authorizer)
        ticket = Ticket([Permission(RESOURCE, ["read"])])

        resolution = await strategy.resolve_ticket(ticket)

        assert not resolution.success
        assert resolution.unmatched == ticket.permissions


class TestPatternAuthorizer:
    """Test the authorizer backed by pattern enforcement"""

    @pytest.mark.asyncio
    async def test_grants_permitted_scopes(self, storage, make_enforcement, read_permission):
        await storage.add_rule(read_permission.representation)
        authorizer = PatternAuthorizer(make_enforcement(storage), await owned_registry(RESOURCE))

        decision = await authorizer.authorize({WEBID: BOB}, [Permission(RESOURCE, ["read", "write"])])

        assert decision.permissions == [Permission(RESOURCE, ["read"])]
        assert decision.policies == [read_permission.policy_iri]

    @pytest.mark.asyncio
    async def test_prohibited_policies_are_not_credited(self, storage, make_enforcement, read_permission):
        """Test that only policies whose grants survive are reported"""
        write_permission = basic_policy(UCPPolicy(rules=[UCPRule(
            action=str(ODRL.write), resource=RESOURCE, requesting_party=BOB, owner=ALICE,
        )]))
        write_prohibition = basic_policy(UCPPolicy(rules=[UCPRule(
            action=str(ODRL.write), resource=RESOURCE, requesting_party=BOB, owner=ALICE,
            type=str(ODRL.Prohibition),
        )]))
        for policy in (read_permission, write_permission, write_prohibition):
            await storage.add_rule(policy.representation)
        authorizer = PatternAuthorizer(make_enforcement(storage), await owned_registry(RESOURCE))

        decision = await authorizer.authorize({WEBID: BOB}, [Permission(RESOURCE, ["read", "write"])])

        assert decision.permissions == [Permission(RESOURCE, ["read"])]
        assert decision.policies == [read_permission.policy_iri]

    @pytest.mark.asyncio
    async def test_unregistered_resource_has_no_owner(self, storage, make_enforcement, read_permission):
        """Test that rules naming an assigner need a registered owner"""
        await storage.add_rule(read_permission.representation)
        authorizer = PatternAuthorizer(make_enforcement(storage), ResourceRegistry())

        decision = await authorizer.authorize({WEBID: BOB}, [Permission(RESOURCE, ["read"])])

        assert decision.permissions == [Permission(RESOURCE, [])]
        assert decision.policies == []

    @pytest.mark.asyncio
    async def test_no_webid(self, storage, make_enforcement, read_permission):
        await storage.add_rule(read_permission.representation)
        authorizer = PatternAuthorizer(make_enforcement(storage), await owned_registry(RESOURCE))

        decision = await authorizer.authorize({}, [Permission(RESOURCE, ["read"])])

        assert decision.permissions == []

    @pytest.mark.asyncio
    async def test_other_party(self, storage, make_enforcement, read_permission):
        await storage.add_rule(read_permission.representation)
        authorizer = PatternAuthorizer(make_enforcement(storage), await owned_registry(RESOURCE))

        decision = await authorizer.authorize({WEBID: CAROL}, [Permission(RESOURCE, ["read"])])

        assert decision.permissions == [Permission(RESOURCE, [])]


class TestReportAuthorizer:
    """Test the authorizer backed by compliance reports"""

    def authorizer(self, storage, context_builder, registry):
        return ReportAuthorizer(
            storage,
            BasicComplianceEvaluator(context_builder),
            PrioritizeProhibitionStrategy(),
            registry,
        )

    @pytest.mark.asyncio
    async def test_grants_per_scope(self, storage, context_builder, read_permission):
        await storage.add_rule(read_permission.representation)
        authorizer = self.authorizer(storage, context_builder, await owned_registry(RESOURCE))

        decision = await authorizer.authorize({WEBID: BOB}, [Permission(RESOURCE, ["read", "write"])])

        assert decision.permissions == [Permission(RESOURCE, ["read"])]
        assert decision.policies == [read_permission.policy_iri]

    @pytest.mark.asyncio
    async def test_prohibition_denies(self, storage, context_builder, read_permission, read_prohibition):
        await storage.add_rule(read_permission.representation)
        await storage.add_rule(read_prohibition.representation)
        authorizer = self.authorizer(storage, context_builder, await owned_registry(RESOURCE))

        decision = await authorizer.authorize({WEBID: BOB}, [Permission(RESOURCE, ["read"])])

        assert decision.permissions == [Permission(RESOURCE, [])]
        assert decision.policies == []
