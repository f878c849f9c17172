"""
Shared fixtures for the ucpauth tests.
"""

from datetime import datetime, timezone

import pytest

from ucpauth.core.config import DecisionConfig
from ucpauth.decision import (
    ContextBuilder,
    PolicyExecutor,
    SparqlRuleReasoner,
    UcpPatternEnforcement,
    default_registry,
)
from ucpauth.policy import UCPPolicy, UCPRule, basic_policy
from ucpauth.policy.vocab import ODRL
from ucpauth.storage import MemoryRulesStorage

ALICE = "https://example.org/alice/profile/card#me"
BOB = "https://example.org/bob/profile/card#me"
CAROL = "https://example.org/carol/profile/card#me"
RESOURCE = "http://localhost:3000/alice/other/resource.txt"
OTHER_RESOURCE = "http://localhost:3000/alice/private/notes.txt"

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """A clock frozen at NOW"""
    return lambda: NOW


@pytest.fixture
def storage():
    return MemoryRulesStorage()


@pytest.fixture
def context_builder(clock):
    return ContextBuilder(clock=clock)


@pytest.fixture
def make_enforcement(context_builder):
    """Build a coordinator over a storage with the packaged rule set"""
    def factory(storage, rule_paths=None):
        decision = DecisionConfig()
        if rule_paths is not None:
            decision.rule_paths = rule_paths
        return UcpPatternEnforcement(
            storage=storage,
            rules=decision.load_rules(),
            reasoner=SparqlRuleReasoner(),
            executor=PolicyExecutor(default_registry()),
            context_builder=context_builder,
        )
    return factory


@pytest.fixture
def read_permission():
    """Policy granting BOB read on RESOURCE, assigned by ALICE"""
    return basic_policy(UCPPolicy(rules=[UCPRule(
        action=str(ODRL.read),
        resource=RESOURCE,
        requesting_party=BOB,
        owner=ALICE,
    )]))


@pytest.fixture
def read_prohibition():
    """Policy prohibiting BOB from reading RESOURCE, assigned by ALICE"""
    return basic_policy(UCPPolicy(rules=[UCPRule(
        action=str(ODRL.read),
        resource=RESOURCE,
        requesting_party=BOB,
        owner=ALICE,
        type=str(ODRL.Prohibition),
    )]))
