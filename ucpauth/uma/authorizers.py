"""
Authorizers: claims + requested permissions -> granted permissions.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from rdflib import URIRef

from ..core.types import ClaimSet, Permission, UconRequest
from ..decision.enforcement import UcpPatternEnforcement
from ..decision.evaluator import ComplianceEvaluator
from ..decision.executor import ExecutionKind
from ..decision.explanation import Explanation
from ..decision.strategy import Strategy
from ..policy.validation import RULE_EDGES
from ..storage.types import RulesStorage
from .credentials import WEBID
from .resources import ResourceRegistry

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationDecision:
    """Granted permissions and the policies that granted them."""
    permissions: List[Permission] = field(default_factory=list)
    policies: List[str] = field(default_factory=list)


def policy_claims(claims: ClaimSet) -> ClaimSet:
    """Claims that are forwarded into the request context"""
    return {k: v for k, v in claims.items() if k != WEBID and isinstance(v, str)}


class Authorizer(ABC):
    """Decides which of the requested permissions the claims entitle to."""

    @abstractmethod
    async def authorize(self, claims: ClaimSet, query: List[Permission]) -> AuthorizationDecision:
        pass


def granting_policies(explanation: Explanation) -> List[str]:
    """Policies of the grant or log conclusions that still grant a mode after prohibitions"""
    prohibited = set()
    for conclusion in explanation.conclusions:
        if conclusion.kind == ExecutionKind.PROHIBIT:
            prohibited.update(conclusion.modes)

    policies = set()
    for conclusion in explanation.conclusions:
        if conclusion.rule is None or conclusion.kind not in (ExecutionKind.GRANT, ExecutionKind.LOG):
            continue
        if not set(conclusion.modes) - prohibited:
            continue
        for edge in RULE_EDGES:
            for policy in explanation.policies.subjects(edge, URIRef(conclusion.rule)):
                policies.add(str(policy))
    return sorted(policies)


class PatternAuthorizer(Authorizer):
    """Grants what the pattern enforcement coordinator calculates."""

    def __init__(self, enforcement: UcpPatternEnforcement, resources: Optional[ResourceRegistry] = None):
        self.enforcement = enforcement
        self.resources = resources or ResourceRegistry()

    async def authorize(self, claims: ClaimSet, query: List[Permission]) -> AuthorizationDecision:
        webid = claims.get(WEBID)
        if not isinstance(webid, str):
            logger.info("No WebID claim, granting nothing")
            return AuthorizationDecision()

        decision = AuthorizationDecision()
        policies = set()
        for permission in query:
            request = UconRequest(
                subject=webid,
                action=list(permission.resource_scopes),
                resource=permission.resource_id,
                owner=await self.resources.owner_of(permission.resource_id),
                claims=policy_claims(claims),
            )
            explanation = await self.enforcement.calculate_and_explain_access_modes(request)
            decision.permissions.append(Permission(permission.resource_id, list(explanation.decision)))

            if explanation.decision:
                policies.update(granting_policies(explanation))

        decision.policies = sorted(policies)
        return decision


class ReportAuthorizer(Authorizer):
    """
    Evaluates each requested scope separately through a compliance
    evaluator and a conflict resolution strategy.
    """

    def __init__(
        self,
        storage: RulesStorage,
        evaluator: ComplianceEvaluator,
        strategy: Strategy,
        resources: Optional[ResourceRegistry] = None,
    ):
        self.storage = storage
        self.evaluator = evaluator
        self.strategy = strategy
        self.resources = resources or ResourceRegistry()

    async def authorize(self, claims: ClaimSet, query: List[Permission]) -> AuthorizationDecision:
        webid = claims.get(WEBID)
        if not isinstance(webid, str):
            logger.info("No WebID claim, granting nothing")
            return AuthorizationDecision()

        policies_graph = await self.storage.get_store()
        decision = AuthorizationDecision()
        policies = set()
        for permission in query:
            owner = await self.resources.owner_of(permission.resource_id)
            granted = []
            for scope in permission.resource_scopes:
                request = UconRequest(
                    subject=webid,
                    action=[scope],
                    resource=permission.resource_id,
                    owner=owner,
                    claims=policy_claims(claims),
                )
                reports = await self.evaluator.evaluate(request, policies_graph)
                verdict = self.strategy.evaluate(request.identifier, policies_graph, reports)
                if verdict.allowed:
                    granted.append(scope)
                    policies.update(verdict.policies)
                else:
                    logger.debug(f"Scope {scope} on {permission.resource_id} denied: {verdict.reason}")
            decision.permissions.append(Permission(permission.resource_id, granted))

        decision.policies = sorted(policies)
        return decision
