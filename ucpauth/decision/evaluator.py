"""
A compliance evaluator producing per-policy reports for a request.

Any evaluator honouring the ComplianceEvaluator contract can replace the
basic one; the conflict resolution strategy only reads the reports.
"""

import logging
import operator
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from rdflib import Graph, URIRef

from ..core.types import UconRequest
from ..policy.validation import find_policies
from ..policy.vocab import (
    CONTEXT_REQUEST_PERMISSION,
    DCTERMS,
    ODRL,
)
from .context import ContextBuilder
from .reports import ActivationState, AttemptState, PolicyReport, RuleReport, RuleType

logger = logging.getLogger(__name__)

EDGE_TYPES = {
    ODRL.permission: RuleType.PERMISSION,
    ODRL.prohibition: RuleType.PROHIBITION,
    ODRL.obligation: RuleType.DUTY,
}

COMPARISONS: Dict[URIRef, Callable] = {
    ODRL.eq: operator.eq,
    ODRL.gt: operator.gt,
    ODRL.gteq: operator.ge,
    ODRL.lt: operator.lt,
    ODRL.lteq: operator.le,
}


class ComplianceEvaluator(ABC):
    """Evaluates a request against a policy graph."""

    @abstractmethod
    async def evaluate(self, request: UconRequest, policies: Graph) -> List[PolicyReport]:
        """Return one report per policy in the graph"""
        pass


class BasicComplianceEvaluator(ComplianceEvaluator):
    """
    Evaluates permissions and prohibitions directly on the policy graph.

    A rule is attempted when its target, action, assignee and (if present)
    assigner match the request. An attempted rule is active when all of
    its constraints hold in the request context.
    """

    def __init__(self, context_builder: Optional[ContextBuilder] = None):
        self.context_builder = context_builder or ContextBuilder()

    async def evaluate(self, request: UconRequest, policies: Graph) -> List[PolicyReport]:
        context = self.context_builder.build(request)
        node = URIRef(request.identifier)
        actions = set(context.objects(node, CONTEXT_REQUEST_PERMISSION))
        issued = context.value(node, DCTERMS.issued)
        now = issued.toPython() if issued is not None else None

        reports = []
        for policy in sorted(find_policies(policies)):
            report = PolicyReport(policy=str(policy), request=request.identifier)
            for edge, rule_type in EDGE_TYPES.items():
                for rule in sorted(set(policies.objects(policy, edge))):
                    attempted = self._attempted(policies, rule, request, actions)
                    active = attempted and self._constraints_hold(policies, rule, context, node, now)
                    report.rule_reports.append(RuleReport(
                        rule=str(rule),
                        type=rule_type,
                        activation_state=ActivationState.ACTIVE if active else ActivationState.INACTIVE,
                        attempt_state=AttemptState.ATTEMPTED if attempted else AttemptState.NOT_ATTEMPTED,
                        request=request.identifier,
                    ))
            reports.append(report)

        logger.debug(f"Evaluated {len(reports)} policies for {request.identifier}")
        return reports

    def _attempted(self, policies: Graph, rule, request: UconRequest, actions) -> bool:
        if (rule, ODRL.target, URIRef(request.resource)) not in policies:
            return False
        if (rule, ODRL.assignee, URIRef(request.subject)) not in policies:
            return False
        if not any((rule, ODRL.action, action) in policies for action in actions):
            return False
        assigner = policies.value(rule, ODRL.assigner)
        if assigner is not None and (request.owner is None or str(assigner) != request.owner):
            return False
        return True

    def _constraints_hold(self, policies: Graph, rule, context: Graph, node, now) -> bool:
        for constraint in policies.objects(rule, ODRL.constraint):
            left = policies.value(constraint, ODRL.leftOperand)
            op = policies.value(constraint, ODRL.operator)
            right = policies.value(constraint, ODRL.rightOperand)
            if left is None or op is None or right is None:
                return False

            if left == ODRL.dateTime:
                compare = COMPARISONS.get(op)
                bound = right.toPython()
                if compare is None or not isinstance(bound, datetime) or not isinstance(now, datetime):
                    return False
                try:
                    if not compare(now, bound):
                        return False
                except TypeError:
                    # naive and aware datetimes do not compare
                    return False
            elif op == ODRL.eq:
                if (node, left, right) not in context:
                    return False
            else:
                logger.debug(f"Unsupported constraint {constraint}, treating as unsatisfied")
                return False
        return True
