"""
Compliance reports: per policy, per rule activation and attempt state.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from rdflib import Graph, Literal, URIRef

from ..core.types import utc_now
from ..policy.vocab import DCTERMS, REPORT, RDF, XSD

logger = logging.getLogger(__name__)


class ActivationState(Enum):
    ACTIVE = str(REPORT.Active)
    INACTIVE = str(REPORT.Inactive)


class AttemptState(Enum):
    ATTEMPTED = str(REPORT.Attempted)
    NOT_ATTEMPTED = str(REPORT.NotAttempted)


class RuleType(Enum):
    PERMISSION = str(REPORT.PermissionReport)
    PROHIBITION = str(REPORT.ProhibitionReport)
    DUTY = str(REPORT.ObligationReport)


@dataclass
class RuleReport:
    """Outcome of one rule for one request."""
    rule: str
    type: RuleType
    activation_state: ActivationState
    attempt_state: AttemptState = AttemptState.NOT_ATTEMPTED
    request: Optional[str] = None
    identifier: str = field(default_factory=lambda: f"urn:ucp:report:rule:{uuid.uuid4()}")

    @property
    def active(self) -> bool:
        return self.activation_state == ActivationState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'rule': self.rule,
            'type': self.type.name.lower(),
            'activation_state': self.activation_state.name.lower(),
            'attempt_state': self.attempt_state.name.lower(),
            'request': self.request,
        }


@dataclass
class PolicyReport:
    """Outcome of one policy for one request."""
    policy: str
    request: str
    rule_reports: List[RuleReport] = field(default_factory=list)
    created: datetime = field(default_factory=utc_now)
    identifier: str = field(default_factory=lambda: f"urn:ucp:report:{uuid.uuid4()}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'policy': self.policy,
            'request': self.request,
            'created': self.created.isoformat(),
            'rule_reports': [r.to_dict() for r in self.rule_reports],
        }

    def to_graph(self) -> Graph:
        """Serialize in the compliance report vocabulary"""
        graph = Graph()
        node = URIRef(self.identifier)
        graph.add((node, RDF.type, REPORT.PolicyReport))
        graph.add((node, DCTERMS.created, Literal(self.created.isoformat(), datatype=XSD.dateTime)))
        graph.add((node, REPORT.policy, URIRef(self.policy)))
        graph.add((node, REPORT.policyRequest, URIRef(self.request)))
        for rule_report in self.rule_reports:
            rule_node = URIRef(rule_report.identifier)
            graph.add((node, REPORT.ruleReport, rule_node))
            graph.add((rule_node, RDF.type, URIRef(rule_report.type.value)))
            graph.add((rule_node, REPORT.rule, URIRef(rule_report.rule)))
            graph.add((rule_node, REPORT.activationState, URIRef(rule_report.activation_state.value)))
            graph.add((rule_node, REPORT.attemptState, URIRef(rule_report.attempt_state.value)))
            if rule_report.request:
                graph.add((rule_node, REPORT.ruleRequest, URIRef(rule_report.request)))
        return graph


def _enum_value(enum_cls, node, default=None):
    if node is None:
        return default
    try:
        return enum_cls(str(node))
    except ValueError:
        return default


def parse_compliance_reports(graph: Graph) -> List[PolicyReport]:
    """
    Read every PolicyReport from a graph.

    Rule reports with an unknown type or activation state are dropped with
    a warning.
    """
    reports = []
    for node in sorted(set(graph.subjects(RDF.type, REPORT.PolicyReport))):
        policy = graph.value(node, REPORT.policy)
        request = graph.value(node, REPORT.policyRequest)
        if policy is None or request is None:
            logger.warning(f"Skipping report {node}: missing policy or request")
            continue

        created = graph.value(node, DCTERMS.created)
        created_value = created.toPython() if created is not None else None

        rule_reports = []
        for rule_node in sorted(set(graph.objects(node, REPORT.ruleReport))):
            rule_type = None
            for type_node in graph.objects(rule_node, RDF.type):
                rule_type = _enum_value(RuleType, type_node) or rule_type
            activation = _enum_value(ActivationState, graph.value(rule_node, REPORT.activationState))
            rule = graph.value(rule_node, REPORT.rule)
            if rule_type is None or activation is None or rule is None:
                logger.warning(f"Skipping rule report {rule_node}: incomplete")
                continue
            rule_request = graph.value(rule_node, REPORT.ruleRequest)
            rule_reports.append(RuleReport(
                rule=str(rule),
                type=rule_type,
                activation_state=activation,
                attempt_state=_enum_value(
                    AttemptState, graph.value(rule_node, REPORT.attemptState), AttemptState.NOT_ATTEMPTED
                ),
                request=str(rule_request) if rule_request is not None else None,
                identifier=str(rule_node),
            ))

        report = PolicyReport(
            policy=str(policy),
            request=str(request),
            rule_reports=rule_reports,
            identifier=str(node),
        )
        if isinstance(created_value, datetime):
            report.created = created_value
        reports.append(report)
    return reports
