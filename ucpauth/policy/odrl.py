"""
Builders that turn usage-control policy descriptions into ODRL graphs.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from rdflib import Graph, Literal, URIRef

from .conversion import to_term
from .vocab import OAC, ODRL, RDF, XSD

logger = logging.getLogger(__name__)

TEMPORAL = "temporal"
PURPOSE = "purpose"
LEGAL_BASIS = "legal_basis"


@dataclass
class UCPConstraint:
    """A constraint qualifying a usage-control rule."""
    type: str  # temporal, purpose or legal_basis
    operator: str  # e.g. odrl:gt, odrl:lt, odrl:eq
    value: Any


@dataclass
class UCPRule:
    """A usage-control rule: who may (not) do what on which resource."""
    action: str
    resource: str
    requesting_party: str
    owner: Optional[str] = None
    type: Optional[str] = None  # defaults to odrl:Permission
    constraints: List[UCPConstraint] = field(default_factory=list)


@dataclass
class UCPPolicy:
    """A usage-control policy with one or more rules."""
    rules: List[UCPRule]
    type: Optional[str] = None  # defaults to odrl:Agreement


@dataclass
class SimplePolicy:
    """A policy converted to RDF together with the identifiers it minted."""
    representation: Graph
    policy_iri: str
    rule_iris: List[str] = field(default_factory=list)


def basic_policy(policy: UCPPolicy, policy_iri: Optional[str] = None) -> SimplePolicy:
    """
    Create an ODRL policy graph holding every rule of the given policy.

    Args:
        policy: The policy description
        policy_iri: Identifier to use for the policy (minted when omitted)

    Returns:
        SimplePolicy with the graph, the policy IRI and the rule IRIs
    """
    policy_iri = policy_iri or f"urn:ucp:policy:{uuid.uuid4()}"
    graph = Graph()
    graph.add((URIRef(policy_iri), RDF.type, URIRef(policy.type) if policy.type else ODRL.Agreement))

    rule_iris = []
    for rule in policy.rules:
        triples, rule_iri = create_rule_triples(rule, policy_iri)
        for triple in triples:
            graph.add(triple)
        rule_iris.append(rule_iri)

    return SimplePolicy(representation=graph, policy_iri=policy_iri, rule_iris=rule_iris)


def create_rule_triples(rule: UCPRule, policy_iri: Optional[str] = None) -> Tuple[List[tuple], str]:
    """Convert a usage-control rule to ODRL triples."""
    rule_iri = f"urn:ucp:rule:{uuid.uuid4()}"
    node = URIRef(rule_iri)
    rule_type = URIRef(rule.type) if rule.type else ODRL.Permission

    triples = [
        (node, RDF.type, rule_type),
        (node, ODRL.action, URIRef(rule.action)),
        (node, ODRL.target, URIRef(rule.resource)),
        (node, ODRL.assignee, URIRef(rule.requesting_party)),
    ]
    if rule.owner:
        triples.append((node, ODRL.assigner, URIRef(rule.owner)))

    if policy_iri:
        edge = ODRL.prohibition if rule_type == ODRL.Prohibition else ODRL.permission
        if rule_type == ODRL.Duty:
            edge = ODRL.obligation
        triples.append((URIRef(policy_iri), edge, node))

    for constraint in rule.constraints:
        constraint_triples, _ = create_constraint_triples(constraint, rule_iri)
        triples.extend(constraint_triples)

    return triples, rule_iri


def create_constraint_triples(constraint: UCPConstraint, rule_iri: Optional[str] = None) -> Tuple[List[tuple], str]:
    """Convert a usage-control constraint to ODRL triples."""
    constraint_iri = f"urn:ucp:constraint:{uuid.uuid4()}"
    node = URIRef(constraint_iri)

    if constraint.type == TEMPORAL:
        value = constraint.value
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat()
        left, right = ODRL.dateTime, Literal(value, datatype=XSD.dateTime)
    elif constraint.type == PURPOSE:
        left, right = ODRL.purpose, to_term(constraint.value)
    elif constraint.type == LEGAL_BASIS:
        left, right = OAC.LegalBasis, to_term(constraint.value)
    else:
        logger.warning(f"Cannot create constraint, type not understood: {constraint.type}")
        return [], constraint_iri

    triples = [
        (node, ODRL.leftOperand, left),
        (node, ODRL.operator, URIRef(constraint.operator)),
        (node, ODRL.rightOperand, right),
    ]
    if rule_iri:
        triples.append((URIRef(rule_iri), ODRL.constraint, node))
    return triples, constraint_iri
