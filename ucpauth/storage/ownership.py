"""
Client-scoped views of the rule store.

A rule belongs to the party named as its single `odrl:assigner`. Policy
management only ever shows or removes rules that belong to the caller,
together with the policy statements that hold them.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import Optional, Set

from rdflib import Graph, URIRef
from rdflib.term import Node

from ..errors import ForbiddenError, PolicyParseError
from ..policy.validation import RULE_EDGES, find_policies, find_rules
from ..policy.vocab import ODRL
from .util import extract_reachable

logger = logging.getLogger(__name__)


def check_assigners(graph: Graph, client: str) -> None:
    """
    Require every rule of a submitted graph to be assigned by the client.

    Raises:
        PolicyParseError: If a rule has no assigner or more than one
        ForbiddenError: If a rule is assigned by another party
    """
    problems = []
    foreign = []
    for rule in sorted(find_rules(graph)):
        assigners = list(graph.objects(rule, ODRL.assigner))
        if len(assigners) != 1:
            problems.append(f"rule {rule} should have exactly one assigner")
        elif str(assigners[0]) != client:
            foreign.append(str(rule))

    if problems:
        raise PolicyParseError("Malformed rule graph", problems=problems)
    if foreign:
        logger.warning(f"{client} tried to store rules assigned by someone else: {foreign}")
        raise ForbiddenError("Rules must be assigned by the authenticated client")


def owned_rules(graph: Graph, client: str) -> Set[Node]:
    return {rule for rule in find_rules(graph) if (rule, ODRL.assigner, URIRef(client)) in graph}


def rules_of(graph: Graph, policy: Node) -> Set[Node]:
    rules = set()
    for edge in RULE_EDGES:
        rules.update(graph.objects(policy, edge))
    return rules


def policies_of(graph: Graph, rule: Node) -> Set[Node]:
    policies = set()
    for edge in RULE_EDGES:
        policies.update(graph.subjects(edge, rule))
    return policies


def _selection(graph: Graph, client: str, identifier: Optional[str]):
    owned = owned_rules(graph, client)
    if identifier is None:
        return owned
    node = URIRef(identifier)
    if node in owned:
        return {node}
    if node in find_policies(graph):
        return rules_of(graph, node) & owned
    return set()


def owned_view(graph: Graph, client: str, identifier: Optional[str] = None) -> Graph:
    """
    The part of the store visible to a client.

    Without an identifier every owned rule is returned. With a rule
    identifier that rule is returned when owned; with a policy identifier
    the owned rules of that policy are. Policy statements other than rule
    edges are included, rule edges only for owned rules.
    """
    rules = _selection(graph, client, identifier)
    view = Graph()
    policies = set()
    for rule in rules:
        for triple in extract_reachable(graph, rule):
            view.add(triple)
        policies.update(policies_of(graph, rule))

    for policy in policies:
        for _, predicate, obj in graph.triples((policy, None, None)):
            if predicate in RULE_EDGES and obj not in rules:
                continue
            view.add((policy, predicate, obj))
    return view


def owned_deletion(graph: Graph, client: str, identifier: str) -> Graph:
    """
    The triples to remove when a client deletes a rule or a policy.

    Owned rules are removed together with the edges pointing at them. A
    policy itself is only removed once it holds no rule of another party.
    """
    rules = _selection(graph, client, identifier)
    removal = Graph()
    for rule in rules:
        for triple in extract_reachable(graph, rule):
            removal.add(triple)
        for edge in RULE_EDGES:
            for policy in graph.subjects(edge, rule):
                removal.add((policy, edge, rule))

    node = URIRef(identifier)
    if rules and node in find_policies(graph) and rules_of(graph, node) <= rules:
        for triple in extract_reachable(graph, node):
            removal.add(triple)
    return removal
