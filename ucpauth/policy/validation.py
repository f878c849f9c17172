"""
Structural checks applied to rule graphs before they enter storage.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import List, Optional, Set

from rdflib import Graph
from rdflib.term import Node

from ..errors import PolicyParseError
from .vocab import ODRL, POLICY_TYPES, RDF, RULE_TYPES

logger = logging.getLogger(__name__)

RULE_EDGES = (ODRL.permission, ODRL.prohibition, ODRL.obligation)


def find_rules(graph: Graph) -> Set[Node]:
    """All nodes typed as a rule or hanging off a policy rule edge."""
    rules = set()
    for rule_type in RULE_TYPES:
        rules.update(graph.subjects(RDF.type, rule_type))
    for edge in RULE_EDGES:
        rules.update(graph.objects(None, edge))
    return rules


def find_policies(graph: Graph) -> Set[Node]:
    policies = set()
    for policy_type in POLICY_TYPES:
        policies.update(graph.subjects(RDF.type, policy_type))
    for edge in RULE_EDGES:
        policies.update(graph.subjects(edge, None))
    return policies


def check_rule_graph(graph: Graph, existing: Optional[Graph] = None) -> List[str]:
    """
    Collect the structural problems of a rule graph.

    A rule may belong to at most one policy, constraints attach to rules
    only, and every rule names an action and a target. Rules that are not
    attached to any policy are accepted.

    When `existing` is given, policy membership is checked against the
    union of both graphs, so a stored rule cannot be claimed by a second
    policy.
    """
    problems = []

    for rule in sorted(find_rules(graph)):
        owners = set()
        for edge in RULE_EDGES:
            owners.update(graph.subjects(edge, rule))
            if existing is not None:
                owners.update(existing.subjects(edge, rule))
        if len(owners) > 1:
            problems.append(f"rule {rule} belongs to {len(owners)} policies")
        if (rule, ODRL.action, None) not in graph:
            problems.append(f"rule {rule} has no action")
        if (rule, ODRL.target, None) not in graph:
            problems.append(f"rule {rule} has no target")

    for policy in sorted(find_policies(graph)):
        if (policy, ODRL.constraint, None) in graph:
            problems.append(f"constraint attached directly to policy {policy}")

    return problems


def validate_rule_graph(graph: Graph, existing: Optional[Graph] = None) -> None:
    """
    Reject malformed rule graphs.

    Args:
        graph: The incoming rule graph
        existing: The stored rule set the graph is about to be merged into

    Raises:
        PolicyParseError: If any structural problem is found
    """
    problems = check_rule_graph(graph, existing)
    if problems:
        logger.warning(f"Rejected rule graph: {'; '.join(problems)}")
        raise PolicyParseError("Malformed rule graph", problems=problems)
