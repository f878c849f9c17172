"""
Usage-control policy vocabulary, builders and validation.
"""

from .vocab import ODRL, EX, FNO, REPORT
from .odrl import (
    UCPConstraint,
    UCPRule,
    UCPPolicy,
    SimplePolicy,
    basic_policy,
    create_rule_triples,
    create_constraint_triples,
    TEMPORAL,
    PURPOSE,
    LEGAL_BASIS,
)
from .conversion import graph_to_string, turtle_to_graph, merge_graphs, copy_graph, to_term
from .validation import check_rule_graph, validate_rule_graph

__all__ = [
    'ODRL',
    'EX',
    'FNO',
    'REPORT',
    'UCPConstraint',
    'UCPRule',
    'UCPPolicy',
    'SimplePolicy',
    'basic_policy',
    'create_rule_triples',
    'create_constraint_triples',
    'TEMPORAL',
    'PURPOSE',
    'LEGAL_BASIS',
    'graph_to_string',
    'turtle_to_graph',
    'merge_graphs',
    'copy_graph',
    'to_term',
    'check_rule_graph',
    'validate_rule_graph',
]
