"""
Graph helpers shared by the storage backends.
"""

from typing import List

from rdflib import BNode, Graph, URIRef
from rdflib.term import Node


def extract_reachable(graph: Graph, identifier) -> Graph:
    """
    Collect every triple reachable from `identifier` along outgoing edges.

    The walk uses an explicit stack and a visited set so cyclic rule graphs
    terminate and deep graphs do not exhaust the call stack.
    """
    start = identifier if isinstance(identifier, Node) else URIRef(identifier)
    result = Graph()
    visited = {start}
    stack: List[Node] = [start]

    while stack:
        node = stack.pop()
        for _, predicate, obj in graph.triples((node, None, None)):
            result.add((node, predicate, obj))
            if isinstance(obj, (URIRef, BNode)) and obj not in visited:
                visited.add(obj)
                stack.append(obj)

    return result


def subtract(graph: Graph, data: Graph) -> int:
    """Remove the triples of `data` from `graph` in place; returns how many were present."""
    removed = 0
    for triple in data:
        if triple in graph:
            graph.remove(triple)
            removed += 1
    return removed


def snapshot(graph: Graph) -> Graph:
    """Independent copy of a graph."""
    copy = Graph()
    for triple in graph:
        copy.add(triple)
    return copy
