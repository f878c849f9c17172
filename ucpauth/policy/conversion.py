"""
Conversion helpers between rdflib graphs and their serializations.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from typing import Iterable, Optional

from rdflib import Graph, Literal, URIRef

from ..errors import PolicyParseError


def graph_to_string(graph: Graph, fmt: str = "turtle") -> str:
    """Serialize a graph to a string."""
    return graph.serialize(format=fmt)


def turtle_to_graph(text: str, base_iri: Optional[str] = None, fmt: str = "turtle") -> Graph:
    """
    Parse Turtle (or another rdflib format) into a graph.

    Raises:
        PolicyParseError: If the text is not valid for the given format
    """
    graph = Graph()
    try:
        graph.parse(data=text, format=fmt, publicID=base_iri)
    except Exception as e:
        raise PolicyParseError(f"Unable to parse {fmt} document: {e}", cause=e)
    return graph


def merge_graphs(graphs: Iterable[Graph]) -> Graph:
    """Union of a number of graphs as a new graph."""
    merged = Graph()
    for graph in graphs:
        for triple in graph:
            merged.add(triple)
    return merged


def copy_graph(graph: Graph) -> Graph:
    return merge_graphs([graph])


def to_term(value: str):
    """IRIs become URIRefs, everything else a plain literal."""
    if value.startswith(("http://", "https://", "urn:")):
        return URIRef(value)
    return Literal(value)
