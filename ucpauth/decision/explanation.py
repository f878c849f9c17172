"""
Audit record of a single access-mode evaluation.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List

from rdflib import Graph, Literal, URIRef

from ..core.types import UconRequest
from ..policy.vocab import DCTERMS, EX, RDF, XSD
from .executor import Conclusion, ExecutionKind

UNION = "union"


@dataclass
class Explanation:
    """Everything needed to replay or audit a decision."""
    request: UconRequest
    decision: List[str]
    conclusions: List[Conclusion]
    policies: Graph
    rules: List[str]
    context: Graph
    derivation: Graph
    algorithm: str = UNION
    identifier: str = field(default_factory=lambda: f"urn:ucp:explanation:{uuid.uuid4()}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'identifier': self.identifier,
            'request': self.request.to_dict(),
            'decision': list(self.decision),
            'algorithm': self.algorithm,
            'conclusions': [c.to_dict() for c in self.conclusions],
        }

    def to_graph(self) -> Graph:
        """Explanation node, its conclusions, the context and the derivation"""
        graph = Graph()
        node = URIRef(self.identifier)
        graph.add((node, RDF.type, EX.Explanation))
        graph.add((node, EX.request, URIRef(self.request.identifier)))
        graph.add((node, EX.algorithm, Literal(self.algorithm)))
        for mode in self.decision:
            graph.add((node, EX.decision, Literal(mode)))

        for index, conclusion in enumerate(self.conclusions):
            conclusion_node = URIRef(f"{self.identifier}:conclusion:{index}")
            graph.add((node, EX.conclusion, conclusion_node))
            graph.add((conclusion_node, RDF.type, EX.Conclusion))
            graph.add((conclusion_node, EX.kind, Literal(conclusion.kind.value)))
            if conclusion.rule:
                graph.add((conclusion_node, EX.rule, URIRef(conclusion.rule)))
            if conclusion.interpretation:
                graph.add((conclusion_node, EX.interpretation, URIRef(conclusion.interpretation)))
            edge = EX.prohibits if conclusion.kind == ExecutionKind.PROHIBIT else EX.grants
            for mode in conclusion.modes:
                graph.add((conclusion_node, edge, URIRef(mode)))
            if conclusion.timestamp:
                graph.add((conclusion_node, DCTERMS.issued,
                           Literal(conclusion.timestamp.isoformat(), datatype=XSD.dateTime)))

        for triple in self.context:
            graph.add(triple)
        for triple in self.derivation:
            graph.add(triple)
        return graph


def serialize_full_explanation(explanation: Explanation, fmt: str = "turtle") -> str:
    """
    Serialize an explanation together with the policies and rule texts it was based on.
    """
    graph = explanation.to_graph()
    node = URIRef(explanation.identifier)
    for triple in explanation.policies:
        graph.add(triple)
    for text in explanation.rules:
        graph.add((node, EX.ruleText, Literal(text)))
    graph.bind("ex", EX)
    graph.bind("dct", DCTERMS)
    return graph.serialize(format=fmt)
