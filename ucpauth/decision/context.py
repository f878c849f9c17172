"""
Builds the fact graph describing a single access request.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import Dict, List, Optional

from rdflib import Graph, Literal, URIRef

from ..core.config import default_action_mapping
from ..core.types import Clock, UconRequest, utc_now
from ..policy.conversion import to_term
from ..policy.vocab import (
    CONTEXT_REQUEST_PERMISSION,
    CONTEXT_REQUESTING_PARTY,
    CONTEXT_RESOURCE_OWNER,
    CONTEXT_TARGET,
    DCTERMS,
    ODRL,
    OAC,
    XSD,
)

logger = logging.getLogger(__name__)

# Claim types with a dedicated context predicate
CLAIM_PREDICATES = {
    str(ODRL.purpose): ODRL.purpose,
    "purpose": ODRL.purpose,
    str(OAC.LegalBasis): OAC.LegalBasis,
    "legal_basis": OAC.LegalBasis,
}


class ContextBuilder:
    """
    Translates a UconRequest into the facts the rule texts match against.

    The requested actions are translated through `action_mapping`; actions
    without a mapping are used verbatim.
    """

    def __init__(self, action_mapping: Optional[Dict[str, str]] = None, clock: Optional[Clock] = None):
        self.action_mapping = action_mapping if action_mapping is not None else default_action_mapping()
        self.clock = clock or utc_now

    def translate(self, action: str) -> str:
        return self.action_mapping.get(action, action)

    def reverse(self, request: UconRequest, actions) -> List[str]:
        """Map rule-set actions back to the spelling the request used."""
        actions = {str(a) for a in actions}
        return [a for a in request.action if self.translate(a) in actions]

    def build(self, request: UconRequest) -> Graph:
        """
        Create the context graph for a request.

        Args:
            request: The access request

        Returns:
            Graph with a single context node named by the request identifier
        """
        graph = Graph()
        node = URIRef(request.identifier)

        graph.add((node, CONTEXT_REQUESTING_PARTY, URIRef(request.subject)))
        graph.add((node, CONTEXT_TARGET, URIRef(request.resource)))
        if request.owner:
            graph.add((node, CONTEXT_RESOURCE_OWNER, URIRef(request.owner)))
        for action in request.action:
            graph.add((node, CONTEXT_REQUEST_PERMISSION, URIRef(self.translate(action))))

        now = self.clock()
        graph.add((node, DCTERMS.issued, Literal(now.isoformat(), datatype=XSD.dateTime)))

        for key, value in request.claims.items():
            if not isinstance(value, str):
                logger.warning(f"Skipping non-string claim {key} in request context")
                continue
            predicate = CLAIM_PREDICATES.get(key)
            if predicate is None:
                if ":" not in key:
                    logger.warning(f"Skipping claim {key}: not an IRI")
                    continue
                predicate = URIRef(key)
            graph.add((node, predicate, to_term(value)))

        logger.debug(f"Built context for {request.identifier} with {len(graph)} triples")
        return graph
