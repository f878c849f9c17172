"""
Rule storage interface for the policy decision engine.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod

from rdflib import Graph


class RulesStorage(ABC):
    """
    Persistence for usage-control policy graphs.

    A rule is identified by an IRI; its content is the subgraph reachable
    from that IRI by following outgoing edges. All backends share this
    identity semantics and only differ in where the triples live.
    """

    @abstractmethod
    async def get_store(self) -> Graph:
        """Return a snapshot of the entire rule set."""
        pass

    @abstractmethod
    async def add_rule(self, rule: Graph) -> None:
        """
        Merge the triples of a rule graph into the store.

        Raises:
            PolicyParseError: If the rule graph is malformed; the store is left untouched
        """
        pass

    @abstractmethod
    async def get_rule(self, identifier: str) -> Graph:
        """Return the subgraph reachable from the given identifier."""
        pass

    @abstractmethod
    async def delete_rule(self, identifier: str) -> int:
        """Remove the subgraph reachable from the given identifier; returns the number of triples removed."""
        pass

    @abstractmethod
    async def remove_data(self, data: Graph) -> int:
        """Remove an explicit set of triples; returns the number of triples removed."""
        pass

    async def close(self) -> None:
        """Release any resources held by the backend"""
        pass
