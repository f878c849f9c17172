"""
In-memory rule storage.

Suitable for development, tests and single-instance deployments where
policies are provisioned at startup.
"""

import asyncio
import logging

from rdflib import Graph

from ..policy.validation import validate_rule_graph
from .types import RulesStorage
from .util import extract_reachable, snapshot, subtract

logger = logging.getLogger(__name__)


class MemoryRulesStorage(RulesStorage):
    """Rule storage backed by a single in-memory graph."""

    def __init__(self):
        self._graph = Graph()
        self._lock = asyncio.Lock()

    async def get_store(self) -> Graph:
        async with self._lock:
            return snapshot(self._graph)

    async def add_rule(self, rule: Graph) -> None:
        async with self._lock:
            validate_rule_graph(rule, self._graph)
            for triple in rule:
                self._graph.add(triple)
            logger.debug(f"Added {len(rule)} rule triples, store now holds {len(self._graph)}")

    async def get_rule(self, identifier: str) -> Graph:
        async with self._lock:
            return extract_reachable(self._graph, identifier)

    async def delete_rule(self, identifier: str) -> int:
        async with self._lock:
            rule = extract_reachable(self._graph, identifier)
            removed = subtract(self._graph, rule)
        logger.info(f"Deleted rule {identifier} ({removed} triples)")
        return removed

    async def remove_data(self, data: Graph) -> int:
        async with self._lock:
            return subtract(self._graph, data)
