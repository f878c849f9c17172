"""
Rule storage backed by a directory of Turtle files.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import asyncio
import logging
import os
import uuid
from typing import Dict, Optional

from rdflib import Graph

from ..errors import PolicyParseError, StorageError
from ..policy.validation import validate_rule_graph
from .types import RulesStorage
from .util import extract_reachable, snapshot, subtract

logger = logging.getLogger(__name__)

RULE_FILE_EXTENSIONS = ('.ttl',)


class DirectoryRulesStorage(RulesStorage):
    """
    Each file in the directory holds one or more rules.

    Files are parsed lazily on first access. The merged view of all files
    is cached and the cache is dropped on every mutation, so readers never
    observe a rule set older than the last completed write.
    """

    def __init__(self, path: str, base_iri: Optional[str] = None):
        self.path = path
        self.base_iri = base_iri
        self._documents: Optional[Dict[str, Graph]] = None
        self._merged: Optional[Graph] = None
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, Graph]:
        if self._documents is not None:
            return self._documents

        if not os.path.isdir(self.path):
            raise StorageError("load", f"Rule directory does not exist: {self.path}")

        documents = {}
        for name in sorted(os.listdir(self.path)):
            if not name.endswith(RULE_FILE_EXTENSIONS):
                continue
            file_path = os.path.join(self.path, name)
            graph = Graph()
            try:
                graph.parse(file_path, format="turtle", publicID=self.base_iri)
            except Exception as e:
                raise PolicyParseError(f"Unable to parse rule file {name}: {e}", cause=e)
            documents[file_path] = graph

        logger.info(f"Loaded {len(documents)} rule files from {self.path}")
        self._documents = documents
        return documents

    def _merged_view(self) -> Graph:
        if self._merged is None:
            merged = Graph()
            for graph in self._load().values():
                for triple in graph:
                    merged.add(triple)
            self._merged = merged
        return self._merged

    def _write(self, file_path: str, graph: Graph) -> None:
        try:
            if len(graph) == 0:
                os.remove(file_path)
                del self._documents[file_path]
                logger.debug(f"Removed empty rule file {file_path}")
            else:
                with open(file_path, "w", encoding="utf-8") as f:
                    f.write(graph.serialize(format="turtle"))
        except OSError as e:
            raise StorageError("write", f"Failed to write rule file {file_path}: {e}", cause=e)

    async def get_store(self) -> Graph:
        async with self._lock:
            return snapshot(self._merged_view())

    async def add_rule(self, rule: Graph) -> None:
        async with self._lock:
            validate_rule_graph(rule, self._merged_view())
            documents = self._load()
            file_path = os.path.join(self.path, f"{uuid.uuid4()}.ttl")
            graph = snapshot(rule)
            documents[file_path] = graph
            self._merged = None
            self._write(file_path, graph)
            logger.info(f"Stored rule graph in {file_path}")

    async def get_rule(self, identifier: str) -> Graph:
        async with self._lock:
            return extract_reachable(self._merged_view(), identifier)

    async def delete_rule(self, identifier: str) -> int:
        async with self._lock:
            rule = extract_reachable(self._merged_view(), identifier)
            removed = self._remove(rule)
        logger.info(f"Deleted rule {identifier} ({removed} triples)")
        return removed

    async def remove_data(self, data: Graph) -> int:
        async with self._lock:
            return self._remove(data)

    def _remove(self, data: Graph) -> int:
        documents = self._load()
        self._merged = None
        removed = set()
        for file_path, graph in list(documents.items()):
            present = Graph()
            for triple in data:
                if triple in graph:
                    present.add(triple)
            if len(present) == 0:
                continue
            subtract(graph, present)
            removed.update(present)
            self._write(file_path, graph)
        return len(removed)
