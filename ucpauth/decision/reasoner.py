"""
Inference adapters: `(facts, rules) -> derived facts`.

Each call is independent. Engines keep no state between calls and only
ever add facts.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import List, Optional

from rdflib import Graph
from rdflib.plugins.sparql import prepareQuery

from ..errors import InferenceError

logger = logging.getLogger(__name__)


class Reasoner(ABC):
    """Monotonic forward-chaining reasoner."""

    @abstractmethod
    async def reason(self, facts: List[Graph], rules: List[str]) -> Graph:
        """
        Apply rules to facts.

        Args:
            facts: Fact graphs; they are not modified
            rules: Rule texts in the engine's language

        Returns:
            Graph holding only the derived triples

        Raises:
            InferenceError: If the engine fails or a rule text is malformed
        """
        pass


class SparqlRuleReasoner(Reasoner):
    """
    In-process engine treating each rule as a SPARQL CONSTRUCT query.

    All rules are applied repeatedly until no new triple appears. Rules
    must produce stable node identifiers (no blank nodes in the template),
    otherwise no fixpoint is reached and the evaluation fails after
    `max_iterations` rounds. Evaluation runs in a worker thread.
    """

    def __init__(self, max_iterations: int = 16):
        self.max_iterations = max_iterations

    def _prepare(self, rules: List[str]):
        queries = []
        for index, text in enumerate(rules):
            try:
                query = prepareQuery(text)
            except Exception as e:
                raise InferenceError(f"Rule {index} is not a valid SPARQL query: {e}", cause=e)
            if query.algebra.name != "ConstructQuery":
                raise InferenceError(f"Rule {index} is not a CONSTRUCT query")
            queries.append(query)
        return queries

    async def reason(self, facts: List[Graph], rules: List[str]) -> Graph:
        queries = self._prepare(rules)
        return await asyncio.to_thread(self._fixpoint, facts, queries)

    def _fixpoint(self, facts: List[Graph], queries) -> Graph:
        data = Graph()
        for graph in facts:
            for triple in graph:
                data.add(triple)
        derived = Graph()

        for iteration in range(1, self.max_iterations + 1):
            added = 0
            for query in queries:
                try:
                    result = data.query(query)
                except Exception as e:
                    raise InferenceError(f"Rule evaluation failed: {e}", cause=e)
                for triple in list(result):
                    if triple not in data:
                        data.add(triple)
                        derived.add(triple)
                        added += 1
            logger.debug(f"Inference round {iteration} derived {added} triples")
            if added == 0:
                return derived

        raise InferenceError(f"No fixpoint reached after {self.max_iterations} rounds")


class EyeReasoner(Reasoner):
    """
    Runs the external `eye` N3 reasoner once per call.

    Facts and rules are written to a temporary directory and only the newly
    derived triples are read back from standard output.
    """

    def __init__(self, eye_path: str = "eye", args: Optional[List[str]] = None, timeout: Optional[float] = None):
        self.eye_path = eye_path
        self.args = args if args is not None else ["--quiet", "--nope", "--pass-only-new"]
        self.timeout = timeout

    async def reason(self, facts: List[Graph], rules: List[str]) -> Graph:
        with tempfile.TemporaryDirectory(prefix="ucp-eye-") as workdir:
            inputs = []
            for index, graph in enumerate(facts):
                path = os.path.join(workdir, f"facts-{index}.n3")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(graph.serialize(format="n3"))
                inputs.append(path)
            for index, text in enumerate(rules):
                path = os.path.join(workdir, f"rules-{index}.n3")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(text)
                inputs.append(path)

            try:
                process = await asyncio.create_subprocess_exec(
                    self.eye_path, *self.args, *inputs,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise InferenceError(f"Unable to start reasoner {self.eye_path}: {e}", retryable=True, cause=e)

            if self.timeout:
                try:
                    stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
                except asyncio.TimeoutError as e:
                    process.kill()
                    await process.wait()
                    raise InferenceError("Reasoner timed out", retryable=True, cause=e)
            else:
                stdout, stderr = await process.communicate()

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise InferenceError(f"Reasoner exited with status {process.returncode}: {message}")

        derived = Graph()
        try:
            derived.parse(data=stdout.decode("utf-8"), format="n3")
        except Exception as e:
            raise InferenceError(f"Unable to parse reasoner output: {e}", cause=e)
        return derived


def create_reasoner(config) -> Reasoner:
    """Create the reasoner named in a DecisionConfig"""
    if config.reasoner == "eye":
        return EyeReasoner(config.eye_path, config.eye_args)
    return SparqlRuleReasoner(config.max_iterations)
