"""
Interprets the execution records produced by the reasoner.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from rdflib import Graph
from rdflib.term import Node

from ..errors import PolicyExecutionError
from ..policy.vocab import (
    ACCESS_MODES_ALLOWED,
    ACCESS_MODES_PROHIBITED,
    DATA_USAGE,
    DATA_USAGE_LOG,
    DATA_USAGE_PROHIBITION,
    DCTERMS,
    EXECUTION_INTERPRETATION,
    EXECUTION_RULE,
    FNO,
    RDF,
)

logger = logging.getLogger(__name__)


class ExecutionKind(Enum):
    """Known kinds of execution records."""
    GRANT = "grant"
    PROHIBIT = "prohibit"
    LOG = "log"
    UNKNOWN = "unknown"


@dataclass
class ExecutionRecord:
    """A derived `fno:Execution` node with its arguments."""
    node: Node
    function: str
    kind: ExecutionKind
    args: Dict[str, List[Node]] = field(default_factory=dict)

    def first(self, predicate) -> Optional[Node]:
        values = self.args.get(str(predicate), [])
        return values[0] if values else None

    def values(self, predicate) -> List[str]:
        return [str(v) for v in self.args.get(str(predicate), [])]


@dataclass
class Conclusion:
    """What a single execution record contributed to the decision."""
    rule: Optional[str]
    interpretation: Optional[str]
    kind: ExecutionKind
    modes: List[str] = field(default_factory=list)
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule': self.rule,
            'interpretation': self.interpretation,
            'kind': self.kind.value,
            'grants': list(self.modes) if self.kind != ExecutionKind.PROHIBIT else [],
            'prohibits': list(self.modes) if self.kind == ExecutionKind.PROHIBIT else [],
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class ExecutionAccumulator:
    """Mutable result shared by all plugins during one evaluation."""
    granted: Set[str] = field(default_factory=set)
    prohibited: Set[str] = field(default_factory=set)
    conclusions: List[Conclusion] = field(default_factory=list)
    log: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def modes(self) -> Set[str]:
        """Granted modes not vetoed by a prohibition"""
        return self.granted - self.prohibited


def _conclusion(record: ExecutionRecord, modes: List[str]) -> Conclusion:
    issued = record.first(DCTERMS.issued)
    timestamp = None
    if issued is not None:
        value = issued.toPython()
        timestamp = value if isinstance(value, datetime) else None
    rule = record.first(EXECUTION_RULE)
    interpretation = record.first(EXECUTION_INTERPRETATION)
    return Conclusion(
        rule=str(rule) if rule is not None else None,
        interpretation=str(interpretation) if interpretation is not None else None,
        kind=record.kind,
        modes=sorted(modes),
        timestamp=timestamp,
    )


class PolicyPlugin(ABC):
    """Handler for one kind of execution record."""

    kind: ExecutionKind = ExecutionKind.UNKNOWN

    @abstractmethod
    async def execute(self, record: ExecutionRecord, derived: Graph, accumulator: ExecutionAccumulator) -> None:
        """Apply the record to the accumulator"""
        pass


class GrantPlugin(PolicyPlugin):
    """Collects the access modes allowed by a permission."""

    kind = ExecutionKind.GRANT

    async def execute(self, record, derived, accumulator):
        modes = record.values(ACCESS_MODES_ALLOWED)
        accumulator.granted.update(modes)
        accumulator.conclusions.append(_conclusion(record, modes))


class ProhibitionPlugin(PolicyPlugin):
    """Collects the access modes vetoed by a prohibition."""

    kind = ExecutionKind.PROHIBIT

    async def execute(self, record, derived, accumulator):
        modes = record.values(ACCESS_MODES_PROHIBITED)
        accumulator.prohibited.update(modes)
        accumulator.conclusions.append(_conclusion(record, modes))


class LogPlugin(PolicyPlugin):
    """Grants like GrantPlugin and also keeps a structured log entry."""

    kind = ExecutionKind.LOG

    async def execute(self, record, derived, accumulator):
        modes = record.values(ACCESS_MODES_ALLOWED)
        accumulator.granted.update(modes)
        conclusion = _conclusion(record, modes)
        accumulator.conclusions.append(conclusion)
        accumulator.log.append(conclusion.to_dict())
        logger.info(f"Rule {conclusion.rule} grants {', '.join(conclusion.modes)}")


class PluginRegistry:
    """
    Maps function identifiers to plugins.

    Registration is validated; lookups of unregistered functions resolve to
    ExecutionKind.UNKNOWN and are ignored by the executor.
    """

    def __init__(self):
        self._plugins: Dict[str, PolicyPlugin] = {}

    def register(self, function: str, plugin: PolicyPlugin) -> None:
        if not isinstance(plugin, PolicyPlugin):
            raise ValueError(f"Plugin for {function} must be a PolicyPlugin")
        if not isinstance(plugin.kind, ExecutionKind) or plugin.kind == ExecutionKind.UNKNOWN:
            raise ValueError(f"Plugin for {function} has no execution kind")
        key = str(function)
        if key in self._plugins:
            raise ValueError(f"A plugin is already registered for {function}")
        self._plugins[key] = plugin

    def get(self, function: str) -> Optional[PolicyPlugin]:
        return self._plugins.get(str(function))

    def kind_of(self, function: str) -> ExecutionKind:
        plugin = self.get(function)
        return plugin.kind if plugin else ExecutionKind.UNKNOWN

    def functions(self) -> List[str]:
        return list(self._plugins.keys())


def default_registry() -> PluginRegistry:
    """Registry with the grant, prohibition and log plugins"""
    registry = PluginRegistry()
    registry.register(DATA_USAGE, GrantPlugin())
    registry.register(DATA_USAGE_PROHIBITION, ProhibitionPlugin())
    registry.register(DATA_USAGE_LOG, LogPlugin())
    return registry


class PolicyExecutor:
    """Dispatches every execution record in a derived graph to its plugin."""

    def __init__(self, registry: PluginRegistry):
        self.registry = registry

    def records(self, derived: Graph) -> List[ExecutionRecord]:
        """Execution records of a derived graph, in a stable order"""
        records = []
        for node in sorted(set(derived.subjects(RDF.type, FNO.Execution))):
            function = derived.value(node, FNO.executes)
            if function is None:
                logger.warning(f"Execution {node} names no function")
                continue
            args: Dict[str, List[Node]] = {}
            for predicate, obj in derived.predicate_objects(node):
                if predicate in (RDF.type, FNO.executes):
                    continue
                args.setdefault(str(predicate), []).append(obj)
            for values in args.values():
                values.sort(key=lambda v: (type(v).__name__, str(v)))
            records.append(ExecutionRecord(node, str(function), self.registry.kind_of(function), args))
        return records

    async def execute(self, derived: Graph, accumulator: Optional[ExecutionAccumulator] = None) -> ExecutionAccumulator:
        """
        Run the plugins for all execution records.

        Raises:
            PolicyExecutionError: If a registered plugin fails
        """
        accumulator = accumulator if accumulator is not None else ExecutionAccumulator()
        for record in self.records(derived):
            plugin = self.registry.get(record.function)
            if plugin is None:
                logger.debug(f"No plugin registered for {record.function}, skipping")
                accumulator.skipped.append(record.function)
                continue
            try:
                await plugin.execute(record, derived, accumulator)
            except Exception as e:
                raise PolicyExecutionError(
                    f"Plugin for {record.function} failed: {e}", function=record.function, cause=e
                )
        return accumulator
