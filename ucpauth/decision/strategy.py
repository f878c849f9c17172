"""
Conflict resolution over compliance reports.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rdflib import Graph

from .reports import PolicyReport, RuleType

logger = logging.getLogger(__name__)


@dataclass
class Verdict:
    """Allow/deny outcome with the rules that decided it."""
    allowed: bool
    reason: str
    rules: List[str] = field(default_factory=list)
    policies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowed': self.allowed,
            'reason': self.reason,
            'rules': list(self.rules),
            'policies': list(self.policies),
        }


def _active(reports: List[PolicyReport], rule_type: RuleType):
    for report in reports:
        for rule_report in report.rule_reports:
            if rule_report.type == rule_type and rule_report.active:
                yield report, rule_report


def _verdict(allowed: bool, reason: str, matches) -> Verdict:
    matches = list(matches)
    return Verdict(
        allowed=allowed,
        reason=reason,
        rules=sorted({rule.rule for _, rule in matches}),
        policies=sorted({report.policy for report, _ in matches}),
    )


class ConflictResolver(ABC):
    """A single resolution primitive."""

    @abstractmethod
    def resolve(self, reports: List[PolicyReport]) -> Verdict:
        pass


class DefaultDenyResolver(ConflictResolver):
    """Allow only when some permission is active."""

    def resolve(self, reports: List[PolicyReport]) -> Verdict:
        permissions = list(_active(reports, RuleType.PERMISSION))
        if permissions:
            return _verdict(True, "active permission", permissions)
        return Verdict(False, "no active permission")


class ProhibitionPrecedenceResolver(ConflictResolver):
    """Any active prohibition denies; otherwise defer to the wrapped resolver."""

    def __init__(self, inner: ConflictResolver):
        self.inner = inner

    def resolve(self, reports: List[PolicyReport]) -> Verdict:
        prohibitions = list(_active(reports, RuleType.PROHIBITION))
        if prohibitions:
            return _verdict(False, "active prohibition", prohibitions)
        return self.inner.resolve(reports)


class Strategy(ABC):
    """Reduces the compliance reports of a request to one verdict."""

    @abstractmethod
    def evaluate(self, request: str, policies: Graph, reports: List[PolicyReport]) -> Verdict:
        """
        Args:
            request: Identifier of the evaluated request
            policies: The policies the reports were computed from
            reports: Compliance reports, possibly for other requests as well
        """
        pass


class PrioritizeProhibitionStrategy(Strategy):
    """
    Prohibitions override permissions across all reports of a request;
    without an active permission the request is denied.
    """

    def __init__(self, resolver: Optional[ConflictResolver] = None):
        self.resolver = resolver or ProhibitionPrecedenceResolver(DefaultDenyResolver())

    def evaluate(self, request: str, policies: Graph, reports: List[PolicyReport]) -> Verdict:
        relevant = [r for r in reports if r.request == request]
        if len(relevant) < len(reports):
            logger.debug(f"Ignoring {len(reports) - len(relevant)} reports for other requests")
        if not relevant:
            return Verdict(False, "no report for request")
        verdict = self.resolver.resolve(relevant)
        logger.debug(f"Verdict for {request}: {verdict.reason}")
        return verdict
