"""
Pattern enforcement: storage snapshot + request context -> reasoner -> plugins.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

import logging
from typing import List, Optional, Set, Tuple

from rdflib import Graph

from ..core.types import UconRequest
from ..storage.types import RulesStorage
from .context import ContextBuilder
from .executor import ExecutionAccumulator, PolicyExecutor
from .explanation import Explanation
from .reasoner import Reasoner

logger = logging.getLogger(__name__)


class UcpPatternEnforcement:
    """
    Answers "which access modes does this request have".

    Granted modes are the union over all grant executions, minus every
    mode named by a prohibition execution. No execution means no access.
    """

    def __init__(
        self,
        storage: RulesStorage,
        rules: List[str],
        reasoner: Reasoner,
        executor: PolicyExecutor,
        context_builder: Optional[ContextBuilder] = None,
    ):
        self.storage = storage
        self.rules = list(rules)
        self.reasoner = reasoner
        self.executor = executor
        self.context_builder = context_builder or ContextBuilder()

    async def _evaluate(self, request: UconRequest) -> Tuple[Graph, Graph, Graph, ExecutionAccumulator]:
        context = self.context_builder.build(request)
        policies = await self.storage.get_store()
        derived = await self.reasoner.reason([context, policies], self.rules)
        accumulator = await self.executor.execute(derived)
        logger.debug(
            f"Request {request.identifier}: {len(derived)} derived triples, "
            f"granted {sorted(accumulator.granted)}, prohibited {sorted(accumulator.prohibited)}"
        )
        return context, policies, derived, accumulator

    def _modes(self, request: UconRequest, accumulator: ExecutionAccumulator) -> List[str]:
        return sorted(set(self.context_builder.reverse(request, accumulator.modes)))

    async def calculate_access_modes(self, request: UconRequest) -> Set[str]:
        """
        Calculate the access modes granted to a request.

        Args:
            request: The access request

        Returns:
            The granted modes, spelled as in the request

        Raises:
            InferenceError: If the reasoner fails
            PolicyExecutionError: If a plugin fails
        """
        _, _, _, accumulator = await self._evaluate(request)
        modes = set(self._modes(request, accumulator))
        logger.info(f"Access modes for {request.subject} on {request.resource}: {sorted(modes)}")
        return modes

    async def calculate_and_explain_access_modes(self, request: UconRequest) -> Explanation:
        """Same evaluation as calculate_access_modes, keeping every input and intermediate result"""
        context, policies, derived, accumulator = await self._evaluate(request)
        return Explanation(
            request=request,
            decision=self._modes(request, accumulator),
            conclusions=list(accumulator.conclusions),
            policies=policies,
            rules=list(self.rules),
            context=context,
            derivation=derived,
        )
