"""
Policy decision engine: request context, inference, execution, enforcement
and conflict resolution.
"""

from .context import ContextBuilder
from .reasoner import Reasoner, SparqlRuleReasoner, EyeReasoner, create_reasoner
from .executor import (
    ExecutionKind,
    ExecutionRecord,
    ExecutionAccumulator,
    Conclusion,
    PolicyPlugin,
    GrantPlugin,
    ProhibitionPlugin,
    LogPlugin,
    PluginRegistry,
    PolicyExecutor,
    default_registry,
)
from .explanation import Explanation, serialize_full_explanation
from .enforcement import UcpPatternEnforcement
from .reports import (
    ActivationState,
    AttemptState,
    RuleType,
    RuleReport,
    PolicyReport,
    parse_compliance_reports,
)
from .evaluator import ComplianceEvaluator, BasicComplianceEvaluator
from .strategy import (
    Verdict,
    ConflictResolver,
    DefaultDenyResolver,
    ProhibitionPrecedenceResolver,
    Strategy,
    PrioritizeProhibitionStrategy,
)

__all__ = [
    'ContextBuilder',
    'Reasoner',
    'SparqlRuleReasoner',
    'EyeReasoner',
    'create_reasoner',
    'ExecutionKind',
    'ExecutionRecord',
    'ExecutionAccumulator',
    'Conclusion',
    'PolicyPlugin',
    'GrantPlugin',
    'ProhibitionPlugin',
    'LogPlugin',
    'PluginRegistry',
    'PolicyExecutor',
    'default_registry',
    'Explanation',
    'serialize_full_explanation',
    'UcpPatternEnforcement',
    'ActivationState',
    'AttemptState',
    'RuleType',
    'RuleReport',
    'PolicyReport',
    'parse_compliance_reports',
    'ComplianceEvaluator',
    'BasicComplianceEvaluator',
    'Verdict',
    'ConflictResolver',
    'DefaultDenyResolver',
    'ProhibitionPrecedenceResolver',
    'Strategy',
    'PrioritizeProhibitionStrategy',
]
