"""
ucpauth: usage-control policy decisions and UMA grant negotiation.

ODRL policies are stored as RDF rules; requests are turned into context
graphs, reasoned over, and the resulting executions decide which access
modes are granted. An UMA-style authorization server negotiates access
tokens on top of those decisions.
"""

__version__ = "0.1.0"

from .core.config import Config
from .core.types import Permission, UconRequest
from .decision.enforcement import UcpPatternEnforcement
from .decision.explanation import Explanation
from .errors import UcpError
from .storage.types import RulesStorage
from .uma.negotiator import Negotiator

__all__ = [
    "Config",
    "Permission",
    "UconRequest",
    "UcpPatternEnforcement",
    "Explanation",
    "UcpError",
    "RulesStorage",
    "Negotiator",
]
