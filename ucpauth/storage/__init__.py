"""
Rule storage backends for usage-control policies.
"""

from .types import RulesStorage
from .memory import MemoryRulesStorage
from .directory import DirectoryRulesStorage
from .container import ContainerRulesStorage, build_delete_patch
from .factory import StorageFactory, create_rules_storage
from .util import extract_reachable
from .ownership import check_assigners, owned_deletion, owned_rules, owned_view

__all__ = [
    'RulesStorage',
    'MemoryRulesStorage',
    'DirectoryRulesStorage',
    'ContainerRulesStorage',
    'build_delete_patch',
    'StorageFactory',
    'create_rules_storage',
    'extract_reachable',
    'check_assigners',
    'owned_deletion',
    'owned_rules',
    'owned_view',
]
