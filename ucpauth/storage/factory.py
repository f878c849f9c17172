"""
Factory for creating rule storage backends.
Provides a centralized way to create and configure storage backends.
"""

from typing import Any, Dict, Optional, Type

from ..errors import ConfigurationError
from .container import ContainerRulesStorage
from .directory import DirectoryRulesStorage
from .memory import MemoryRulesStorage
from .types import RulesStorage


# Registry of available storage implementations
_STORAGE_IMPLEMENTATIONS: Dict[str, Type[RulesStorage]] = {
    'memory': MemoryRulesStorage,
    'directory': DirectoryRulesStorage,
    'container': ContainerRulesStorage,
}


class StorageFactory:
    """Factory for creating rule storage implementations."""

    @staticmethod
    def create_store(store_type: str, config: Optional[Dict[str, Any]] = None) -> RulesStorage:
        """
        Create a rule storage instance.

        Args:
            store_type: Type of storage ('memory', 'directory', 'container')
            config: Constructor arguments for the backend

        Returns:
            RulesStorage instance

        Raises:
            ConfigurationError: If store_type is not supported
        """
        implementation = _STORAGE_IMPLEMENTATIONS.get(store_type.lower())
        if not implementation:
            raise ConfigurationError(f"Unsupported storage type: {store_type}", "storage.store_type")
        return implementation(**(config or {}))

    @staticmethod
    def register_implementation(name: str, implementation: Type[RulesStorage]) -> None:
        _STORAGE_IMPLEMENTATIONS[name.lower()] = implementation

    @staticmethod
    def get_available_types() -> list:
        """Get list of available storage types."""
        return list(_STORAGE_IMPLEMENTATIONS.keys())


def create_rules_storage(config) -> RulesStorage:
    """
    Create a rule storage backend from a StorageConfig.

    Args:
        config: Storage configuration

    Returns:
        RulesStorage instance
    """
    if config.store_type == 'directory':
        if not config.path:
            raise ConfigurationError("Directory storage requires a path", "storage.path")
        return StorageFactory.create_store('directory', {'path': config.path, 'base_iri': config.base_iri})
    if config.store_type == 'container':
        if not config.container_url:
            raise ConfigurationError("Container storage requires a container_url", "storage.container_url")
        return StorageFactory.create_store('container', {'container_url': config.container_url})
    return StorageFactory.create_store(config.store_type)
