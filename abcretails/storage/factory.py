"""
Storage Backend Factory

Creates the storage backend selected by configuration.
"""

from abcretails.core.config_manager import StorageBackendType, StorageConfig

from .azure_backend import AzureStorageBackend
from .backend import StorageBackend
from .exceptions import StorageInitializationError
from .memory_backend import InMemoryStorageBackend


def create_storage_backend(config: StorageConfig) -> StorageBackend:
    """
    Factory function to create storage backend based on configuration.

    Args:
        config: Storage configuration

    Returns:
        Storage backend instance

    Raises:
        StorageInitializationError: If the backend type is unknown
    """
    try:
        backend_type = StorageBackendType(config.backend)
    except ValueError as e:
        raise StorageInitializationError(
            f"Unknown storage backend: {config.backend}. "
            f"Supported types: {[t.value for t in StorageBackendType]}"
        ) from e

    if backend_type == StorageBackendType.MEMORY:
        return InMemoryStorageBackend()

    return AzureStorageBackend.from_connection_string(config.connection_string)
