"""
Storage layer for ABC Retails.

Typed entity access with optimistic concurrency, plus blob, queue and file
share helpers, over an Azure or in-memory backend.
"""

from abcretails.storage.backend import StorageBackend
from abcretails.storage.entity_store import EntityStore
from abcretails.storage.exceptions import (
    StorageError,
    ConflictError,
    StaleWriteError,
    BackendError,
    StorageInitializationError,
    InvalidUploadError,
)
from abcretails.storage.factory import create_storage_backend
from abcretails.storage.memory_backend import InMemoryStorageBackend
from abcretails.storage.models import (
    TableEntity,
    Customer,
    Product,
    Order,
    FileUpload,
    QueueMessage,
)
from abcretails.storage.naming import table_name_for
from abcretails.storage.service import StorageService

__all__ = [
    "StorageBackend",
    "EntityStore",
    "StorageError",
    "ConflictError",
    "StaleWriteError",
    "BackendError",
    "StorageInitializationError",
    "InvalidUploadError",
    "create_storage_backend",
    "InMemoryStorageBackend",
    "TableEntity",
    "Customer",
    "Product",
    "Order",
    "FileUpload",
    "QueueMessage",
    "table_name_for",
    "StorageService",
]
