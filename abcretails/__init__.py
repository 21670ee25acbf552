"""
ABC Retails: Azure Storage data-access layer and web shell.

Typed, optimistic-concurrency access to Azure Table Storage plus thin
blob, queue and file-share helpers wired into a FastAPI application.
"""

__version__ = "0.1.0"
__author__ = "ABC Retails Contributors"

from .storage.entity_store import EntityStore
from .storage.service import StorageService

__all__ = ["EntityStore", "StorageService", "__version__"]
