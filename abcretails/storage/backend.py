"""
Abstract Storage Backend Interface.

Defines the contract every storage backend fulfils: the table, blob, queue
and file-share primitives the application builds on. Implementations raise
the BackendError subclasses from abcretails.storage.exceptions for the cases
documented here and let anything else propagate.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

from .models import EntityMetadata, QueueMessage


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Entity records are plain dicts. Records returned by the backend carry
    "Timestamp" and "odata.etag" alongside the stored properties.
    """

    # Tables

    @abstractmethod
    async def create_table_if_not_exists(self, table_name: str) -> None:
        """Create a table unless it already exists."""
        pass

    @abstractmethod
    def query_entities(self, table_name: str) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream every entity in a table.

        Raises:
            TableNotFoundError: If table not found
        """
        pass

    @abstractmethod
    async def get_entity(self, table_name: str, partition_key: str, row_key: str) -> Dict[str, Any]:
        """
        Get an entity by partition and row keys.

        Raises:
            EntityNotFoundError: If entity not found
        """
        pass

    @abstractmethod
    async def insert_entity(self, table_name: str, record: Dict[str, Any]) -> EntityMetadata:
        """
        Insert a new entity.

        Returns:
            Version tag and timestamp assigned to the stored entity

        Raises:
            EntityAlreadyExistsError: If the keys are already taken
        """
        pass

    @abstractmethod
    async def replace_entity(
        self,
        table_name: str,
        record: Dict[str, Any],
        if_match: str,
    ) -> EntityMetadata:
        """
        Replace an entity only if its current version tag equals if_match.

        Raises:
            ETagMismatchError: If the stored version tag differs
            EntityNotFoundError: If entity not found
        """
        pass

    @abstractmethod
    async def delete_entity(self, table_name: str, partition_key: str, row_key: str) -> None:
        """
        Delete an entity.

        Deleting an absent entity is a no-op, and so is deleting from a table
        that does not exist: Azure answers both with the same 404.
        """
        pass

    # Blobs

    @abstractmethod
    async def create_container_if_not_exists(self, container_name: str, public_access: bool = False) -> None:
        """Create a blob container, publicly readable when public_access is set."""
        pass

    @abstractmethod
    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Write a blob, overwriting any existing one.

        Returns:
            URL of the stored blob

        Raises:
            ContainerNotFoundError: If container not found
        """
        pass

    @abstractmethod
    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        """Delete a blob. Returns False when there was nothing to delete."""
        pass

    # Queues

    @abstractmethod
    async def create_queue_if_not_exists(self, queue_name: str) -> None:
        """Create a queue unless it already exists."""
        pass

    @abstractmethod
    async def send_message(self, queue_name: str, content: str) -> None:
        """
        Enqueue a text message.

        Raises:
            QueueNotFoundError: If queue not found
        """
        pass

    @abstractmethod
    async def receive_message(
        self,
        queue_name: str,
        visibility_timeout: Optional[int] = None,
    ) -> Optional[QueueMessage]:
        """
        Receive one message and hide it for visibility_timeout seconds.

        Returns:
            The message, or None if the queue has no visible messages
        """
        pass

    @abstractmethod
    async def delete_message(self, queue_name: str, message_id: str, pop_receipt: str) -> None:
        """
        Acknowledge a received message.

        Raises:
            MessageNotFoundError: If message not found
            InvalidPopReceiptError: If pop receipt is invalid
        """
        pass

    # File shares

    @abstractmethod
    async def create_share_if_not_exists(self, share_name: str) -> None:
        """Create a file share unless it already exists."""
        pass

    @abstractmethod
    async def create_directory_if_not_exists(self, share_name: str, directory_name: str) -> None:
        """
        Create a directory in a share. The empty name is the root directory.

        Raises:
            ShareNotFoundError: If share not found
        """
        pass

    @abstractmethod
    async def upload_file(self, share_name: str, directory_name: str, file_name: str, data: bytes) -> None:
        """
        Write a file into a share directory.

        Raises:
            ShareNotFoundError: If share or directory not found
        """
        pass

    @abstractmethod
    async def download_file(self, share_name: str, directory_name: str, file_name: str) -> bytes:
        """
        Read a whole file into memory.

        Raises:
            FileNotFoundInShareError: If the file does not exist
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the backend."""
        pass
