"""
Azure Storage Backend.

Forwards the storage primitives to the async Azure SDKs. Three responses are
translated into backend exceptions (404 on entity read, 409 on insert, 412 on
conditional replace); every other SDK error propagates unchanged.
"""

from typing import Any, AsyncIterator, Dict, Optional

from azure.core import MatchConditions
from azure.core.exceptions import HttpResponseError, ResourceExistsError, ResourceNotFoundError
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableServiceClient
from azure.storage.blob import ContentSettings, PublicAccess
from azure.storage.blob.aio import BlobServiceClient
from azure.storage.fileshare.aio import ShareServiceClient
from azure.storage.queue.aio import QueueServiceClient

from abcretails.core.logging_config import get_logger

from .backend import StorageBackend
from .exceptions import (
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ETagMismatchError,
    FileNotFoundInShareError,
)
from .models import EntityMetadata, QueueMessage

logger = get_logger(__name__)


def _entity_to_record(entity: Any) -> Dict[str, Any]:
    """Flatten an SDK TableEntity into a record with Timestamp and etag keys."""
    record = dict(entity)
    metadata = getattr(entity, "metadata", {}) or {}
    record["Timestamp"] = metadata.get("timestamp")
    record["odata.etag"] = metadata.get("etag", "")
    return record


def _write_metadata(response: Dict[str, Any]) -> EntityMetadata:
    return EntityMetadata(etag=response.get("etag", ""), timestamp=response.get("date"))


class AzureStorageBackend(StorageBackend):
    """
    Storage backend over one Azure Storage account.

    All four service clients are built from the same connection string and
    kept open for the lifetime of the backend.
    """

    def __init__(
        self,
        table_service: TableServiceClient,
        blob_service: BlobServiceClient,
        queue_service: QueueServiceClient,
        share_service: ShareServiceClient,
    ):
        self._table_service = table_service
        self._blob_service = blob_service
        self._queue_service = queue_service
        self._share_service = share_service

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "AzureStorageBackend":
        """Build the backend from an Azure Storage connection string."""
        return cls(
            table_service=TableServiceClient.from_connection_string(connection_string),
            blob_service=BlobServiceClient.from_connection_string(connection_string),
            queue_service=QueueServiceClient.from_connection_string(connection_string),
            share_service=ShareServiceClient.from_connection_string(connection_string),
        )

    async def close(self) -> None:
        await self._table_service.close()
        await self._blob_service.close()
        await self._queue_service.close()
        await self._share_service.close()
        logger.info("Azure storage clients closed")

    # Tables

    async def create_table_if_not_exists(self, table_name: str) -> None:
        await self._table_service.create_table_if_not_exists(table_name)

    async def query_entities(self, table_name: str) -> AsyncIterator[Dict[str, Any]]:
        table_client = self._table_service.get_table_client(table_name)
        async for entity in table_client.list_entities():
            yield _entity_to_record(entity)

    async def get_entity(self, table_name: str, partition_key: str, row_key: str) -> Dict[str, Any]:
        table_client = self._table_service.get_table_client(table_name)
        try:
            entity = await table_client.get_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError as e:
            raise EntityNotFoundError(
                f"Entity with PartitionKey '{partition_key}' "
                f"and RowKey '{row_key}' not found"
            ) from e
        return _entity_to_record(entity)

    async def insert_entity(self, table_name: str, record: Dict[str, Any]) -> EntityMetadata:
        table_client = self._table_service.get_table_client(table_name)
        try:
            response = await table_client.create_entity(entity=record)
        except ResourceExistsError as e:
            raise EntityAlreadyExistsError(
                f"Entity with PartitionKey '{record['PartitionKey']}' "
                f"and RowKey '{record['RowKey']}' already exists"
            ) from e
        return _write_metadata(response)

    async def replace_entity(
        self,
        table_name: str,
        record: Dict[str, Any],
        if_match: str,
    ) -> EntityMetadata:
        table_client = self._table_service.get_table_client(table_name)
        try:
            response = await table_client.update_entity(
                entity=record,
                mode=UpdateMode.REPLACE,
                etag=if_match,
                match_condition=MatchConditions.IfNotModified,
            )
        except HttpResponseError as e:
            if e.status_code == 412:
                raise ETagMismatchError(f"ETag mismatch: expected '{if_match}'") from e
            raise
        return _write_metadata(response)

    async def delete_entity(self, table_name: str, partition_key: str, row_key: str) -> None:
        table_client = self._table_service.get_table_client(table_name)
        try:
            await table_client.delete_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError:
            logger.debug(f"Entity {partition_key}/{row_key} already absent from {table_name}")

    # Blobs

    async def create_container_if_not_exists(self, container_name: str, public_access: bool = False) -> None:
        container_client = self._blob_service.get_container_client(container_name)
        try:
            await container_client.create_container(
                public_access=PublicAccess.BLOB if public_access else None
            )
        except ResourceExistsError:
            pass

    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        blob_client = self._blob_service.get_blob_client(container=container_name, blob=blob_name)
        content_settings = ContentSettings(content_type=content_type) if content_type else None
        await blob_client.upload_blob(data, overwrite=True, content_settings=content_settings)
        return blob_client.url

    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        blob_client = self._blob_service.get_blob_client(container=container_name, blob=blob_name)
        try:
            await blob_client.delete_blob()
        except ResourceNotFoundError:
            return False
        return True

    # Queues

    async def create_queue_if_not_exists(self, queue_name: str) -> None:
        queue_client = self._queue_service.get_queue_client(queue_name)
        try:
            await queue_client.create_queue()
        except ResourceExistsError:
            pass

    async def send_message(self, queue_name: str, content: str) -> None:
        queue_client = self._queue_service.get_queue_client(queue_name)
        await queue_client.send_message(content)

    async def receive_message(
        self,
        queue_name: str,
        visibility_timeout: Optional[int] = None,
    ) -> Optional[QueueMessage]:
        queue_client = self._queue_service.get_queue_client(queue_name)
        message = await queue_client.receive_message(visibility_timeout=visibility_timeout)
        if message is None:
            return None
        return QueueMessage(
            message_id=message.id,
            pop_receipt=message.pop_receipt,
            content=message.content,
            dequeue_count=message.dequeue_count or 1,
        )

    async def delete_message(self, queue_name: str, message_id: str, pop_receipt: str) -> None:
        queue_client = self._queue_service.get_queue_client(queue_name)
        await queue_client.delete_message(message_id, pop_receipt=pop_receipt)

    # File shares

    def _directory_client(self, share_name: str, directory_name: str):
        share_client = self._share_service.get_share_client(share_name)
        return share_client.get_directory_client(directory_name or None)

    async def create_share_if_not_exists(self, share_name: str) -> None:
        share_client = self._share_service.get_share_client(share_name)
        try:
            await share_client.create_share()
        except ResourceExistsError:
            pass

    async def create_directory_if_not_exists(self, share_name: str, directory_name: str) -> None:
        if not directory_name:
            # The root directory exists as soon as the share does
            return
        try:
            await self._directory_client(share_name, directory_name).create_directory()
        except ResourceExistsError:
            pass

    async def upload_file(self, share_name: str, directory_name: str, file_name: str, data: bytes) -> None:
        file_client = self._directory_client(share_name, directory_name).get_file_client(file_name)
        await file_client.upload_file(data)

    async def download_file(self, share_name: str, directory_name: str, file_name: str) -> bytes:
        file_client = self._directory_client(share_name, directory_name).get_file_client(file_name)
        try:
            downloader = await file_client.download_file()
        except ResourceNotFoundError as e:
            raise FileNotFoundInShareError(
                f"File '{file_name}' not found in share '{share_name}'"
            ) from e
        return await downloader.readall()
