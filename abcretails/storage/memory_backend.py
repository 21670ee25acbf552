"""
In-Memory Storage Backend.

Process-local implementation of the storage primitives with async-safe
operations. Mirrors the Azure semantics the application relies on: weak
ETags regenerated on every write, conditional replace, create-if-absent
provisioning and visibility-timeout queues with pop receipts.
"""

import asyncio
import copy
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from .backend import StorageBackend
from .exceptions import (
    BlobNotFoundError,
    ContainerNotFoundError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ETagMismatchError,
    FileNotFoundInShareError,
    InvalidPopReceiptError,
    MessageNotFoundError,
    QueueNotFoundError,
    ShareNotFoundError,
    TableNotFoundError,
)
from .models import EntityMetadata, QueueMessage

DEFAULT_VISIBILITY_TIMEOUT = 30


def generate_etag(timestamp: datetime) -> str:
    """
    Generate an ETag in the Azure Table format.

    Azure format: W/"datetime'2025-12-04T10%3A30%3A00.123456Z'"
    """
    ts_str = timestamp.isoformat(timespec='microseconds').replace('+00:00', 'Z')
    ts_str = ts_str.replace(':', '%3A')
    return f'W/"datetime\'{ts_str}\'"'


@dataclass
class _StoredEntity:
    properties: Dict[str, Any]
    timestamp: datetime
    etag: str

    def to_record(self) -> Dict[str, Any]:
        record = copy.deepcopy(self.properties)
        record["Timestamp"] = self.timestamp
        record["odata.etag"] = self.etag
        return record


@dataclass
class _StoredBlob:
    data: bytes
    content_type: Optional[str]
    last_modified: datetime


@dataclass
class _StoredMessage:
    message_id: str
    content: str
    pop_receipt: str
    dequeue_count: int
    visible_at: datetime


class InMemoryStorageBackend(StorageBackend):
    """
    In-memory backend for tables, blobs, queues and file shares.

    All state lives in dicts guarded by one asyncio lock.
    """

    def __init__(self, account_name: str = "devstoreaccount1"):
        """Initialize the backend with empty storage."""
        self.account_name = account_name
        self._tables: Dict[str, str] = {}  # lower-cased name -> name as created
        # table_name -> {(partition_key, row_key): _StoredEntity}
        self._entities: Dict[str, Dict[Tuple[str, str], _StoredEntity]] = defaultdict(dict)
        self._containers: Dict[str, bool] = {}  # container_name -> public access
        self._blobs: Dict[str, Dict[str, _StoredBlob]] = {}
        self._queues: Dict[str, List[_StoredMessage]] = {}
        # share_name -> {directory_name -> {file_name -> data}}
        self._shares: Dict[str, Dict[str, Dict[str, bytes]]] = {}
        self._last_timestamp: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def reset(self) -> None:
        """Drop every table, container, queue and share."""
        async with self._lock:
            self._tables.clear()
            self._entities.clear()
            self._containers.clear()
            self._blobs.clear()
            self._queues.clear()
            self._shares.clear()

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so that two writes never share an ETag
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _find_table_key(self, table_name: str) -> Optional[str]:
        """Find table key with case-insensitive comparison."""
        return self._tables.get(table_name.lower())

    def _require_table(self, table_name: str) -> str:
        existing_key = self._find_table_key(table_name)
        if existing_key is None:
            raise TableNotFoundError(f"Table '{table_name}' not found")
        return existing_key

    # Tables

    async def create_table_if_not_exists(self, table_name: str) -> None:
        async with self._lock:
            if self._find_table_key(table_name) is None:
                self._tables[table_name.lower()] = table_name
                self._entities[table_name] = {}

    async def list_tables(self) -> List[str]:
        async with self._lock:
            return sorted(self._tables.values())

    async def query_entities(self, table_name: str) -> AsyncIterator[Dict[str, Any]]:
        async with self._lock:
            existing_key = self._require_table(table_name)
            table = self._entities[existing_key]
            snapshot = [table[key].to_record() for key in sorted(table.keys())]

        for record in snapshot:
            yield record

    async def get_entity(self, table_name: str, partition_key: str, row_key: str) -> Dict[str, Any]:
        async with self._lock:
            existing_key = self._require_table(table_name)

            key = (partition_key, row_key)
            if key not in self._entities[existing_key]:
                raise EntityNotFoundError(
                    f"Entity with PartitionKey '{partition_key}' "
                    f"and RowKey '{row_key}' not found"
                )

            return self._entities[existing_key][key].to_record()

    async def insert_entity(self, table_name: str, record: Dict[str, Any]) -> EntityMetadata:
        async with self._lock:
            existing_key = self._require_table(table_name)

            key = (record["PartitionKey"], record["RowKey"])
            if key in self._entities[existing_key]:
                raise EntityAlreadyExistsError(
                    f"Entity with PartitionKey '{key[0]}' "
                    f"and RowKey '{key[1]}' already exists"
                )

            timestamp = self._next_timestamp()
            stored = _StoredEntity(
                properties=copy.deepcopy(record),
                timestamp=timestamp,
                etag=generate_etag(timestamp),
            )
            self._entities[existing_key][key] = stored
            return EntityMetadata(etag=stored.etag, timestamp=timestamp)

    async def replace_entity(
        self,
        table_name: str,
        record: Dict[str, Any],
        if_match: str,
    ) -> EntityMetadata:
        async with self._lock:
            existing_key = self._require_table(table_name)

            key = (record["PartitionKey"], record["RowKey"])
            if key not in self._entities[existing_key]:
                raise EntityNotFoundError(
                    f"Entity with PartitionKey '{key[0]}' "
                    f"and RowKey '{key[1]}' not found"
                )

            existing_entity = self._entities[existing_key][key]
            if if_match != "*" and existing_entity.etag != if_match:
                raise ETagMismatchError(
                    f"ETag mismatch: expected '{if_match}', got '{existing_entity.etag}'"
                )

            timestamp = self._next_timestamp()
            stored = _StoredEntity(
                properties=copy.deepcopy(record),
                timestamp=timestamp,
                etag=generate_etag(timestamp),
            )
            self._entities[existing_key][key] = stored
            return EntityMetadata(etag=stored.etag, timestamp=timestamp)

    async def delete_entity(self, table_name: str, partition_key: str, row_key: str) -> None:
        async with self._lock:
            existing_key = self._find_table_key(table_name)
            if existing_key is not None:
                self._entities[existing_key].pop((partition_key, row_key), None)

    # Blobs

    def blob_url(self, container_name: str, blob_name: str) -> str:
        return f"memory://{self.account_name}/{container_name}/{blob_name}"

    async def create_container_if_not_exists(self, container_name: str, public_access: bool = False) -> None:
        async with self._lock:
            if container_name not in self._containers:
                self._containers[container_name] = public_access
                self._blobs[container_name] = {}

    async def is_public_container(self, container_name: str) -> bool:
        async with self._lock:
            if container_name not in self._containers:
                raise ContainerNotFoundError(f"Container '{container_name}' not found")
            return self._containers[container_name]

    async def upload_blob(
        self,
        container_name: str,
        blob_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        async with self._lock:
            if container_name not in self._containers:
                raise ContainerNotFoundError(f"Container '{container_name}' not found")

            self._blobs[container_name][blob_name] = _StoredBlob(
                data=bytes(data),
                content_type=content_type,
                last_modified=datetime.now(timezone.utc),
            )
            return self.blob_url(container_name, blob_name)

    async def download_blob(self, container_name: str, blob_name: str) -> bytes:
        async with self._lock:
            if container_name not in self._containers:
                raise ContainerNotFoundError(f"Container '{container_name}' not found")
            blob = self._blobs[container_name].get(blob_name)
            if blob is None:
                raise BlobNotFoundError(f"Blob '{blob_name}' not found in container '{container_name}'")
            return blob.data

    async def delete_blob_if_exists(self, container_name: str, blob_name: str) -> bool:
        async with self._lock:
            blobs = self._blobs.get(container_name)
            if blobs is None or blob_name not in blobs:
                return False
            del blobs[blob_name]
            return True

    # Queues

    async def create_queue_if_not_exists(self, queue_name: str) -> None:
        async with self._lock:
            self._queues.setdefault(queue_name, [])

    async def send_message(self, queue_name: str, content: str) -> None:
        async with self._lock:
            if queue_name not in self._queues:
                raise QueueNotFoundError(f"Queue '{queue_name}' not found")

            self._queues[queue_name].append(_StoredMessage(
                message_id=str(uuid.uuid4()),
                content=content,
                pop_receipt="",
                dequeue_count=0,
                visible_at=datetime.now(timezone.utc),
            ))

    async def receive_message(
        self,
        queue_name: str,
        visibility_timeout: Optional[int] = None,
    ) -> Optional[QueueMessage]:
        if visibility_timeout is None:
            visibility_timeout = DEFAULT_VISIBILITY_TIMEOUT

        async with self._lock:
            if queue_name not in self._queues:
                raise QueueNotFoundError(f"Queue '{queue_name}' not found")

            now = datetime.now(timezone.utc)
            for message in self._queues[queue_name]:
                if message.visible_at <= now:
                    message.dequeue_count += 1
                    message.pop_receipt = str(uuid.uuid4())
                    message.visible_at = now + timedelta(seconds=visibility_timeout)
                    return QueueMessage(
                        message_id=message.message_id,
                        pop_receipt=message.pop_receipt,
                        content=message.content,
                        dequeue_count=message.dequeue_count,
                    )
            return None

    async def delete_message(self, queue_name: str, message_id: str, pop_receipt: str) -> None:
        async with self._lock:
            if queue_name not in self._queues:
                raise QueueNotFoundError(f"Queue '{queue_name}' not found")

            messages = self._queues[queue_name]
            message = next((m for m in messages if m.message_id == message_id), None)
            if message is None:
                raise MessageNotFoundError(f"Message '{message_id}' not found")

            if message.pop_receipt != pop_receipt:
                raise InvalidPopReceiptError("Invalid pop receipt")

            messages.remove(message)

    async def approximate_message_count(self, queue_name: str) -> int:
        async with self._lock:
            if queue_name not in self._queues:
                raise QueueNotFoundError(f"Queue '{queue_name}' not found")
            return len(self._queues[queue_name])

    # File shares

    async def create_share_if_not_exists(self, share_name: str) -> None:
        async with self._lock:
            self._shares.setdefault(share_name, {"": {}})

    async def create_directory_if_not_exists(self, share_name: str, directory_name: str) -> None:
        async with self._lock:
            if share_name not in self._shares:
                raise ShareNotFoundError(f"Share '{share_name}' not found")
            self._shares[share_name].setdefault(directory_name, {})

    async def upload_file(self, share_name: str, directory_name: str, file_name: str, data: bytes) -> None:
        async with self._lock:
            if share_name not in self._shares:
                raise ShareNotFoundError(f"Share '{share_name}' not found")
            directory = self._shares[share_name].get(directory_name)
            if directory is None:
                raise ShareNotFoundError(
                    f"Directory '{directory_name}' not found in share '{share_name}'"
                )
            directory[file_name] = bytes(data)

    async def download_file(self, share_name: str, directory_name: str, file_name: str) -> bytes:
        async with self._lock:
            directory = self._shares.get(share_name, {}).get(directory_name, {})
            if file_name not in directory:
                raise FileNotFoundInShareError(
                    f"File '{file_name}' not found in share '{share_name}'"
                )
            return directory[file_name]
