"""
Entity Store.

Typed CRUD over partitioned tables with optimistic concurrency on updates.
Each operation is a single backend round trip; the backend's conditional
replace on the version tag is the only concurrency control.
"""

import logging
from typing import AsyncIterator, List, Optional, Type, TypeVar

from abcretails.core.logging_config import get_logger, log_with_context

from .backend import StorageBackend
from .exceptions import (
    ConflictError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ETagMismatchError,
    StaleWriteError,
)
from .models import TableEntity
from .naming import table_name_for

logger = get_logger(__name__)

E = TypeVar("E", bound=TableEntity)


class EntityStore:
    """Generic entity access over a StorageBackend."""

    def __init__(self, backend: StorageBackend):
        self._backend = backend

    async def ensure_table(self, entity_type: Type[TableEntity]) -> str:
        """Create the table for entity_type if it is absent and return its name."""
        table_name = table_name_for(entity_type)
        await self._backend.create_table_if_not_exists(table_name)
        return table_name

    async def list_all(self, entity_type: Type[E]) -> AsyncIterator[E]:
        """
        Stream every entity of entity_type.

        Each call starts a fresh query; an interrupted iteration cannot be
        resumed.
        """
        table_name = table_name_for(entity_type)
        try:
            async for record in self._backend.query_entities(table_name):
                yield entity_type.from_record(record)
        except Exception:
            log_with_context(
                logger, logging.ERROR, f"Failed to list entities from {table_name}",
                exc_info=True, table=table_name
            )
            raise

    async def get_all(self, entity_type: Type[E]) -> List[E]:
        """Collect list_all into a list."""
        return [entity async for entity in self.list_all(entity_type)]

    async def get(self, entity_type: Type[E], partition_key: str, row_key: str) -> Optional[E]:
        """
        Get an entity by keys.

        Returns:
            The entity, or None when no entity has these keys
        """
        table_name = table_name_for(entity_type)
        try:
            record = await self._backend.get_entity(table_name, partition_key, row_key)
        except EntityNotFoundError:
            return None
        except Exception:
            log_with_context(
                logger, logging.ERROR,
                f"Failed to get entity {partition_key}/{row_key} from {table_name}",
                exc_info=True, table=table_name, partition_key=partition_key, row_key=row_key
            )
            raise
        return entity_type.from_record(record)

    async def add(self, entity: E) -> E:
        """
        Insert a new entity.

        Returns:
            The same entity, now carrying the backend's version tag

        Raises:
            ConflictError: If the keys already exist in the table
        """
        table_name = table_name_for(type(entity))
        keys = {"table": table_name, "partition_key": entity.PartitionKey, "row_key": entity.RowKey}
        try:
            metadata = await self._backend.insert_entity(table_name, entity.to_record())
        except EntityAlreadyExistsError as e:
            log_with_context(
                logger, logging.WARNING,
                f"Insert rejected: {type(entity).__name__} with RowKey {entity.RowKey} "
                f"already exists in {table_name}",
                **keys
            )
            raise ConflictError(table_name, entity.PartitionKey, entity.RowKey) from e
        except Exception:
            log_with_context(
                logger, logging.ERROR,
                f"Failed to add entity {entity.PartitionKey}/{entity.RowKey} to {table_name}",
                exc_info=True, **keys
            )
            raise

        entity.apply_metadata(metadata)
        return entity

    async def update(self, entity: E) -> E:
        """
        Replace an entity if nobody else has written it since it was read.

        The entity's version tag must be the one last observed from the
        backend. Missing tags and the "*" wildcard are refused outright.

        Returns:
            The same entity, now carrying the new version tag

        Raises:
            StaleWriteError: If the version tag is missing or no longer current
        """
        table_name = table_name_for(type(entity))
        keys = {"table": table_name, "partition_key": entity.PartitionKey, "row_key": entity.RowKey}
        if not entity.etag or entity.etag == "*":
            log_with_context(
                logger, logging.WARNING,
                f"Entity update refused without a version tag for {type(entity).__name__} "
                f"with RowKey {entity.RowKey}",
                **keys
            )
            raise StaleWriteError(table_name, entity.PartitionKey, entity.RowKey)

        try:
            metadata = await self._backend.replace_entity(
                table_name, entity.to_record(), if_match=entity.etag
            )
        except ETagMismatchError as e:
            log_with_context(
                logger, logging.WARNING,
                f"Entity update failed due to ETag mismatch for {type(entity).__name__} "
                f"with RowKey {entity.RowKey}",
                etag=entity.etag, **keys
            )
            raise StaleWriteError(table_name, entity.PartitionKey, entity.RowKey) from e
        except Exception:
            log_with_context(
                logger, logging.ERROR,
                f"Failed to update entity {entity.PartitionKey}/{entity.RowKey} in {table_name}",
                exc_info=True, **keys
            )
            raise

        entity.apply_metadata(metadata)
        return entity

    async def delete(self, entity_type: Type[TableEntity], partition_key: str, row_key: str) -> None:
        """Delete an entity by keys. Absent entities are ignored."""
        table_name = table_name_for(entity_type)
        try:
            await self._backend.delete_entity(table_name, partition_key, row_key)
        except Exception:
            log_with_context(
                logger, logging.ERROR,
                f"Failed to delete entity {partition_key}/{row_key} from {table_name}",
                exc_info=True, table=table_name, partition_key=partition_key, row_key=row_key
            )
            raise
