"""
Storage Service.

Application-facing facade over the storage backend: entity CRUD through the
EntityStore, plus product images, payment proofs, notification queues and
the contracts file share.
"""

from typing import List, Optional, Type, TypeVar

from abcretails.core.config_manager import StorageConfig
from abcretails.core.logging_config import get_logger

from .backend import StorageBackend
from .entity_store import EntityStore
from .exceptions import InvalidUploadError, StorageInitializationError
from .models import Customer, FileUpload, Order, Product, TableEntity
from .naming import file_extension, timestamped_file_name, unique_blob_name

logger = get_logger(__name__)

E = TypeVar("E", bound=TableEntity)

ENTITY_TYPES = (Customer, Product, Order)

MAX_IMAGE_SIZE = 5 * 1024 * 1024
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp"}


def is_valid_image_file(upload: Optional[FileUpload]) -> bool:
    """Check that an upload is a non-empty image of at most 5 MB."""
    if upload is None or upload.size == 0:
        return False

    if upload.size > MAX_IMAGE_SIZE:
        return False

    return file_extension(upload.filename).lower() in ALLOWED_IMAGE_EXTENSIONS


class StorageService:
    """
    Storage operations used by the web application.

    Args:
        backend: Storage backend to forward to
        config: Names of the containers, queues and shares to provision
    """

    def __init__(self, backend: StorageBackend, config: Optional[StorageConfig] = None):
        self._backend = backend
        self._config = config or StorageConfig(backend="memory")
        self.entities = EntityStore(backend)

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def config(self) -> StorageConfig:
        return self._config

    async def initialize_storage(self) -> None:
        """
        Provision every table, container, queue and share the application uses.

        Safe to run repeatedly.

        Raises:
            StorageInitializationError: If any provisioning call fails
        """
        containers = self._config.containers
        queues = self._config.queues
        shares = self._config.shares

        try:
            logger.info("Starting Azure Storage initialization...")

            for entity_type in ENTITY_TYPES:
                await self.entities.ensure_table(entity_type)
            logger.info("Tables created successfully")

            await self._backend.create_container_if_not_exists(containers.product_images, public_access=True)
            await self._backend.create_container_if_not_exists(containers.payment_proofs, public_access=False)
            logger.info("Blob containers created successfully")

            await self._backend.create_queue_if_not_exists(queues.order_notifications)
            await self._backend.create_queue_if_not_exists(queues.stock_updates)
            logger.info("Queues created successfully")

            await self._backend.create_share_if_not_exists(shares.contracts)
            await self._backend.create_directory_if_not_exists(shares.contracts, shares.payments_directory)
            logger.info("File shares created successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Azure Storage: {e}", exc_info=True)
            raise StorageInitializationError(f"Failed to initialize storage: {e}") from e

    # Tables

    async def get_all_entities(self, entity_type: Type[E]) -> List[E]:
        return await self.entities.get_all(entity_type)

    async def get_entity(self, entity_type: Type[E], partition_key: str, row_key: str) -> Optional[E]:
        return await self.entities.get(entity_type, partition_key, row_key)

    async def add_entity(self, entity: E) -> E:
        return await self.entities.add(entity)

    async def update_entity(self, entity: E) -> E:
        return await self.entities.update(entity)

    async def delete_entity(self, entity_type: Type[TableEntity], partition_key: str, row_key: str) -> None:
        await self.entities.delete(entity_type, partition_key, row_key)

    # Blobs

    async def upload_image(self, upload: Optional[FileUpload], container_name: str) -> Optional[str]:
        """
        Store an image under a random name in a public container.

        Returns:
            URL of the stored image, or None for an empty upload

        Raises:
            InvalidUploadError: If the file is not an accepted image
        """
        if upload is None or upload.size == 0:
            logger.warning("upload_image called with null or empty file")
            return None

        if not is_valid_image_file(upload):
            raise InvalidUploadError(
                f"'{upload.filename}' is not an accepted image "
                f"({', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}, at most {MAX_IMAGE_SIZE // (1024 * 1024)}MB)"
            )

        try:
            await self._backend.create_container_if_not_exists(container_name, public_access=True)

            blob_name = unique_blob_name(upload.filename)
            url = await self._backend.upload_blob(
                container_name, blob_name, upload.content, content_type=upload.content_type
            )

            logger.info(f"Successfully uploaded image {blob_name} to container {container_name}")
            return url
        except Exception:
            logger.error(f"Error uploading image to container {container_name}", exc_info=True)
            raise

    async def upload_file(self, upload: FileUpload, container_name: str) -> str:
        """
        Store a file under a timestamped name in a private container.

        Returns:
            Name of the stored blob
        """
        try:
            await self._backend.create_container_if_not_exists(container_name, public_access=False)

            blob_name = timestamped_file_name(upload.filename)
            await self._backend.upload_blob(
                container_name, blob_name, upload.content, content_type=upload.content_type
            )
        except Exception:
            logger.error(f"Error uploading file to container {container_name}", exc_info=True)
            raise

        logger.info(f"Uploaded file {blob_name} to container {container_name}")
        return blob_name

    async def delete_blob(self, blob_name: str, container_name: str) -> bool:
        try:
            return await self._backend.delete_blob_if_exists(container_name, blob_name)
        except Exception:
            logger.error(f"Error deleting blob {blob_name} from container {container_name}", exc_info=True)
            raise

    # Queues

    async def send_message(self, queue_name: str, message: str) -> None:
        try:
            await self._backend.create_queue_if_not_exists(queue_name)
            await self._backend.send_message(queue_name, message)
        except Exception:
            logger.error(f"Error sending message to queue {queue_name}", exc_info=True)
            raise
        logger.debug(f"Sent message to queue {queue_name}")

    async def receive_message(self, queue_name: str) -> Optional[str]:
        """
        Take one message off a queue.

        The message is deleted with its pop receipt right after it is
        received.

        Returns:
            Message text, or None if the queue is empty
        """
        try:
            await self._backend.create_queue_if_not_exists(queue_name)

            message = await self._backend.receive_message(queue_name)
            if message is None:
                return None

            await self._backend.delete_message(queue_name, message.message_id, message.pop_receipt)
        except Exception:
            logger.error(f"Error receiving message from queue {queue_name}", exc_info=True)
            raise
        return message.content

    # File shares

    async def upload_to_file_share(
        self,
        upload: FileUpload,
        share_name: str,
        directory_name: str = "",
    ) -> str:
        """
        Store a file under a timestamped name in a share directory.

        Returns:
            Name of the stored file
        """
        try:
            await self._backend.create_share_if_not_exists(share_name)
            await self._backend.create_directory_if_not_exists(share_name, directory_name)

            file_name = timestamped_file_name(upload.filename)
            await self._backend.upload_file(share_name, directory_name, file_name, upload.content)
        except Exception:
            logger.error(f"Error uploading {upload.filename} to file share {share_name}", exc_info=True)
            raise

        logger.info(f"Uploaded {file_name} to file share {share_name}/{directory_name}")
        return file_name

    async def download_from_file_share(
        self,
        share_name: str,
        file_name: str,
        directory_name: str = "",
    ) -> bytes:
        try:
            return await self._backend.download_file(share_name, directory_name, file_name)
        except Exception:
            logger.error(f"Error downloading {file_name} from file share {share_name}", exc_info=True)
            raise

    async def close(self) -> None:
        await self._backend.close()
