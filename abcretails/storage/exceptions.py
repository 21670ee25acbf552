"""
Storage Exceptions.

Error taxonomy for the storage layer. Only ConflictError and StaleWriteError
are produced by interpreting a backend response; every other failure is a
BackendError raised by a backend (or an SDK error) passed through unchanged.
"""


class StorageError(Exception):
    """Base exception for all storage layer errors."""

    pass


class ConflictError(StorageError):
    """Raised when inserting an entity whose keys already exist."""

    def __init__(self, table_name: str, partition_key: str, row_key: str):
        self.table_name = table_name
        self.partition_key = partition_key
        self.row_key = row_key
        super().__init__(
            f"Entity with PartitionKey '{partition_key}' and RowKey '{row_key}' "
            f"already exists in table '{table_name}'"
        )


class StaleWriteError(StorageError):
    """Raised when an update carries a version tag that is no longer current."""

    MESSAGE = "The entity was modified by another process. Please refresh and try again."

    def __init__(self, table_name: str, partition_key: str, row_key: str):
        self.table_name = table_name
        self.partition_key = partition_key
        self.row_key = row_key
        super().__init__(self.MESSAGE)


class StorageInitializationError(StorageError):
    """Raised when storage bootstrap fails during start-up."""

    pass


class InvalidUploadError(StorageError, ValueError):
    """Raised when an uploaded file is rejected before reaching storage."""

    pass


class BackendError(StorageError):
    """Base exception for failures reported by a storage backend."""

    pass


class TableNotFoundError(BackendError):
    """Raised when a table is not found."""

    pass


class EntityNotFoundError(BackendError):
    """Raised when an entity is not found."""

    pass


class EntityAlreadyExistsError(BackendError):
    """Raised when attempting to insert an entity that already exists."""

    pass


class ETagMismatchError(BackendError):
    """Raised when ETag doesn't match for optimistic concurrency."""

    pass


class ContainerNotFoundError(BackendError):
    """Raised when a blob container is not found."""

    pass


class BlobNotFoundError(BackendError):
    """Raised when a blob is not found."""

    pass


class QueueNotFoundError(BackendError):
    """Raised when queue is not found."""

    pass


class MessageNotFoundError(BackendError):
    """Raised when message is not found."""

    pass


class InvalidPopReceiptError(BackendError):
    """Raised when pop receipt is invalid."""

    pass


class ShareNotFoundError(BackendError):
    """Raised when a file share or one of its directories is not found."""

    pass


class FileNotFoundInShareError(BackendError):
    """Raised when a file is not found in a file share."""

    pass
