"""FastAPI dependencies."""

from fastapi import Request

from abcretails.storage.service import StorageService


def get_storage_service(request: Request) -> StorageService:
    """Return the StorageService created during application start-up."""
    return request.app.state.storage
