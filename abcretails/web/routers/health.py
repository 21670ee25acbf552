"""Health endpoint."""

from fastapi import APIRouter, Depends

from abcretails import __version__
from abcretails.storage.service import StorageService
from abcretails.web.dependencies import get_storage_service

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health Check")
async def health(service: StorageService = Depends(get_storage_service)) -> dict:
    return {
        "status": "healthy",
        "version": __version__,
        "storage_backend": service.config.backend,
    }
