"""
ABC Retails FastAPI application.

Builds the app, provisions storage once during start-up and closes the
backend on shutdown. A failed bootstrap aborts start-up.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from abcretails import __version__
from abcretails.core.config_manager import AppConfig, ConfigManager
from abcretails.core.logging_config import get_logger
from abcretails.storage.backend import StorageBackend
from abcretails.storage.factory import create_storage_backend
from abcretails.storage.models import Customer, Order, Product
from abcretails.storage.service import StorageService
from abcretails.web.errors import register_exception_handlers
from abcretails.web.middleware import CorrelationMiddleware
from abcretails.web.routers import (
    contracts_router,
    create_entity_router,
    health_router,
    queues_router,
    uploads_router,
)

logger = get_logger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    backend: Optional[StorageBackend] = None,
) -> FastAPI:
    """
    Create the ABC Retails application.

    Args:
        config: Application configuration; loaded from the environment when omitted
        backend: Storage backend to use instead of the configured one

    Returns:
        FastAPI application
    """
    if config is None:
        config = ConfigManager().load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage_backend = backend or create_storage_backend(config.storage)
        service = StorageService(storage_backend, config.storage)

        try:
            await service.initialize_storage()
            app.state.storage = service
            logger.info(f"ABC Retails v{__version__} started with {config.storage.backend} storage")

            yield
        finally:
            await service.close()
            logger.info("ABC Retails stopped")

    app = FastAPI(
        title="ABC Retails",
        description="Customers, products and orders on Azure Storage",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(CorrelationMiddleware)

    app.include_router(health_router)
    app.include_router(create_entity_router(Customer, "/customers"))
    app.include_router(create_entity_router(Product, "/products"))
    app.include_router(create_entity_router(Order, "/orders"))
    app.include_router(uploads_router)
    app.include_router(contracts_router)
    app.include_router(queues_router)

    register_exception_handlers(app)

    return app
