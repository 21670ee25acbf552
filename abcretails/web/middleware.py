"""
Correlation ID Middleware

Extracts or generates correlation IDs and binds them to the logging context
for the duration of a request.
"""

import logging
import time
import uuid

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from abcretails.core.logging_config import (
    clear_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)
from abcretails.web.errors import create_error_response

logger = get_logger(__name__)

CORRELATION_HEADER = "x-correlation-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to handle correlation ID extraction and propagation."""

    async def dispatch(self, request: Request, call_next):
        """Process request and inject correlation ID."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path}")

        try:
            try:
                response: Response = await call_next(request)
            except Exception as e:
                # Unhandled errors get their 500 body here, while the correlation ID is still bound
                log_with_context(
                    logger, logging.ERROR,
                    f"Request failed: {request.method} {request.url.path}: {type(e).__name__}: {e}",
                    exc_info=True,
                    method=request.method,
                    path=request.url.path,
                    error_type=type(e).__name__,
                )
                response = create_error_response(
                    "InternalError",
                    "An unexpected error occurred",
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                )

            response.headers[CORRELATION_HEADER] = correlation_id

            duration_ms = (time.time() - start_time) * 1000
            log_with_context(
                logger, logging.INFO,
                f"Request completed: {request.method} {request.url.path} - "
                f"{response.status_code} ({duration_ms:.1f}ms)",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            return response
        finally:
            clear_correlation_id()
