"""
FastAPI Exception Handlers

Maps storage exceptions to HTTP error responses.
"""

from http import HTTPStatus

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from abcretails.core.logging_config import get_correlation_id, get_logger
from abcretails.storage.exceptions import (
    BlobNotFoundError,
    ConflictError,
    ContainerNotFoundError,
    EntityNotFoundError,
    FileNotFoundInShareError,
    InvalidUploadError,
    QueueNotFoundError,
    ShareNotFoundError,
    StaleWriteError,
    StorageError,
)

logger = get_logger(__name__)


# Exception to HTTP status code mapping
EXCEPTION_STATUS_CODES = {
    ConflictError: status.HTTP_409_CONFLICT,
    StaleWriteError: status.HTTP_412_PRECONDITION_FAILED,
    InvalidUploadError: status.HTTP_400_BAD_REQUEST,
    EntityNotFoundError: status.HTTP_404_NOT_FOUND,
    BlobNotFoundError: status.HTTP_404_NOT_FOUND,
    ContainerNotFoundError: status.HTTP_404_NOT_FOUND,
    QueueNotFoundError: status.HTTP_404_NOT_FOUND,
    ShareNotFoundError: status.HTTP_404_NOT_FOUND,
    FileNotFoundInShareError: status.HTTP_404_NOT_FOUND,
}

ERROR_CODES = {
    ConflictError: "EntityAlreadyExists",
    StaleWriteError: "UpdateConditionNotSatisfied",
    InvalidUploadError: "InvalidInput",
}


def get_status_code_for_exception(exc: Exception) -> int:
    """
    Get HTTP status code for exception type.

    Storage errors without a specific mapping are upstream failures (502);
    anything else is a 500.
    """
    exc_type = type(exc)
    if exc_type in EXCEPTION_STATUS_CODES:
        return EXCEPTION_STATUS_CODES[exc_type]

    for exception_type, status_code in EXCEPTION_STATUS_CODES.items():
        if isinstance(exc, exception_type):
            return status_code

    if isinstance(exc, StorageError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "correlation_id": get_correlation_id(),
            }
        },
    )


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    """Handle StorageError exceptions."""
    status_code = get_status_code_for_exception(exc)
    code = ERROR_CODES.get(type(exc), type(exc).__name__)

    if status_code >= 500:
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected with {status_code}: {exc}")

    return create_error_response(code, str(exc), status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException raised by the routers in the common error envelope."""
    try:
        code = HTTPStatus(exc.status_code).phrase.replace(" ", "").replace("-", "")
    except ValueError:
        code = "HttpError"

    response = create_error_response(code, str(exc.detail), exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle anything the storage layer did not classify."""
    logger.error(
        f"Unexpected error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}",
        exc_info=exc
    )
    return create_error_response(
        "InternalError",
        "An unexpected error occurred",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app) -> None:
    """Register exception handlers with a FastAPI app."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(StorageError, storage_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
