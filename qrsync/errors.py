import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    pass


class InvalidInputError(Exception):
    pass


class FileTooLargeError(InvalidInputError):
    pass


class StorageFailureError(Exception):
    pass


class SessionExistsError(Exception):
    pass


_STATUS_CODES = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    FileTooLargeError: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
}


async def _domain_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    code = _STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content={"error": str(exc)})


async def _storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Storage failure."}
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error."}
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_type in _STATUS_CODES:
        app.add_exception_handler(exc_type, _domain_error_handler)

    app.add_exception_handler(StorageFailureError, _storage_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
