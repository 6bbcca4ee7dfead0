"""Error Handlers: map SubRecap failures onto HTTP responses.

Invariants:
    - SubRecapError → its own http_status with the to_response() envelope
    - 503 (cache down) and upstream rate limits carry a Retry-After header in seconds
    - RequestValidationError → 400 with field-level details
    - Anything else → 500 without internals
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from subrecap.core.errors import CacheStoreError, ErrorSeverity, SubRecapError

logger = logging.getLogger(__name__)

CACHE_RETRY_AFTER_SECONDS = 5


def retry_after_seconds(exc: SubRecapError) -> int | None:
    """Seconds a client should wait before retrying, or None."""
    if exc.context.retry_after_ms is not None:
        return max(1, math.ceil(exc.context.retry_after_ms / 1000))
    if isinstance(exc, CacheStoreError):
        return CACHE_RETRY_AFTER_SECONDS
    return None


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(SubRecapError)
    async def subrecap_error_handler(request: Request, exc: SubRecapError):
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"{type(exc).__name__}: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path,
                   "user_id": exc.context.user_id, "stage": exc.context.stage},
        )
        headers = {}
        delay = retry_after_seconds(exc)
        if delay is not None:
            headers["Retry-After"] = str(delay)
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(), headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            f"Rejected request parameters: {exc.errors()}",
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request parameters",
                "category": "validation",
                "severity": ErrorSeverity.ERROR.value,
                "details": [
                    {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
                    for e in exc.errors()
                ],
            }},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {exc}",
            extra={"path": request.url.path}, exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            }},
        )
