"""
Exception handlers for the FastAPI application.

Domain errors (``BinevoError``) become ``{"detail", "code"}`` responses with
their own status code. Anything else is logged with an error id and
answered with a 500.
"""

import traceback
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from binevo.core.errors import BinevoError
from binevo.core.logging_config import get_logger

logger = get_logger(__name__)


async def binevo_error_handler(request: Request, exc: BinevoError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} in {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unhandled exception with its request context.

    The response carries an error id that clients can quote when reporting
    the problem; the same id is in the log record.
    """
    error_id = uuid.uuid4().hex[:12]

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BinevoError, binevo_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
