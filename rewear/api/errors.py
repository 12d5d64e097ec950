"""
rewear.api.errors — Exception → JSON response mapping
=======================================================

Services raise :class:`~rewear.exceptions.SwapError` subclasses for every
expected outcome.  This module turns them into JSON bodies of the form
``{"type": ..., "message": ..., **context}`` using the status code each
exception class carries.  Anything else is a server fault: logged with
its traceback and answered with a generic 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from rewear.exceptions import SwapError

logger = logging.getLogger(__name__)


async def swap_error_handler(request: Request, exc: SwapError) -> JSONResponse:
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method, request.url.path, exc.error_type, exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"type": "internal_error", "message": "A database error occurred"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"type": "internal_error", "message": "An unexpected error occurred"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers above to *app*."""
    app.add_exception_handler(SwapError, swap_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
