"""Global exception handlers: translate domain errors to HTTP responses.

Every ``ScmDiffError`` is answered with the status of its closest mapped
base class and the ``{"status": "error", "message": "..."}`` envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scm_diff.domain.exceptions import (
    ConfigurationError,
    DownloadFailureError,
    HostNotFoundError,
    InvalidInputError,
    MalformedUpstreamResponseError,
    ScmDiffError,
    TokenNotSetError,
    UnrecognizedPageError,
    UpstreamHttpError,
)

logger = logging.getLogger(__name__)

STATUS_BY_EXCEPTION: dict[type[ScmDiffError], int] = {
    InvalidInputError: 422,
    UnrecognizedPageError: 422,
    ConfigurationError: 400,
    HostNotFoundError: 404,
    TokenNotSetError: 401,
    UpstreamHttpError: 502,
    MalformedUpstreamResponseError: 502,
    DownloadFailureError: 500,
}


def status_for(exc: ScmDiffError) -> int:
    """HTTP status of the most specific mapped class in ``type(exc).__mro__``."""
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_EXCEPTION:
            return STATUS_BY_EXCEPTION[cls]
    return 500


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application."""

    @app.exception_handler(ScmDiffError)
    async def domain_handler(request: Request, exc: ScmDiffError) -> JSONResponse:
        status_code = status_for(exc)
        if isinstance(exc, UpstreamHttpError) and exc.status_code:
            logger.warning(
                "%s %s: upstream HTTP %d (%s): %s",
                request.method,
                request.url.path,
                exc.status_code,
                exc.context,
                exc,
            )
        else:
            logger.warning("%s %s: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return _envelope(status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid value')}"
            for err in exc.errors()
        ]
        return _envelope(422, "; ".join(messages))

    @app.exception_handler(Exception)
    async def unexpected_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _envelope(500, "An unexpected error occurred.")
