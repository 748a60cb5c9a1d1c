"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from scm_diff.infrastructure.config import get_settings
from scm_diff.interface.dependencies import shutdown, startup
from scm_diff.interface.error_handlers import register_error_handlers
from scm_diff.interface.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup()
    settings = get_settings()
    logger.info(
        "Serving %d configured host(s), downloads go to %s",
        len(settings.hosts),
        settings.download_dir.resolve(),
    )
    try:
        yield
    finally:
        await shutdown()


def create_app() -> FastAPI:
    """Build the app: routes, error envelope and shared HTTP client lifecycle."""
    app = FastAPI(
        title="SCM Diff",
        version="1.0.0",
        summary="Diff modified files of GitHub, GitLab and Bitbucket commits and pull requests.",
        lifespan=_lifespan,
    )
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
