"""FastAPI application entry point.

Run with::

    uvicorn repostalker.app:get_app --factory
"""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from repostalker.api.chat import router as chat_router
from repostalker.api.exceptions import register_exception_handlers
from repostalker.configs.config import AppConfig, get_app_config
from repostalker.core.metrics import instrument_metrics
from repostalker.infra.analytics import build_analytics
from repostalker.infra.github import build_github_client
from repostalker.infra.lifespan import inject
from repostalker.infra.logging import setup_logging
from repostalker.infra.ratelimit import build_rate_limiter
from repostalker.infra.telemetry import build_telemetry, init_telemetry

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@inject
async def lifespan(
    app: FastAPI,
    _telemetry: Annotated[None, Depends(build_telemetry)],
    _limiter: Annotated[None, Depends(build_rate_limiter)],
    _github: Annotated[None, Depends(build_github_client)],
    _analytics: Annotated[None, Depends(build_analytics)],
) -> AsyncGenerator[None, None]:
    """Every resource is a lifespan dependency that owns its teardown."""
    logger.info("RepoStalker API started")
    yield
    logger.info("RepoStalker API shutting down")


def get_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    An explicit *config* is pinned for every ``get_app_config``
    dependency, lifespan resources included.
    """
    pinned = config is not None
    config = config or get_app_config()
    setup_logging(config.logging)

    app = FastAPI(
        title="RepoStalker",
        description="LLM chat and summaries over GitHub pull requests and issues",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    if pinned:
        app.dependency_overrides[get_app_config] = lambda: config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app, config.api)
    init_telemetry(app, config.tracing)
    instrument_metrics(app, config.tracing)

    @app.get("/health", tags=["ops"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(chat_router)

    return app
