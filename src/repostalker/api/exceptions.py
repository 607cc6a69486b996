"""Global exception handlers.

Every error leaves the API as ``{"error": "..."}``.  Rate limiting is
the only "try again later" family (429 / 503); everything that went
wrong inside the service is a generic 500.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from repostalker.configs.system import APIConfig
from repostalker.core.errors import (
    ConfigurationError,
    MaxIterationsExceeded,
    UpstreamModelError,
)
from repostalker.core.metrics import (
    RATE_LIMIT_REJECTIONS_TOTAL,
    RATE_LIMIT_UNAVAILABLE_TOTAL,
)
from repostalker.infra.ratelimit import (
    SCOPE_CLIENT,
    SCOPE_DAY,
    SCOPE_HOUR,
    RateLimited,
    RateLimiterUnavailable,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."

_RETRY_AFTER = {SCOPE_CLIENT: "60", SCOPE_HOUR: "3600", SCOPE_DAY: "86400"}


class ApiError(Exception):
    """An error with an explicit status and a user-facing message."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=headers
    )


def register_exception_handlers(app: FastAPI, config: APIConfig) -> None:
    """Register the handlers on *app* (call from the app factory)."""

    def generic(exc: Exception) -> JSONResponse:
        message = f"{GENERIC_ERROR} ({exc})" if config.send_traceback else GENERIC_ERROR
        return error_response(500, message)

    @app.exception_handler(RateLimited)
    async def handle_rate_limited(request: Request, exc: RateLimited) -> JSONResponse:
        RATE_LIMIT_REJECTIONS_TOTAL.labels(scope=exc.scope).inc()
        return error_response(
            429, str(exc), headers={"Retry-After": _RETRY_AFTER.get(exc.scope, "60")}
        )

    @app.exception_handler(RateLimiterUnavailable)
    async def handle_limiter_unavailable(
        request: Request, exc: RateLimiterUnavailable
    ) -> JSONResponse:
        RATE_LIMIT_UNAVAILABLE_TOTAL.inc()
        return error_response(503, str(exc), headers={"Retry-After": "5"})

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = first.get("msg", "invalid value")
        return error_response(422, f"Invalid request: {location}: {detail}")

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return generic(exc)

    @app.exception_handler(UpstreamModelError)
    async def handle_upstream_error(
        request: Request, exc: UpstreamModelError
    ) -> JSONResponse:
        logger.warning(
            "Upstream model error on %s (status=%s): %s",
            request.url.path,
            exc.status_code,
            exc,
        )
        return generic(exc)

    @app.exception_handler(MaxIterationsExceeded)
    async def handle_max_iterations(
        request: Request, exc: MaxIterationsExceeded
    ) -> JSONResponse:
        logger.warning("Loop exhausted on %s: %s", request.url.path, exc)
        return generic(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return generic(exc)
