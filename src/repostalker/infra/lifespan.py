"""Lifespan dependency injection bridge.

``inject`` lets the FastAPI lifespan declare ``Depends()`` parameters
just like a route handler.  FastAPI's own ``solve_dependencies``
resolves the graph (Redis before the rate limiter, and so on), so the
lifespan never orders its resources by hand.

Based on https://github.com/fastapi/fastapi/discussions/11742
"""

from contextlib import AsyncExitStack, asynccontextmanager
from functools import partial
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.dependencies.utils import get_dependant, solve_dependencies

_LIFESPAN_SCOPE_HEADER = (b"x-request-scope", b"lifespan")


def get_app(request: Request) -> FastAPI:
    """Lifespan dependency: the ``FastAPI`` application itself."""
    return request.app


def _lifespan_request(app: FastAPI) -> Request:
    """A synthetic request carrying *app*, used only to solve dependencies."""
    return Request(
        scope={
            "type": "http",
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/",
            "raw_path": b"/",
            "query_string": b"",
            "root_path": "",
            "headers": (_LIFESPAN_SCOPE_HEADER,),
            "client": ("localhost", 80),
            "server": ("localhost", 80),
            "state": app.state,
            "app": app,
        }
    )


def inject(
    lifespan: Callable[..., Any],
) -> Callable[[FastAPI], Any]:
    """Resolve ``Depends()`` parameters for a lifespan function.

    Usage::

        @inject
        async def lifespan(
            app: FastAPI,
            _limiter: Annotated[None, Depends(build_rate_limiter)],
        ):
            yield

    Each dependency generator owns its setup and teardown (via
    ``yield``); ``AsyncExitStack`` runs cleanups in reverse resolution
    order on shutdown.  ``app.dependency_overrides`` is respected, so
    tests can swap any lifespan dependency.
    """

    @asynccontextmanager
    async def wrapper(app: FastAPI):  # type: ignore[misc]
        dependant = get_dependant(path="/", call=partial(lifespan, app))

        async with AsyncExitStack() as stack:
            solved = await solve_dependencies(
                request=_lifespan_request(app),
                dependant=dependant,
                async_exit_stack=stack,
                embed_body_fields=False,
                dependency_overrides_provider=app,
            )
            ctx = asynccontextmanager(lifespan)
            async with ctx(app, **solved.values):
                yield

    return wrapper
