"""OpenTelemetry bootstrap: tracing initialisation and span names.

Configures a ``TracerProvider`` with an OTLP HTTP exporter when
``TracingConfig.enabled`` is set and credentials are present.  Otherwise
the module is a no-op and ``tracer`` hands out non-recording spans.

Auto-instrumentations wired here:

- **FastAPI** (inbound HTTP spans)
- **httpx** (outbound spans: GitHub, analytics capture and, through the
  ``openai`` SDK, model calls)

Usage::

    from repostalker.infra.telemetry import SPAN_LOOP_RUN, tracer

    with tracer.start_as_current_span(SPAN_LOOP_RUN) as span:
        ...
"""

from __future__ import annotations

import base64
import logging
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.trace import format_trace_id

from repostalker.configs.system import TracingConfig

logger = logging.getLogger(__name__)

_otel_enabled = False

tracer = trace.get_tracer("repostalker")

# ---------------------------------------------------------------------------
# Span names
# ---------------------------------------------------------------------------

SPAN_RATE_LIMIT_CHECK = "ratelimit.check"
SPAN_LOOP_RUN = "loop.run"
SPAN_LOOP_MODEL_CALL = "loop.model_call"
SPAN_TOOL_DISPATCH = "tool.dispatch"
SPAN_GITHUB_REQUEST = "github.request"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_RATE_LIMIT_ALLOWED = "ratelimit.allowed"
ATTR_RATE_LIMIT_SCOPE = "ratelimit.scope"

ATTR_LOOP_MODEL = "loop.model"
ATTR_LOOP_ITERATIONS = "loop.iterations"
ATTR_LOOP_TOOL_CALLS = "loop.tool_calls"
ATTR_LOOP_FINAL_STATE = "loop.final_state"

ATTR_TOOL_NAME = "tool.name"
ATTR_TOOL_ERROR = "tool.error"

ATTR_GITHUB_PATH = "github.path"


def init_telemetry(
    app: FastAPI | None = None,
    settings: TracingConfig | None = None,
) -> None:
    """Initialise the OTEL ``TracerProvider`` and auto-instrumentations.

    Parameters
    ----------
    app:
        The FastAPI application.  Passed to the FastAPI instrumentor so
        it can attach ASGI middleware.
    settings:
        Tracing configuration.  ``None`` or ``enabled=False`` makes this
        a no-op.
    """
    global _otel_enabled  # noqa: PLW0603

    if settings is None or not settings.enabled:
        logger.info("OpenTelemetry tracing disabled.")
        return

    if not settings.endpoint or not settings.username or not settings.password:
        logger.warning(
            "Tracing enabled but endpoint/credentials not configured, "
            "skipping OpenTelemetry setup."
        )
        return

    if _otel_enabled:
        return

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    resource = Resource.create({"service.name": settings.service_name})
    sampler = ParentBased(root=TraceIdRatioBased(settings.sample_rate))
    provider = TracerProvider(resource=resource, sampler=sampler)

    credentials = f"{settings.username}:{settings.password}"
    encoded = base64.b64encode(credentials.encode()).decode()
    exporter = OTLPSpanExporter(
        endpoint=settings.endpoint,
        headers={"Authorization": f"Basic {encoded}"},
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    if app is not None:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        excluded = ",".join(settings.excluded_urls)
        FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded)

    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    HTTPXClientInstrumentor().instrument()

    _otel_enabled = True
    logger.info(
        "OpenTelemetry tracing initialised (service=%s).", settings.service_name
    )


def get_current_trace_id() -> str | None:
    """Return the active OTEL trace ID as a 32-char hex string, or ``None``."""
    ctx = trace.get_current_span().get_span_context()
    if ctx is None or not ctx.is_valid:
        return None
    return format_trace_id(ctx.trace_id)


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_telemetry() -> AsyncGenerator[None, None]:
    """Flush and shut down the tracer provider when the app stops.

    ``init_telemetry`` itself runs in the app factory because the FastAPI
    instrumentor adds middleware, which is only allowed before startup.
    """
    yield
    if not _otel_enabled:
        return
    provider = trace.get_tracer_provider()
    shutdown = getattr(provider, "shutdown", None)
    if shutdown is not None:
        shutdown()
        logger.info("OpenTelemetry tracer provider shut down.")
