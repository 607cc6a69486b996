"""Prometheus metrics for RepoStalker.

Business metrics that complement the auto-instrumented HTTP metrics
provided by ``prometheus-fastapi-instrumentator``.

All metrics use the ``repostalker_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from repostalker.configs.system import TracingConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Conversation loop metrics
# ---------------------------------------------------------------------------

LOOP_RUNS_TOTAL = Counter(
    "repostalker_loop_runs_total",
    "Total conversation loop runs, by surface and terminal outcome",
    ["service", "outcome"],  # done | max_iterations | upstream_error
)

LOOP_ITERATIONS = Histogram(
    "repostalker_loop_iterations",
    "Model calls made per conversation loop run",
    ["service"],
    buckets=(1, 2, 3, 4, 5, 8, 10),
)

LOOP_DURATION_SECONDS = Histogram(
    "repostalker_loop_duration_seconds",
    "Wall-clock duration of a conversation loop run",
    ["service"],
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)

LLM_TOKENS_TOTAL = Counter(
    "repostalker_llm_tokens_total",
    "Tokens reported by the model endpoint",
    ["model_name", "direction"],  # input | output
)

# ---------------------------------------------------------------------------
# Tool call metrics
# ---------------------------------------------------------------------------

TOOL_CALLS_TOTAL = Counter(
    "repostalker_tool_calls_total",
    "Total tool dispatches, by tool name and outcome",
    ["tool_name", "status"],  # ok | error | unknown
)

# ---------------------------------------------------------------------------
# Rate limit metrics
# ---------------------------------------------------------------------------

RATE_LIMIT_REJECTIONS_TOTAL = Counter(
    "repostalker_rate_limit_rejections_total",
    "Total rate-limit rejections (429 responses)",
    ["scope"],  # client | hour | day
)

RATE_LIMIT_UNAVAILABLE_TOTAL = Counter(
    "repostalker_rate_limit_unavailable_total",
    "Requests refused because the counter store was unreachable (503)",
)


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def instrument_metrics(app: FastAPI, tracing: TracingConfig) -> None:
    """Attach HTTP instrumentation and the ``/metrics`` endpoint.

    Adds middleware, so it must run in the app factory, before startup.
    """
    Instrumentator(
        should_instrument_requests_inprogress=False,
        excluded_handlers=tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint="/metrics")

    logger.info("Prometheus metrics initialised")
