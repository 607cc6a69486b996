"""Structured logging bootstrap.

Configures the root logger once, before the lifespan runs, so every
``logging.getLogger(__name__)`` in the service (and in uvicorn) writes
either JSON lines (``json_output=True``) or coloured dev lines.

While a span is active its ``trace_id`` / ``span_id`` are attached to
each record, so a log line can be matched to its trace.
"""

from __future__ import annotations

import logging
import sys

from opentelemetry import trace

from repostalker.configs.system import LoggingConfig

_DEV_FORMAT = "%(levelprefix)s %(asctime)s %(name)s  %(message)s"
_DEV_DATEFMT = "%H:%M:%S"
_JSON_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s %(span_id)s"
)

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "opentelemetry")


class TraceContextFilter(logging.Filter):
    """Adds the current OTEL trace/span ids (or empty strings) to a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = trace.get_current_span().get_span_context()
        valid = ctx is not None and ctx.is_valid
        record.trace_id = format(ctx.trace_id, "032x") if valid else ""  # type: ignore[attr-defined]
        record.span_id = format(ctx.span_id, "016x") if valid else ""  # type: ignore[attr-defined]
        return True


def _build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.json_output:
        from pythonjsonlogger.json import JsonFormatter

        return JsonFormatter(
            fmt=_JSON_FORMAT,
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
            defaults={"trace_id": "", "span_id": ""},
        )

    from uvicorn.logging import DefaultFormatter

    return DefaultFormatter(fmt=_DEV_FORMAT, datefmt=_DEV_DATEFMT, use_colors=True)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the root logger (call once at startup)."""
    config = config or LoggingConfig()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TraceContextFilter())
    handler.setFormatter(_build_formatter(config))

    root = logging.getLogger()
    root.setLevel(config.level.upper())
    root.handlers = [handler]

    for name in _UVICORN_LOGGERS:
        uvi = logging.getLogger(name)
        uvi.handlers = [handler]
        uvi.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
