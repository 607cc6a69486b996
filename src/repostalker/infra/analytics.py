"""Fire-and-forget LLM analytics capture.

``AnalyticsEmitter.emit`` and ``capture`` schedule one ``asyncio`` task that POSTs
an event to a PostHog-compatible ``/capture/`` endpoint and returns
immediately.  The request path never awaits the task and never sees
its errors: failures are logged at warning level and dropped.

Task references are held in ``_pending`` until each task finishes, so
the event loop cannot garbage-collect an in-flight capture.  On
shutdown ``aclose`` waits up to ``shutdown_grace`` for them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Annotated, Any

import httpx
from fastapi import Depends, FastAPI, Request

from repostalker.configs.config import AppConfig, get_app_config
from repostalker.configs.system import TelemetryConfig
from repostalker.infra.lifespan import get_app

if TYPE_CHECKING:
    from repostalker.core.service.models import ConversationTrace

logger = logging.getLogger(__name__)

AI_GENERATION_EVENT = "$ai_generation"
_CAPTURE_PATH = "/capture/"


class AnalyticsEmitter:
    """Background sender for analytics events."""

    def __init__(
        self,
        config: TelemetryConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._pending: set[asyncio.Task[None]] = set()
        self._client: httpx.AsyncClient | None = None
        if self.enabled:
            self._client = httpx.AsyncClient(
                base_url=config.host,
                timeout=config.timeout.total_seconds(),
                transport=transport,
            )

    @property
    def enabled(self) -> bool:
        return self._config.enabled and bool(self._config.api_key)

    @property
    def pending(self) -> int:
        """Number of captures still in flight."""
        return len(self._pending)

    def capture(
        self,
        distinct_id: str,
        properties: dict[str, Any],
        event: str = AI_GENERATION_EVENT,
    ) -> None:
        """Schedule *event* for delivery and return without waiting."""
        if self._client is None:
            return
        payload = {
            "api_key": self._config.api_key,
            "event": event,
            "properties": {**properties, "distinct_id": distinct_id},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        task = asyncio.create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def emit(self, trace: ConversationTrace) -> None:
        """Capture a finished generation trace."""
        self.capture(trace.distinct_id, trace.to_properties())

    async def _send(self, payload: dict[str, Any]) -> None:
        if self._client is None:
            return
        try:
            response = await self._client.post(_CAPTURE_PATH, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Analytics capture failed for %s: %s", payload["event"], exc)
        except Exception:
            logger.exception("Unexpected analytics capture error")

    async def aclose(self) -> None:
        """Wait briefly for in-flight captures, then close the client."""
        if self._pending:
            _, still_pending = await asyncio.wait(
                set(self._pending),
                timeout=self._config.shutdown_grace.total_seconds(),
            )
            for task in still_pending:
                task.cancel()
            if still_pending:
                logger.info(
                    "Dropped %d analytics events on shutdown", len(still_pending)
                )
        if self._client is not None:
            await self._client.aclose()


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_analytics(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create the ``AnalyticsEmitter``, attach to ``app.state``."""
    emitter = AnalyticsEmitter(config.telemetry)
    app.state.analytics = emitter
    if emitter.enabled:
        logger.info("Analytics capture enabled (%s)", config.telemetry.host)
    else:
        logger.info("Analytics capture disabled.")
    yield
    await emitter.aclose()


def get_analytics(request: Request) -> AnalyticsEmitter:
    """Return the ``AnalyticsEmitter`` stored on ``app.state``."""
    return request.app.state.analytics
