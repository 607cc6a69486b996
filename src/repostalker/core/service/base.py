"""Base chat service with shared concerns.

Model selection, trace bookkeeping and analytics emission live here so
each concrete service only builds its prompt, tools and loop.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel

from repostalker.configs.config import AppConfig
from repostalker.core.errors import MaxIterationsExceeded, UpstreamModelError
from repostalker.core.llm import ChatModelFactory, resolve_model
from repostalker.core.tools import ToolContext, ToolRegistry
from repostalker.infra.analytics import AnalyticsEmitter
from repostalker.infra.github import GitHubClient
from repostalker.infra.id_utils import new_generation_id, new_trace_id
from repostalker.infra.telemetry import get_current_trace_id

from .loop import ConversationLoop
from .models import ANONYMOUS_DISTINCT_ID, ChatTurn, ConversationTrace, LoopResult

logger = logging.getLogger(__name__)


class BaseChatService:
    """Concrete base shared by the PR chat, repo chat and summarizer.

    Subclasses set ``service_name`` and expose one public coroutine.
    """

    service_name: str = ""

    def __init__(
        self,
        model_factory: ChatModelFactory,
        config: AppConfig,
        analytics: AnalyticsEmitter,
        github: GitHubClient | None = None,
    ) -> None:
        self._model_factory = model_factory
        self._config = config
        self._analytics = analytics
        self._github = github

    # ------------------------------------------------------------------
    # Model and loop
    # ------------------------------------------------------------------

    def _select_model(self, requested: str | None) -> tuple[str, BaseChatModel]:
        """Resolve the model id and build the model.

        Raises ``ConfigurationError`` before any model call when the
        gateway is not configured.
        """
        model_id = resolve_model(requested, self._config.llm)
        return model_id, self._model_factory(model_id)

    def _loop(
        self,
        model: BaseChatModel,
        model_id: str,
        registry: ToolRegistry | None = None,
        ctx: ToolContext | None = None,
        *,
        max_iterations: int | None = None,
    ) -> ConversationLoop:
        return ConversationLoop(
            model,
            registry,
            ctx,
            max_iterations=max_iterations or self._config.chat.max_iterations,
            model_name=model_id,
            service=self.service_name,
        )

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def _new_trace(
        self,
        *,
        model_id: str,
        distinct_id: str | None,
        input_text: str,
        session_id: str | None = None,
        span_name: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> ConversationTrace:
        return ConversationTrace(
            trace_id=get_current_trace_id() or new_trace_id(),
            generation_id=new_generation_id(),
            model=model_id,
            distinct_id=distinct_id or ANONYMOUS_DISTINCT_ID,
            session_id=session_id,
            span_name=span_name,
            input=input_text,
            extra={k: v for k, v in (extra or {}).items() if v is not None},
        )

    def _emit(self, trace: ConversationTrace) -> None:
        self._analytics.emit(trace)

    async def _run_traced(
        self,
        loop: ConversationLoop,
        trace: ConversationTrace,
        system_prompt: str,
        history: Sequence[ChatTurn],
        message: str,
    ) -> LoopResult:
        """Run *loop* and emit *trace* once, on success or failure."""
        start = time.monotonic()
        try:
            result = await loop.run(system_prompt, history, message)
        except (UpstreamModelError, MaxIterationsExceeded) as exc:
            trace.fail(exc, _elapsed_ms(start))
            self._emit(trace)
            logger.warning(
                "%s failed after %d ms (trace=%s): %s",
                self.service_name,
                trace.latency_ms,
                trace.trace_id,
                exc,
            )
            raise
        trace.succeed(result, _elapsed_ms(start))
        self._emit(trace)
        logger.info(
            "%s answered in %d ms (trace=%s, iterations=%d, tool_calls=%d)",
            self.service_name,
            trace.latency_ms,
            trace.trace_id,
            result.iterations,
            result.tool_calls_made,
        )
        return result


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
