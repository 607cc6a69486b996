"""Bounded tool-calling conversation loop.

One user turn runs as an explicit state machine::

    BUILDING_PROMPT -> AWAITING_MODEL -> DONE
                              |  ^
                              v  |
                       DISPATCHING_TOOLS

    AWAITING_MODEL -> MAX_ITERATIONS_EXCEEDED   (call budget spent)
    AWAITING_MODEL -> FAILED                    (upstream error)

Every model call sees the whole transcript with the registry's tools
bound.  An assistant message carrying tool calls is appended verbatim,
then every call is dispatched in the order the model emitted it and
answered by one ``ToolMessage`` with the matching ``tool_call_id``,
before the model is called again.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from repostalker.core.errors import MaxIterationsExceeded, UpstreamModelError
from repostalker.core.metrics import (
    LLM_TOKENS_TOTAL,
    LOOP_DURATION_SECONDS,
    LOOP_ITERATIONS,
    LOOP_RUNS_TOTAL,
)
from repostalker.core.tools import ToolCallRequest, ToolContext, ToolRegistry
from repostalker.infra.telemetry import (
    ATTR_LOOP_FINAL_STATE,
    ATTR_LOOP_ITERATIONS,
    ATTR_LOOP_MODEL,
    ATTR_LOOP_TOOL_CALLS,
    SPAN_LOOP_MODEL_CALL,
    SPAN_LOOP_RUN,
    tracer,
)

from .models import ChatTurn, LoopResult, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5


class LoopState(StrEnum):
    BUILDING_PROMPT = "building_prompt"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"
    MAX_ITERATIONS_EXCEEDED = "max_iterations_exceeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {LoopState.DONE, LoopState.MAX_ITERATIONS_EXCEEDED, LoopState.FAILED}
)

_ALLOWED: dict[LoopState, frozenset[LoopState]] = {
    LoopState.BUILDING_PROMPT: frozenset({LoopState.AWAITING_MODEL}),
    LoopState.AWAITING_MODEL: frozenset(
        {
            LoopState.DONE,
            LoopState.DISPATCHING_TOOLS,
            LoopState.MAX_ITERATIONS_EXCEEDED,
            LoopState.FAILED,
        }
    ),
    LoopState.DISPATCHING_TOOLS: frozenset({LoopState.AWAITING_MODEL}),
}


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


def build_transcript(
    system_prompt: str, history: Sequence[ChatTurn], message: str
) -> list[BaseMessage]:
    """System prompt, then prior turns (role and content only), then *message*."""
    transcript: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in history:
        if turn.role == "user":
            transcript.append(HumanMessage(content=turn.content))
        elif turn.role == "assistant":
            transcript.append(AIMessage(content=turn.content))
        else:
            logger.debug("Dropping %s turn from caller history", turn.role)
    transcript.append(HumanMessage(content=message))
    return transcript


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def tool_calls_from(message: AIMessage) -> list[ToolCallRequest]:
    calls = [
        ToolCallRequest(id=tc.get("id") or "", name=tc["name"], arguments=tc["args"])
        for tc in message.tool_calls
    ]
    calls.extend(
        ToolCallRequest(
            id=tc.get("id") or "",
            name=tc.get("name") or "",
            parse_error=tc.get("error") or "arguments are not valid JSON",
        )
        for tc in message.invalid_tool_calls
    )
    # Restore the order the model emitted, valid and malformed calls interleaved.
    raw = message.additional_kwargs.get("tool_calls") or []
    emitted = [tc.get("id") for tc in raw if isinstance(tc, dict)]
    if message.invalid_tool_calls and emitted:
        position = {call_id: i for i, call_id in enumerate(emitted)}
        calls.sort(key=lambda call: position.get(call.id, len(position)))
    return calls


def usage_from(message: AIMessage) -> TokenUsage:
    meta: Any = message.usage_metadata
    if not meta:
        return TokenUsage()
    return TokenUsage(
        input_tokens=meta.get("input_tokens", 0),
        output_tokens=meta.get("output_tokens", 0),
        total_tokens=meta.get("total_tokens", 0),
    )


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


class ConversationLoop:
    """Runs one user turn against a chat model and a tool registry.

    A loop instance serves a single request; ``state`` exposes where it
    stopped so callers and tests can tell the terminal states apart.
    """

    def __init__(
        self,
        model: BaseChatModel,
        registry: ToolRegistry | None = None,
        ctx: ToolContext | None = None,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        model_name: str = "unknown",
        service: str = "",
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._model = model
        self._registry = registry or ToolRegistry()
        self._ctx = ctx or ToolContext()
        self._max_iterations = max_iterations
        self._model_name = model_name
        self._service = service
        self._state = LoopState.BUILDING_PROMPT

    @property
    def state(self) -> LoopState:
        return self._state

    def _transition(self, target: LoopState) -> None:
        if target not in _ALLOWED.get(self._state, frozenset()):
            raise RuntimeError(f"Illegal loop transition {self._state} -> {target}")
        logger.debug("Loop %s -> %s", self._state, target)
        self._state = target

    def _bind(self) -> Any:
        if not len(self._registry):
            return self._model
        return self._model.bind_tools(
            [definition.to_openai() for definition in self._registry.definitions]
        )

    async def _call_model(
        self, runnable: Any, transcript: list[BaseMessage]
    ) -> AIMessage:
        with tracer.start_as_current_span(SPAN_LOOP_MODEL_CALL):
            try:
                response = await runnable.ainvoke(transcript)
            except openai.APIStatusError as exc:
                logger.error(
                    "Model endpoint returned %s: %s", exc.status_code, exc.message
                )
                raise UpstreamModelError(
                    f"AI API error: {exc.status_code}", status_code=exc.status_code
                ) from exc
            except openai.APIConnectionError as exc:
                # Includes APITimeoutError.
                logger.error("Model endpoint unreachable: %s", exc)
                raise UpstreamModelError(f"AI API unreachable: {exc}") from exc
            except openai.APIError as exc:
                logger.error("Model endpoint call failed: %s", exc)
                raise UpstreamModelError(f"AI API error: {exc.message}") from exc
        if not isinstance(response, AIMessage):
            raise UpstreamModelError(
                f"Unexpected model response type {type(response).__name__}"
            )
        return response

    async def run(
        self,
        system_prompt: str,
        history: Sequence[ChatTurn],
        message: str,
    ) -> LoopResult:
        """Drive the state machine to a terminal state.

        Raises:
            UpstreamModelError: the model call failed or returned no text.
            MaxIterationsExceeded: every allowed call asked for more tools.
        """
        if self._state is not LoopState.BUILDING_PROMPT:
            raise RuntimeError("ConversationLoop instances are single-use")

        start = time.monotonic()
        transcript = build_transcript(system_prompt, history, message)
        runnable = self._bind()
        iterations = 0
        usage = TokenUsage()
        made: list[ToolCallRequest] = []
        pending: list[ToolCallRequest] = []
        answer = ""

        with tracer.start_as_current_span(SPAN_LOOP_RUN) as span:
            span.set_attribute(ATTR_LOOP_MODEL, self._model_name)
            self._transition(LoopState.AWAITING_MODEL)
            try:
                while self._state not in TERMINAL_STATES:
                    if self._state is LoopState.AWAITING_MODEL:
                        if iterations >= self._max_iterations:
                            self._transition(LoopState.MAX_ITERATIONS_EXCEEDED)
                            continue
                        iterations += 1
                        response = await self._call_model(runnable, transcript)
                        usage += usage_from(response)
                        pending = tool_calls_from(response)
                        if pending:
                            logger.info(
                                "Iteration %d: processing %d tool calls",
                                iterations,
                                len(pending),
                            )
                            transcript.append(response)
                            self._transition(LoopState.DISPATCHING_TOOLS)
                            continue
                        answer = message_text(response)
                        if not answer.strip():
                            raise UpstreamModelError("Model returned an empty response")
                        transcript.append(response)
                        self._transition(LoopState.DONE)

                    elif self._state is LoopState.DISPATCHING_TOOLS:
                        for call in pending:
                            output = await self._registry.dispatch(call, self._ctx)
                            transcript.append(
                                ToolMessage(
                                    content=output, tool_call_id=call.id, name=call.name
                                )
                            )
                            made.append(call)
                        pending = []
                        self._transition(LoopState.AWAITING_MODEL)
            except UpstreamModelError:
                self._transition(LoopState.FAILED)
                self._record(span, "upstream_error", iterations, made, start)
                raise

            if self._state is LoopState.MAX_ITERATIONS_EXCEEDED:
                self._record(span, "max_iterations", iterations, made, start)
                logger.warning(
                    "Loop hit the iteration ceiling (%d) without a final answer",
                    self._max_iterations,
                )
                raise MaxIterationsExceeded(iterations)

            self._record(span, "done", iterations, made, start)

        LLM_TOKENS_TOTAL.labels(model_name=self._model_name, direction="input").inc(
            usage.input_tokens
        )
        LLM_TOKENS_TOTAL.labels(model_name=self._model_name, direction="output").inc(
            usage.output_tokens
        )
        return LoopResult(
            answer=answer,
            iterations=iterations,
            tool_calls=made,
            usage=usage,
            transcript=transcript,
        )

    def _record(
        self,
        span: Any,
        outcome: str,
        iterations: int,
        made: list[ToolCallRequest],
        start: float,
    ) -> None:
        span.set_attribute(ATTR_LOOP_ITERATIONS, iterations)
        span.set_attribute(ATTR_LOOP_TOOL_CALLS, len(made))
        span.set_attribute(ATTR_LOOP_FINAL_STATE, str(self._state))
        LOOP_RUNS_TOTAL.labels(service=self._service, outcome=outcome).inc()
        LOOP_ITERATIONS.labels(service=self._service).observe(iterations)
        LOOP_DURATION_SECONDS.labels(service=self._service).observe(
            time.monotonic() - start
        )
