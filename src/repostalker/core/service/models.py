"""Service-layer data: chat turns, per-request contexts, loop results, traces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, ConfigDict, Field

from repostalker.core.items import ItemType, RepoItem
from repostalker.core.tools import ToolCallRequest

ANONYMOUS_DISTINCT_ID = "anonymous"


class ChatTurn(BaseModel):
    """One turn of a conversation transcript.

    ``tool_call_id`` is set on tool turns only and names the assistant
    tool call the turn answers.
    """

    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant", "tool"]
    content: str
    tool_call_id: str | None = Field(default=None, alias="toolCallId")


# ---------------------------------------------------------------------------
# Per-request contexts
# ---------------------------------------------------------------------------


@dataclass
class PRChatContext:
    """Everything the PR chat needs for one user turn."""

    message: str
    history: list[ChatTurn] = field(default_factory=list)
    title: str | None = None
    context: str | None = None
    pr_url: str | None = None
    pr_number: int | None = None
    repo: str | None = None
    distinct_id: str | None = None
    chat_id: str | None = None
    model: str | None = None


@dataclass
class RepoChatContext:
    """Everything the repo chat needs for one user turn."""

    message: str
    items: list[RepoItem]
    item_type: ItemType
    summary: str | None = None
    history: list[ChatTurn] = field(default_factory=list)
    distinct_id: str | None = None
    chat_id: str | None = None
    model: str | None = None


@dataclass
class SummarizeContext:
    items: list[RepoItem]
    item_type: ItemType
    distinct_id: str | None = None
    session_id: str | None = None
    model: str | None = None


# ---------------------------------------------------------------------------
# Loop results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class LoopResult:
    """Outcome of a conversation loop that reached a final answer."""

    answer: str
    iterations: int
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    transcript: list[BaseMessage] = field(default_factory=list)

    @property
    def tool_calls_made(self) -> int:
        return len(self.tool_calls)


# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------


@dataclass
class ConversationTrace:
    """One request's LLM telemetry record; built per request, emitted once."""

    trace_id: str
    generation_id: str
    model: str
    distinct_id: str = ANONYMOUS_DISTINCT_ID
    session_id: str | None = None
    span_name: str | None = None
    input: str = ""
    output: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: int = 0
    success: bool = False
    error: str | None = None
    iterations: int = 0
    tool_calls_made: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def succeed(self, result: LoopResult, latency_ms: int) -> None:
        self.success = True
        self.output = result.answer
        self.usage = result.usage
        self.iterations = result.iterations
        self.tool_calls_made = result.tool_calls_made
        self.latency_ms = latency_ms

    def fail(self, error: Exception, latency_ms: int) -> None:
        self.success = False
        self.error = str(error)
        self.iterations = getattr(error, "iterations", self.iterations)
        self.latency_ms = latency_ms

    def to_properties(self) -> dict[str, Any]:
        """PostHog LLM-analytics properties for this trace."""
        props: dict[str, Any] = {
            "$ai_trace_id": self.trace_id,
            "$ai_generation_id": self.generation_id,
            "$ai_model": self.model,
            "$ai_input": self.input,
            "$ai_input_tokens": self.usage.input_tokens,
            "$ai_output_tokens": self.usage.output_tokens,
            "$ai_total_tokens": self.usage.total_tokens,
            "$ai_latency": self.latency_ms / 1000,
            "$ai_is_error": not self.success,
            "success": self.success,
            "iterations": self.iterations,
            "tool_calls_made": self.tool_calls_made,
        }
        if self.output is not None:
            props["$ai_output"] = self.output
        if self.error is not None:
            props["$ai_error"] = self.error
        if self.span_name:
            props["$ai_span_name"] = self.span_name
        if self.session_id:
            props["$ai_session_id"] = self.session_id
        props.update(self.extra)
        return props
