"""Pydantic models for the HTTP API.

Request bodies use the browser's camelCase keys (``distinctId``,
``prUrl``); snake_case names are accepted too.  Items keep GitHub's own
snake_case field names.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from repostalker.core.items import ItemType, RepoItem
from repostalker.core.service.models import ChatTurn

# Longest user message accepted by the chat endpoints
CHAT_MESSAGE_MAX_LENGTH = 4000


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoryMessage(BaseModel):
    """A prior conversation turn supplied by the caller."""

    role: Literal["user", "assistant"] = Field(description="Message sender role")
    content: str = Field(description="Message content")

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role=self.role, content=self.content)


class _ChatRequest(_CamelModel):
    message: str = Field(
        min_length=1,
        max_length=CHAT_MESSAGE_MAX_LENGTH,
        description="The new user message",
    )
    history: list[HistoryMessage] = Field(
        default_factory=list, description="Previous turns, oldest first"
    )
    distinct_id: str | None = Field(default=None, description="Analytics user id")
    chat_id: str | None = Field(default=None, description="Client chat session id")
    model: str | None = Field(default=None, description="Requested model id")

    def turns(self) -> list[ChatTurn]:
        return [message.to_turn() for message in self.history]


class PRChatRequest(_ChatRequest):
    """Body of ``POST /api/v1/chat-with-pr``."""

    context: str | None = Field(default=None, description="PR / issue description")
    title: str | None = Field(default=None, description="PR / issue title")
    pr_url: str | None = Field(default=None, description="HTML URL of the PR")
    pr_number: int | None = Field(default=None, description="PR number")
    repo_full_name: str | None = Field(default=None, description="owner/name")


class RepoChatRequest(_ChatRequest):
    """Body of ``POST /api/v1/chat-with-repo``."""

    items: list[RepoItem] = Field(default_factory=list)
    item_type: ItemType = Field(alias="type", description="pr or issue")
    summary: str | None = Field(default=None, description="Summary shown to the user")


class SummarizeRequest(_CamelModel):
    """Body of ``POST /api/v1/summarize-items``."""

    items: list[RepoItem] = Field(default_factory=list)
    item_type: ItemType = Field(alias="type", description="pr or issue")
    distinct_id: str | None = None
    session_id: str | None = None
    model: str | None = None


class ChatResponse(BaseModel):
    response: str = Field(description="The assistant's answer")


class SummaryResponse(BaseModel):
    summary: str = Field(description="3-5 sentence summary of the items")


class ErrorResponse(BaseModel):
    error: str = Field(description="Human-readable error message")


class RateLimitUsage(BaseModel):
    """Current counts in the active rate-limit buckets."""

    client_usage: int | None = None
    hourly_usage: int
    daily_usage: int
    limits: dict[str, Any]
