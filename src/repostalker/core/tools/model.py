"""Tool definition models, call requests and the per-request context.

``ToolDefinition`` / ``FunctionDefinition`` mirror the OpenAI
chat-completion tool schema as Pydantic models; ``model_dump`` of a
definition is exactly what gets bound to the chat model.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from repostalker.configs.system import ChatConfig
from repostalker.core.items import ItemType, RepoItem

if TYPE_CHECKING:
    from repostalker.infra.github import GitHubClient


# ---------------------------------------------------------------------------
# JSON Schema sub-models for function parameters
# ---------------------------------------------------------------------------


class PropertyDefinition(BaseModel):
    """Single property inside a JSON Schema ``properties`` block."""

    type: str
    description: str = ""
    enum: list[str] | None = None


class ParametersDefinition(BaseModel):
    """Top-level ``parameters`` object: ``type: "object"`` plus properties."""

    type: Literal["object"] = "object"
    properties: dict[str, PropertyDefinition] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# OpenAI-compatible tool definition models
# ---------------------------------------------------------------------------


class FunctionDefinition(BaseModel):
    """Function definition nested inside a ``ToolDefinition``."""

    name: str
    description: str = ""
    parameters: ParametersDefinition = Field(
        default_factory=ParametersDefinition,
    )


class ToolDefinition(BaseModel):
    """OpenAI-compatible tool definition::

        { "type": "function", "function": { "name": ..., ... } }
    """

    type: Literal["function"] = "function"
    function: FunctionDefinition

    @property
    def name(self) -> str:
        return self.function.name

    def to_openai(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Calls and context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCallRequest:
    """One tool invocation requested by the model.

    ``parse_error`` is set when the model emitted arguments that are not
    valid JSON; such a call is answered with an error, never executed.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    parse_error: str | None = None


@dataclass(frozen=True)
class ToolContext:
    """Read-only inputs every tool handler may consult.

    Attributes:
        items: Snapshot of the items the caller supplied (repo chat).
        item_type: Whether ``items`` are pull requests or issues.
        repo: ``owner/name`` coordinates, when known.
        pr_number: Pull request number (PR chat).
        github: Client for on-demand fetches; ``None`` disables them.
        limits: Output caps and truncation budgets.
    """

    items: tuple[RepoItem, ...] = ()
    item_type: ItemType = "pr"
    repo: str | None = None
    pr_number: int | None = None
    github: GitHubClient | None = None
    limits: ChatConfig = field(default_factory=ChatConfig)


ToolHandler = Callable[[Any, ToolContext], Awaitable[Any]]


@dataclass(frozen=True)
class RegisteredTool:
    """A definition bound to its handler and argument model."""

    definition: ToolDefinition
    args_model: type[BaseModel]
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name
