"""Tests for tool registration and error-absorbing dispatch."""

from __future__ import annotations

import json

import pytest
from pydantic import BaseModel

from repostalker.core.tools import (
    FunctionDefinition,
    RegisteredTool,
    ToolCallRequest,
    ToolContext,
    ToolDefinition,
    ToolRegistry,
)


class EchoArgs(BaseModel):
    text: str


async def _echo(args: EchoArgs, ctx: ToolContext) -> dict[str, str]:
    return {"echo": args.text}


async def _boom(args: EchoArgs, ctx: ToolContext) -> None:
    raise RuntimeError("kaboom")


def _tool(name: str, handler=_echo) -> RegisteredTool:
    definition = ToolDefinition(function=FunctionDefinition(name=name))
    return RegisteredTool(definition, EchoArgs, handler)


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry([_tool("echo"), _tool("boom", _boom)])


class TestToolRegistry:
    def test_registration(self, registry):
        assert len(registry) == 2
        assert "echo" in registry
        assert "missing" not in registry
        assert [d.name for d in registry.definitions] == ["echo", "boom"]

    def test_duplicate_name_rejected(self):
        with pytest.raises(ValueError, match="registered twice"):
            ToolRegistry([_tool("echo"), _tool("echo")])

    @pytest.mark.asyncio
    async def test_success_is_json(self, registry):
        result = await registry.dispatch(
            ToolCallRequest(id="1", name="echo", arguments={"text": "héllo"}),
            ToolContext(),
        )
        assert json.loads(result) == {"echo": "héllo"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        result = await registry.dispatch(
            ToolCallRequest(id="1", name="nope"), ToolContext()
        )
        assert json.loads(result) == {"error": "Unknown function: nope"}

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, registry):
        result = await registry.dispatch(
            ToolCallRequest(id="1", name="echo", arguments={"text": 5, "x": 1}),
            ToolContext(),
        )
        assert json.loads(result)["error"].startswith("Tool 'echo' failed:")

    @pytest.mark.asyncio
    async def test_handler_exception(self, registry):
        result = await registry.dispatch(
            ToolCallRequest(id="1", name="boom", arguments={"text": "x"}),
            ToolContext(),
        )
        assert json.loads(result) == {"error": "Tool 'boom' failed: kaboom"}

    @pytest.mark.asyncio
    async def test_unparseable_arguments_never_run(self, registry):
        result = await registry.dispatch(
            ToolCallRequest(id="1", name="boom", parse_error="Expecting value"),
            ToolContext(),
        )
        error = json.loads(result)["error"]
        assert "invalid arguments" in error
        assert "kaboom" not in error
