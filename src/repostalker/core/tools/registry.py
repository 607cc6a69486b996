"""Name-keyed tool registry with error-absorbing dispatch."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from repostalker.core.metrics import TOOL_CALLS_TOTAL
from repostalker.infra.telemetry import (
    ATTR_TOOL_ERROR,
    ATTR_TOOL_NAME,
    SPAN_TOOL_DISPATCH,
    tracer,
)

from .model import RegisteredTool, ToolCallRequest, ToolContext, ToolDefinition

logger = logging.getLogger(__name__)


def _to_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _error(message: str) -> str:
    return _to_json({"error": message})


class ToolRegistry:
    """Maps tool names to handlers.

    Keys come from each definition's ``function.name``, so a definition
    and its dispatch entry can never disagree.
    """

    def __init__(self, tools: Iterable[RegisteredTool] = ()) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' registered twice")
            self._tools[tool.name] = tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    async def dispatch(self, call: ToolCallRequest, ctx: ToolContext) -> str:
        """Run *call* and return its result serialized as JSON.

        Never raises for tool-side failures: unknown names, bad arguments
        and handler exceptions all come back as ``{"error": ...}``.
        """
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool %r", call.name)
            TOOL_CALLS_TOTAL.labels(tool_name="unknown", status="unknown").inc()
            return _error(f"Unknown function: {call.name}")

        with tracer.start_as_current_span(SPAN_TOOL_DISPATCH) as span:
            span.set_attribute(ATTR_TOOL_NAME, call.name)
            try:
                if call.parse_error is not None:
                    raise ValueError(f"invalid arguments: {call.parse_error}")
                args = tool.args_model.model_validate(call.arguments)
                result = _to_json(await tool.handler(args, ctx))
            except Exception as exc:
                logger.warning("Tool %s failed: %s", call.name, exc)
                span.set_attribute(ATTR_TOOL_ERROR, str(exc))
                TOOL_CALLS_TOTAL.labels(tool_name=call.name, status="error").inc()
                return _error(f"Tool '{call.name}' failed: {exc}")

        TOOL_CALLS_TOTAL.labels(tool_name=call.name, status="ok").inc()
        logger.debug("Tool %s returned %d chars", call.name, len(result))
        return result
