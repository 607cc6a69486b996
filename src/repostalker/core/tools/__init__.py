from .model import (
    FunctionDefinition,
    ParametersDefinition,
    PropertyDefinition,
    RegisteredTool,
    ToolCallRequest,
    ToolContext,
    ToolDefinition,
)
from .pr_tools import build_pr_tools
from .registry import ToolRegistry
from .repo_tools import build_repo_tools

__all__ = [
    "FunctionDefinition",
    "ParametersDefinition",
    "PropertyDefinition",
    "RegisteredTool",
    "ToolCallRequest",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "build_pr_tools",
    "build_repo_tools",
]
