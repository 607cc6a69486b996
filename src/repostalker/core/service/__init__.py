"""Chat services: the bounded tool-calling loop and its three surfaces."""

from .base import BaseChatService
from .deps import get_pr_chat_service, get_repo_chat_service, get_summarize_service
from .loop import TERMINAL_STATES, ConversationLoop, LoopState
from .models import (
    ChatTurn,
    ConversationTrace,
    LoopResult,
    PRChatContext,
    RepoChatContext,
    SummarizeContext,
    TokenUsage,
)
from .pr_chat import PRChatService
from .repo_chat import RepoChatService
from .summarize import SummarizeService

__all__ = [
    "TERMINAL_STATES",
    "BaseChatService",
    "ChatTurn",
    "ConversationLoop",
    "ConversationTrace",
    "LoopResult",
    "LoopState",
    "PRChatContext",
    "PRChatService",
    "RepoChatContext",
    "RepoChatService",
    "SummarizeContext",
    "SummarizeService",
    "TokenUsage",
    "get_pr_chat_service",
    "get_repo_chat_service",
    "get_summarize_service",
]
