"""Conversation about a list of pull requests or issues."""

from __future__ import annotations

from repostalker.core.items import repo_slug_from_url
from repostalker.core.tools import ToolContext, build_repo_tools

from .base import BaseChatService
from .models import RepoChatContext
from .prompt import build_repo_system_prompt


class RepoChatService(BaseChatService):
    service_name = "repo_chat"

    async def chat(self, ctx: RepoChatContext) -> str:
        model_id, model = self._select_model(ctx.model)

        items = tuple(ctx.items)
        repo = repo_slug_from_url(items[0].html_url) if items else None
        tool_ctx = ToolContext(
            items=items,
            item_type=ctx.item_type,
            repo=repo,
            github=self._github,
            limits=self._config.chat,
        )
        loop = self._loop(model, model_id, build_repo_tools(ctx.item_type), tool_ctx)
        system_prompt = build_repo_system_prompt(
            items,
            ctx.item_type,
            summary=ctx.summary,
            preview_chars=self._config.chat.description_preview_chars,
        )
        trace = self._new_trace(
            model_id=model_id,
            distinct_id=ctx.distinct_id,
            input_text=ctx.message,
            session_id=ctx.chat_id,
            extra={
                "item_type": ctx.item_type,
                "item_count": len(items),
                "conversation_length": len(ctx.history) + 1,
                "chat_id": ctx.chat_id,
            },
        )
        result = await self._run_traced(
            loop, trace, system_prompt, ctx.history, ctx.message
        )
        return result.answer
