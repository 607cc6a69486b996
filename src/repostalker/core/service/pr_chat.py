"""Conversation about a single pull request or issue."""

from __future__ import annotations

from repostalker.core.items import pr_number_from_url, repo_slug_from_url
from repostalker.core.tools import ToolContext, build_pr_tools

from .base import BaseChatService
from .models import PRChatContext
from .prompt import build_pr_system_prompt


class PRChatService(BaseChatService):
    """Answers questions about one PR.

    The GitHub tools are bound only when the repository, the PR number
    and a GitHub client are all available; otherwise the model works
    from the title and description alone.
    """

    service_name = "pr_chat"

    async def chat(self, ctx: PRChatContext) -> str:
        model_id, model = self._select_model(ctx.model)

        repo = ctx.repo or repo_slug_from_url(ctx.pr_url)
        pr_number = ctx.pr_number or pr_number_from_url(ctx.pr_url)
        with_tools = (
            repo is not None and pr_number is not None and self._github is not None
        )

        tool_ctx = ToolContext(
            repo=repo,
            pr_number=pr_number,
            github=self._github,
            limits=self._config.chat,
        )
        loop = self._loop(
            model, model_id, build_pr_tools() if with_tools else None, tool_ctx
        )
        system_prompt = build_pr_system_prompt(
            ctx.title,
            ctx.context,
            repo=repo,
            pr_number=pr_number,
            with_tools=with_tools,
        )
        trace = self._new_trace(
            model_id=model_id,
            distinct_id=ctx.distinct_id,
            input_text=ctx.message,
            session_id=ctx.chat_id,
            extra={
                "pr_title": ctx.title,
                "conversation_length": len(ctx.history) + 1,
                "chat_id": ctx.chat_id,
            },
        )
        result = await self._run_traced(
            loop, trace, system_prompt, ctx.history, ctx.message
        )
        return result.answer
