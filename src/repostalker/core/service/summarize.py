"""One-shot summary of a list of pull requests or issues."""

from __future__ import annotations

from repostalker.core.items import ItemType, item_type_label, repo_slug_from_url

from .base import BaseChatService
from .models import SummarizeContext
from .prompt import build_summary_system_prompt, build_summary_user_prompt

UNKNOWN_REPO = "unknown"


def summary_span_name(item_type: ItemType, first_url: str | None) -> str:
    """``repo_{pr|issue}_summary_{owner}_{name}`` for analytics grouping."""
    slug = repo_slug_from_url(first_url)
    repo_name = slug.replace("/", "_") if slug else UNKNOWN_REPO
    return f"repo_{item_type}_summary_{repo_name}"


class SummarizeService(BaseChatService):
    """Single model call, no tools."""

    service_name = "summarize"

    async def summarize(self, ctx: SummarizeContext) -> str:
        model_id, model = self._select_model(ctx.model)

        user_prompt = build_summary_user_prompt(ctx.items, ctx.item_type)
        trace = self._new_trace(
            model_id=model_id,
            distinct_id=ctx.distinct_id,
            input_text=user_prompt,
            session_id=ctx.session_id,
            span_name=summary_span_name(
                ctx.item_type, ctx.items[0].html_url if ctx.items else None
            ),
            extra={
                "item_type": item_type_label(ctx.item_type),
                "item_count": len(ctx.items),
            },
        )
        loop = self._loop(model, model_id, max_iterations=1)
        result = await self._run_traced(
            loop, trace, build_summary_system_prompt(ctx.item_type), [], user_prompt
        )
        return result.answer
