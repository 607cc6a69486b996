"""Chat, summary and rate-limit endpoints."""

import logging

from fastapi import APIRouter, Depends

from repostalker.core.errors import UpstreamModelError
from repostalker.core.service import PRChatContext, RepoChatContext, SummarizeContext
from repostalker.infra.ratelimit import enforce_rate_limit

from .deps import (
    ClientKeyDep,
    PRChatServiceDep,
    RateLimiterDep,
    RepoChatServiceDep,
    SummarizeServiceDep,
)
from .exceptions import ApiError
from .models import (
    ChatResponse,
    ErrorResponse,
    PRChatRequest,
    RateLimitUsage,
    RepoChatRequest,
    SummarizeRequest,
    SummaryResponse,
)

logger = logging.getLogger(__name__)

NO_ITEMS_ERROR = "No items to summarize"
UPSTREAM_RATE_LIMITED = "Rate limit exceeded. Please try again later."
UPSTREAM_PAYMENT_REQUIRED = "Payment required. Please add credits to continue."

_ERROR_RESPONSES = {
    429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Something went wrong"},
    503: {"model": ErrorResponse, "description": "Rate limiter unavailable"},
}

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post(
    "/chat-with-pr",
    dependencies=[Depends(enforce_rate_limit)],
    responses=_ERROR_RESPONSES,
)
async def chat_with_pr(
    body: PRChatRequest, service: PRChatServiceDep
) -> ChatResponse:
    """Answer a question about a single pull request or issue."""
    answer = await service.chat(
        PRChatContext(
            message=body.message,
            history=body.turns(),
            title=body.title,
            context=body.context,
            pr_url=body.pr_url,
            pr_number=body.pr_number,
            repo=body.repo_full_name,
            distinct_id=body.distinct_id,
            chat_id=body.chat_id,
            model=body.model,
        )
    )
    return ChatResponse(response=answer)


@router.post(
    "/chat-with-repo",
    dependencies=[Depends(enforce_rate_limit)],
    responses=_ERROR_RESPONSES,
)
async def chat_with_repo(
    body: RepoChatRequest, service: RepoChatServiceDep
) -> ChatResponse:
    """Answer a question about a list of pull requests or issues."""
    answer = await service.chat(
        RepoChatContext(
            message=body.message,
            items=body.items,
            item_type=body.item_type,
            summary=body.summary,
            history=body.turns(),
            distinct_id=body.distinct_id,
            chat_id=body.chat_id,
            model=body.model,
        )
    )
    return ChatResponse(response=answer)


@router.post(
    "/summarize-items",
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        400: {"model": ErrorResponse, "description": "No items"},
        402: {"model": ErrorResponse, "description": "Upstream credits exhausted"},
        **_ERROR_RESPONSES,
    },
)
async def summarize_items(
    body: SummarizeRequest, service: SummarizeServiceDep
) -> SummaryResponse:
    """Summarize a list of pull requests or issues in a few sentences.

    Upstream 429 and 402 are surfaced as such; other failures are 500.
    """
    if not body.items:
        raise ApiError(400, NO_ITEMS_ERROR)
    try:
        summary = await service.summarize(
            SummarizeContext(
                items=body.items,
                item_type=body.item_type,
                distinct_id=body.distinct_id,
                session_id=body.session_id,
                model=body.model,
            )
        )
    except UpstreamModelError as exc:
        if exc.status_code == 429:
            raise ApiError(429, UPSTREAM_RATE_LIMITED) from exc
        if exc.status_code == 402:
            raise ApiError(402, UPSTREAM_PAYMENT_REQUIRED) from exc
        raise
    return SummaryResponse(summary=summary)


@router.get("/rate-limit", responses={503: _ERROR_RESPONSES[503]})
async def rate_limit_usage(
    client_key: ClientKeyDep, limiter: RateLimiterDep
) -> RateLimitUsage:
    """Usage of the caller's and the global rate-limit buckets."""
    return RateLimitUsage(**await limiter.usage(client_key))
