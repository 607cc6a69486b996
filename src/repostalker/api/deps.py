"""Centralized FastAPI dependency type aliases.

Route modules import these ``*Dep`` aliases instead of writing
``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias maps to one
``get_*`` factory, which tests replace through
``app.dependency_overrides[get_xxx]``.
"""

from typing import Annotated

from fastapi import Depends

from repostalker.core.service import (
    PRChatService,
    RepoChatService,
    SummarizeService,
    get_pr_chat_service,
    get_repo_chat_service,
    get_summarize_service,
)
from repostalker.infra.ratelimit import RateLimiter, get_client_key, get_rate_limiter

ClientKeyDep = Annotated[str, Depends(get_client_key)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
PRChatServiceDep = Annotated[PRChatService, Depends(get_pr_chat_service)]
RepoChatServiceDep = Annotated[RepoChatService, Depends(get_repo_chat_service)]
SummarizeServiceDep = Annotated[SummarizeService, Depends(get_summarize_service)]
