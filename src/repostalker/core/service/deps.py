"""FastAPI dependency factories for the chat services.

Each service is built per request from an explicit ``Depends`` chain:
the model factory, the current config, and the app-wide analytics
emitter and GitHub client created by the lifespan.
"""

from typing import Annotated

from fastapi import Depends

from repostalker.configs.config import AppConfig, get_app_config
from repostalker.core.llm import ChatModelFactory, get_model_factory
from repostalker.infra.analytics import AnalyticsEmitter, get_analytics
from repostalker.infra.github import GitHubClient, get_github_client

from .pr_chat import PRChatService
from .repo_chat import RepoChatService
from .summarize import SummarizeService

_ModelFactoryDep = Annotated[ChatModelFactory, Depends(get_model_factory)]
_ConfigDep = Annotated[AppConfig, Depends(get_app_config)]
_AnalyticsDep = Annotated[AnalyticsEmitter, Depends(get_analytics)]
_GitHubDep = Annotated[GitHubClient, Depends(get_github_client)]


def get_pr_chat_service(
    model_factory: _ModelFactoryDep,
    config: _ConfigDep,
    analytics: _AnalyticsDep,
    github: _GitHubDep,
) -> PRChatService:
    return PRChatService(model_factory, config, analytics, github)


def get_repo_chat_service(
    model_factory: _ModelFactoryDep,
    config: _ConfigDep,
    analytics: _AnalyticsDep,
    github: _GitHubDep,
) -> RepoChatService:
    return RepoChatService(model_factory, config, analytics, github)


def get_summarize_service(
    model_factory: _ModelFactoryDep,
    config: _ConfigDep,
    analytics: _AnalyticsDep,
) -> SummarizeService:
    return SummarizeService(model_factory, config, analytics)
