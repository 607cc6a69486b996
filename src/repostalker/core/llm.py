"""Chat model factory for the OpenAI-compatible gateway."""

import logging
from collections.abc import Callable
from functools import partial
from typing import Annotated

from fastapi import Depends
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from repostalker.configs.config import get_llm_config
from repostalker.configs.system import LLMConfig
from repostalker.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ChatModelFactory = Callable[[str], BaseChatModel]


def resolve_model(requested: str | None, config: LLMConfig) -> str:
    """Pass *requested* through if supported, else use the default model."""
    if requested and requested in config.supported_models:
        return requested
    if requested:
        logger.info(
            "Unsupported model %r requested, using %s", requested, config.default_model
        )
    return config.default_model


def build_chat_model(config: LLMConfig, model: str) -> BaseChatModel:
    """Create a ``ChatOpenAI`` for *model*.

    Retries are disabled: an upstream failure ends the turn immediately.

    Raises:
        ConfigurationError: no API key is configured.
    """
    if not config.api_key:
        raise ConfigurationError("LLM API key is not configured")
    return ChatOpenAI(
        base_url=config.endpoint,
        api_key=config.api_key,
        model=model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.model_timeout.total_seconds(),
        max_retries=0,
    )


def get_model_factory(
    config: Annotated[LLMConfig, Depends(get_llm_config)],
) -> ChatModelFactory:
    """Per-request dependency: a factory building the chat model by id."""
    return partial(build_chat_model, config)
