from .config import AppConfig, get_app_config, get_llm_config
from .system import (
    APIConfig,
    ChatConfig,
    LLMConfig,
    LoggingConfig,
    RateLimitConfig,
    TelemetryConfig,
    ThirdPartyConfig,
    TracingConfig,
)

__all__ = [
    "APIConfig",
    "AppConfig",
    "ChatConfig",
    "LLMConfig",
    "LoggingConfig",
    "RateLimitConfig",
    "TelemetryConfig",
    "ThirdPartyConfig",
    "TracingConfig",
    "get_app_config",
    "get_llm_config",
]
