"""Configuration management using pydantic-settings.

**Not a singleton**: each call to ``get_app_config()`` re-reads config
so that tests and hot-reloaded deployments see current values.  The
sub-configs are then handed explicitly to the limiter, loop, GitHub
client and telemetry emitter constructors.

Priority order (highest first):

1. Override YAML (path from ``REPOSTALKER_CONFIG_FILE``)
2. Environment variables (``REPOSTALKER_`` prefix, ``__`` nesting)
3. ``.env`` dotenv file
4. Static YAML (``configs/config.yaml``)
5. Init defaults / field defaults
6. File secrets
"""

import os
from pathlib import Path
from typing import Annotated, Optional

from fastapi import Depends
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

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

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

CONFIG_PY_PATH = Path(__file__).resolve()
PROJECT_ROOT = CONFIG_PY_PATH.parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "configs"

STATIC_CONFIG_FILE = CONFIG_DIR / "config.yaml"

_override_env = os.environ.get("REPOSTALKER_CONFIG_FILE")
OVERRIDE_CONFIG_FILE: Optional[Path] = Path(_override_env) if _override_env else None

DOTENV_FILE_PATH = PROJECT_ROOT / ".env"
ENV_DELIMITER = "__"
ENV_PREFIX = "REPOSTALKER_"

DEFAULT_ENCODING = "utf-8"


class AppConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE_PATH,
        env_file_encoding=DEFAULT_ENCODING,
        env_nested_delimiter=ENV_DELIMITER,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        yaml_file=STATIC_CONFIG_FILE,
        yaml_file_encoding=DEFAULT_ENCODING,
    )

    third_party: ThirdPartyConfig = Field(
        default_factory=ThirdPartyConfig,
        description="Third-party service configurations",
    )

    api: APIConfig = Field(
        default_factory=APIConfig,
        description="API configuration settings",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM client configuration settings",
    )

    rate_limit: RateLimitConfig = Field(
        default_factory=RateLimitConfig,
        description="Rate-limit ceilings guarding the shared LLM budget",
    )

    chat: ChatConfig = Field(
        default_factory=ChatConfig,
        description="Conversation loop and tool output limits",
    )

    telemetry: TelemetryConfig = Field(
        default_factory=TelemetryConfig,
        description="LLM analytics event sink",
    )

    tracing: TracingConfig = Field(
        default_factory=TracingConfig,
        description="OpenTelemetry tracing settings",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = []

        if OVERRIDE_CONFIG_FILE is not None and OVERRIDE_CONFIG_FILE.is_file():
            sources.append(
                YamlConfigSettingsSource(
                    settings_cls,
                    yaml_file=OVERRIDE_CONFIG_FILE,
                )
            )

        sources.append(env_settings)
        sources.append(dotenv_settings)
        sources.append(YamlConfigSettingsSource(settings_cls))
        sources.append(init_settings)
        sources.append(file_secret_settings)

        return tuple(sources)


def get_app_config() -> AppConfig:
    """Build the application configuration from the current sources."""
    return AppConfig()


def get_llm_config(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> LLMConfig:
    return config.llm
