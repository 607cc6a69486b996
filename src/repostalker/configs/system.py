from datetime import timedelta

from pydantic import BaseModel, Field


class ThirdPartyConfig(BaseModel):
    """Configuration for third-party integrations."""

    redis_uri: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URI for the rate-limit counter store",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    github_token: str = Field(
        default="",
        description="Optional GitHub token; unauthenticated when empty",
    )
    github_timeout: timedelta = Field(
        default=timedelta(seconds=15),
        description="Timeout for a single GitHub API request",
    )


class APIConfig(BaseModel):
    """API configuration settings."""

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"],
        description="Origins allowed by the CORS middleware",
    )
    send_traceback: bool = Field(
        default=False,
        description="Include exception details in 500 responses (dev only)",
    )


class LLMConfig(BaseModel):
    """OpenAI-compatible chat-completion endpoint settings."""

    endpoint: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    api_key: str = Field(default="", description="API key for the endpoint")
    default_model: str = Field(
        default="google/gemini-2.5-flash",
        description="Model used when the request does not pick a supported one",
    )
    supported_models: list[str] = Field(
        default_factory=lambda: [
            "google/gemini-2.5-flash",
            "google/gemini-2.5-flash-lite",
            "google/gemini-2.5-pro",
            "openai/gpt-5",
            "openai/gpt-5-mini",
            "openai/gpt-5-nano",
        ],
        description="Model identifiers a caller may select",
    )
    temperature: float | None = Field(
        default=None, description="Sampling temperature; provider default when unset"
    )
    max_tokens: int | None = Field(
        default=None, description="Maximum tokens in a single response"
    )
    model_timeout: timedelta = Field(
        default=timedelta(seconds=60),
        description="Timeout for a single model call",
    )


class RateLimitConfig(BaseModel):
    """Ceilings for the three rate-limit windows.  ``0`` disables a window."""

    per_client_per_minute: int = Field(
        default=10, ge=0, description="Requests per client IP per minute"
    )
    global_per_hour: int = Field(
        default=50, ge=0, description="Requests across all clients per hour"
    )
    global_per_day: int = Field(
        default=2000, ge=0, description="Requests across all clients per day"
    )


class ChatConfig(BaseModel):
    """Conversation loop and tool output limits."""

    max_iterations: int = Field(
        default=5, ge=1, description="Model calls allowed per user turn"
    )
    list_result_cap: int = Field(
        default=10, ge=1, description="Max items returned by list-returning tools"
    )
    patch_char_budget: int = Field(
        default=500, ge=1, description="Max characters kept from a diff patch"
    )
    file_char_budget: int = Field(
        default=3000, ge=1, description="Max characters kept from a file body"
    )
    max_pr_files: int = Field(
        default=30, ge=1, description="Max files returned by get_pr_files"
    )
    description_preview_chars: int = Field(
        default=300,
        ge=0,
        description="Characters of each item body shown in the repo chat prompt",
    )


class TelemetryConfig(BaseModel):
    """PostHog-compatible LLM analytics sink."""

    enabled: bool = Field(default=True, description="Emit $ai_generation events")
    host: str = Field(
        default="https://us.i.posthog.com", description="Capture API host"
    )
    api_key: str = Field(default="", description="Project API key; no-op when empty")
    timeout: timedelta = Field(
        default=timedelta(seconds=5), description="Timeout for one capture call"
    )
    shutdown_grace: timedelta = Field(
        default=timedelta(seconds=2),
        description="How long shutdown waits for in-flight events",
    )


class TracingConfig(BaseModel):
    """OpenTelemetry tracing export."""

    enabled: bool = Field(default=False, description="Enable OTLP tracing")
    service_name: str = Field(default="repostalker", description="OTEL service name")
    endpoint: str = Field(default="", description="OTLP HTTP traces endpoint")
    username: str = Field(default="", description="Basic-auth user for the endpoint")
    password: str = Field(default="", description="Basic-auth password")
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    excluded_urls: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics"],
        description="Paths excluded from tracing and HTTP metrics",
    )


class LoggingConfig(BaseModel):
    """Root logger settings."""

    level: str = Field(default="INFO", description="Root log level")
    json_output: bool = Field(
        default=True, description="JSON lines (True) or coloured dev output"
    )
