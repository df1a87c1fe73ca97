"""Application configuration using Pydantic Settings.

Environment variables are loaded with the SPEC_AGENTS_ prefix, e.g.
SPEC_AGENTS_OPENROUTER_API_KEY or SPEC_AGENTS_LOG_LEVEL.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TEMPLATES_PATH = Path(__file__).resolve().parent.parent / "prompts" / "templates.yaml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    service_name: str = "spec-agents"
    port: int = 8082
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")

    # Model providers
    openrouter_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL"
    )
    openrouter_api_key: Optional[SecretStr] = Field(
        default=None,
        description="OpenRouter API key (primary provider)"
    )
    groq_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Groq API base URL"
    )
    groq_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Groq API key (fallback provider)"
    )

    # Research tools
    exa_url: str = Field(default="https://api.exa.ai", description="Exa API base URL")
    exa_api_key: Optional[SecretStr] = Field(default=None, description="Exa API key")
    github_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    github_token: Optional[SecretStr] = Field(default=None, description="GitHub token")
    npm_url: str = Field(default="https://registry.npmjs.org", description="npm registry base URL")
    stackexchange_url: str = Field(
        default="https://api.stackexchange.com/2.3",
        description="StackExchange API base URL"
    )

    # Request timeouts
    model_timeout_seconds: float = Field(default=25.0, description="Model request timeout")
    tool_timeout_seconds: float = Field(default=25.0, description="Tool request timeout")

    # Agent loop configuration
    max_research_iterations: int = Field(
        default=15,
        ge=1,
        le=15,
        description="Hard iteration ceiling for each research agent"
    )
    sub_agent_max_iterations: int = Field(
        default=5,
        ge=1,
        le=5,
        description="Iteration budget for spawned sub-agents"
    )

    # Retry policy
    retry_max_attempts: int = Field(default=3, ge=1, description="Attempts per model call")
    retry_base_delay_seconds: float = Field(default=1.0, description="Initial backoff delay")
    retry_max_delay_seconds: float = Field(default=10.0, description="Backoff delay cap")

    # Prompt templates
    prompt_cache_ttl_seconds: float = Field(default=300.0, description="Template cache TTL")
    prompt_templates_path: Path = Field(
        default=DEFAULT_TEMPLATES_PATH,
        description="YAML file holding prompt templates"
    )

    # Review gate
    review_pass_threshold: int = Field(default=70, ge=0, le=100, description="Minimum passing score")

    # Auth and rate limiting
    require_auth: bool = Field(default=True, description="Reject requests without a valid bearer token")
    auth_tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Bearer token to user id mapping"
    )
    rate_limit_max_requests: int = Field(default=5, description="Requests allowed per window")
    rate_limit_window_seconds: int = Field(default=3600, description="Rate limit window")

    model_config = SettingsConfigDict(
        env_prefix="SPEC_AGENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def has_model_provider(self) -> bool:
        """True when at least one model provider key is configured."""
        return bool(self.openrouter_api_key or self.groq_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings singleton
    """
    return Settings()
