"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide configuration options."""

    api_v1_prefix: str = "/v1"
    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0
    runs_key_prefix: str = "runs"
    llm_provider: str = "openai"
    llm_timeout_seconds: float = 60.0
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    anthropic_api_key: str | None = None
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_api_version: str = "2023-06-01"
    lens_temperature: float = 0.7
    lens_max_tokens: int = 2048
    brief_temperature: float = 0.5
    brief_max_tokens: int = 1024
    events_backend: str = "file"
    events_path: str = "data/run_events.jsonl"
    otel_enabled: bool = False
    otel_exporter: str = "console"
    otel_otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(env_prefix="copilot_", env_file=".env", extra="ignore")


settings = Settings()
