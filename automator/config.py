"""Application settings from environment variables."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # Claude
    claude_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),
    )
    claude_model: str = "claude-3-7-sonnet-20250219"
    claude_max_tokens: int = 16000
    claude_temperature: float = 0.7
    claude_timeout_seconds: float = 120.0
    max_request_tokens: int = 200_000

    # Job lifecycle
    generation_retries: int = 2
    generation_retry_delay_seconds: float = 2.0
    stuck_job_threshold_seconds: float = 75.0
    job_heartbeat_seconds: float = 15.0
    job_retention_hours: float = 24.0
    job_sweep_interval_seconds: float = 3600.0
    self_heal_mode: Literal["fabricate", "explicit"] = "fabricate"

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    app_origin: str = "http://localhost:3000"

    # Accounts
    admin_email: str = "admin@automator.ro"

    # Server
    log_level: str = "INFO"
    cors_origins: str = "*"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def heartbeat_within_stuck_threshold(self) -> "Settings":
        """A job waiting on Claude must refresh itself before it looks stuck."""
        if self.job_heartbeat_seconds <= 0:
            raise ValueError("JOB_HEARTBEAT_SECONDS must be positive")
        if self.job_heartbeat_seconds >= self.stuck_job_threshold_seconds:
            raise ValueError(
                "JOB_HEARTBEAT_SECONDS must be below STUCK_JOB_THRESHOLD_SECONDS"
            )
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins as a list (comma separated in the environment)."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
