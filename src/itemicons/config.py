"""Library configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IconSettings(BaseSettings):
    """Icon pipeline configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="ITEMICONS_",
    )

    # Remote icon service
    api_base_url: str = Field(
        default="https://xivapi.com",
        description="Base URL of the item lookup API",
    )
    icon_base_url: str = Field(
        default="https://xivapi.com",
        description="Prefix turning relative icon paths into absolute URLs",
    )
    request_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Hard upper bound for one lookup call, in seconds",
    )
    user_agent: str = Field(
        default="itemicons/0.1",
        description="User-Agent header sent with every lookup",
    )
    lookups_enabled: bool = Field(
        default=True,
        description="When false, lookups fail as transient without any network call",
    )

    # Scheduler
    rate_limit_per_second: int = Field(
        default=20,
        ge=2,
        description="Documented hard request limit of the remote service",
    )
    rate_limit_safety_margin: int = Field(
        default=1,
        ge=0,
        description="Admissions kept in reserve below the hard limit",
    )
    priority_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum concurrently executing priority lookups",
    )
    priority_stagger: float = Field(
        default=0.005,
        ge=0.0,
        description="Minimum spacing between priority admissions, in seconds",
    )
    quota_backoff_initial: float = Field(
        default=2.0,
        gt=0,
        description="Pause after the first quota violation, in seconds",
    )
    quota_backoff_max: float = Field(
        default=10.0,
        gt=0,
        description="Ceiling for the doubling quota pause, in seconds",
    )
    max_quota_retries: int = Field(
        default=5,
        ge=1,
        description="Quota-rejected attempts before giving up on a request",
    )

    # Load controllers
    max_load_retries: int = Field(
        default=2,
        ge=0,
        description="Retries per consumer after transient or render failures",
    )
    load_retry_base_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Base retry delay; attempt N waits (N + 1) * base seconds",
    )
    max_scheduled_delay: float = Field(
        default=3.0,
        ge=0.0,
        description="Initial delays above this keep a load idle until revealed",
    )
    reveal_after: float | None = Field(
        default=None,
        ge=0.0,
        description="Force-start an idle load after this many seconds; None waits for reveal",
    )


@lru_cache
def get_settings() -> IconSettings:
    """Get cached settings instance."""
    return IconSettings()
