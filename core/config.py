"""
Runtime settings for the drop watcher using Pydantic Settings.

Values come from environment variables, optionally seeded from a ``.env``
file; variables already in the environment win over the file.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Annotated, Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from models.event import EntityKey

DEFAULT_API_BASE_URL = "https://api.neople.co.kr/df"


class Settings(BaseSettings):
    """Drop watcher configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    neople_api_key: str = Field(default="", description="Neople open API key")
    neople_api_base_url: str = Field(default=DEFAULT_API_BASE_URL, description="Upstream API root")
    webhook_url: Optional[str] = Field(default=None, description="Webhook endpoint; unset disables it")
    webhook_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-POST webhook timeout")

    poll_interval_seconds: float = Field(default=15.0, gt=0, description="Cadence of each subscription")
    poll_slack_seconds: float = Field(default=1.0, ge=0, description="Jitter absorbed by the due check")
    tick_interval_seconds: float = Field(default=1.0, gt=0, description="Scheduler loop wake-up period")
    initial_lookback_seconds: float = Field(
        default=300.0,
        ge=0,
        description="How far back a new subscription's first window starts",
    )
    concurrency_limit: int = Field(default=20, ge=1, description="Max concurrent upstream fetches")
    max_subscriptions: int = Field(default=500, ge=1, description="Registry capacity")

    dedupe_ttl_hours: float = Field(default=48.0, gt=0, description="Retention window of delivered keys")
    sweep_interval_seconds: float = Field(default=60.0, gt=0, description="Expired-key sweep period")
    heartbeat_interval_seconds: float = Field(default=15.0, gt=0, description="Live-channel ping period")

    max_pages: int = Field(default=10, ge=1, description="Timeline pages followed per fetch")
    page_limit: int = Field(default=100, ge=1, le=100, description="Rows per timeline page")
    http_timeout_seconds: float = Field(default=30.0, gt=0, description="Upstream request timeout")
    log_level: str = Field(default="INFO", description="Root logging level")

    watch: Annotated[list[EntityKey], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated server:characterId pairs tracked at startup",
    )

    @field_validator("watch", mode="before")
    @classmethod
    def split_watch(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [EntityKey.parse(part) for part in v.split(",") if part.strip()]
        return v

    @field_validator("webhook_url", mode="before")
    @classmethod
    def blank_webhook_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: '{v}'")
        return level

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(seconds=self.poll_interval_seconds)

    @property
    def poll_slack(self) -> timedelta:
        return timedelta(seconds=self.poll_slack_seconds)

    @property
    def initial_lookback(self) -> timedelta:
        return timedelta(seconds=self.initial_lookback_seconds)

    @property
    def dedupe_ttl(self) -> timedelta:
        return timedelta(hours=self.dedupe_ttl_hours)
