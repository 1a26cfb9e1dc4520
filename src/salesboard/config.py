"""
Runtime configuration.

Values come from ``SALESBOARD_*`` environment variables, with a ``.env``
file in the working directory as a fallback, validated by pydantic-settings.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="SALESBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str | None = Field(
        default=None,
        description="Base URL of the backend proxy (record + auth interfaces)",
    )
    batch_size: int = Field(
        default=50_000,
        gt=0,
        description="Rows requested per page when loading a date range",
    )
    debounce_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Quiet period before a date-range edit triggers a load",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("api_url")
    @classmethod
    def _strip_api_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


def configure_logging(settings: Settings | None = None) -> None:
    level = settings.log_level if settings else "INFO"
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
