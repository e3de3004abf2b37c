"""Lineage engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_ASPECT_SUFFIX = "global.schema"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with LINEAGE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="LINEAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Lineage API
    api_url: str = "http://localhost:8080/api/v1"
    api_token: SecretStr | None = None
    request_timeout: float = Field(default=30.0, gt=0.0)

    # Retry
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay: float = Field(default=0.5, gt=0.0)
    retry_max_delay: float = Field(default=8.0, gt=0.0)

    # Column lineage: aspect key is "<entry type id>.<suffix>"
    schema_aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = False

    @field_validator("api_token", mode="before")
    @classmethod
    def mask_token_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None or v == "":
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    def bearer_token(self) -> str | None:
        return self.api_token.get_secret_value() if self.api_token is not None else None


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]
    logger.debug("Loaded lineage settings for API %s", settings.api_url)
    return settings
