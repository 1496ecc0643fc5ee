"""
canvasflow - Configuration Settings
Schema dialect, compile options, preview rendering, and API server settings.
"""

import logging
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

JSON_SCHEMA_DRAFT_2020_12 = "https://json-schema.org/draft/2020-12/schema"


class Settings(BaseSettings):
    """canvasflow settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ── Compiler ──────────────────────────────────────────────────────
    json_schema_dialect: str = Field(
        default=JSON_SCHEMA_DRAFT_2020_12,
        alias="JSON_SCHEMA_DIALECT",
    )
    # False restores the legacy output where `required` is always empty
    schema_honor_required: bool = Field(default=True, alias="SCHEMA_HONOR_REQUIRED")

    # ── Preview / API ─────────────────────────────────────────────────
    preview_indent: int = Field(default=2, alias="PREVIEW_INDENT")
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["dev", "development", "qa", "test", "prod"]
        if v.lower() not in allowed:
            logger.warning("environment '%s' not in %s", v, allowed)
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @property
    def cors_origins(self) -> List[str]:
        raw = self.cors_allowed_origins.strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
