from __future__ import annotations

from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # NOTE: Keep as string to avoid pydantic-settings JSON-decoding complex types from .env.
    cors_origins: str = Field(
        default="http://127.0.0.1:3000,http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    classifier_provider: str = Field(default="openai", alias="CLASSIFIER_PROVIDER")
    openai_base_url: str = Field(default="https://api.openai.com", alias="OPENAI_BASE_URL")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    classifier_timeout_sec: float = Field(default=90, alias="CLASSIFIER_TIMEOUT_SEC")
    rate_limit_max_attempts: int = Field(default=3, ge=1, alias="RATE_LIMIT_MAX_ATTEMPTS")
    rate_limit_backoff_sec: float = Field(default=60, ge=0, alias="RATE_LIMIT_BACKOFF_SEC")
    history_window: int = Field(default=10, ge=2, alias="HISTORY_WINDOW")
    max_input_chars: int = Field(default=2000, ge=1, alias="MAX_INPUT_CHARS")
    catalog_base_url: str = Field(default="https://fakestoreapi.com", alias="CATALOG_BASE_URL")
    catalog_timeout_sec: float = Field(default=15, alias="CATALOG_TIMEOUT_SEC")

    model_config = SettingsConfigDict(env_file=(".env", "backend/.env"), extra="ignore")

    def parsed_cors_origins(self) -> List[str]:
        """Return CORS origins parsed from env var.

        Supports comma-delimited strings (recommended) and JSON list strings.
        """

        raw = (self.cors_origins or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                import json

                value: Any = json.loads(raw)
                if isinstance(value, list):
                    items = [str(item).strip() for item in value]
                    return [item for item in items if item]
            except ValueError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
