"""
Runtime configuration helpers for the Outliers data service and client core.

Loads DATABASE_URL and the remaining variables from the environment, falling
back to the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required: must come from the environment or .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Outliers", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    default_locale: str = Field(default="pt-BR", alias="DEFAULT_LOCALE")

    # Client core
    chat_likes_reconcile_seconds: float = Field(default=30.0, alias="CHAT_LIKES_RECONCILE_SECONDS")
    notification_poll_seconds: float = Field(default=30.0, alias="NOTIFICATION_POLL_SECONDS")

    # S3-compatible object storage
    storage_endpoint: str | None = Field(default=None, alias="STORAGE_ENDPOINT")
    storage_public_endpoint: str | None = Field(default=None, alias="STORAGE_PUBLIC_ENDPOINT")
    storage_region: str = Field(default="us-east-1", alias="STORAGE_REGION")
    storage_access_key: str | None = Field(default=None, alias="STORAGE_ACCESS_KEY")
    storage_secret_key: str | None = Field(default=None, alias="STORAGE_SECRET_KEY")
    storage_buckets: str = Field(default="avatars,banners,articles,group-media,chat-media", alias="STORAGE_BUCKETS")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def bucket_names(self) -> list[str]:
        return [name.strip() for name in self.storage_buckets.split(",") if name.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
