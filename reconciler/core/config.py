# reconciler/core/config.py

import os
from functools import lru_cache
from typing import Annotated, List

from pydantic import BeforeValidator, ConfigDict
from pydantic_settings import BaseSettings, NoDecode


def _parse_name_list(value):
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        return [name.strip().lower() for name in value.split(",") if name.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(name).strip().lower() for name in value if str(name).strip()]
    return []


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./reconciler.db"
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Order ingestion
    WEBHOOK_TOPIC: str = "orders/fulfilled"
    WEBHOOK_LOG_LIMIT: int = 50
    IMPORT_DELAY_SECONDS: float = 0.1

    # Audit: variation names that carry the colour of an internal variant
    COLOR_VARIATION_NAMES: Annotated[List[str], NoDecode, BeforeValidator(lambda v: _parse_name_list(v))] = [
        "farbe",
        "color",
    ]

    model_config = ConfigDict(
        env_file=os.environ.get("ENV_FILE", ".env") if os.path.exists(".env") else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def async_database_url(self) -> str:
        """DATABASE_URL with the async driver filled in."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return url


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
