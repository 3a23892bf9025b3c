from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "LaundryFlow Workflow API"
    VERSION: str = "0.1.0"

    # Database
    DATABASE_URL: str = "sqlite:///./laundryflow.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Dashboard notifications
    NOTIFIER_POLL_INTERVAL_SECONDS: float = 15.0
    NOTIFIER_MAX_ENTRIES: int = 15
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    WEBHOOK_TIMEOUT_SECONDS: float = 3.0
    WEBHOOK_MAX_ATTEMPTS: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
