# backend/veriflow/config.py
from pydantic_settings import BaseSettings
from typing import List
import os

class Settings(BaseSettings):
    APP_NAME: str = "veriflow"

    # Record store (durable sqlite file by default, postgres via asyncpg also works)
    DATABASE_URL: str = os.environ.get(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./verification.db"
    )
    CREATE_TABLES_ON_STARTUP: bool = True

    # Abstract API credentials (one key per endpoint kind)
    ABSTRACT_EMAIL_API_KEY: str = os.environ.get("ABSTRACT_EMAIL_API_KEY", "")
    ABSTRACT_PHONE_API_KEY: str = os.environ.get("ABSTRACT_PHONE_API_KEY", "")

    EMAIL_VALIDATION_URL: str = "https://emailreputation.abstractapi.com/v1/"
    PHONE_VALIDATION_URL: str = "https://phonevalidation.abstractapi.com/v1/"

    # external call resilience
    EXTERNAL_TIMEOUT_SECONDS: float = 10.0
    EXTERNAL_MAX_ATTEMPTS: int = 3
    BACKOFF_BASE_MS: int = 1000
    BACKOFF_CAP_MS: int = 5000
    USER_AGENT: str = "Verification-SaaS/1.0"

    # one accepted attempt per (kind, value) inside this window
    RATE_LIMIT_WINDOW_SECONDS: int = 300

    # end-to-end deadline enforced by the HTTP entry points
    REQUEST_DEADLINE_SECONDS: float = 15.0

    CORS_ORIGINS: List[str] = ["*"]

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
    DEBUG: bool = os.environ.get("DEBUG", "False").lower() in ("1", "true", "yes")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


settings = Settings()
