import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Session verification (tokens are issued by the identity provider)
    SESSION_SECRET: Optional[str] = None
    SESSION_ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "session-token"
    # X-User-Id fallback for local development and tests; off unless enabled
    HEADER_AUTH_ENABLED: bool = False

    # Subscription tiers
    DEFAULT_SUBSCRIPTION_TYPE_ID: int = 1

    # Request gate
    LOGIN_PATH: str = "/login"
    PUBLIC_PAGE_PATHS: str = "/login,/register,/pricing,/faq,/readyz,/metrics,/docs,/redoc,/openapi.json"

    # Quota counter retention
    QUOTA_RETENTION_DAYS: int = 30
    QUOTA_CLEANUP_DRY_RUN: bool = False

    # CORS
    CORS_ALLOW_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def split_csv(value: Optional[str]) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("chatgate")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "SESSION_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
