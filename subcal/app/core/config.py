"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development; channel
credentials default to empty so the service starts in a degraded but
runnable state.

Usage:
    from subcal.app.core.config import settings
    print(settings.EMAIL_USER)

Only the application edge (main.py, API dependencies) reads these values.
They are converted into an explicit DispatcherConfig before reaching the
notification dispatcher, so channels never consult the environment.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Subscription Calendar"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    RELOAD: bool = True  # auto-reload on file changes (dev only)

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Email channel ──
    EMAIL_PROVIDER: str = "smtp"  # smtp | simulation
    EMAIL_USER: Optional[str] = None  # also the From: address
    EMAIL_PASS: Optional[str] = None  # Gmail app password
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_TIMEOUT_SECONDS: float = 30.0

    # ── Telegram channel ──
    TELEGRAM_PROVIDER: str = "bot_api"  # bot_api | simulation
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_PARSE_MODE: str = "HTML"  # HTML | MarkdownV2
    TELEGRAM_TIMEOUT_SECONDS: float = 15.0

    # ── Dispatch ──
    DISPATCH_MODE: str = "multi"  # single (email only) | multi (email + telegram)
    DEFAULT_RECIPIENT: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def reload_enabled(self) -> bool:
        return self.RELOAD and self.is_development

    @property
    def email_configured(self) -> bool:
        return bool(self.EMAIL_USER and self.EMAIL_PASS)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID)


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
