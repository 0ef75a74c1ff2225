# app/core/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Core ---
    BOT_TOKEN: str | None = None
    DATABASE_URL: str = "sqlite:///./topup.db"

    WEBHOOK_URL: str | None = None
    # echoed back by Telegram in X-Telegram-Bot-Api-Secret-Token
    WEBHOOK_SECRET: str | None = None

    # group (-100...) or a private chat (positive id)
    ADMIN_CHAT_ID: str | None = None

    # --- Presentation ---
    DEFAULT_LANGUAGE: str = "en"
    STATEMENT_LIMIT: int = 5

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        # Railway uses postgres:// sometimes; SQLAlchemy expects postgresql://
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url


settings = Settings()
