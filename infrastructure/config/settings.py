"""
Settings for the fare ledger bot.

All configuration comes from environment variables (a `.env` file is
loaded first for development). Entry points call `get_settings()` once
and pass plain values down; nothing below the interfaces layer reads the
environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class PostgresSettings:
    host: str = field(default_factory=lambda: os.getenv("POSTGRES_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("POSTGRES_PORT", "5432")))
    dbname: str = field(default_factory=lambda: os.getenv("POSTGRES_DB", "fare_ledger"))
    user: str = field(default_factory=lambda: os.getenv("POSTGRES_USER", "postgres"))
    password: str = field(default_factory=lambda: os.getenv("POSTGRES_PASSWORD", ""))

    def as_params(self) -> dict:
        """Keyword arguments for `psycopg2.connect`."""

        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
        }


@dataclass(frozen=True)
class Settings:
    """
    Root settings container.

    Usage:
        from infrastructure.config.settings import get_settings
        settings = get_settings()
        print(settings.db_backend)
    """

    line_channel_access_token: Optional[str] = field(
        default_factory=lambda: os.getenv("LINE_CHANNEL_ACCESS_TOKEN")
    )
    line_channel_secret: Optional[str] = field(
        default_factory=lambda: os.getenv("LINE_CHANNEL_SECRET")
    )
    telegram_token: Optional[str] = field(default_factory=lambda: os.getenv("TELEGRAM_TOKEN"))

    db_backend: str = field(default_factory=lambda: os.getenv("DB_BACKEND", "sqlite"))
    db_path: str = field(default_factory=lambda: os.getenv("DB_PATH", "fare_ledger.db"))
    postgres: PostgresSettings = field(default_factory=PostgresSettings)

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    timezone: str = field(default_factory=lambda: os.getenv("TIMEZONE", "Asia/Taipei"))

    def today(self) -> date:
        """Current calendar date in the configured timezone."""

        return datetime.now(ZoneInfo(self.timezone)).date()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
