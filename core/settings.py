"""Dashboard configuration.

Module constants describe the fixed 3-day window and persistence layout.
Deployment values (Supabase credentials, dev mode) are loaded from the
environment or a `.env` file via pydantic-settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


DAYS = (1, 2, 3)
DAY_LABELS = {d: f"Day {d}" for d in DAYS}

# Day offsets relative to the import date (Day 3 = today).
DAY_OFFSETS = {1: -2, 2: -1, 3: 0}

METRICS = ("inventory", "procAmt", "salesAmt")

TABLE_NAME = "daily_metrics"
CHUNK_SIZE = 500

DEFAULT_SELECTION_SIZE = 2


class Settings(BaseSettings):
    supabase_url: str = Field(default="", description="Supabase project URL.")
    supabase_key: str = Field(default="", description="Supabase anon or service key.")
    dev_mode: bool = Field(
        default=False,
        description="Dev mode: in-memory store and a static signed-in user.",
    )
    dev_user_email: str = Field(default="dev@localhost")
    chunk_size: int = Field(default=CHUNK_SIZE, ge=1)
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
