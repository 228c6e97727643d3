"""
Configuration for the discount service.

Values come from the process environment, with a `.env` file loaded first
so local runs pick up the same settings as deployed ones.
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Settings:
    """Runtime settings for the API and the database layer."""

    database_url: str = "sqlite:///./discounts.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    api_title: str = "Discount Service API"
    api_version: str = "1.0.0"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            db_pool_size=int(os.getenv("DB_POOL_SIZE", defaults.db_pool_size)),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", defaults.db_max_overflow)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "*")) or ["*"],
            api_title=os.getenv("API_TITLE", defaults.api_title),
            api_version=os.getenv("API_VERSION", defaults.api_version),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
