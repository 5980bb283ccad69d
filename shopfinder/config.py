from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class AppConfig:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/shops.db")
    database_echo: bool = _env_flag("DATABASE_ECHO")
    session_secret: str = os.getenv("SESSION_SECRET", "doener-finder-secret-change-in-production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    default_page_size: int = 50
    max_page_size: int = 200
    recent_review_limit: int = 5
    favorites_page_size: int = 20
    user_reviews_page_size: int = 10
    top_shops_limit: int = 3


DEFAULT_APP_CONFIG = AppConfig()
