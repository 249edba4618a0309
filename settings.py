"""Central settings for the events API, read from the environment."""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Search tuning
SEARCH_CANDIDATE_LIMIT = 100      # Rows pulled from SQL before the exact time filter
SEARCH_RESULT_LIMIT = 6           # Ranked results returned to the caller

# Outbound HTTP
MAPS_TIMEOUT_SECONDS = 10.0
GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com"

DEFAULT_DATABASE_URL = "sqlite:///./events.db"
DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_maps_api_key: Optional[str]
    admin_password: Optional[str]
    maps_timeout_seconds: float
    search_candidate_limit: int
    search_result_limit: int
    log_level: str
    port: int


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        maps_timeout_seconds=float(os.getenv("MAPS_TIMEOUT_SECONDS", MAPS_TIMEOUT_SECONDS)),
        search_candidate_limit=int(os.getenv("SEARCH_CANDIDATE_LIMIT", SEARCH_CANDIDATE_LIMIT)),
        search_result_limit=int(os.getenv("SEARCH_RESULT_LIMIT", SEARCH_RESULT_LIMIT)),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", 8000)),
    )
