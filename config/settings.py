"""
Configuration & Settings
Market Research Synthesis Pipeline
"""

from pydantic import BaseModel
from typing import Optional
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # App
    APP_NAME: str = "Market Research Synthesis Pipeline"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = _env_flag("DEBUG")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./market_reports.db")

    # Inference (any OpenAI-compatible endpoint, e.g. OpenRouter)
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY") or os.getenv("OPENROUTER_API_KEY")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_MAX_TOKENS: int = 1000
    LLM_TEMPERATURE: float = 0.2

    # Retrieval
    SCRAPFLY_API_KEY: Optional[str] = os.getenv("SCRAPFLY_API_KEY")
    SCRAPFLY_ENDPOINT: str = "https://api.scrapfly.io/scrape"
    REQUEST_TIMEOUT: int = 15
    MAX_RETRIES: int = 3
    MAX_CONCURRENT_REQUESTS: int = 8
    USER_AGENT: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    SEARCH_MAX_RESULTS: int = 5

    # Trend discovery
    TRENDS_COUNTRY: str = os.getenv("TRENDS_COUNTRY", "US")

    # Webpage insight extraction
    # PRIMARY_EXTRACT_MIN_CHARS: below this the generic-text extractor is tried.
    # FINAL_EXTRACT_MIN_CHARS: below this the page is reported as failed.
    PRIMARY_EXTRACT_MIN_CHARS: int = 100
    FINAL_EXTRACT_MIN_CHARS: int = 50
    EXCERPT_MAX_CHARS: int = 8000
    STORED_EXCERPT_CHARS: int = 500

    # Review synthesis
    REVIEWS_PER_PLATFORM: int = 3

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000


settings = Settings()
