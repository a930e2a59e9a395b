"""
Application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Vidalytics
    VIDALYTICS_API_TOKEN: str = ""
    VIDALYTICS_BASE_URL: str = "https://api.vidalytics.com/public/v1"
    RATE_LIMIT_MAX_RETRIES: int = 3
    RATE_LIMIT_BACKOFF_SECONDS: float = 2.0  # retry n waits base * 2**n (4s, 8s, 16s)

    # Stats fan-out
    STATS_BATCH_SIZE: int = 5
    STATS_BATCH_DELAY_SECONDS: float = 0.5
    DEFAULT_LOOKBACK_DAYS: int = 30

    # Cache
    CACHE_DIR: str = "cache"
    CACHE_TTL_SECONDS: int = 4 * 60 * 60
    VIDEO_LIST_CACHE_TTL_SECONDS: int = 24 * 60 * 60
    AI_CACHE_TTL_SECONDS: int = 7 * 24 * 60 * 60

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 4000
    OPENAI_TRANSCRIPTION_MODEL: str = "whisper-1"
    REWRITE_MAX_TOKENS: int = 8192

    # Media processing for the AI review
    MEDIA_WORK_DIR: str = ""  # empty uses the system temp directory
    MEDIA_FRAME_INTERVAL_SECONDS: int = 5
    MEDIA_MAX_FRAMES: int = 10

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3001", "http://127.0.0.1:3001"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()


def require_vidalytics_api_token() -> str:
    """Return configured Vidalytics API token or raise a configuration error."""
    token = (settings.VIDALYTICS_API_TOKEN or "").strip()
    if not token:
        raise ValueError("VIDALYTICS_API_TOKEN is not configured")
    return token
