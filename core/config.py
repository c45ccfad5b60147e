"""
LIVECOACH Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "LIVECOACH"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Mistral coaching service
    MISTRAL_API_KEY: Optional[str] = None
    MISTRAL_API_URL: str = "https://api.mistral.ai/v1/chat/completions"
    MISTRAL_MODEL: str = "mistral-large-latest"
    MISTRAL_MAX_TOKENS: int = 100
    MISTRAL_TEMPERATURE: float = 0.7
    COACHING_TIMEOUT_SECONDS: float = 15.0

    # Analysis engine
    VISIBILITY_THRESHOLD: float = 0.7
    REP_COACHING_INTERVAL: int = 5
    YOGA_COACHING_BUCKET: int = 10
    RUNNING_COACHING_BUCKET: int = 30
    TIMER_TICK_SECONDS: float = 1.0

    # Sessions
    MAX_SESSIONS: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
