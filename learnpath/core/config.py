"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_NAME: str = "LearnPath"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENV: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./learnpath.db"
    DATABASE_ECHO: bool = False

    # Sync
    SYNC_PERSIST_TIMEOUT_SECONDS: float = 10.0

    # Analytics
    ANALYTICS_TOP_N: int = 5
    STRONG_TOPIC_THRESHOLD: int = 70
    WEAK_TOPIC_THRESHOLD: int = 60

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
