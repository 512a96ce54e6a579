"""Application configuration via Pydantic Settings."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database (quota counter store)
    DATABASE_URL: str = "sqlite+aiosqlite:///./booktracker.db"

    @model_validator(mode="after")
    def fix_database_url(self) -> "Settings":
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://"""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            self.DATABASE_URL = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            self.DATABASE_URL = url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    VERSION: str = "2.0.0"
    FRONTEND_URL: str = "http://localhost:3000"

    # Reddit API (script app credentials)
    REDDIT_CLIENT_ID: str = ""
    REDDIT_CLIENT_SECRET: str = ""
    REDDIT_USERNAME: str = ""
    REDDIT_PASSWORD: str = ""

    # Google Custom Search JSON API
    GOOGLE_API_KEY: str = ""
    GOOGLE_SEARCH_ENGINE_ID: str = ""

    # Paid search quota
    QUOTA_BACKEND: str = "database"  # 'database' or 'memory'
    GOOGLE_DAILY_QUOTA: int = 90
    QUOTA_TIMEZONE: str = "America/New_York"
    QUOTA_RETENTION_DAYS: int = 30

    # Timeouts (seconds)
    ADAPTER_TIMEOUT_SECONDS: float = 15.0
    HTTP_TIMEOUT_SECONDS: float = 10.0
    SEARCH_DEADLINE_SECONDS: float = 45.0

    # User agents
    SCRAPER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    API_USER_AGENT: str = "booktracker/1.0"

    # Batch search (daily job)
    BATCH_BOOK_DELAY_SECONDS: float = 2.0
    BATCH_USER_DELAY_SECONDS: float = 1.0
    BATCH_RESEARCH_INTERVAL_HOURS: int = 6

    # Background maintenance jobs
    SCHEDULER_ENABLED: bool = True
    QUOTA_PURGE_HOUR: int = 3  # local hour in QUOTA_TIMEZONE


settings = Settings()
