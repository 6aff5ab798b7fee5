"""
Configuration management using pydantic-settings.
Loads environment variables with type validation.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Practice Journal Backend"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/practice_journal.db"
    sql_echo: bool = False
    # Seconds a sqlite writer waits for another writer's lock
    sqlite_busy_timeout: float = 30.0

    # Upper bound on cached (owner, date) -> session id entries
    session_cache_size: int = 1024

    # Name of a backend SQL function recomputing repertoire stats.
    # When unset the stats gateway runs the aggregation itself.
    stats_procedure: Optional[str] = None

    # JWT (tokens are issued by the identity provider)
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"

    # All calendar dates ("today", completion dates, heatmap years)
    # are computed in this timezone
    app_timezone: str = "America/New_York"

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    Use dependency injection in FastAPI routes.
    """
    return Settings()
