"""Configuration management for questlog."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/questlog.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Generation Monitoring
    generation_dead_letter_maxlen: int = Field(
        default=100, description="Maximum number of failed template generations kept for inspection"
    )
    generation_tracker_max_users: int = Field(
        default=1000, description="Maximum number of users whose last generation pass is kept in memory"
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # XP awarded on clear, keyed by difficulty
    XP_REWARD_BY_DIFFICULTY: dict[str, int] = {"1": 10, "2": 25, "3": 50}  # noqa: RUF012
    XP_REWARD_FALLBACK: int = 10

    # Template defaults
    DEFAULT_DIFFICULTY: str = "1"
    DEFAULT_FREQUENCY: int = 1

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Page size for full scans, which fetch page by page

    # Error messages stored by the generation tracker are truncated to this length
    MAX_ERROR_LENGTH: int = 500

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
