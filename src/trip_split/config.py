"""Configuration management for trip-split."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRIP_SPLIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_path: Path = Path.home() / ".trip_split" / "trip_split.db"
    database_timeout: float = 30.0  # seconds to wait on a locked database

    # Accounts created by `init-db`
    default_users: list[str] = ["alice", "bob", "charlie", "diana"]

    # Display
    display_currency_symbol: str = "$"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and TRIP_SPLIT_* "
            f"environment variables.\n"
            f"Error: {e}"
        ) from e
