"""Notification core configuration from environment variables."""
import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Notification core settings loaded from environment variables."""

    # Backend REST API root, e.g. https://api.example.com/api
    api_base_url: str = "http://localhost:8080/api"

    # Path for the on-device SQLite store (used if DATABASE_URL not set)
    data_path: str = "./data"

    # Database URL (optional - overrides the SQLite file if set)
    database_url: str | None = None

    # Reported to the backend with every registration
    app_version: str = "1.0.0"

    # Network timeouts in seconds, one attempt per call
    registration_timeout_seconds: float = 15.0
    unregister_timeout_seconds: float = 10.0
    recipients_timeout_seconds: float = 10.0
    send_timeout_seconds: float = 15.0

    # Provider token envelope length window
    token_min_length: int = 20
    token_max_length: int = 500

    # Local notifications
    local_notification_delay_seconds: float = 1.0
    local_notification_limit: int = 100
    local_fallback_on_empty_recipients: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()


def get_database_url(config: Settings | None = None) -> str:
    """Get the local store database URL.

    Priority:
    1. DATABASE_URL environment variable
    2. Default SQLite file in DATA_PATH
    """
    config = config or settings
    if config.database_url:
        url = config.database_url
        if url.startswith("sqlite://") and "+aiosqlite" not in url:
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    db_path = os.path.join(config.data_path, "sitenotify.db")
    return f"sqlite+aiosqlite:///{db_path}"
