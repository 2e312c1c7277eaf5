"""Configuration settings for ess-receiver."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    API_KEY: str = ""
    API_CORS_ORIGINS: str = "*"

    # Request log files
    LOG_FILE: str = "attendance_logs.txt"
    LOG_DIR: str = "logs"
    LOG_VIEW_LIMIT: int = 50

    # Simulator target
    DEVICE_URL: str = "http://localhost:3000"
    DEVICE_SERIAL: str = "K90PRO001"

    # General
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=[".env.local", ".env"],
        case_sensitive=True,
        extra="allow",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.API_CORS_ORIGINS.split(",") if o.strip()]

    @property
    def log_file_path(self) -> Path:
        return Path(self.LOG_FILE)

    @property
    def log_dir_path(self) -> Path:
        return Path(self.LOG_DIR)


# Lazy-loaded singleton
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (lazy loaded)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
