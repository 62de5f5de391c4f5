"""Application configuration management."""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from project-level .env if available
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = os.getenv("APP_NAME", "CTP Cluj Timetables")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "False") == "True"

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    reload: bool = os.getenv("RELOAD", "False") == "True"

    # Source site & browser
    ctp_base_url: str = os.getenv("CTP_BASE_URL", "https://ctpcj.ro/index.php/ro/orare-linii/")
    browser_headless: bool = os.getenv("BROWSER_HEADLESS", "True") == "True"
    page_timeout_seconds: float = float(os.getenv("PAGE_TIMEOUT_SECONDS", "30"))
    blocked_resource_types: List[str] = [
        value.strip().lower()
        for value in os.getenv("BLOCKED_RESOURCE_TYPES", "image,stylesheet,font").split(",")
        if value.strip()
    ]
    max_concurrent_pages: int = int(os.getenv("MAX_CONCURRENT_PAGES", "8"))
    timezone: str = os.getenv("TIMEZONE", "Europe/Bucharest")

    # Cache & refresh
    cache_max_age_seconds: int = int(os.getenv("CACHE_MAX_AGE_SECONDS", "93600"))
    scheduler_enabled: bool = os.getenv("SCHEDULER_ENABLED", "True") == "True"
    refresh_time: str = os.getenv("REFRESH_TIME", "03:00")
    refresh_on_startup: bool = os.getenv("REFRESH_ON_STARTUP", "True") == "True"
    system_api_token: str = os.getenv("SYSTEM_API_TOKEN", "")

    # CORS
    cors_origins: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8080",
        ).split(",")
        if origin.strip()
    ]
    cors_allow_credentials: bool = True

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def refresh_hour_minute(self) -> tuple[int, int]:
        """Return the daily refresh time as (hour, minute)."""
        hours, _, minutes = self.refresh_time.strip().partition(":")
        hour = int(hours)
        minute = int(minutes or "0")
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid REFRESH_TIME '{self.refresh_time}' (expected HH:MM)")
        return hour, minute


# Global settings instance
settings = Settings()
