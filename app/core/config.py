from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Static HTML fetcher
    static_fetch_timeout: float = 10.0

    # In-process metadata cache
    cache_ttl_seconds: float = 300.0

    # Headless browser
    browser_executable_path: str | None = None  # pre-installed Chromium in containers
    browser_navigation_timeout: float = 20.0
    browser_head_timeout: float = 5.0
    browser_ready_state_timeout: float = 10.0
    browser_settle_delay: float = 2.0
    browser_title_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"


settings = Settings()
