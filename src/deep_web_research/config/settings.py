# src/deep_web_research/config/settings.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ROOT = Path(__file__).resolve().parents[3]


class RuntimeSettings(BaseSettings):
    """Process-wide settings, read once from the environment at startup."""

    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local", alias="ENVIRONMENT")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", alias="LOG_LEVEL")
    max_parallel_searches: int = Field(default=10, ge=1, alias="MAX_PARALLEL_SEARCHES")
    search_delay_ms: int = Field(default=200, ge=0, alias="SEARCH_DELAY_MS")
    chunk_delay_ms: int = Field(default=1000, ge=0, alias="CHUNK_DELAY_MS")
    max_retries: int = Field(default=3, ge=0, alias="MAX_RETRIES")
    request_timeout_ms: int = Field(default=30000, ge=1000, alias="REQUEST_TIMEOUT")
    navigation_timeout_ms: int = Field(default=15000, ge=1000, alias="NAVIGATION_TIMEOUT")
    results_timeout_ms: int = Field(default=10000, ge=500, alias="RESULTS_TIMEOUT")
    page_delay_min_ms: int = Field(default=500, ge=0, alias="PAGE_DELAY_MIN_MS")
    page_delay_max_ms: int = Field(default=1500, ge=0, alias="PAGE_DELAY_MAX_MS")
    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    persist_results: bool = Field(default=False, alias="PERSIST_RESULTS")
    search_engine_url: str = Field(default="https://www.google.com", alias="SEARCH_ENGINE_URL")
    data_dir: Path = Field(default=APP_ROOT / "data", alias="DATA_DIR")
    results_dir: Path = Field(default=APP_ROOT / "data" / "search-results", alias="RESULTS_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings:
    """Centralized settings facade accessible throughout the application."""

    def __init__(self) -> None:
        self.runtime = RuntimeSettings()

    def as_dict(self) -> dict[str, Any]:
        return {
            "environment": self.runtime.environment,
            "log_level": self.runtime.log_level,
            "max_parallel_searches": self.runtime.max_parallel_searches,
            "search_delay_ms": self.runtime.search_delay_ms,
            "chunk_delay_ms": self.runtime.chunk_delay_ms,
            "max_retries": self.runtime.max_retries,
            "request_timeout_ms": self.runtime.request_timeout_ms,
            "navigation_timeout_ms": self.runtime.navigation_timeout_ms,
            "results_timeout_ms": self.runtime.results_timeout_ms,
            "browser_headless": self.runtime.browser_headless,
            "persist_results": self.runtime.persist_results,
            "results_dir": str(self.runtime.results_dir),
        }


settings = Settings()
