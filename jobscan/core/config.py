"""Configuration models and YAML loader for the job scan engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 24 * 60


class ScanSettings(BaseModel):
    """Recurring scan cadence. Persisted by the settings store."""

    interval_minutes: int = Field(default=60, ge=MIN_INTERVAL_MINUTES, le=MAX_INTERVAL_MINUTES)
    enabled: bool = True

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0


class ScannerConfig(BaseModel):
    """Policy constants for the orchestrator."""

    max_pages: int = Field(default=10, ge=1, le=50)
    session_wait_timeout_s: float = Field(default=60.0, gt=0)
    retry_backoff_s: float = Field(default=2.0, ge=0.0)
    page_delay_min_s: float = Field(default=1.0, ge=0.0)
    page_delay_max_s: float = Field(default=3.0, ge=0.0)

    @model_validator(mode="after")
    def delay_range_ordered(self) -> "ScannerConfig":
        if self.page_delay_max_s < self.page_delay_min_s:
            msg = "page_delay_max_s must be >= page_delay_min_s"
            raise ValueError(msg)
        return self


class BrowserConfig(BaseModel):
    """Browser session configuration."""

    cookies_path: str = "config/cookies.json"
    timeout_ms: int = Field(default=30000, ge=1000)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/jobscan.db"


class AppSettings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    scan_defaults: ScanSettings = Field(default_factory=ScanSettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppSettings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
