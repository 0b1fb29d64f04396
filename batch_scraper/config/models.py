"""Pydantic models used across the batch scraper configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = "SuperScraperBot/1.0 (+https://your-domain.com/bot-info)"
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
MAX_JOB_TIMEOUT = 60.0


class StoreBackend(str, Enum):
    """Persistence engines a job store can be built on."""

    SQLITE = "sqlite"
    MONGODB = "mongodb"
    MEMORY = "memory"


class StoreConfig(BaseModel):
    """Where job, target, attempt, result and error records are written."""

    backend: StoreBackend = StoreBackend.SQLITE
    path: Path = Field(default=Path("data/scraper.db"))
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "batch_scraper"

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_path(self, base_dir: Path) -> Path:
        """Return the SQLite path relative to the project home."""

        if not self.path.is_absolute():
            return (base_dir / self.path).resolve()
        return self.path


class ScraperSettings(BaseModel):
    """Process-wide controls shared by every job."""

    concurrency: int = Field(default=5, ge=1)
    request_timeout: float = Field(default=15.0, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = DEFAULT_ACCEPT
    follow_redirects: bool = True
    max_field_chars: int = Field(default=1_000_000, ge=1)
    fingerprint_prefix_chars: int = Field(default=256, ge=0)
    enable_progress_bar: bool = True
    max_url_display_length: int = 80
    store: StoreConfig = Field(default_factory=StoreConfig)


class JobConfig(BaseModel):
    """Keys of the caller's per-job config that the scraper acts on.

    The caller's mapping is stored exactly as sent and this model only reads
    from it. ``timeout_seconds`` overrides the per-request timeout for the
    job and ``tags`` are free labels. A recognised key holding an unusable
    value is ignored, so the config never causes a submission to be refused.
    """

    timeout_seconds: float | None = None
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "JobConfig":
        if not isinstance(raw, Mapping):
            return cls()
        return cls(
            timeout_seconds=_usable_timeout(raw.get("timeout_seconds")),
            tags=_string_items(raw.get("tags")),
        )


def _usable_timeout(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not 0 < value <= MAX_JOB_TIMEOUT:
        return None
    return float(value)


def _string_items(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


__all__ = [
    "DEFAULT_ACCEPT",
    "DEFAULT_USER_AGENT",
    "JobConfig",
    "MAX_JOB_TIMEOUT",
    "ScraperSettings",
    "StoreBackend",
    "StoreConfig",
]
