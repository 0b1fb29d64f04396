"""Typed records persisted by every job store backend."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Persisted lifecycle of a job; terminal states are binary."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(slots=True)
class TargetRef:
    """Stable identity of one deduplicated URL within a job."""

    id: str
    url: str


@dataclass(slots=True)
class TargetMetadata:
    index: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class JobStats:
    """Aggregate outcome counts written once when a job settles."""

    total_urls_requested: int
    total_urls_unique: int
    success: int
    failed: int
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class AttemptRecord:
    """One GET against a target. ``status_code`` is None on transport failure."""

    job_id: str
    target_id: str
    url: str
    duration_ms: int
    method: str = "GET"
    status_code: int | None = None
    bytes: int | None = None
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None
    error_kind: str | None = None

    @property
    def timings(self) -> dict[str, int]:
        return {"durationMs": self.duration_ms}


@dataclass(slots=True)
class ResultMetadata:
    status: int
    final_url: str
    request_id: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ResultRecord:
    job_id: str
    target_id: str
    url: str
    content_type: str | None
    charset: str | None
    raw_html: str
    raw_text: str
    structured: dict[str, Any]
    metadata: ResultMetadata
    fingerprint: str


@dataclass(slots=True)
class ErrorDetails:
    url: str
    duration_ms: int
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ErrorRecord:
    job_id: str
    target_id: str
    request_id: str
    code: str
    message: str
    details: ErrorDetails


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = [
    "AttemptRecord",
    "ErrorDetails",
    "ErrorRecord",
    "JobStats",
    "JobStatus",
    "ResultMetadata",
    "ResultRecord",
    "TargetMetadata",
    "TargetRef",
    "utcnow",
]
