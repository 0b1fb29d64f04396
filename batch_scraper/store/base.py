"""Job store Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from .records import (
    AttemptRecord,
    ErrorRecord,
    JobStats,
    JobStatus,
    ResultRecord,
    TargetRef,
)


class JobStore(ABC):
    """Uniform persistence contract for jobs and their per-target records.

    Implementations must make :meth:`create_targets` atomic: either every
    target of the batch becomes visible or none does. Per-target writes may
    arrive concurrently from several worker threads, each touching its own
    target's rows.
    """

    @abstractmethod
    def create_job(
        self,
        *,
        label: str,
        strategy: str,
        seeds: Sequence[str],
        config: dict[str, Any],
        started_at: datetime,
    ) -> str:
        """Insert a RUNNING job and return its id."""

    @abstractmethod
    def create_targets(self, job_id: str, urls: Sequence[str]) -> list[TargetRef]:
        """Insert one target per URL in a single transaction, preserving order."""

    @abstractmethod
    def create_attempt(self, attempt: AttemptRecord) -> str:
        """Persist a fetch attempt and return its id."""

    @abstractmethod
    def create_result(self, result: ResultRecord) -> str:
        """Persist a successful extraction and return its id."""

    @abstractmethod
    def create_error(self, error: ErrorRecord) -> str:
        """Persist a classified failure and return its id."""

    @abstractmethod
    def update_target(
        self, target_id: str, *, last_status: int | None, last_scraped_at: datetime
    ) -> None:
        """Record the last observed HTTP status for a target."""

    @abstractmethod
    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus,
        stats: JobStats,
        completed_at: datetime,
    ) -> None:
        """Write the terminal status and aggregate stats of a job."""

    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "JobStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["JobStore"]
