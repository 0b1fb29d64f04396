"""Aggregate per-target outcomes into the job's terminal status and stats."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Sequence

import structlog

from ..store import JobStats, JobStatus, JobStore
from ..store.records import utcnow
from .controller import TargetOutcome


class ApiStatus(str, Enum):
    """Caller-facing summary; unlike :class:`JobStatus` it has a partial state."""

    OK = "OK"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


def job_status_for(success: int, total: int) -> JobStatus:
    return JobStatus.COMPLETED if success == total else JobStatus.FAILED


def api_status_for(success: int, failed: int) -> ApiStatus:
    if failed == 0:
        return ApiStatus.OK
    if success == 0:
        return ApiStatus.FAILED
    return ApiStatus.PARTIAL


@dataclass(slots=True)
class JobSummary:
    job_id: str
    status: JobStatus
    api_status: ApiStatus
    stats: JobStats
    outcomes: list[TargetOutcome]


class JobFinalizer:
    """Sole writer of the job row once its targets exist."""

    def __init__(self, store: JobStore, logger: structlog.BoundLogger | None = None) -> None:
        self.store = store
        self.logger = logger or structlog.get_logger("batch_scraper.finalizer")

    def finalize(
        self,
        job_id: str,
        outcomes: Sequence[TargetOutcome],
        requested_count: int,
        started_at: datetime,
        finished_at: datetime | None = None,
    ) -> JobSummary:
        finished_at = finished_at or utcnow()
        total = len(outcomes)
        success = sum(1 for outcome in outcomes if outcome.ok)
        failed = total - success
        stats = JobStats(
            total_urls_requested=requested_count,
            total_urls_unique=total,
            success=success,
            failed=failed,
            duration_ms=max(0, int((finished_at - started_at).total_seconds() * 1000)),
        )
        status = job_status_for(success, total)
        self.store.update_job(job_id, status=status, stats=stats, completed_at=finished_at)
        summary = JobSummary(
            job_id=job_id,
            status=status,
            api_status=api_status_for(success, failed),
            stats=stats,
            outcomes=list(outcomes),
        )
        self.logger.info(
            "job_finalized",
            job_id=job_id,
            status=status.value,
            api_status=summary.api_status.value,
            **stats.to_dict(),
        )
        return summary


__all__ = ["ApiStatus", "JobFinalizer", "JobSummary", "api_status_for", "job_status_for"]
