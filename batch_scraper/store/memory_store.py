"""In-process job store used for dry runs and tests."""

from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime
from threading import Lock
from typing import Any, Sequence

from .base import JobStore
from .records import (
    AttemptRecord,
    ErrorRecord,
    JobStats,
    JobStatus,
    ResultRecord,
    TargetMetadata,
    TargetRef,
)


class MemoryJobStore(JobStore):
    """Keep every record in plain dictionaries guarded by one lock."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.jobs: dict[str, dict[str, Any]] = {}
        self.targets: dict[str, dict[str, Any]] = {}
        self.attempts: dict[str, dict[str, Any]] = {}
        self.results: dict[str, dict[str, Any]] = {}
        self.errors: dict[str, dict[str, Any]] = {}

    def create_job(
        self,
        *,
        label: str,
        strategy: str,
        seeds: Sequence[str],
        config: dict[str, Any],
        started_at: datetime,
    ) -> str:
        job_id = uuid.uuid4().hex
        with self._lock:
            self.jobs[job_id] = {
                "id": job_id,
                "label": label,
                "status": JobStatus.RUNNING.value,
                "strategy": strategy,
                "seeds": list(seeds),
                "config": config,
                "stats": {},
                "last_run_at": started_at,
                "completed_at": None,
            }
        return job_id

    def create_targets(self, job_id: str, urls: Sequence[str]) -> list[TargetRef]:
        refs = [TargetRef(id=uuid.uuid4().hex, url=url) for url in urls]
        batch = {
            ref.id: {
                "id": ref.id,
                "job_id": job_id,
                "url": ref.url,
                "normalized_url": ref.url,
                "depth": 0,
                "metadata": TargetMetadata(index=index).to_dict(),
                "last_status": None,
                "last_scraped_at": None,
            }
            for index, ref in enumerate(refs)
        }
        with self._lock:
            if job_id not in self.jobs:
                raise KeyError(f"Unknown job: {job_id}")
            self.targets.update(batch)
        return refs

    def create_attempt(self, attempt: AttemptRecord) -> str:
        return self._insert(self.attempts, {**asdict(attempt), "timings": attempt.timings})

    def create_result(self, result: ResultRecord) -> str:
        payload = asdict(result)
        payload["hash"] = payload.pop("fingerprint")
        return self._insert(self.results, payload)

    def create_error(self, error: ErrorRecord) -> str:
        return self._insert(self.errors, asdict(error))

    def update_target(
        self, target_id: str, *, last_status: int | None, last_scraped_at: datetime
    ) -> None:
        with self._lock:
            target = self.targets[target_id]
            target["last_status"] = last_status
            target["last_scraped_at"] = last_scraped_at

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus,
        stats: JobStats,
        completed_at: datetime,
    ) -> None:
        with self._lock:
            job = self.jobs[job_id]
            job["status"] = status.value
            job["stats"] = stats.to_dict()
            job["completed_at"] = completed_at

    def get_job(self, job_id: str) -> dict[str, Any] | None:
        with self._lock:
            job = self.jobs.get(job_id)
            return dict(job) if job is not None else None

    def list_jobs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            jobs = [dict(job) for job in self.jobs.values()]
        return list(reversed(jobs))[:limit]

    def list_targets(self, job_id: str) -> list[dict[str, Any]]:
        rows = self._by_job(self.targets, job_id)
        return sorted(rows, key=lambda row: row["metadata"]["index"])

    def list_attempts(self, job_id: str) -> list[dict[str, Any]]:
        return self._by_job(self.attempts, job_id)

    def list_results(self, job_id: str) -> list[dict[str, Any]]:
        return self._by_job(self.results, job_id)

    def list_errors(self, job_id: str) -> list[dict[str, Any]]:
        return self._by_job(self.errors, job_id)

    def _insert(self, table: dict[str, dict[str, Any]], payload: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        with self._lock:
            table[record_id] = {"id": record_id, **payload}
        return record_id

    def _by_job(self, table: dict[str, dict[str, Any]], job_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(row) for row in table.values() if row["job_id"] == job_id]


__all__ = ["MemoryJobStore"]
