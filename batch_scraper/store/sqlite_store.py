"""Persist jobs and per-target records to SQLite tables."""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Sequence

from ..infra.storage import SQLiteManager
from .base import JobStore
from .records import (
    AttemptRecord,
    ErrorRecord,
    JobStats,
    JobStatus,
    ResultRecord,
    TargetMetadata,
    TargetRef,
    utcnow,
)

_JSON_COLUMNS = {
    "seeds",
    "config",
    "stats",
    "metadata",
    "request_headers",
    "response_headers",
    "timings",
    "structured",
    "details",
}


def _new_id() -> str:
    return uuid.uuid4().hex


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    payload = dict(row)
    for key in _JSON_COLUMNS & payload.keys():
        if payload[key] is not None:
            payload[key] = json.loads(payload[key])
    return payload


class SQLiteJobStore(JobStore):
    """Job store backed by a single shared SQLite connection.

    Worker threads write through one connection guarded by a lock; each
    write is committed on its own so a crash loses at most the in-flight row.
    """

    def __init__(self, manager: SQLiteManager, db_path: Path) -> None:
        self.manager = manager
        self.db_path = db_path
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    def create_job(
        self,
        *,
        label: str,
        strategy: str,
        seeds: Sequence[str],
        config: dict[str, Any],
        started_at: datetime,
    ) -> str:
        job_id = _new_id()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO scrape_jobs(id, label, status, strategy, seeds, config, stats, last_run_at, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    job_id,
                    label,
                    JobStatus.RUNNING.value,
                    strategy,
                    _dumps(list(seeds)),
                    _dumps(config),
                    _dumps({}),
                    started_at.isoformat(),
                    utcnow().isoformat(),
                ),
            )
        return job_id

    def create_targets(self, job_id: str, urls: Sequence[str]) -> list[TargetRef]:
        targets = [TargetRef(id=_new_id(), url=url) for url in urls]
        rows = [
            (
                target.id,
                job_id,
                target.url,
                target.url,
                0,
                _dumps(TargetMetadata(index=index).to_dict()),
            )
            for index, target in enumerate(targets)
        ]
        # ``with conn`` commits the whole batch or rolls it back.
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT INTO scrape_targets(id, job_id, url, normalized_url, depth, metadata) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                rows,
            )
        return targets

    def create_attempt(self, attempt: AttemptRecord) -> str:
        attempt_id = _new_id()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO scrape_requests(id, job_id, target_id, url, method, status_code, duration_ms, "
                "bytes, request_headers, response_headers, timings, error, error_kind, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    attempt_id,
                    attempt.job_id,
                    attempt.target_id,
                    attempt.url,
                    attempt.method,
                    attempt.status_code,
                    attempt.duration_ms,
                    attempt.bytes,
                    _dumps(attempt.request_headers),
                    _dumps(attempt.response_headers),
                    _dumps(attempt.timings),
                    attempt.error,
                    attempt.error_kind,
                    utcnow().isoformat(),
                ),
            )
        return attempt_id

    def create_result(self, result: ResultRecord) -> str:
        result_id = _new_id()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO scrape_results(id, job_id, target_id, url, content_type, charset, raw_html, "
                "raw_text, structured, metadata, hash, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    result_id,
                    result.job_id,
                    result.target_id,
                    result.url,
                    result.content_type,
                    result.charset,
                    result.raw_html,
                    result.raw_text,
                    _dumps(result.structured),
                    _dumps(result.metadata.to_dict()),
                    result.fingerprint,
                    utcnow().isoformat(),
                ),
            )
        return result_id

    def create_error(self, error: ErrorRecord) -> str:
        error_id = _new_id()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO scrape_errors(id, job_id, target_id, request_id, code, message, details, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    error_id,
                    error.job_id,
                    error.target_id,
                    error.request_id,
                    error.code,
                    error.message,
                    _dumps(error.details.to_dict()),
                    utcnow().isoformat(),
                ),
            )
        return error_id

    def update_target(
        self, target_id: str, *, last_status: int | None, last_scraped_at: datetime
    ) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE scrape_targets SET last_status = ?, last_scraped_at = ? WHERE id = ?",
                (last_status, last_scraped_at.isoformat(), target_id),
            )

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus,
        stats: JobStats,
        completed_at: datetime,
    ) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE scrape_jobs SET status = ?, stats = ?, completed_at = ? WHERE id = ?",
                (status.value, _dumps(stats.to_dict()), completed_at.isoformat(), job_id),
            )

    # ------------------------------------------------------------------
    # Read helpers for the CLI; the pipeline never queries.
    # ------------------------------------------------------------------
    def get_job(self, job_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute("SELECT * FROM scrape_jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_dict(row) if row is not None else None

    def list_jobs(self, limit: int = 20) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM scrape_jobs ORDER BY created_at DESC LIMIT ?", (limit,)
            ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def list_targets(self, job_id: str) -> list[dict[str, Any]]:
        return self._list("scrape_targets", job_id, order="json_extract(metadata, '$.index')")

    def list_attempts(self, job_id: str) -> list[dict[str, Any]]:
        return self._list("scrape_requests", job_id)

    def list_results(self, job_id: str) -> list[dict[str, Any]]:
        return self._list("scrape_results", job_id)

    def list_errors(self, job_id: str) -> list[dict[str, Any]]:
        return self._list("scrape_errors", job_id)

    def _list(self, table: str, job_id: str, order: str = "rowid") -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM {table} WHERE job_id = ? ORDER BY {order}", (job_id,)
            ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def close(self) -> None:
        self.manager.close(self.db_path)


__all__ = ["SQLiteJobStore"]
