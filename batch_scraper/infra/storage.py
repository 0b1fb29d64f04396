"""Storage abstractions for the SQLite job store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS scrape_jobs (
        id TEXT PRIMARY KEY,
        label TEXT NOT NULL,
        status TEXT NOT NULL,
        strategy TEXT NOT NULL,
        seeds TEXT NOT NULL,
        config TEXT NOT NULL,
        stats TEXT NOT NULL,
        last_run_at TEXT,
        completed_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scrape_targets (
        id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL REFERENCES scrape_jobs(id),
        url TEXT NOT NULL,
        normalized_url TEXT NOT NULL,
        depth INTEGER NOT NULL DEFAULT 0,
        metadata TEXT NOT NULL,
        last_status INTEGER,
        last_scraped_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scrape_requests (
        id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL REFERENCES scrape_jobs(id),
        target_id TEXT NOT NULL REFERENCES scrape_targets(id),
        url TEXT NOT NULL,
        method TEXT NOT NULL,
        status_code INTEGER,
        duration_ms INTEGER NOT NULL,
        bytes INTEGER,
        request_headers TEXT NOT NULL,
        response_headers TEXT NOT NULL,
        timings TEXT NOT NULL,
        error TEXT,
        error_kind TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scrape_results (
        id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL REFERENCES scrape_jobs(id),
        target_id TEXT NOT NULL REFERENCES scrape_targets(id),
        url TEXT NOT NULL,
        content_type TEXT,
        charset TEXT,
        raw_html TEXT NOT NULL,
        raw_text TEXT NOT NULL,
        structured TEXT NOT NULL,
        metadata TEXT NOT NULL,
        hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scrape_errors (
        id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL REFERENCES scrape_jobs(id),
        target_id TEXT NOT NULL REFERENCES scrape_targets(id),
        request_id TEXT NOT NULL REFERENCES scrape_requests(id),
        code TEXT NOT NULL,
        message TEXT NOT NULL,
        details TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_scrape_targets_job ON scrape_targets(job_id)",
    "CREATE INDEX IF NOT EXISTS ix_scrape_results_hash ON scrape_results(hash)",
    "CREATE INDEX IF NOT EXISTS ix_scrape_results_job ON scrape_results(job_id)",
    "CREATE INDEX IF NOT EXISTS ix_scrape_errors_job ON scrape_errors(job_id)",
)


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close(self, path: Path) -> None:
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SCHEMA", "SQLiteManager"]
