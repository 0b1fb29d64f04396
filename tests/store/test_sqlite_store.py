from __future__ import annotations

import sqlite3

import pytest

from batch_scraper.store import (
    AttemptRecord,
    ErrorDetails,
    ErrorRecord,
    JobStats,
    JobStatus,
    ResultMetadata,
    ResultRecord,
)
from batch_scraper.store.records import utcnow


def _job(store, seeds=("https://a.test/",)) -> str:
    return store.create_job(
        label="sqlite",
        strategy="http-basic",
        seeds=list(seeds),
        config={"timeout_seconds": None, "tags": [], "extra": {}},
        started_at=utcnow(),
    )


def test_create_job_starts_running(sqlite_store) -> None:
    job_id = _job(sqlite_store)
    job = sqlite_store.get_job(job_id)
    assert job["status"] == JobStatus.RUNNING.value
    assert job["seeds"] == ["https://a.test/"]
    assert job["stats"] == {}
    assert job["completed_at"] is None


def test_create_targets_preserves_order(sqlite_store) -> None:
    urls = [f"https://a.test/{index}" for index in range(5)]
    job_id = _job(sqlite_store, urls)
    refs = sqlite_store.create_targets(job_id, urls)

    rows = sqlite_store.list_targets(job_id)
    assert [row["id"] for row in rows] == [ref.id for ref in refs]
    assert [row["metadata"]["index"] for row in rows] == list(range(5))
    assert all(row["depth"] == 0 and row["normalized_url"] == row["url"] for row in rows)


def test_create_targets_is_atomic(sqlite_store) -> None:
    # A foreign key violation on the batch must leave no target behind.
    with pytest.raises(sqlite3.IntegrityError):
        sqlite_store.create_targets("missing-job", ["https://a.test/1", "https://a.test/2"])
    count = sqlite_store._conn.execute("SELECT count(*) FROM scrape_targets").fetchone()[0]
    assert count == 0


def test_attempt_result_and_error_round_trip(sqlite_store) -> None:
    job_id = _job(sqlite_store)
    (target,) = sqlite_store.create_targets(job_id, ["https://a.test/"])

    attempt_id = sqlite_store.create_attempt(
        AttemptRecord(
            job_id=job_id,
            target_id=target.id,
            url=target.url,
            duration_ms=12,
            status_code=200,
            bytes=42,
            response_headers={"content-type": "text/html"},
        )
    )
    sqlite_store.create_result(
        ResultRecord(
            job_id=job_id,
            target_id=target.id,
            url=target.url,
            content_type="text/html",
            charset=None,
            raw_html="<p>hi</p>",
            raw_text="hi",
            structured={"title": None},
            metadata=ResultMetadata(status=200, final_url=target.url, request_id=attempt_id),
            fingerprint="200-42-aGk=",
        )
    )
    sqlite_store.create_error(
        ErrorRecord(
            job_id=job_id,
            target_id=target.id,
            request_id=attempt_id,
            code="ETIMEDOUT",
            message="timed out",
            details=ErrorDetails(url=target.url, duration_ms=12),
        )
    )

    (attempt,) = sqlite_store.list_attempts(job_id)
    assert attempt["id"] == attempt_id
    assert attempt["timings"] == {"durationMs": 12}
    assert attempt["response_headers"] == {"content-type": "text/html"}
    (result,) = sqlite_store.list_results(job_id)
    assert result["hash"] == "200-42-aGk="
    assert result["metadata"]["request_id"] == attempt_id
    (error,) = sqlite_store.list_errors(job_id)
    assert error["details"] == {"url": "https://a.test/", "duration_ms": 12, "stack": None}


def test_duplicate_fingerprints_are_accepted(sqlite_store) -> None:
    job_id = _job(sqlite_store)
    targets = sqlite_store.create_targets(job_id, ["https://a.test/1", "https://a.test/2"])
    for target in targets:
        attempt_id = sqlite_store.create_attempt(
            AttemptRecord(job_id=job_id, target_id=target.id, url=target.url, duration_ms=1)
        )
        sqlite_store.create_result(
            ResultRecord(
                job_id=job_id,
                target_id=target.id,
                url=target.url,
                content_type=None,
                charset=None,
                raw_html="",
                raw_text="",
                structured={},
                metadata=ResultMetadata(status=200, final_url=target.url, request_id=attempt_id),
                fingerprint="200-0-",
            )
        )
    assert len(sqlite_store.list_results(job_id)) == 2


def test_update_target_and_job(sqlite_store) -> None:
    job_id = _job(sqlite_store)
    (target,) = sqlite_store.create_targets(job_id, ["https://a.test/"])
    now = utcnow()

    sqlite_store.update_target(target.id, last_status=503, last_scraped_at=now)
    sqlite_store.update_job(
        job_id,
        status=JobStatus.COMPLETED,
        stats=JobStats(
            total_urls_requested=1, total_urls_unique=1, success=1, failed=0, duration_ms=5
        ),
        completed_at=now,
    )

    (row,) = sqlite_store.list_targets(job_id)
    assert row["last_status"] == 503
    assert row["last_scraped_at"] == now.isoformat()
    job = sqlite_store.get_job(job_id)
    assert job["status"] == "COMPLETED"
    assert job["stats"]["success"] == 1
    assert job["completed_at"] == now.isoformat()


def test_list_jobs_newest_first(sqlite_store) -> None:
    first = _job(sqlite_store)
    second = _job(sqlite_store)
    ids = [row["id"] for row in sqlite_store.list_jobs(limit=10)]
    assert set(ids) == {first, second}
    assert len(sqlite_store.list_jobs(limit=1)) == 1


def test_get_job_unknown_returns_none(sqlite_store) -> None:
    assert sqlite_store.get_job("nope") is None
