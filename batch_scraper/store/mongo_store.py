"""MongoDB job store implementation."""

from __future__ import annotations

import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any, Sequence

from pymongo import MongoClient

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


class MongoJobStore(JobStore):
    """Write jobs and per-target records into one collection per entity.

    Target creation runs inside a client-session transaction, which needs a
    replica set or sharded cluster. Pass ``use_transactions=False`` for a
    standalone server; ``insert_many`` is then ordered but not atomic.
    """

    def __init__(
        self,
        uri: str,
        database: str,
        *,
        client: MongoClient | None = None,
        use_transactions: bool = True,
    ) -> None:
        self.client = client if client is not None else MongoClient(uri)
        self.db = self.client[database]
        self.use_transactions = use_transactions
        self.db["scrape_results"].create_index("hash")
        self.db["scrape_targets"].create_index("job_id")

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
        self.db["scrape_jobs"].insert_one(
            {
                "_id": job_id,
                "label": label,
                "status": JobStatus.RUNNING.value,
                "strategy": strategy,
                "seeds": list(seeds),
                "config": config,
                "stats": {},
                "last_run_at": started_at,
                "completed_at": None,
                "created_at": utcnow(),
            }
        )
        return job_id

    def create_targets(self, job_id: str, urls: Sequence[str]) -> list[TargetRef]:
        refs = [TargetRef(id=uuid.uuid4().hex, url=url) for url in urls]
        documents = [
            {
                "_id": ref.id,
                "job_id": job_id,
                "url": ref.url,
                "normalized_url": ref.url,
                "depth": 0,
                "metadata": TargetMetadata(index=index).to_dict(),
                "last_status": None,
                "last_scraped_at": None,
            }
            for index, ref in enumerate(refs)
        ]
        collection = self.db["scrape_targets"]
        if not documents:
            return refs
        if self.use_transactions:
            with self.client.start_session() as session:
                session.with_transaction(
                    lambda s: collection.insert_many(documents, session=s)
                )
        else:
            collection.insert_many(documents)
        return refs

    def create_attempt(self, attempt: AttemptRecord) -> str:
        payload = asdict(attempt)
        payload["timings"] = attempt.timings
        return self._insert("scrape_requests", payload)

    def create_result(self, result: ResultRecord) -> str:
        payload = asdict(result)
        payload["hash"] = payload.pop("fingerprint")
        return self._insert("scrape_results", payload)

    def create_error(self, error: ErrorRecord) -> str:
        return self._insert("scrape_errors", asdict(error))

    def update_target(
        self, target_id: str, *, last_status: int | None, last_scraped_at: datetime
    ) -> None:
        self.db["scrape_targets"].update_one(
            {"_id": target_id},
            {"$set": {"last_status": last_status, "last_scraped_at": last_scraped_at}},
        )

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus,
        stats: JobStats,
        completed_at: datetime,
    ) -> None:
        self.db["scrape_jobs"].update_one(
            {"_id": job_id},
            {
                "$set": {
                    "status": status.value,
                    "stats": stats.to_dict(),
                    "completed_at": completed_at,
                }
            },
        )

    def _insert(self, collection: str, payload: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        self.db[collection].insert_one({"_id": record_id, **payload, "created_at": utcnow()})
        return record_id

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoJobStore"]
