"""Bounded worker pool running one fetch → parse → persist task per target."""

from __future__ import annotations

import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import structlog

from ..config import ScraperSettings
from ..store import (
    AttemptRecord,
    ErrorDetails,
    ErrorRecord,
    JobStore,
    ResultMetadata,
    ResultRecord,
    TargetRef,
)
from ..store.records import utcnow
from .fetcher import FetchClient, FetchResponse
from .fingerprint import fingerprint
from .parser import HtmlExtractor, truncate

MISSING_TARGET_MESSAGE = "No target found for URL"


@dataclass(slots=True)
class TargetOutcome:
    """Terminal state of one target's task."""

    url: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
    error_code: str | None = None

    def to_response(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"url": self.url, "ok": self.ok}
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ConcurrencyController:
    """Schedule one isolated task per URL with at most ``concurrency`` in flight."""

    def __init__(
        self,
        store: JobStore,
        fetcher: FetchClient,
        settings: ScraperSettings,
        extractor: HtmlExtractor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.settings = settings
        self.extractor = extractor or HtmlExtractor()
        self.logger = logger or structlog.get_logger("batch_scraper.controller")

    @property
    def concurrency(self) -> int:
        return self.settings.concurrency

    def run(
        self,
        job_id: str,
        urls: Sequence[str],
        targets: Sequence[TargetRef],
        *,
        timeout: float | None = None,
        on_outcome: Callable[[TargetOutcome], None] | None = None,
    ) -> list[TargetOutcome]:
        """Block until every task has settled and return outcomes in ``urls`` order."""

        target_by_url = {target.url: target for target in targets}
        outcomes: list[TargetOutcome | None] = [None] * len(urls)
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="scrape"
        ) as executor:
            futures = {
                executor.submit(
                    self._process_target, job_id, url, target_by_url.get(url), timeout
                ): index
                for index, url in enumerate(urls)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    outcome = future.result()
                except Exception as exc:  # noqa: BLE001
                    self.logger.error("task_crashed", url=urls[index], error=str(exc))
                    outcome = TargetOutcome(
                        url=urls[index], ok=False, error=str(exc), error_code="UNKNOWN"
                    )
                outcomes[index] = outcome
                if on_outcome is not None:
                    try:
                        on_outcome(outcome)
                    except Exception as exc:  # noqa: BLE001
                        self.logger.warning("outcome_callback_failed", error=str(exc))
        return [outcome for outcome in outcomes if outcome is not None]

    # ------------------------------------------------------------------
    def _process_target(
        self,
        job_id: str,
        url: str,
        target: TargetRef | None,
        timeout: float | None,
    ) -> TargetOutcome:
        if target is None:
            self.logger.error("target_missing", job_id=job_id, url=url)
            return TargetOutcome(
                url=url, ok=False, error=MISSING_TARGET_MESSAGE, error_code="TARGET_MISSING"
            )

        started = time.monotonic()
        response: FetchResponse | None = None
        attempt_id: str | None = None
        try:
            response = self.fetcher.fetch(url, timeout=timeout)
            content = self.extractor.extract(response.text)
            raw_text = truncate(content.text, self.settings.max_field_chars)
            key = fingerprint(
                response.status_code,
                response.bytes,
                raw_text,
                self.settings.fingerprint_prefix_chars,
            )
            attempt_id = self.store.create_attempt(
                AttemptRecord(
                    job_id=job_id,
                    target_id=target.id,
                    url=url,
                    duration_ms=response.duration_ms,
                    status_code=response.status_code,
                    bytes=response.bytes,
                    response_headers=response.headers,
                )
            )
            self.store.update_target(
                target.id, last_status=response.status_code, last_scraped_at=utcnow()
            )
            self.store.create_result(
                ResultRecord(
                    job_id=job_id,
                    target_id=target.id,
                    url=url,
                    content_type=response.content_type,
                    charset=response.charset,
                    raw_html=truncate(response.text, self.settings.max_field_chars),
                    raw_text=raw_text,
                    structured=content.structured(),
                    metadata=ResultMetadata(
                        status=response.status_code,
                        final_url=response.final_url,
                        request_id=attempt_id,
                    ),
                    fingerprint=key,
                )
            )
        except Exception as exc:  # noqa: BLE001
            return self._record_failure(job_id, target, url, started, response, attempt_id, exc)

        self.logger.info(
            "target_fetched",
            job_id=job_id,
            url=url,
            status=response.status_code,
            bytes=response.bytes,
            duration_ms=response.duration_ms,
        )
        return TargetOutcome(url=url, ok=True, status_code=response.status_code)

    def _record_failure(
        self,
        job_id: str,
        target: TargetRef,
        url: str,
        started: float,
        response: FetchResponse | None,
        attempt_id: str | None,
        exc: Exception,
    ) -> TargetOutcome:
        duration_ms = int((time.monotonic() - started) * 1000)
        message = str(exc) or type(exc).__name__
        code = getattr(exc, "code", None) or "UNKNOWN"
        kind = getattr(exc, "kind", None) or "INTERNAL"
        status_code = response.status_code if response is not None else None
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

        try:
            if attempt_id is None:
                attempt_id = self.store.create_attempt(
                    AttemptRecord(
                        job_id=job_id,
                        target_id=target.id,
                        url=url,
                        duration_ms=duration_ms,
                        status_code=status_code,
                        bytes=response.bytes if response is not None else None,
                        response_headers=response.headers if response is not None else {},
                        error=message,
                        error_kind=kind,
                    )
                )
            self.store.create_error(
                ErrorRecord(
                    job_id=job_id,
                    target_id=target.id,
                    request_id=attempt_id,
                    code=code,
                    message=message,
                    details=ErrorDetails(url=url, duration_ms=duration_ms, stack=stack),
                )
            )
        except Exception as store_exc:  # noqa: BLE001
            self.logger.error(
                "failure_not_recorded",
                job_id=job_id,
                url=url,
                code=code,
                error=str(store_exc),
            )

        self.logger.warning(
            "target_failed",
            job_id=job_id,
            url=url,
            code=code,
            error=message,
            duration_ms=duration_ms,
        )
        return TargetOutcome(
            url=url, ok=False, status_code=status_code, error=message, error_code=code
        )


__all__ = ["ConcurrencyController", "MISSING_TARGET_MESSAGE", "TargetOutcome"]
