"""Job submission pipeline wiring validation, persistence, fetching and finalization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .config import ScraperSettings
from .engine import (
    ApiStatus,
    ConcurrencyController,
    FetchClient,
    HtmlExtractor,
    JobFinalizer,
    JobSummary,
    RequestValidator,
    TargetOutcome,
)
from .errors import OrchestrationError, ValidationError
from .logging_conf import configure_logging, job_logger, release_job_logger
from .store import JobStore
from .store.records import utcnow

STRATEGY = "http-basic"


@dataclass(slots=True)
class SubmissionResponse:
    """What a submitter receives once a job exists."""

    job_id: str
    status: ApiStatus
    results: list[TargetOutcome]
    summary: JobSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "results": [outcome.to_response() for outcome in self.results],
        }


class ScrapeOrchestrator:
    """Central coordinator for one batch submission at a time.

    The store handle is injected and owned by the caller. The fetch client is
    owned here unless one is passed in.
    """

    def __init__(
        self,
        settings: ScraperSettings,
        store: JobStore,
        fetcher: FetchClient | None = None,
        validator: RequestValidator | None = None,
        extractor: HtmlExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or FetchClient(settings)
        self.validator = validator or RequestValidator()
        self.extractor = extractor or HtmlExtractor()
        self.logger = configure_logging().bind(component="orchestrator")

    def submit(
        self,
        payload: Any,
        *,
        on_start: Callable[[int], None] | None = None,
        on_outcome: Callable[[TargetOutcome], None] | None = None,
    ) -> SubmissionResponse:
        """Run one batch end to end.

        Raises:
            ValidationError: the payload is malformed; nothing was written.
            OrchestrationError: the job or its targets could not be created,
                or the job could not be finalized.
        """

        try:
            request = self.validator.validate(payload)
        except ValidationError as exc:
            self.logger.info("submission_rejected", issues=len(exc.issues))
            raise

        started_at = utcnow()
        label = request.label or f"API job @ {started_at.isoformat(timespec='milliseconds')}"
        try:
            job_id = self.store.create_job(
                label=label,
                strategy=STRATEGY,
                seeds=request.unique_urls,
                config=request.config,
                started_at=started_at,
            )
            targets = self.store.create_targets(job_id, request.unique_urls)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("submission_failed", stage="create", error=str(exc))
            raise OrchestrationError(f"Failed to create job: {exc}") from exc

        log = job_logger(job_id)
        try:
            log.info(
                "job_created",
                label=label,
                requested=request.requested_count,
                unique=len(request.unique_urls),
                tags=request.options.tags,
            )
            log.info("targets_created", count=len(targets))
            if on_start is not None:
                on_start(len(targets))

            controller = ConcurrencyController(
                self.store, self.fetcher, self.settings, self.extractor, logger=log
            )
            outcomes = controller.run(
                job_id,
                request.unique_urls,
                targets,
                timeout=request.options.timeout_seconds,
                on_outcome=on_outcome,
            )
            try:
                summary = JobFinalizer(self.store, logger=log).finalize(
                    job_id,
                    outcomes,
                    requested_count=request.requested_count,
                    started_at=started_at,
                )
            except Exception as exc:  # noqa: BLE001
                log.error("submission_failed", stage="finalize", error=str(exc))
                raise OrchestrationError(f"Failed to finalize job {job_id}: {exc}") from exc
        finally:
            release_job_logger(job_id)

        return SubmissionResponse(
            job_id=job_id,
            status=summary.api_status,
            results=summary.outcomes,
            summary=summary,
        )

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()


__all__ = ["STRATEGY", "ScrapeOrchestrator", "SubmissionResponse"]
