"""Exception hierarchy for the batch scraper.

Hierarchy::

    ScraperError
    ├── ValidationError        (issues: list[dict])
    ├── FetchError
    │   ├── NetworkError
    │   └── FetchTimeoutError
    ├── ExtractionError
    └── OrchestrationError

Every class carries a ``code`` that ends up in the ``scrape_errors`` table.
"""

from __future__ import annotations

from typing import Any


class ScraperError(Exception):
    """Base class for all batch scraper exceptions."""

    code = "UNKNOWN"
    kind = "INTERNAL"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(ScraperError):
    """Raised when a batch request is malformed.

    Args:
        issues: One mapping per offending field with ``loc``, ``msg`` and
            ``type`` keys.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, issues: list[dict[str, Any]]) -> None:
        summary = "; ".join(
            f"{'.'.join(str(part) for part in issue.get('loc', ())) or 'body'}: {issue.get('msg')}"
            for issue in issues
        )
        super().__init__(f"Invalid body: {summary}" if summary else "Invalid body")
        self.issues = issues


class FetchError(ScraperError):
    """Raised when a single GET cannot produce a response."""

    code = "FETCH_ERROR"
    kind = "NETWORK"


class NetworkError(FetchError):
    """DNS, connection, TLS or protocol failure during a fetch."""

    kind = "NETWORK"


class FetchTimeoutError(FetchError):
    """The fetch did not finish before its deadline."""

    code = "ETIMEDOUT"
    kind = "TIMEOUT"


class ExtractionError(ScraperError):
    """HTML could not be parsed even though a body was received."""

    code = "EXTRACTION_ERROR"
    kind = "EXTRACTION"


class OrchestrationError(ScraperError):
    """Failure outside the per-target loop (job/target creation, finalization)."""

    code = "ORCHESTRATION_ERROR"


__all__ = [
    "ExtractionError",
    "FetchError",
    "FetchTimeoutError",
    "NetworkError",
    "OrchestrationError",
    "ScraperError",
    "ValidationError",
]
