"""Engine components orchestrating validate → fetch → parse → persist → finalize."""

from .controller import ConcurrencyController, TargetOutcome
from .fetcher import FetchClient, FetchResponse
from .finalizer import ApiStatus, JobFinalizer, JobSummary
from .fingerprint import fingerprint
from .parser import ExtractedContent, HtmlExtractor, truncate
from .validator import BatchRequest, RequestValidator

__all__ = [
    "ApiStatus",
    "BatchRequest",
    "ConcurrencyController",
    "ExtractedContent",
    "FetchClient",
    "FetchResponse",
    "HtmlExtractor",
    "JobFinalizer",
    "JobSummary",
    "RequestValidator",
    "TargetOutcome",
    "fingerprint",
    "truncate",
]
