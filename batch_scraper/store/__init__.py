"""Job store SPI and implementations."""

from .base import JobStore
from .factory import build_store
from .memory_store import MemoryJobStore
from .records import (
    AttemptRecord,
    ErrorDetails,
    ErrorRecord,
    JobStats,
    JobStatus,
    ResultMetadata,
    ResultRecord,
    TargetMetadata,
    TargetRef,
)
from .sqlite_store import SQLiteJobStore

__all__ = [
    "AttemptRecord",
    "ErrorDetails",
    "ErrorRecord",
    "JobStats",
    "JobStatus",
    "JobStore",
    "MemoryJobStore",
    "ResultMetadata",
    "ResultRecord",
    "SQLiteJobStore",
    "TargetMetadata",
    "TargetRef",
    "build_store",
]
