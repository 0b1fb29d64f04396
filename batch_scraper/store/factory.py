"""Build the configured job store backend."""

from __future__ import annotations

from pathlib import Path

from ..config import ScraperSettings, StoreBackend
from ..infra import SQLiteManager
from .base import JobStore
from .memory_store import MemoryJobStore
from .sqlite_store import SQLiteJobStore


def build_store(
    settings: ScraperSettings,
    base_dir: Path,
    manager: SQLiteManager | None = None,
) -> JobStore:
    """Open the store named by ``settings.store``; the caller owns closing it."""

    store_config = settings.store
    if store_config.backend is StoreBackend.SQLITE:
        path = store_config.resolved_path(base_dir)
        return SQLiteJobStore(manager or SQLiteManager(), path)
    if store_config.backend is StoreBackend.MONGODB:
        from .mongo_store import MongoJobStore

        return MongoJobStore(store_config.mongo_uri, store_config.mongo_database)
    if store_config.backend is StoreBackend.MEMORY:
        return MemoryJobStore()
    raise ValueError(f"Unsupported store backend: {store_config.backend}")


__all__ = ["build_store"]
