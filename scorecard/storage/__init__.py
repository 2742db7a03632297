"""
Data storage layer.

Metric catalog, metric hierarchy, org tree and the append-only observation
ledger. DuckDB is the default backend; the in-memory backend serves tests
and demos.
"""

from functools import lru_cache

from scorecard.config import get_settings

from .base import LedgerWriteError, StorageBackend, StorageError
from .duckdb_storage import DuckDBStorage
from .memory import InMemoryStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns the implementation selected by settings.storage_backend.

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    if settings.storage_backend == "memory":
        return InMemoryStorage()
    return DuckDBStorage(db_path=settings.db_path, threads=settings.db_threads)


__all__ = [
    "DuckDBStorage",
    "InMemoryStorage",
    "LedgerWriteError",
    "StorageBackend",
    "StorageError",
    "get_storage",
]
