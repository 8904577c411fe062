import os
from functools import lru_cache

from app.config import settings
from app.usage.base import UsageStore
from app.usage.memory import MemoryUsageStore


@lru_cache(maxsize=1)
def get_usage_store() -> UsageStore:
    """Return the process-wide usage store selected by USAGE_STORE."""
    backend = os.getenv("USAGE_STORE", "memory")
    if backend == "memory":
        return MemoryUsageStore(retention=settings.usage_retention)
    if backend == "database":
        from app.database import SessionLocal
        from app.usage.sql import SqlUsageStore

        return SqlUsageStore(SessionLocal, retention=settings.usage_retention)
    raise ValueError(f"Unknown usage store: {backend}")
