"""
Fact store: the persistence boundary of the system.

Usage:
    from brokerage_ai.store import get_fact_store

    store = get_fact_store()
    txn = await store.create_transaction({"deal_code": "TRX-2025-000312"})
"""

from functools import lru_cache

from brokerage_ai.core.config import settings
from brokerage_ai.core.logging import get_logger
from brokerage_ai.store.base import FactStore
from brokerage_ai.store.memory import InMemoryFactStore
from brokerage_ai.store.records import TransactionSnapshot

logger = get_logger(__name__)


@lru_cache
def get_fact_store() -> FactStore:
    """Process-wide fact store selected by ``FACT_STORE_BACKEND``."""
    if settings.fact_store_backend == "memory":
        logger.info("Fact store: using in-memory backend")
        return InMemoryFactStore(embedding_dimension=settings.embedding_dimension)

    from brokerage_ai.db.base import AsyncSessionLocal
    from brokerage_ai.store.sql import SqlFactStore

    logger.info("Fact store: using PostgreSQL", host=settings.postgres_host, db=settings.postgres_db)
    return SqlFactStore(AsyncSessionLocal, embedding_dimension=settings.embedding_dimension)


__all__ = [
    "FactStore",
    "InMemoryFactStore",
    "TransactionSnapshot",
    "get_fact_store",
]
