"""
Celery tasks for batch compliance and indexing work.

Each task bridges Celery's synchronous execution model with the async
services using asyncio.run(). The worker is the orchestrating caller of
the core: DependencyUnavailable is retried here with exponential backoff,
never inside the services.

Usage:
    # From API (dispatch to queue):
    from brokerage_ai.workers.tasks import refresh_transaction_task
    refresh_transaction_task.delay(str(transaction_id))

    # Start worker:
    celery -A brokerage_ai.workers.celery_app worker -l info -P solo
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

from brokerage_ai.core.config import settings
from brokerage_ai.core.errors import DependencyUnavailable, NotFoundError, RollupConflictError
from brokerage_ai.core.logging import get_logger, transaction_context
from brokerage_ai.services import ComplianceService, RetrievalService
from brokerage_ai.store import FactStore, get_fact_store
from brokerage_ai.workers.celery_app import celery_app

logger = get_logger(__name__)

RETRY_POLICY = {
    "autoretry_for": (DependencyUnavailable,),
    "retry_backoff": True,
    "retry_backoff_max": 60,
    "retry_jitter": True,
    "max_retries": 5,
}


@asynccontextmanager
async def _task_store() -> AsyncGenerator[FactStore, None]:
    """
    Fact store for one task run.

    Every asyncio.run() gets a fresh event loop, so the PostgreSQL backend
    gets its own engine per task, disposed afterwards.
    """
    if settings.fact_store_backend == "memory":
        yield get_fact_store()
        return

    from brokerage_ai.db.session import create_session_factory
    from brokerage_ai.store.sql import SqlFactStore

    engine, session_factory = create_session_factory()
    try:
        yield SqlFactStore(session_factory, embedding_dimension=settings.embedding_dimension)
    finally:
        await engine.dispose()


async def _refresh(transaction_id: UUID) -> dict:
    async with _task_store() as store:
        results, outcome = await ComplianceService(store).refresh(transaction_id)
        return {
            "transaction_id": str(transaction_id),
            "evaluated": len(results),
            "rollup": outcome.to_dict() if outcome else None,
        }


async def _bulk_rollup(transaction_ids: list[UUID] | None, evaluate: bool) -> dict:
    async with _task_store() as store:
        service = ComplianceService(store)
        if transaction_ids is None:
            transaction_ids = await store.list_transaction_ids()

        semaphore = asyncio.Semaphore(settings.max_concurrent_checks)
        summary = {"total": len(transaction_ids), "changed": 0, "errors": 0, "statuses": {}}

        async def run_one(transaction_id: UUID) -> None:
            async with semaphore:
                with transaction_context(transaction_id, batch="bulk_rollup"):
                    try:
                        if evaluate:
                            _, outcome = await service.refresh(transaction_id)
                        else:
                            outcome = await service.aggregator.rollup(transaction_id)
                    except (NotFoundError, RollupConflictError) as e:
                        summary["errors"] += 1
                        logger.warning("Bulk rollup: transaction skipped", error=str(e))
                        return
                if outcome is None:
                    return
                summary["statuses"][str(transaction_id)] = outcome.status.value
                if outcome.changed:
                    summary["changed"] += 1

        await asyncio.gather(*(run_one(tid) for tid in transaction_ids))
        return summary


async def _index_chunks(document_id: UUID, chunks: list[dict]) -> dict:
    async with _task_store() as store:
        indexed = await RetrievalService(store).index_chunks(document_id, chunks)
        return {"document_id": str(document_id), "indexed": indexed}


@celery_app.task(
    name="brokerage_ai.workers.tasks.refresh_transaction_task",
    bind=True,
    acks_late=True,
    **RETRY_POLICY,
)
def refresh_transaction_task(self, transaction_id_str: str) -> dict:
    """
    Celery task: evaluate all applicable checks of one transaction, then roll up.

    Args:
        transaction_id_str: Transaction UUID as string (Celery requires JSON-serializable args)

    Returns:
        dict with the number of evaluated checks and the rollup outcome
    """
    logger.info("Celery worker: refreshing transaction", transaction_id=transaction_id_str)
    result = asyncio.run(_refresh(UUID(transaction_id_str)))
    logger.info("Celery worker: refresh complete", result=result)
    return result


@celery_app.task(
    name="brokerage_ai.workers.tasks.bulk_rollup_task",
    bind=True,
    acks_late=True,
    **RETRY_POLICY,
)
def bulk_rollup_task(
    self,
    transaction_id_strs: list[str] | None = None,
    evaluate: bool = True,
) -> dict:
    """
    Celery task: refresh (or only roll up) many transactions.

    Args:
        transaction_id_strs: Transactions to process (None = all)
        evaluate: Re-evaluate checks before the rollup

    Returns:
        dict with totals and the resulting status per transaction
    """
    ids = [UUID(s) for s in transaction_id_strs] if transaction_id_strs is not None else None
    logger.info(
        "Celery worker: bulk rollup",
        count=len(ids) if ids is not None else "all",
        evaluate=evaluate,
    )
    summary = asyncio.run(_bulk_rollup(ids, evaluate))
    logger.info(
        "Celery worker: bulk rollup complete",
        total=summary["total"],
        changed=summary["changed"],
        errors=summary["errors"],
    )
    return summary


@celery_app.task(
    name="brokerage_ai.workers.tasks.index_chunks_task",
    bind=True,
    acks_late=True,
    **RETRY_POLICY,
)
def index_chunks_task(self, document_id_str: str, chunks: list[dict]) -> dict:
    """
    Celery task: append embedded chunks of one document to the vector index.

    Args:
        document_id_str: Document UUID as string
        chunks: [{"chunk_index", "content", "embedding", "tokens"}, ...]
    """
    logger.info("Celery worker: indexing chunks", document_id=document_id_str, count=len(chunks))
    return asyncio.run(_index_chunks(UUID(document_id_str), chunks))
