"""
Compliance API endpoints: catalog, evaluation, results, rollup.

Architecture:
    POST /compliance/transactions/{id}/refresh/async
        → Dispatches refresh_transaction_task to the Redis queue
        → Returns 202 Accepted immediately

Fallback:
    If Celery/Redis is unavailable (e.g., local dev without Docker),
    falls back to FastAPI BackgroundTasks (in-process, same behavior
    but no separate worker process).
"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from brokerage_ai.api.deps import get_aggregator, get_compliance, get_engine, get_store
from brokerage_ai.compliance import seed_catalog
from brokerage_ai.core.config import settings
from brokerage_ai.core.logging import get_logger
from brokerage_ai.schemas import EvaluationResponse, RefreshDispatchResponse, RollupResponse
from brokerage_ai.services import ComplianceService, RuleEngine, StatusAggregator
from brokerage_ai.store import FactStore
from brokerage_ai.store.records import CheckDefinitionRecord, CheckResultRecord, RulePackRecord

logger = get_logger(__name__)

router = APIRouter()


# =============================================================================
# Celery Dispatch Helpers
# =============================================================================


def _celery_available() -> bool:
    """Check if Celery broker (Redis) is reachable."""
    if settings.celery_task_always_eager or settings.fact_store_backend == "memory":
        return False
    try:
        from brokerage_ai.workers.celery_app import celery_app

        conn = celery_app.connection()
        conn.ensure_connection(max_retries=1, timeout=2)
        conn.close()
        return True
    except Exception as e:
        logger.debug("Celery broker unreachable", error=str(e))
        return False


def _dispatch_refresh(transaction_id: UUID) -> str | None:
    """Queue a refresh task. Returns the Celery task ID, or None on failure."""
    try:
        from brokerage_ai.workers.tasks import refresh_transaction_task

        return refresh_transaction_task.delay(str(transaction_id)).id
    except Exception as e:
        logger.warning("Failed to dispatch to Celery", error=str(e))
        return None


async def _background_refresh(service: ComplianceService, transaction_id: UUID) -> None:
    """In-process fallback when Celery is unavailable."""
    try:
        await service.refresh(transaction_id)
    except Exception as e:
        logger.exception("Background refresh failed", transaction_id=str(transaction_id), error=str(e))


# =============================================================================
# Catalog
# =============================================================================


@router.get(
    "/checks",
    response_model=list[CheckDefinitionRecord],
    summary="List check definitions",
)
async def list_checks(store: FactStore = Depends(get_store)) -> list[CheckDefinitionRecord]:
    return await store.list_check_definitions()


@router.post(
    "/catalog/seed",
    response_model=RulePackRecord,
    summary="Seed the rule catalog",
    description="Idempotently upsert the built-in check definitions and the default rule pack.",
)
async def seed(store: FactStore = Depends(get_store)) -> RulePackRecord:
    return await seed_catalog(store)


# =============================================================================
# Evaluation
# =============================================================================


@router.post(
    "/transactions/{transaction_id}/evaluate/{check_key}",
    response_model=CheckResultRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Evaluate one check",
    description="Every call appends a new result row.",
)
async def evaluate_check(
    transaction_id: UUID,
    check_key: str,
    engine: RuleEngine = Depends(get_engine),
) -> CheckResultRecord:
    return await engine.evaluate(transaction_id, check_key)


@router.post(
    "/transactions/{transaction_id}/evaluate",
    response_model=EvaluationResponse,
    summary="Evaluate all applicable checks",
)
async def evaluate_all(
    transaction_id: UUID,
    rollup: bool = Query(default=True, description="Recompute the rollup afterwards"),
    service: ComplianceService = Depends(get_compliance),
) -> EvaluationResponse:
    if rollup:
        results, outcome = await service.refresh(transaction_id)
    else:
        results, outcome = await service.engine.evaluate_all(transaction_id), None
    return EvaluationResponse(
        transaction_id=transaction_id,
        results=results,
        rollup=RollupResponse.model_validate(outcome) if outcome else None,
    )


@router.post(
    "/transactions/{transaction_id}/refresh/async",
    response_model=RefreshDispatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Refresh in the background",
)
async def refresh_async(
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    store: FactStore = Depends(get_store),
    service: ComplianceService = Depends(get_compliance),
) -> RefreshDispatchResponse:
    await store.get_transaction(transaction_id)

    task_id = _dispatch_refresh(transaction_id) if _celery_available() else None
    if task_id:
        logger.info("Refresh queued", transaction_id=str(transaction_id), task_id=task_id)
        return RefreshDispatchResponse(transaction_id=transaction_id, task_id=task_id, mode="celery")

    background_tasks.add_task(_background_refresh, service, transaction_id)
    return RefreshDispatchResponse(transaction_id=transaction_id, mode="background")


# =============================================================================
# Results and rollup
# =============================================================================


@router.get(
    "/transactions/{transaction_id}/results",
    response_model=list[CheckResultRecord],
    summary="Result history",
    description="Full append-only history, oldest first.",
)
async def list_results(
    transaction_id: UUID,
    check_key: str | None = Query(default=None, description="Only this check"),
    store: FactStore = Depends(get_store),
) -> list[CheckResultRecord]:
    await store.get_transaction(transaction_id)
    return await store.list_check_results(transaction_id, check_key)


@router.get(
    "/transactions/{transaction_id}/results/latest",
    response_model=dict[str, CheckResultRecord],
    summary="Current result per check",
)
async def latest_results(
    transaction_id: UUID,
    store: FactStore = Depends(get_store),
) -> dict[str, CheckResultRecord]:
    snapshot = await store.load_snapshot(transaction_id)
    return snapshot.latest_results


@router.post(
    "/transactions/{transaction_id}/rollup",
    response_model=RollupResponse,
    summary="Recompute rollup status",
    description="Idempotent. Closed and void transactions are reported unchanged.",
)
async def rollup(
    transaction_id: UUID,
    aggregator: StatusAggregator = Depends(get_aggregator),
) -> RollupResponse:
    outcome = await aggregator.rollup(transaction_id)
    return RollupResponse.model_validate(outcome)
