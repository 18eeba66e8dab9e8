"""Transaction API endpoints: intake, parties, documents, lifecycle."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from brokerage_ai.api.deps import get_aggregator, get_store
from brokerage_ai.core.logging import get_logger
from brokerage_ai.schemas import (
    DocumentCreateRequest,
    PartyCreateRequest,
    RollupResponse,
    RulePackAssignRequest,
    TransactionDetail,
)
from brokerage_ai.services import StatusAggregator
from brokerage_ai.store import FactStore
from brokerage_ai.store.records import (
    DocumentCreate,
    DocumentRecord,
    PartyCreate,
    PartyRecord,
    TimelineEventRecord,
    TransactionCreate,
    TransactionRecord,
    TransactionUpdate,
)

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=TransactionRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a transaction",
    description="Intake a new transaction, optionally assigning a rule pack.",
)
async def create_transaction(
    payload: TransactionCreate,
    rule_pack: str | None = Query(default=None, description="Rule pack code to assign"),
    store: FactStore = Depends(get_store),
) -> TransactionRecord:
    txn = await store.create_transaction(payload)
    if rule_pack:
        await store.assign_rule_pack(txn.id, rule_pack)
    logger.info("Transaction created", transaction_id=str(txn.id), deal_code=txn.deal_code)
    return txn


@router.get(
    "/{transaction_id}",
    response_model=TransactionDetail,
    summary="Get a transaction",
)
async def get_transaction(
    transaction_id: UUID,
    store: FactStore = Depends(get_store),
) -> TransactionDetail:
    snapshot = await store.load_snapshot(transaction_id)
    return TransactionDetail(
        transaction=snapshot.transaction,
        parties=list(snapshot.parties),
        documents=list(snapshot.documents),
        assigned_packs=list(snapshot.assigned_packs),
        rollup_status=snapshot.rollup_status,
    )


@router.patch(
    "/{transaction_id}",
    response_model=TransactionRecord,
    summary="Edit transaction fields",
    description="Partial manual edit. Status changes go through rollup, close, or void.",
)
async def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    store: FactStore = Depends(get_store),
) -> TransactionRecord:
    return await store.update_transaction(transaction_id, payload)


@router.post(
    "/{transaction_id}/parties",
    response_model=PartyRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Add a party",
)
async def add_party(
    transaction_id: UUID,
    payload: PartyCreateRequest,
    store: FactStore = Depends(get_store),
) -> PartyRecord:
    return await store.add_party(
        PartyCreate(transaction_id=transaction_id, **payload.model_dump())
    )


@router.post(
    "/{transaction_id}/documents",
    response_model=DocumentRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Register a document",
    description="A superseding document must point at an earlier document of the same transaction.",
)
async def add_document(
    transaction_id: UUID,
    payload: DocumentCreateRequest,
    store: FactStore = Depends(get_store),
) -> DocumentRecord:
    return await store.add_document(
        DocumentCreate(transaction_id=transaction_id, **payload.model_dump())
    )


@router.post(
    "/{transaction_id}/rule-packs",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Assign a rule pack",
)
async def assign_rule_pack(
    transaction_id: UUID,
    payload: RulePackAssignRequest,
    store: FactStore = Depends(get_store),
) -> None:
    await store.assign_rule_pack(transaction_id, payload.pack_code)


@router.get(
    "/{transaction_id}/timeline",
    response_model=list[TimelineEventRecord],
    summary="Transaction timeline",
)
async def list_timeline(
    transaction_id: UUID,
    store: FactStore = Depends(get_store),
) -> list[TimelineEventRecord]:
    return await store.list_timeline(transaction_id)


@router.post(
    "/{transaction_id}/close",
    response_model=RollupResponse,
    summary="Close a transaction",
    description="Allowed only from ready_to_close. Closing twice is a no-op.",
)
async def close_transaction(
    transaction_id: UUID,
    aggregator: StatusAggregator = Depends(get_aggregator),
) -> RollupResponse:
    outcome = await aggregator.close(transaction_id)
    return RollupResponse.model_validate(outcome)


@router.post(
    "/{transaction_id}/void",
    response_model=RollupResponse,
    summary="Void a transaction",
    description="Allowed from any status. Voiding twice is a no-op.",
)
async def void_transaction(
    transaction_id: UUID,
    aggregator: StatusAggregator = Depends(get_aggregator),
) -> RollupResponse:
    outcome = await aggregator.void(transaction_id)
    return RollupResponse.model_validate(outcome)
