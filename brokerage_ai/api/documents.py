"""Document API endpoints: extracted fields, e-sign events, version chains, chunks."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from brokerage_ai.api.deps import get_retrieval, get_store
from brokerage_ai.schemas import (
    ChunkIndexRequest,
    ChunkIndexResponse,
    DocFieldCreateRequest,
    EsignEventCreateRequest,
)
from brokerage_ai.services import RetrievalService
from brokerage_ai.store import FactStore
from brokerage_ai.store.records import (
    DocFieldRecord,
    DocumentRecord,
    EsignEventCreate,
    EsignEventRecord,
)

router = APIRouter()


@router.get("/{document_id}", response_model=DocumentRecord, summary="Get a document")
async def get_document(
    document_id: UUID,
    store: FactStore = Depends(get_store),
) -> DocumentRecord:
    return await store.get_document(document_id)


@router.get(
    "/{document_id}/head",
    response_model=DocumentRecord,
    summary="Latest version",
    description="Follow supersedes-links from this document to the newest version.",
)
async def get_chain_head(
    document_id: UUID,
    store: FactStore = Depends(get_store),
) -> DocumentRecord:
    return await store.document_chain_head(document_id)


@router.post(
    "/{document_id}/fields",
    response_model=DocFieldRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Add an extracted field",
)
async def add_field(
    document_id: UUID,
    payload: DocFieldCreateRequest,
    store: FactStore = Depends(get_store),
) -> DocFieldRecord:
    return await store.add_doc_field({"document_id": document_id, **payload.model_dump()})


@router.post(
    "/{document_id}/esign-events",
    response_model=EsignEventRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Record an e-sign event",
)
async def add_esign_event(
    document_id: UUID,
    payload: EsignEventCreateRequest,
    store: FactStore = Depends(get_store),
) -> EsignEventRecord:
    return await store.add_esign_event(
        EsignEventCreate(document_id=document_id, **payload.model_dump())
    )


@router.post(
    "/{document_id}/chunks",
    response_model=ChunkIndexResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Index embedded chunks",
    description="Append chunks with precomputed embeddings. Chunks are immutable once stored.",
)
async def index_chunks(
    document_id: UUID,
    payload: ChunkIndexRequest,
    retrieval: RetrievalService = Depends(get_retrieval),
) -> ChunkIndexResponse:
    indexed = await retrieval.index_chunks(document_id, payload.chunks)
    return ChunkIndexResponse(document_id=document_id, indexed=indexed)
