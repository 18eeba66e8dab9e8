"""Retrieval API endpoints: chunk search and deal facts."""

from uuid import UUID

from fastapi import APIRouter, Depends

from brokerage_ai.api.deps import get_retrieval
from brokerage_ai.schemas import DealFactsResponse, SearchRequest, SearchResponse
from brokerage_ai.services import RetrievalService

router = APIRouter()


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search chunks",
    description=(
        "Rank chunks by cosine similarity to the query embedding. "
        "Backed by an approximate index: order is exact, membership is not guaranteed."
    ),
)
async def search_chunks(
    payload: SearchRequest,
    retrieval: RetrievalService = Depends(get_retrieval),
) -> SearchResponse:
    matches = await retrieval.search_chunks(
        payload.query_embedding,
        top_k=payload.top_k,
        min_content_length=payload.min_content_length,
    )
    return SearchResponse(matches=matches, count=len(matches))


@router.get(
    "/deal-facts/{transaction_id}",
    response_model=DealFactsResponse,
    summary="Deal facts text",
)
async def deal_facts(
    transaction_id: UUID,
    retrieval: RetrievalService = Depends(get_retrieval),
) -> DealFactsResponse:
    content = await retrieval.deal_facts(transaction_id)
    return DealFactsResponse(transaction_id=transaction_id, content=content)
