"""Pydantic schemas for retrieval endpoints."""

from uuid import UUID

from pydantic import BaseModel, Field

from brokerage_ai.store.records import ChunkCreate, ChunkMatch


class SearchRequest(BaseModel):
    """Nearest-neighbor chunk search."""

    query_embedding: list[float] = Field(min_length=1, description="Query vector")
    top_k: int | None = Field(default=None, ge=1, le=200, description="Maximum results")
    min_content_length: int | None = Field(
        default=None, ge=0, description="Skip chunks with shorter content"
    )


class SearchResponse(BaseModel):
    matches: list[ChunkMatch]
    count: int


class ChunkIndexRequest(BaseModel):
    """Embedded chunks of one document."""

    chunks: list[ChunkCreate] = Field(min_length=1)


class ChunkIndexResponse(BaseModel):
    document_id: UUID
    indexed: int


class DealFactsResponse(BaseModel):
    transaction_id: UUID
    content: str = Field(description="Fixed-order deal facts text")
