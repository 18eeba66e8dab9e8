"""Pydantic schemas for API request/response models."""

from brokerage_ai.schemas.common import ErrorDetail, ErrorResponse, HealthResponse
from brokerage_ai.schemas.compliance import (
    EvaluationResponse,
    RefreshDispatchResponse,
    RollupResponse,
)
from brokerage_ai.schemas.retrieval import (
    ChunkIndexRequest,
    ChunkIndexResponse,
    DealFactsResponse,
    SearchRequest,
    SearchResponse,
)
from brokerage_ai.schemas.transactions import (
    DocFieldCreateRequest,
    DocumentCreateRequest,
    EsignEventCreateRequest,
    PartyCreateRequest,
    RulePackAssignRequest,
    TransactionDetail,
)

__all__ = [
    # Common
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    # Transactions
    "PartyCreateRequest",
    "DocumentCreateRequest",
    "DocFieldCreateRequest",
    "EsignEventCreateRequest",
    "RulePackAssignRequest",
    "TransactionDetail",
    # Compliance
    "RollupResponse",
    "EvaluationResponse",
    "RefreshDispatchResponse",
    # Retrieval
    "SearchRequest",
    "SearchResponse",
    "ChunkIndexRequest",
    "ChunkIndexResponse",
    "DealFactsResponse",
]
