"""API routers for the brokerage compliance service."""

from brokerage_ai.api.compliance import router as compliance_router
from brokerage_ai.api.documents import router as documents_router
from brokerage_ai.api.retrieval import router as retrieval_router
from brokerage_ai.api.transactions import router as transactions_router

__all__ = [
    "compliance_router",
    "documents_router",
    "retrieval_router",
    "transactions_router",
]
