"""FastAPI dependencies wiring services to the fact store."""

from fastapi import Depends

from brokerage_ai.services import ComplianceService, RetrievalService, RuleEngine, StatusAggregator
from brokerage_ai.store import FactStore, get_fact_store


def get_store() -> FactStore:
    """Fact store dependency; overridden in tests."""
    return get_fact_store()


def get_engine(store: FactStore = Depends(get_store)) -> RuleEngine:
    return RuleEngine(store)


def get_aggregator(store: FactStore = Depends(get_store)) -> StatusAggregator:
    return StatusAggregator(store)


def get_compliance(store: FactStore = Depends(get_store)) -> ComplianceService:
    return ComplianceService(store)


def get_retrieval(store: FactStore = Depends(get_store)) -> RetrievalService:
    return RetrievalService(store)
