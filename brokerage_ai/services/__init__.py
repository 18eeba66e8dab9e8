"""
Services package - compliance evaluation, status rollup, and retrieval.

This package contains:
- Rule engine evaluating registered checks into append-only results
- Status aggregator folding current results into a lifecycle status
- Retrieval service for chunk search and deal facts
"""

from brokerage_ai.services.deal_facts import DEAL_FACT_LABELS, render_deal_facts
from brokerage_ai.services.retrieval import RetrievalService
from brokerage_ai.services.rollup import (
    ComplianceService,
    RollupOutcome,
    StatusAggregator,
    compute_status,
    weighted_score,
)
from brokerage_ai.services.rule_engine import RuleEngine

__all__ = [
    # Compliance
    "RuleEngine",
    "StatusAggregator",
    "ComplianceService",
    "RollupOutcome",
    "compute_status",
    "weighted_score",
    # Retrieval
    "RetrievalService",
    "render_deal_facts",
    "DEAL_FACT_LABELS",
]
