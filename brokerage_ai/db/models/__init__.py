"""
Database models for brokerage transactions.

This package contains SQLAlchemy models for:
- Transaction / Party: the deal and the people in it
- Document / DocField / EsignEvent: received paperwork and extracted facts
- DocumentChunk: embedded text slices for retrieval
- CheckDefinition / RulePack / RulePackCheck: the rule catalog
- CheckResult / TransactionStatus: append-only outcomes and the rollup
- TimelineEvent: dated milestones and status changes

Usage:
    from brokerage_ai.db.models import Transaction, CheckResult
"""

from brokerage_ai.db.models.chunk import DocumentChunk
from brokerage_ai.db.models.compliance import (
    CheckDefinition,
    CheckResult,
    RulePack,
    RulePackCheck,
    TransactionStatus,
)
from brokerage_ai.db.models.document import DocField, Document, EsignEvent
from brokerage_ai.db.models.party import Party
from brokerage_ai.db.models.timeline_event import TimelineEvent
from brokerage_ai.db.models.transaction import Transaction, TransactionRulePack

__all__ = [
    # Core records
    "Transaction",
    "TransactionRulePack",
    "Party",
    "Document",
    "DocField",
    "EsignEvent",
    "TimelineEvent",
    # Retrieval
    "DocumentChunk",
    # Compliance
    "CheckDefinition",
    "RulePack",
    "RulePackCheck",
    "CheckResult",
    "TransactionStatus",
]
