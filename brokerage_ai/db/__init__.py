"""
Database package - SQLAlchemy models, session management, and utilities.

Usage:
    from brokerage_ai.db import Base, AsyncSessionLocal
    from brokerage_ai.db import Transaction, CheckResult, DocumentChunk
    from brokerage_ai.db import TxnStatus, CheckStatus, CheckSeverity
"""

from brokerage_ai.db.base import (
    AsyncSessionLocal,
    Base,
    CreatedAtMixin,
    TimestampMixin,
    UUIDMixin,
    dispose_engine,
    drop_db,
    engine,
    init_db,
    metadata,
)
from brokerage_ai.db.enums import (
    AppraisalContingency,
    CheckSeverity,
    CheckStatus,
    DocType,
    FinancingType,
    IngestSource,
    PartyRole,
    TxnStatus,
)
from brokerage_ai.db.models import (
    CheckDefinition,
    CheckResult,
    DocField,
    Document,
    DocumentChunk,
    EsignEvent,
    Party,
    RulePack,
    RulePackCheck,
    TimelineEvent,
    Transaction,
    TransactionRulePack,
    TransactionStatus,
)
from brokerage_ai.db.session import create_session_factory, transaction

__all__ = [
    # Base classes
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "CreatedAtMixin",
    # Enums
    "AppraisalContingency",
    "CheckSeverity",
    "CheckStatus",
    "DocType",
    "FinancingType",
    "IngestSource",
    "PartyRole",
    "TxnStatus",
    # Models
    "Transaction",
    "TransactionRulePack",
    "Party",
    "Document",
    "DocField",
    "EsignEvent",
    "TimelineEvent",
    "DocumentChunk",
    "CheckDefinition",
    "RulePack",
    "RulePackCheck",
    "CheckResult",
    "TransactionStatus",
    # Engine and factory
    "engine",
    "AsyncSessionLocal",
    "metadata",
    # Session utilities
    "create_session_factory",
    "transaction",
    # Lifecycle
    "init_db",
    "drop_db",
    "dispose_engine",
]
