"""
Compliance models: rule catalog, append-only check results, rollup status.

- CheckDefinition: immutable reference data (key, severity, guidance)
- RulePack / RulePackCheck: jurisdiction bundles of checks with weights
- CheckResult: one row per evaluation, never updated; the current outcome
  for (transaction, check_key) is the newest row by created_at, then id
- TransactionStatus: one row per transaction, replaced by each rollup
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Identity,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from brokerage_ai.db.base import Base, CreatedAtMixin, UUIDMixin, pg_enum
from brokerage_ai.db.enums import CheckSeverity, CheckStatus, TxnStatus


class CheckDefinition(UUIDMixin, CreatedAtMixin, Base):
    """A named compliance rule. Evaluators are looked up by ``key``."""

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[CheckSeverity] = mapped_column(
        pg_enum(CheckSeverity, "check_severity"),
        nullable=False,
        default=CheckSeverity.MEDIUM,
    )
    resolver_hint: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_hitl: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="A pending outcome needs human resolution",
    )

    def __repr__(self) -> str:
        return f"<CheckDefinition(key={self.key!r}, severity={self.severity})>"


class RulePack(UUIDMixin, CreatedAtMixin, Base):
    """A jurisdiction-specific bundle of checks (e.g. TN_RES_2025)."""

    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    jurisdiction: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class RulePackCheck(Base):
    """Membership of a check in a rule pack, with its relative weight."""

    rule_pack_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rule_packs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    check_key: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("check_definitions.key", ondelete="CASCADE"),
        primary_key=True,
    )
    weight: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("1.0"))


class CheckResult(CreatedAtMixin, Base):
    """
    Outcome of one evaluation of one check against one transaction.

    This table is append-only - rows are never updated or deleted by the
    application. The identity column doubles as insertion sequence for
    breaking created_at ties.
    """

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    check_key: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("check_definitions.key", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[CheckStatus] = mapped_column(
        pg_enum(CheckStatus, "check_status"),
        nullable=False,
        default=CheckStatus.PENDING,
    )
    details: Mapped[dict | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Explanation, e.g. {due_by, holder, reason}",
    )


class TransactionStatus(Base):
    """Current rollup status of a transaction; rewritten by every rollup."""

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    status: Mapped[TxnStatus] = mapped_column(
        pg_enum(TxnStatus, "txn_status"),
        nullable=False,
        default=TxnStatus.OPEN,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# === Indexes ===
# "Latest result per (transaction, check)" lookup
Index(
    "ix_check_results_txn_key_created",
    CheckResult.transaction_id,
    CheckResult.check_key,
    CheckResult.created_at.desc(),
    CheckResult.id.desc(),
)
