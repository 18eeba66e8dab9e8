"""
Transaction model: one real-estate closing.

A transaction is created at intake, mutated by rollups and manual edits,
and never hard-deleted: retiring a deal means setting ``status = void``.

Key features:
- deal_code as optional human-facing unique code (e.g. TRX-2025-000312)
- Non-negative money/day constraints enforced by CHECK constraints
- Ordered special stipulations stored as a text array
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brokerage_ai.db.base import Base, TimestampMixin, UUIDMixin, pg_enum
from brokerage_ai.db.enums import AppraisalContingency, FinancingType, TxnStatus

if TYPE_CHECKING:
    from brokerage_ai.db.models.document import Document
    from brokerage_ai.db.models.party import Party

DEFAULT_FORM_NAME = "RF401 – Purchase and Sale Agreement"


class Transaction(UUIDMixin, TimestampMixin, Base):
    """
    A brokerage purchase transaction.

    Attributes:
        deal_code: Human code, unique when present
        property_*: Property location
        purchase_price / currency / financing / appraisal: Economics
        earnest_money_*: Earnest money deposit terms and holder
        binding_agreement_date / closing_date: Key dates
        form_name / form_version: Purchase agreement form metadata
        special_stipulations: Ordered stipulation strings
        status: Lifecycle status (mirrors the compliance rollup)

    Example:
        txn = Transaction(
            deal_code="TRX-2025-000312",
            property_address="12 Oak St",
            purchase_price=Decimal("425000.00"),
            financing=FinancingType.CASH,
            earnest_money_amount=Decimal("5000.00"),
            earnest_money_due_days=3,
            binding_agreement_date=date(2025, 8, 1),
        )
    """

    # === Identity ===
    deal_code: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
        comment="Human-facing deal code",
    )

    # === Property ===
    property_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_unit: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_city: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_state: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_zip: Mapped[str | None] = mapped_column(Text, nullable=True)
    property_county: Mapped[str | None] = mapped_column(Text, nullable=True)

    # === Economics ===
    purchase_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    financing: Mapped[FinancingType] = mapped_column(
        pg_enum(FinancingType, "financing_type"),
        nullable=False,
        default=FinancingType.UNSPECIFIED,
    )
    appraisal: Mapped[AppraisalContingency] = mapped_column(
        pg_enum(AppraisalContingency, "appraisal_contingency"),
        nullable=False,
        default=AppraisalContingency.UNSPECIFIED,
    )

    # === Earnest money ===
    earnest_money_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    earnest_money_due_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    earnest_money_holder_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    earnest_money_holder_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # === Key dates ===
    binding_agreement_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    closing_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # === Form metadata ===
    form_name: Mapped[str | None] = mapped_column(Text, nullable=True, default=DEFAULT_FORM_NAME)
    form_version: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_stipulations: Mapped[list[str] | None] = mapped_column(
        ARRAY(Text),
        nullable=True,
        comment="Each stipulation as one element, in contract order",
    )
    source_doc_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        comment="Initial purchase agreement document",
    )

    # === Lifecycle ===
    status: Mapped[TxnStatus] = mapped_column(
        pg_enum(TxnStatus, "txn_status"),
        nullable=False,
        default=TxnStatus.OPEN,
    )

    # === Relationships ===
    parties: Mapped[list["Party"]] = relationship(
        "Party",
        back_populates="transaction",
        cascade="all, delete-orphan",
    )

    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="transaction",
        cascade="all, delete-orphan",
        foreign_keys="Document.transaction_id",
    )

    __table_args__ = (
        CheckConstraint(
            "purchase_price IS NULL OR purchase_price >= 0",
            name="purchase_price_non_negative",
        ),
        CheckConstraint(
            "earnest_money_amount IS NULL OR earnest_money_amount >= 0",
            name="earnest_money_amount_non_negative",
        ),
        CheckConstraint(
            "earnest_money_due_days IS NULL OR earnest_money_due_days >= 0",
            name="earnest_money_due_days_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, deal_code={self.deal_code!r}, status={self.status})>"


class TransactionRulePack(Base):
    """Assignment of a jurisdiction rule pack to a transaction."""

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )

    rule_pack_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rule_packs.id", ondelete="CASCADE"),
        primary_key=True,
    )


# === Indexes ===
Index(
    "ix_transactions_city_state_zip",
    Transaction.property_city,
    Transaction.property_state,
    Transaction.property_zip,
)
Index("ix_transactions_purchase_price", Transaction.purchase_price)
