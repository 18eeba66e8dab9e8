"""
Document, extracted-field, and e-sign event models.

Documents arrive through ingestion (email, upload, e-sign provider, ...).
OCR/field extraction happens upstream; this module only stores its output:
one DocField row per extracted fact.

Key features:
- Optional supersedes-link forming a version chain. The link may only point
  at an already-persisted document, so chains are acyclic by construction.
- Content hash for de-duplicating re-sent files
- Typed field values (text / numeric / date) with confidence in [0, 1]
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Identity,
    Index,
    Integer,
    Numeric,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brokerage_ai.db.base import Base, CreatedAtMixin, TimestampMixin, UUIDMixin, pg_enum
from brokerage_ai.db.enums import DocType, IngestSource

if TYPE_CHECKING:
    from brokerage_ai.db.models.chunk import DocumentChunk
    from brokerage_ai.db.models.transaction import Transaction


class Document(UUIDMixin, TimestampMixin, Base):
    """
    A document received for a transaction.

    Attributes:
        transaction_id: Owning transaction (nullable: unmatched inbox items)
        doc_type: psa / addendum / disclosure / inspection / audit_trail / other
        storage_url: Storage reference (bucket URL or external link)
        sha256: Content hash
        version_no: 1 for originals, predecessor + 1 for superseding versions
        supersedes_document_id: Previous version of this document

    Relationships:
        fields: Extracted facts
        chunks: Text slices with embeddings
    """

    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    doc_type: Mapped[DocType] = mapped_column(pg_enum(DocType, "doc_type"), nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    sha256: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    received_via: Mapped[IngestSource | None] = mapped_column(
        pg_enum(IngestSource, "ingest_source"),
        nullable=True,
    )
    received_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True,
    )

    # === E-sign metadata ===
    esign_provider: Mapped[str | None] = mapped_column(Text, nullable=True)
    esign_package_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    raw_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # === Versioning ===
    version_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    supersedes_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # === Relationships ===
    transaction: Mapped["Transaction | None"] = relationship(
        "Transaction",
        back_populates="documents",
        foreign_keys=[transaction_id],
    )

    fields: Mapped[list["DocField"]] = relationship(
        "DocField",
        back_populates="document",
        cascade="all, delete-orphan",
    )

    chunks: Mapped[list["DocumentChunk"]] = relationship(
        "DocumentChunk",
        back_populates="document",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, type={self.doc_type}, version={self.version_no})>"


class DocField(CreatedAtMixin, Base):
    """
    A single fact extracted from a document page.

    Exactly one of the value columns is populated. The same
    field_name may appear on several pages of the same document.
    """

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    page: Mapped[int | None] = mapped_column(Integer, nullable=True)
    field_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    field_value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_value_num: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    field_value_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    document: Mapped["Document"] = relationship("Document", back_populates="fields")

    __table_args__ = (
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="confidence_range",
        ),
        CheckConstraint(
            "num_nonnulls(field_value_text, field_value_num, field_value_date) = 1",
            name="one_value",
        ),
    )

    def __repr__(self) -> str:
        return f"<DocField(document_id={self.document_id}, name={self.field_name!r}, page={self.page})>"


class EsignEvent(CreatedAtMixin, Base):
    """An e-signature audit event (viewed, signed, ...) reported by the provider."""

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    signer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    signer_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    action: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
