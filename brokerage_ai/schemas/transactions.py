"""Pydantic schemas for transaction, party, and document endpoints."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from brokerage_ai.db.enums import DocType, IngestSource, PartyRole, TxnStatus
from brokerage_ai.store.records import DocumentRecord, PartyRecord, TransactionRecord

# =============================================================================
# Request Schemas
# =============================================================================


class PartyCreateRequest(BaseModel):
    """A party to add to a transaction."""

    role: PartyRole = Field(description="Role in the transaction")
    full_name: str = Field(min_length=1, description="Person or firm name")
    firm: str | None = None
    license_no: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class DocumentCreateRequest(BaseModel):
    """A document received for a transaction."""

    doc_type: DocType = Field(description="Kind of document")
    title: str | None = None
    storage_url: str | None = Field(default=None, description="Storage reference")
    sha256: str | None = Field(default=None, description="Content hash")
    page_count: int | None = Field(default=None, ge=0)
    received_via: IngestSource | None = None
    esign_provider: str | None = None
    esign_package_id: str | None = None
    raw_text: str | None = None
    supersedes_document_id: UUID | None = Field(
        default=None,
        description="Previous version of this document (same transaction)",
    )


class DocFieldCreateRequest(BaseModel):
    """One fact extracted from a document; exactly one value field is set."""

    field_name: str = Field(min_length=1, description="Extracted field name")
    page: int | None = Field(default=None, ge=1)
    field_value_text: str | None = None
    field_value_num: Decimal | None = None
    field_value_date: date | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class EsignEventCreateRequest(BaseModel):
    """An e-signature audit event reported by the provider."""

    signer_name: str | None = None
    signer_email: str | None = None
    action: str | None = Field(default=None, description="viewed, signed, ...")
    ip_address: str | None = None
    occurred_at: datetime | None = None


class RulePackAssignRequest(BaseModel):
    pack_code: str = Field(min_length=1, description="Rule pack code, e.g. TN_RES_2025")


# =============================================================================
# Response Schemas
# =============================================================================


class TransactionDetail(BaseModel):
    """A transaction with its parties, documents, and rollup status."""

    transaction: TransactionRecord
    parties: list[PartyRecord] = Field(default_factory=list)
    documents: list[DocumentRecord] = Field(default_factory=list)
    assigned_packs: list[str] = Field(default_factory=list)
    rollup_status: TxnStatus | None = Field(
        default=None, description="Stored rollup status (None before the first rollup)"
    )
