"""
Immutable record types exchanged across the fact store boundary.

Input models (``*Create`` / ``*Update``) carry the write-time constraints:
non-negative money, 3-letter currency, confidence in [0, 1], enum
membership. Output records are frozen so a rule evaluator can never mutate
the facts it is given. Both backends (in-memory and PostgreSQL) return
exactly these types.
"""

import math
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from brokerage_ai.core.errors import ValidationError
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
from brokerage_ai.db.models.transaction import DEFAULT_FORM_NAME

InputT = TypeVar("InputT", bound=BaseModel)


def coerce_input(model_cls: type[InputT], data: InputT | Mapping[str, Any]) -> InputT:
    """
    Validate write input into ``model_cls``.

    Pydantic failures surface as the domain ValidationError, carrying the
    first offending field name.
    """
    if isinstance(data, model_cls):
        return data
    try:
        if isinstance(data, BaseModel):
            return model_cls.model_validate(data.model_dump(exclude_unset=True))
        return model_cls.model_validate(dict(data))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(f"{model_cls.__name__}: {first.get('msg')}", field=field) from exc


class Record(BaseModel):
    """Base for frozen output records, buildable from ORM rows."""

    model_config = ConfigDict(frozen=True, from_attributes=True)


# =============================================================================
# Transactions
# =============================================================================


class TransactionFields(BaseModel):
    """Editable transaction fields and their constraints."""

    deal_code: str | None = None
    property_address: str | None = None
    property_unit: str | None = None
    property_city: str | None = None
    property_state: str | None = None
    property_zip: str | None = None
    property_county: str | None = None

    purchase_price: Decimal | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    financing: FinancingType = FinancingType.UNSPECIFIED
    appraisal: AppraisalContingency = AppraisalContingency.UNSPECIFIED

    earnest_money_amount: Decimal | None = Field(default=None, ge=0)
    earnest_money_due_days: int | None = Field(default=None, ge=0)
    earnest_money_holder_name: str | None = None
    earnest_money_holder_address: str | None = None

    binding_agreement_date: date | None = None
    closing_date: date | None = None

    form_name: str | None = DEFAULT_FORM_NAME
    form_version: str | None = None
    special_stipulations: tuple[str, ...] = ()

    @field_validator("special_stipulations", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return () if value is None else value


class TransactionCreate(TransactionFields):
    """Intake payload. A new transaction starts as draft or open."""

    status: TxnStatus = TxnStatus.OPEN

    @field_validator("status")
    @classmethod
    def _intake_status(cls, value: TxnStatus) -> TxnStatus:
        if value not in (TxnStatus.DRAFT, TxnStatus.OPEN):
            raise ValueError("a new transaction must start as draft or open")
        return value


class TransactionUpdate(BaseModel):
    """Partial manual edit. Only fields that are explicitly set are applied."""

    deal_code: str | None = None
    property_address: str | None = None
    property_unit: str | None = None
    property_city: str | None = None
    property_state: str | None = None
    property_zip: str | None = None
    property_county: str | None = None
    purchase_price: Decimal | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, pattern=r"^[A-Z]{3}$")
    financing: FinancingType | None = None
    appraisal: AppraisalContingency | None = None
    earnest_money_amount: Decimal | None = Field(default=None, ge=0)
    earnest_money_due_days: int | None = Field(default=None, ge=0)
    earnest_money_holder_name: str | None = None
    earnest_money_holder_address: str | None = None
    binding_agreement_date: date | None = None
    closing_date: date | None = None
    form_name: str | None = None
    form_version: str | None = None
    special_stipulations: tuple[str, ...] | None = None
    source_doc_id: uuid.UUID | None = None

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class TransactionRecord(TransactionFields, Record):
    """A persisted transaction."""

    id: uuid.UUID
    source_doc_id: uuid.UUID | None = None
    status: TxnStatus
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Parties and documents
# =============================================================================


class PartyCreate(BaseModel):
    transaction_id: uuid.UUID
    role: PartyRole
    full_name: str = Field(min_length=1)
    firm: str | None = None
    license_no: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class PartyRecord(PartyCreate, Record):
    id: uuid.UUID
    created_at: datetime


class DocumentCreate(BaseModel):
    """
    Document registration payload.

    ``version_no`` is derived by the store: 1 for an original, the
    predecessor's version + 1 when ``supersedes_document_id`` is given.
    """

    transaction_id: uuid.UUID | None = None
    doc_type: DocType
    title: str | None = None
    storage_url: str | None = None
    sha256: str | None = None
    page_count: int | None = Field(default=None, ge=0)
    received_via: IngestSource | None = None
    esign_provider: str | None = None
    esign_package_id: str | None = None
    raw_text: str | None = None
    supersedes_document_id: uuid.UUID | None = None


class DocumentRecord(DocumentCreate, Record):
    id: uuid.UUID
    version_no: int
    received_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DocFieldCreate(BaseModel):
    """One extracted fact carrying exactly one typed value."""

    document_id: uuid.UUID
    field_name: str = Field(min_length=1)
    page: int | None = Field(default=None, ge=1)
    field_value_text: str | None = None
    field_value_num: Decimal | None = None
    field_value_date: date | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _exactly_one_value(self) -> "DocFieldCreate":
        populated = [
            v
            for v in (self.field_value_text, self.field_value_num, self.field_value_date)
            if v is not None
        ]
        if len(populated) != 1:
            raise ValueError(
                "exactly one of field_value_text, field_value_num, field_value_date must be set"
            )
        return self


class DocFieldRecord(DocFieldCreate, Record):
    id: int
    created_at: datetime

    @property
    def value(self) -> str | Decimal | date | None:
        """The populated typed value (date, then number, then text)."""
        if self.field_value_date is not None:
            return self.field_value_date
        if self.field_value_num is not None:
            return self.field_value_num
        return self.field_value_text


class EsignEventCreate(BaseModel):
    document_id: uuid.UUID
    signer_name: str | None = None
    signer_email: str | None = None
    action: str | None = None
    ip_address: str | None = None
    occurred_at: datetime | None = None


class EsignEventRecord(EsignEventCreate, Record):
    id: int
    created_at: datetime


# =============================================================================
# Rule catalog and results
# =============================================================================


class CheckDefinitionRecord(Record):
    """Reference data for one check; also used as the upsert payload."""

    key: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    title: str
    description: str | None = None
    severity: CheckSeverity = CheckSeverity.MEDIUM
    resolver_hint: str | None = None
    requires_hitl: bool = False


class RulePackCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    title: str
    jurisdiction: str | None = None
    notes: str | None = None
    weights: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("weights")
    @classmethod
    def _non_negative_weights(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        for key, weight in value.items():
            if weight < 0:
                raise ValueError(f"weight for {key} must be >= 0")
        return value


class RulePackRecord(RulePackCreate, Record):
    id: uuid.UUID


class CheckResultCreate(BaseModel):
    transaction_id: uuid.UUID
    check_key: str
    status: CheckStatus
    details: dict[str, Any] | None = None
    document_id: uuid.UUID | None = None


class CheckResultRecord(CheckResultCreate, Record):
    """One append-only evaluation row. ``id`` is the insertion sequence."""

    id: int
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Newest wins: created_at first, insertion sequence breaks ties."""
        return (self.created_at, self.id)


class TimelineEventRecord(Record):
    id: int
    transaction_id: uuid.UUID
    event_key: str
    event_title: str | None = None
    event_time: datetime | None = None
    payload: dict[str, Any] | None = None
    created_by: str | None = None
    created_at: datetime


# =============================================================================
# Retrieval
# =============================================================================


class ChunkCreate(BaseModel):
    """A chunk with its precomputed embedding."""

    chunk_index: int = Field(ge=0)
    content: str = Field(min_length=1)
    embedding: list[float]
    tokens: int | None = Field(default=None, ge=0)

    @field_validator("embedding")
    @classmethod
    def _finite_non_zero(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("embedding must not be empty")
        if not all(math.isfinite(x) for x in value):
            raise ValueError("embedding must contain only finite values")
        if not any(value):
            raise ValueError("embedding must have a non-zero norm")
        return value


class ChunkMatch(Record):
    """One ranked search hit."""

    document_id: uuid.UUID
    chunk_index: int
    content: str
    similarity: float


# =============================================================================
# Snapshot
# =============================================================================


class TransactionSnapshot(Record):
    """
    Everything the rule engine and the aggregator read for one transaction,
    taken from a single consistent read.
    """

    transaction: TransactionRecord
    parties: tuple[PartyRecord, ...] = ()
    documents: tuple[DocumentRecord, ...] = ()
    doc_fields: tuple[DocFieldRecord, ...] = ()
    definitions: dict[str, CheckDefinitionRecord] = Field(default_factory=dict)
    assigned_packs: tuple[str, ...] = ()
    pack_weights: dict[str, Decimal] = Field(default_factory=dict)
    latest_results: dict[str, CheckResultRecord] = Field(default_factory=dict)
    rollup_status: TxnStatus | None = None

    @property
    def applicable_keys(self) -> list[str]:
        """Checks of the assigned packs, or the whole catalog when none is assigned."""
        if self.assigned_packs:
            return sorted(self.pack_weights)
        return sorted(self.definitions)

    def weight_for(self, check_key: str) -> Decimal:
        return self.pack_weights.get(check_key, Decimal("1.0"))

    @property
    def current_status(self) -> TxnStatus:
        """Rollup row if one exists, otherwise the transaction's own status."""
        return self.rollup_status or self.transaction.status
