"""
Fact store interface.

The fact store is the only component that touches persisted state. It holds
transactions, parties, documents, extracted fields, the rule catalog,
append-only check results, the rollup status row, and the vector index of
document chunks.

Public methods validate input (raising ValidationError before anything is
written) and then delegate to backend hooks prefixed with ``_``. Backends:

- InMemoryFactStore: process-local dictionaries, used in tests and demos
- SqlFactStore: PostgreSQL + pgvector through async SQLAlchemy
"""

import math
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from brokerage_ai.core.errors import NotFoundError, ValidationError
from brokerage_ai.db.enums import TxnStatus
from brokerage_ai.store.records import (
    CheckDefinitionRecord,
    CheckResultCreate,
    CheckResultRecord,
    ChunkCreate,
    ChunkMatch,
    DocFieldCreate,
    DocFieldRecord,
    DocumentCreate,
    DocumentRecord,
    EsignEventCreate,
    EsignEventRecord,
    PartyCreate,
    PartyRecord,
    RulePackCreate,
    RulePackRecord,
    TimelineEventRecord,
    TransactionCreate,
    TransactionRecord,
    TransactionSnapshot,
    TransactionUpdate,
    coerce_input,
)


class FactStore(ABC):
    """Async data access for the compliance and retrieval services."""

    def __init__(self, embedding_dimension: int):
        self.embedding_dimension = embedding_dimension

    # =========================================================================
    # Transactions
    # =========================================================================

    async def create_transaction(
        self, data: TransactionCreate | Mapping[str, Any]
    ) -> TransactionRecord:
        payload = coerce_input(TransactionCreate, data)
        return await self._insert_transaction(payload)

    async def get_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord:
        record = await self._fetch_transaction(transaction_id)
        if record is None:
            raise NotFoundError("Transaction", transaction_id)
        return record

    async def update_transaction(
        self,
        transaction_id: uuid.UUID,
        data: TransactionUpdate | Mapping[str, Any],
    ) -> TransactionRecord:
        """
        Apply a manual edit. ``status`` is not editable here; lifecycle
        changes go through the status aggregator.
        """
        if isinstance(data, Mapping) and "status" in data:
            raise ValidationError("status is changed through rollup, close or void", field="status")
        payload = coerce_input(TransactionUpdate, data)
        changes = payload.changes()
        if "currency" in changes and changes["currency"] is None:
            raise ValidationError("currency cannot be null", field="currency")
        for enum_field in ("financing", "appraisal"):
            if enum_field in changes and changes[enum_field] is None:
                raise ValidationError(f"{enum_field} cannot be null", field=enum_field)
        await self.get_transaction(transaction_id)
        return await self._update_transaction(transaction_id, changes)

    async def list_transaction_ids(self) -> list[uuid.UUID]:
        return await self._list_transaction_ids()

    # =========================================================================
    # Parties, documents, fields
    # =========================================================================

    async def add_party(self, data: PartyCreate | Mapping[str, Any]) -> PartyRecord:
        payload = coerce_input(PartyCreate, data)
        await self.get_transaction(payload.transaction_id)
        return await self._insert_party(payload)

    async def add_document(self, data: DocumentCreate | Mapping[str, Any]) -> DocumentRecord:
        """
        Register a document.

        A superseding document must point at an already-persisted document
        of the same transaction; that rule alone keeps version chains acyclic.
        """
        payload = coerce_input(DocumentCreate, data)
        if payload.transaction_id is not None:
            await self.get_transaction(payload.transaction_id)

        version_no = 1
        if payload.supersedes_document_id is not None:
            previous = await self._fetch_document(payload.supersedes_document_id)
            if previous is None:
                raise ValidationError(
                    f"superseded document {payload.supersedes_document_id} does not exist",
                    field="supersedes_document_id",
                )
            if previous.transaction_id != payload.transaction_id:
                raise ValidationError(
                    "a document can only supersede a document of the same transaction",
                    field="supersedes_document_id",
                )
            version_no = previous.version_no + 1

        return await self._insert_document(payload, version_no)

    async def get_document(self, document_id: uuid.UUID) -> DocumentRecord:
        record = await self._fetch_document(document_id)
        if record is None:
            raise NotFoundError("Document", document_id)
        return record

    async def document_chain_head(self, document_id: uuid.UUID) -> DocumentRecord:
        """
        Newest version reachable from ``document_id`` through supersedes-links.

        When two documents supersede the same version, the higher version
        number wins, then the later insert.
        """
        current = await self.get_document(document_id)
        visited = {current.id}
        while True:
            successors = await self._fetch_successors(current.id)
            if not successors:
                return current
            successor = max(successors, key=lambda d: (d.version_no, d.created_at, d.id.bytes))
            if successor.id in visited:
                raise ValidationError(f"version chain of {document_id} contains a cycle")
            visited.add(successor.id)
            current = successor

    async def add_doc_field(self, data: DocFieldCreate | Mapping[str, Any]) -> DocFieldRecord:
        payload = coerce_input(DocFieldCreate, data)
        await self.get_document(payload.document_id)
        return await self._insert_doc_field(payload)

    async def add_esign_event(
        self, data: EsignEventCreate | Mapping[str, Any]
    ) -> EsignEventRecord:
        payload = coerce_input(EsignEventCreate, data)
        await self.get_document(payload.document_id)
        return await self._insert_esign_event(payload)

    # =========================================================================
    # Rule catalog
    # =========================================================================

    async def upsert_check_definition(
        self, data: CheckDefinitionRecord | Mapping[str, Any]
    ) -> CheckDefinitionRecord:
        payload = coerce_input(CheckDefinitionRecord, data)
        return await self._upsert_check_definition(payload)

    async def list_check_definitions(self) -> list[CheckDefinitionRecord]:
        return await self._list_check_definitions()

    async def upsert_rule_pack(self, data: RulePackCreate | Mapping[str, Any]) -> RulePackRecord:
        payload = coerce_input(RulePackCreate, data)
        known = {d.key for d in await self._list_check_definitions()}
        unknown = sorted(set(payload.weights) - known)
        if unknown:
            raise NotFoundError("CheckDefinition", ", ".join(unknown))
        return await self._upsert_rule_pack(payload)

    async def assign_rule_pack(self, transaction_id: uuid.UUID, pack_code: str) -> None:
        await self.get_transaction(transaction_id)
        await self._assign_rule_pack(transaction_id, pack_code)

    # =========================================================================
    # Check results and rollup status
    # =========================================================================

    async def append_check_result(
        self, data: CheckResultCreate | Mapping[str, Any]
    ) -> CheckResultRecord:
        """Append one evaluation row. Prior rows are never touched."""
        payload = coerce_input(CheckResultCreate, data)
        if payload.status.requires_details and not payload.details:
            raise ValidationError(
                f"a {payload.status.value} result must carry details", field="details"
            )
        return await self._insert_check_result(payload)

    async def list_check_results(
        self,
        transaction_id: uuid.UUID,
        check_key: str | None = None,
    ) -> list[CheckResultRecord]:
        """Full result history, oldest first."""
        results = await self._list_check_results(transaction_id, check_key)
        return sorted(results, key=lambda r: r.sort_key)

    async def load_snapshot(self, transaction_id: uuid.UUID) -> TransactionSnapshot:
        """Read every input of evaluation and rollup from one consistent view."""
        snapshot = await self._load_snapshot(transaction_id)
        if snapshot is None:
            raise NotFoundError("Transaction", transaction_id)
        return snapshot

    async def compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: TxnStatus | None,
        new_status: TxnStatus,
        *,
        actor: str,
        reason: str | None = None,
    ) -> bool:
        """
        Replace the rollup status row only if it still holds ``expected``
        (``None`` meaning no row yet). Also mirrors the status onto the
        transaction and appends a ``status_changed`` timeline event.

        Returns False when another writer got there first.
        """
        return await self._compare_and_set_status(
            transaction_id, expected, new_status, actor=actor, reason=reason
        )

    async def list_timeline(self, transaction_id: uuid.UUID) -> list[TimelineEventRecord]:
        await self.get_transaction(transaction_id)
        return await self._list_timeline(transaction_id)

    # =========================================================================
    # Vector index
    # =========================================================================

    async def add_chunks(
        self,
        document_id: uuid.UUID,
        chunks: Sequence[ChunkCreate | Mapping[str, Any]],
    ) -> int:
        """
        Append embedded chunks for a document.

        The whole batch is rejected if any chunk has the wrong dimension or
        reuses a chunk_index; chunks are immutable once stored.
        """
        payloads = [coerce_input(ChunkCreate, chunk) for chunk in chunks]
        for payload in payloads:
            self.check_dimension(payload.embedding, field=f"chunks[{payload.chunk_index}].embedding")
        indexes = [p.chunk_index for p in payloads]
        if len(set(indexes)) != len(indexes):
            raise ValidationError("duplicate chunk_index in batch", field="chunk_index")
        await self.get_document(document_id)
        existing = await self._existing_chunk_indexes(document_id, indexes)
        if existing:
            raise ValidationError(
                f"chunk_index already stored for document {document_id}: {sorted(existing)}",
                field="chunk_index",
            )
        if not payloads:
            return 0
        return await self._insert_chunks(document_id, payloads)

    async def search_chunks(
        self,
        query_embedding: Sequence[float],
        top_k: int,
        min_content_length: int,
    ) -> list[ChunkMatch]:
        """Nearest chunks by cosine distance; ties by chunk_index then document_id."""
        if top_k < 1:
            raise ValidationError("top_k must be at least 1", field="top_k")
        query = [float(x) for x in query_embedding]
        self.check_dimension(query, field="query_embedding")
        if not all(math.isfinite(x) for x in query) or not any(query):
            raise ValidationError(
                "query embedding must be finite with a non-zero norm", field="query_embedding"
            )
        return await self._search_chunks(query, top_k, max(min_content_length, 0))

    def check_dimension(self, embedding: Sequence[float], field: str = "embedding") -> None:
        if len(embedding) != self.embedding_dimension:
            raise ValidationError(
                f"embedding has dimension {len(embedding)}, expected {self.embedding_dimension}",
                field=field,
            )

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abstractmethod
    async def _insert_transaction(self, payload: TransactionCreate) -> TransactionRecord: ...

    @abstractmethod
    async def _fetch_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord | None: ...

    @abstractmethod
    async def _update_transaction(
        self, transaction_id: uuid.UUID, changes: dict[str, Any]
    ) -> TransactionRecord: ...

    @abstractmethod
    async def _list_transaction_ids(self) -> list[uuid.UUID]: ...

    @abstractmethod
    async def _insert_party(self, payload: PartyCreate) -> PartyRecord: ...

    @abstractmethod
    async def _insert_document(self, payload: DocumentCreate, version_no: int) -> DocumentRecord: ...

    @abstractmethod
    async def _fetch_document(self, document_id: uuid.UUID) -> DocumentRecord | None: ...

    @abstractmethod
    async def _fetch_successors(self, document_id: uuid.UUID) -> list[DocumentRecord]: ...

    @abstractmethod
    async def _insert_doc_field(self, payload: DocFieldCreate) -> DocFieldRecord: ...

    @abstractmethod
    async def _insert_esign_event(self, payload: EsignEventCreate) -> EsignEventRecord: ...

    @abstractmethod
    async def _upsert_check_definition(
        self, payload: CheckDefinitionRecord
    ) -> CheckDefinitionRecord: ...

    @abstractmethod
    async def _list_check_definitions(self) -> list[CheckDefinitionRecord]: ...

    @abstractmethod
    async def _upsert_rule_pack(self, payload: RulePackCreate) -> RulePackRecord: ...

    @abstractmethod
    async def _assign_rule_pack(self, transaction_id: uuid.UUID, pack_code: str) -> None: ...

    @abstractmethod
    async def _insert_check_result(self, payload: CheckResultCreate) -> CheckResultRecord: ...

    @abstractmethod
    async def _list_check_results(
        self, transaction_id: uuid.UUID, check_key: str | None
    ) -> list[CheckResultRecord]: ...

    @abstractmethod
    async def _load_snapshot(self, transaction_id: uuid.UUID) -> TransactionSnapshot | None: ...

    @abstractmethod
    async def _compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: TxnStatus | None,
        new_status: TxnStatus,
        *,
        actor: str,
        reason: str | None,
    ) -> bool: ...

    @abstractmethod
    async def _list_timeline(self, transaction_id: uuid.UUID) -> list[TimelineEventRecord]: ...

    @abstractmethod
    async def _existing_chunk_indexes(
        self, document_id: uuid.UUID, indexes: list[int]
    ) -> set[int]: ...

    @abstractmethod
    async def _insert_chunks(self, document_id: uuid.UUID, payloads: list[ChunkCreate]) -> int: ...

    @abstractmethod
    async def _search_chunks(
        self, query_embedding: list[float], top_k: int, min_content_length: int
    ) -> list[ChunkMatch]: ...

    async def close(self) -> None:
        """Release backend resources."""
        return None
