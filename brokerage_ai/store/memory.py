"""
In-memory fact store.

Keeps every record in process-local dictionaries guarded by one asyncio
lock, so snapshots and conditional status writes are atomic with respect
to other coroutines in the same event loop. Used by the test suite and by
``FACT_STORE_BACKEND=memory`` for local runs without PostgreSQL.
"""

import asyncio
import itertools
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import numpy as np
from uuid6 import uuid7

from brokerage_ai.core.errors import NotFoundError, ValidationError
from brokerage_ai.core.logging import get_logger
from brokerage_ai.db.enums import TxnStatus
from brokerage_ai.store.base import FactStore
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
)

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryFactStore(FactStore):
    """Process-local FactStore backend."""

    def __init__(self, embedding_dimension: int):
        super().__init__(embedding_dimension)
        self._lock = asyncio.Lock()
        self._ids = itertools.count(1)

        self._transactions: dict[uuid.UUID, TransactionRecord] = {}
        self._parties: dict[uuid.UUID, list[PartyRecord]] = {}
        self._documents: dict[uuid.UUID, DocumentRecord] = {}
        self._fields: dict[uuid.UUID, list[DocFieldRecord]] = {}
        self._esign_events: dict[uuid.UUID, list[EsignEventRecord]] = {}
        self._definitions: dict[str, CheckDefinitionRecord] = {}
        self._packs: dict[str, RulePackRecord] = {}
        self._assignments: dict[uuid.UUID, list[str]] = {}
        self._results: dict[uuid.UUID, list[CheckResultRecord]] = {}
        self._status: dict[uuid.UUID, TxnStatus] = {}
        self._timeline: dict[uuid.UUID, list[TimelineEventRecord]] = {}
        # (document_id, chunk_index) -> (content, unit vector)
        self._chunks: dict[tuple[uuid.UUID, int], tuple[str, np.ndarray]] = {}

    def _next_id(self) -> int:
        return next(self._ids)

    # -- transactions ---------------------------------------------------------

    async def _insert_transaction(self, payload: TransactionCreate) -> TransactionRecord:
        now = _now()
        record = TransactionRecord(
            **payload.model_dump(), id=uuid7(), created_at=now, updated_at=now
        )
        async with self._lock:
            self._transactions[record.id] = record
        return record

    async def _fetch_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord | None:
        return self._transactions.get(transaction_id)

    async def _update_transaction(
        self, transaction_id: uuid.UUID, changes: dict[str, Any]
    ) -> TransactionRecord:
        async with self._lock:
            current = self._transactions[transaction_id]
            updated = current.model_copy(update={**changes, "updated_at": _now()})
            # model_copy skips validation; normalise stipulations explicitly
            if "special_stipulations" in changes:
                updated = updated.model_copy(
                    update={"special_stipulations": tuple(changes["special_stipulations"] or ())}
                )
            self._transactions[transaction_id] = updated
        return updated

    async def _list_transaction_ids(self) -> list[uuid.UUID]:
        return sorted(self._transactions)

    # -- parties, documents, fields -------------------------------------------

    async def _insert_party(self, payload: PartyCreate) -> PartyRecord:
        record = PartyRecord(**payload.model_dump(), id=uuid7(), created_at=_now())
        async with self._lock:
            self._parties.setdefault(payload.transaction_id, []).append(record)
        return record

    async def _insert_document(self, payload: DocumentCreate, version_no: int) -> DocumentRecord:
        now = _now()
        record = DocumentRecord(
            **payload.model_dump(),
            id=uuid7(),
            version_no=version_no,
            received_at=now,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._documents[record.id] = record
        return record

    async def _fetch_document(self, document_id: uuid.UUID) -> DocumentRecord | None:
        return self._documents.get(document_id)

    async def _fetch_successors(self, document_id: uuid.UUID) -> list[DocumentRecord]:
        return [d for d in self._documents.values() if d.supersedes_document_id == document_id]

    async def _insert_doc_field(self, payload: DocFieldCreate) -> DocFieldRecord:
        async with self._lock:
            record = DocFieldRecord(**payload.model_dump(), id=self._next_id(), created_at=_now())
            self._fields.setdefault(payload.document_id, []).append(record)
        return record

    async def _insert_esign_event(self, payload: EsignEventCreate) -> EsignEventRecord:
        async with self._lock:
            record = EsignEventRecord(**payload.model_dump(), id=self._next_id(), created_at=_now())
            self._esign_events.setdefault(payload.document_id, []).append(record)
        return record

    # -- rule catalog ---------------------------------------------------------

    async def _upsert_check_definition(
        self, payload: CheckDefinitionRecord
    ) -> CheckDefinitionRecord:
        async with self._lock:
            self._definitions[payload.key] = payload
        return payload

    async def _list_check_definitions(self) -> list[CheckDefinitionRecord]:
        return [self._definitions[key] for key in sorted(self._definitions)]

    async def _upsert_rule_pack(self, payload: RulePackCreate) -> RulePackRecord:
        async with self._lock:
            existing = self._packs.get(payload.code)
            pack_id = existing.id if existing else uuid7()
            record = RulePackRecord(**payload.model_dump(), id=pack_id)
            self._packs[payload.code] = record
        return record

    async def _assign_rule_pack(self, transaction_id: uuid.UUID, pack_code: str) -> None:
        async with self._lock:
            if pack_code not in self._packs:
                raise NotFoundError("RulePack", pack_code)
            assigned = self._assignments.setdefault(transaction_id, [])
            if pack_code not in assigned:
                assigned.append(pack_code)

    # -- results and rollup ---------------------------------------------------

    async def _insert_check_result(self, payload: CheckResultCreate) -> CheckResultRecord:
        async with self._lock:
            if payload.transaction_id not in self._transactions:
                raise NotFoundError("Transaction", payload.transaction_id)
            if payload.check_key not in self._definitions:
                raise NotFoundError("CheckDefinition", payload.check_key)
            record = CheckResultRecord(
                **payload.model_dump(), id=self._next_id(), created_at=_now()
            )
            self._results.setdefault(payload.transaction_id, []).append(record)
        return record

    async def _list_check_results(
        self, transaction_id: uuid.UUID, check_key: str | None
    ) -> list[CheckResultRecord]:
        results = list(self._results.get(transaction_id, ()))
        if check_key is not None:
            results = [r for r in results if r.check_key == check_key]
        return results

    async def _load_snapshot(self, transaction_id: uuid.UUID) -> TransactionSnapshot | None:
        async with self._lock:
            txn = self._transactions.get(transaction_id)
            if txn is None:
                return None

            documents = sorted(
                (d for d in self._documents.values() if d.transaction_id == transaction_id),
                key=lambda d: (d.created_at, d.id),
            )
            fields = [f for d in documents for f in self._fields.get(d.id, ())]

            assigned = tuple(self._assignments.get(transaction_id, ()))
            weights: dict[str, Decimal] = {}
            for code in assigned:
                for key, weight in self._packs[code].weights.items():
                    weights[key] = max(weight, weights.get(key, weight))

            latest: dict[str, CheckResultRecord] = {}
            for result in self._results.get(transaction_id, ()):
                current = latest.get(result.check_key)
                if current is None or result.sort_key > current.sort_key:
                    latest[result.check_key] = result

            return TransactionSnapshot(
                transaction=txn,
                parties=tuple(self._parties.get(transaction_id, ())),
                documents=tuple(documents),
                doc_fields=tuple(fields),
                definitions=dict(self._definitions),
                assigned_packs=assigned,
                pack_weights=weights,
                latest_results=latest,
                rollup_status=self._status.get(transaction_id),
            )

    async def _compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: TxnStatus | None,
        new_status: TxnStatus,
        *,
        actor: str,
        reason: str | None,
    ) -> bool:
        async with self._lock:
            txn = self._transactions.get(transaction_id)
            if txn is None:
                raise NotFoundError("Transaction", transaction_id)
            if self._status.get(transaction_id) != expected:
                return False

            now = _now()
            self._status[transaction_id] = new_status
            self._transactions[transaction_id] = txn.model_copy(
                update={"status": new_status, "updated_at": now}
            )
            previous = expected or txn.status
            self._timeline.setdefault(transaction_id, []).append(
                TimelineEventRecord(
                    id=self._next_id(),
                    transaction_id=transaction_id,
                    event_key="status_changed",
                    event_title=f"Status {previous.value} -> {new_status.value}",
                    event_time=now,
                    payload={"from": previous.value, "to": new_status.value, "reason": reason},
                    created_by=actor,
                    created_at=now,
                )
            )
        return True

    async def _list_timeline(self, transaction_id: uuid.UUID) -> list[TimelineEventRecord]:
        return list(self._timeline.get(transaction_id, ()))

    # -- vector index ---------------------------------------------------------

    async def _existing_chunk_indexes(
        self, document_id: uuid.UUID, indexes: list[int]
    ) -> set[int]:
        return {i for i in indexes if (document_id, i) in self._chunks}

    async def _insert_chunks(self, document_id: uuid.UUID, payloads: list[ChunkCreate]) -> int:
        async with self._lock:
            if any((document_id, p.chunk_index) in self._chunks for p in payloads):
                raise ValidationError("chunk_index already stored", field="chunk_index")
            for payload in payloads:
                vector = np.asarray(payload.embedding, dtype=np.float64)
                self._chunks[(document_id, payload.chunk_index)] = (
                    payload.content,
                    vector / np.linalg.norm(vector),
                )
        logger.debug("Chunks indexed", document_id=str(document_id), count=len(payloads))
        return len(payloads)

    async def _search_chunks(
        self, query_embedding: list[float], top_k: int, min_content_length: int
    ) -> list[ChunkMatch]:
        query = np.asarray(query_embedding, dtype=np.float64)
        query = query / np.linalg.norm(query)

        scored = []
        for (document_id, chunk_index), (content, vector) in self._chunks.items():
            if len(content) < min_content_length:
                continue
            distance = float(np.clip(1.0 - float(np.dot(query, vector)), 0.0, 2.0))
            scored.append((distance, chunk_index, document_id, content))

        scored.sort(key=lambda item: (item[0], item[1], item[2]))
        return [
            ChunkMatch(
                document_id=document_id,
                chunk_index=chunk_index,
                content=content,
                similarity=1.0 - distance,
            )
            for distance, chunk_index, document_id, content in scored[:top_k]
        ]
