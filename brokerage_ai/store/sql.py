"""
PostgreSQL fact store (async SQLAlchemy + asyncpg + pgvector).

Every public operation opens its own session. Writes commit atomically
through ``transaction()``; snapshots run under REPEATABLE READ so all the
facts, catalog rows and latest results come from one consistent view.

The rollup status write serialises on a transaction-scoped advisory lock
keyed by the transaction id, then compares the stored status with the
caller's expected value before replacing it.

Connection failures surface as DependencyUnavailable; the store never
retries on its own.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from brokerage_ai.core.errors import DependencyUnavailable, NotFoundError, ValidationError
from brokerage_ai.core.logging import get_logger
from brokerage_ai.db.enums import TxnStatus
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
from brokerage_ai.db.session import transaction
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


def _advisory_key(transaction_id: uuid.UUID) -> int:
    """Signed 64-bit lock key derived from the transaction id."""
    return int.from_bytes(transaction_id.bytes[:8], "big", signed=True)


def _transaction_row_values(data: dict[str, Any]) -> dict[str, Any]:
    if "special_stipulations" in data:
        stipulations = data["special_stipulations"]
        data["special_stipulations"] = list(stipulations) if stipulations else None
    return data


class SqlFactStore(FactStore):
    """FactStore backed by PostgreSQL."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedding_dimension: int,
    ):
        super().__init__(embedding_dimension)
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, write: bool = False) -> AsyncGenerator[AsyncSession, None]:
        """Open a session; commit on success when ``write`` is set."""
        try:
            async with self._session_factory() as session:
                if write:
                    async with transaction(session):
                        yield session
                else:
                    yield session
        except IntegrityError as e:
            raise ValidationError(f"constraint violated: {e.orig}") from e
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error("Fact store unavailable", error=str(e))
            raise DependencyUnavailable(f"database unavailable: {e}") from e

    # -- transactions ---------------------------------------------------------

    async def _insert_transaction(self, payload: TransactionCreate) -> TransactionRecord:
        async with self._session(write=True) as session:
            row = Transaction(**_transaction_row_values(payload.model_dump()))
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return TransactionRecord.model_validate(row)

    async def _fetch_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord | None:
        async with self._session() as session:
            row = await session.get(Transaction, transaction_id)
            return TransactionRecord.model_validate(row) if row else None

    async def _update_transaction(
        self, transaction_id: uuid.UUID, changes: dict[str, Any]
    ) -> TransactionRecord:
        async with self._session(write=True) as session:
            row = await session.get(Transaction, transaction_id, with_for_update=True)
            if row is None:
                raise NotFoundError("Transaction", transaction_id)
            for key, value in _transaction_row_values(dict(changes)).items():
                setattr(row, key, value)
            await session.flush()
            await session.refresh(row)
            return TransactionRecord.model_validate(row)

    async def _list_transaction_ids(self) -> list[uuid.UUID]:
        async with self._session() as session:
            result = await session.execute(select(Transaction.id).order_by(Transaction.id))
            return list(result.scalars().all())

    # -- parties, documents, fields -------------------------------------------

    async def _insert_party(self, payload: PartyCreate) -> PartyRecord:
        async with self._session(write=True) as session:
            row = Party(**payload.model_dump())
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return PartyRecord.model_validate(row)

    async def _insert_document(self, payload: DocumentCreate, version_no: int) -> DocumentRecord:
        async with self._session(write=True) as session:
            row = Document(**payload.model_dump(), version_no=version_no)
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return DocumentRecord.model_validate(row)

    async def _fetch_document(self, document_id: uuid.UUID) -> DocumentRecord | None:
        async with self._session() as session:
            row = await session.get(Document, document_id)
            return DocumentRecord.model_validate(row) if row else None

    async def _fetch_successors(self, document_id: uuid.UUID) -> list[DocumentRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(Document).where(Document.supersedes_document_id == document_id)
            )
            return [DocumentRecord.model_validate(row) for row in result.scalars().all()]

    async def _insert_doc_field(self, payload: DocFieldCreate) -> DocFieldRecord:
        async with self._session(write=True) as session:
            row = DocField(**payload.model_dump())
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return DocFieldRecord.model_validate(row)

    async def _insert_esign_event(self, payload: EsignEventCreate) -> EsignEventRecord:
        async with self._session(write=True) as session:
            row = EsignEvent(**payload.model_dump())
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return EsignEventRecord.model_validate(row)

    # -- rule catalog ---------------------------------------------------------

    async def _upsert_check_definition(
        self, payload: CheckDefinitionRecord
    ) -> CheckDefinitionRecord:
        async with self._session(write=True) as session:
            result = await session.execute(
                select(CheckDefinition).where(CheckDefinition.key == payload.key)
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = CheckDefinition(key=payload.key)
                session.add(row)
            for key, value in payload.model_dump(exclude={"key"}).items():
                setattr(row, key, value)
            await session.flush()
            return CheckDefinitionRecord.model_validate(row)

    async def _list_check_definitions(self) -> list[CheckDefinitionRecord]:
        async with self._session() as session:
            result = await session.execute(select(CheckDefinition).order_by(CheckDefinition.key))
            return [CheckDefinitionRecord.model_validate(row) for row in result.scalars().all()]

    async def _upsert_rule_pack(self, payload: RulePackCreate) -> RulePackRecord:
        async with self._session(write=True) as session:
            result = await session.execute(select(RulePack).where(RulePack.code == payload.code))
            pack = result.scalar_one_or_none()
            if pack is None:
                pack = RulePack(code=payload.code)
                session.add(pack)
            pack.title = payload.title
            pack.jurisdiction = payload.jurisdiction
            pack.notes = payload.notes
            await session.flush()

            existing = await session.execute(
                select(RulePackCheck).where(RulePackCheck.rule_pack_id == pack.id)
            )
            members = {m.check_key: m for m in existing.scalars().all()}
            for check_key, member in members.items():
                if check_key not in payload.weights:
                    await session.delete(member)
            for check_key, weight in payload.weights.items():
                if check_key in members:
                    members[check_key].weight = weight
                else:
                    session.add(
                        RulePackCheck(rule_pack_id=pack.id, check_key=check_key, weight=weight)
                    )
            await session.flush()

            return RulePackRecord(
                id=pack.id,
                code=pack.code,
                title=pack.title,
                jurisdiction=pack.jurisdiction,
                notes=pack.notes,
                weights=dict(payload.weights),
            )

    async def _assign_rule_pack(self, transaction_id: uuid.UUID, pack_code: str) -> None:
        async with self._session(write=True) as session:
            result = await session.execute(select(RulePack.id).where(RulePack.code == pack_code))
            pack_id = result.scalar_one_or_none()
            if pack_id is None:
                raise NotFoundError("RulePack", pack_code)
            if await session.get(TransactionRulePack, (transaction_id, pack_id)) is None:
                session.add(TransactionRulePack(transaction_id=transaction_id, rule_pack_id=pack_id))

    # -- results and rollup ---------------------------------------------------

    async def _insert_check_result(self, payload: CheckResultCreate) -> CheckResultRecord:
        async with self._session(write=True) as session:
            if await session.get(Transaction, payload.transaction_id) is None:
                raise NotFoundError("Transaction", payload.transaction_id)
            known = await session.execute(
                select(CheckDefinition.key).where(CheckDefinition.key == payload.check_key)
            )
            if known.scalar_one_or_none() is None:
                raise NotFoundError("CheckDefinition", payload.check_key)

            row = CheckResult(**payload.model_dump())
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return CheckResultRecord.model_validate(row)

    async def _list_check_results(
        self, transaction_id: uuid.UUID, check_key: str | None
    ) -> list[CheckResultRecord]:
        query = select(CheckResult).where(CheckResult.transaction_id == transaction_id)
        if check_key is not None:
            query = query.where(CheckResult.check_key == check_key)
        async with self._session() as session:
            result = await session.execute(query.order_by(CheckResult.created_at, CheckResult.id))
            return [CheckResultRecord.model_validate(row) for row in result.scalars().all()]

    async def _load_snapshot(self, transaction_id: uuid.UUID) -> TransactionSnapshot | None:
        async with self._session() as session:
            await session.connection(execution_options={"isolation_level": "REPEATABLE READ"})

            txn = await session.get(Transaction, transaction_id)
            if txn is None:
                return None

            parties = await session.execute(
                select(Party).where(Party.transaction_id == transaction_id).order_by(Party.created_at)
            )
            documents = (
                await session.execute(
                    select(Document)
                    .where(Document.transaction_id == transaction_id)
                    .order_by(Document.created_at, Document.id)
                )
            ).scalars().all()
            document_ids = [d.id for d in documents]
            fields = []
            if document_ids:
                fields = (
                    await session.execute(
                        select(DocField)
                        .where(DocField.document_id.in_(document_ids))
                        .order_by(DocField.id)
                    )
                ).scalars().all()

            definitions = (await session.execute(select(CheckDefinition))).scalars().all()

            packs = await session.execute(
                select(RulePack.code, RulePackCheck.check_key, RulePackCheck.weight)
                .join(TransactionRulePack, TransactionRulePack.rule_pack_id == RulePack.id)
                .outerjoin(RulePackCheck, RulePackCheck.rule_pack_id == RulePack.id)
                .where(TransactionRulePack.transaction_id == transaction_id)
                .order_by(RulePack.code)
            )
            assigned: list[str] = []
            weights: dict[str, Decimal] = {}
            for code, check_key, weight in packs.all():
                if code not in assigned:
                    assigned.append(code)
                if check_key is not None:
                    weights[check_key] = max(weight, weights.get(check_key, weight))

            latest = await session.execute(
                select(CheckResult)
                .where(CheckResult.transaction_id == transaction_id)
                .distinct(CheckResult.check_key)
                .order_by(CheckResult.check_key, CheckResult.created_at.desc(), CheckResult.id.desc())
            )

            rollup_row = await session.get(TransactionStatus, transaction_id)

            snapshot = TransactionSnapshot(
                transaction=TransactionRecord.model_validate(txn),
                parties=tuple(PartyRecord.model_validate(p) for p in parties.scalars().all()),
                documents=tuple(DocumentRecord.model_validate(d) for d in documents),
                doc_fields=tuple(DocFieldRecord.model_validate(f) for f in fields),
                definitions={d.key: CheckDefinitionRecord.model_validate(d) for d in definitions},
                assigned_packs=tuple(assigned),
                pack_weights=weights,
                latest_results={
                    r.check_key: CheckResultRecord.model_validate(r)
                    for r in latest.scalars().all()
                },
                rollup_status=rollup_row.status if rollup_row else None,
            )
            await session.commit()
            return snapshot

    async def _compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: TxnStatus | None,
        new_status: TxnStatus,
        *,
        actor: str,
        reason: str | None,
    ) -> bool:
        async with self._session(write=True) as session:
            await session.execute(select(func.pg_advisory_xact_lock(_advisory_key(transaction_id))))

            txn = await session.get(Transaction, transaction_id, with_for_update=True)
            if txn is None:
                raise NotFoundError("Transaction", transaction_id)
            row = await session.get(TransactionStatus, transaction_id, with_for_update=True)
            stored = row.status if row else None
            if stored != expected:
                logger.debug(
                    "Status write lost race",
                    transaction_id=str(transaction_id),
                    expected=expected.value if expected else None,
                    stored=stored.value if stored else None,
                )
                return False

            previous = expected or txn.status
            if row is None:
                session.add(TransactionStatus(transaction_id=transaction_id, status=new_status))
            else:
                row.status = new_status
            txn.status = new_status
            session.add(
                TimelineEvent(
                    transaction_id=transaction_id,
                    event_key="status_changed",
                    event_title=f"Status {previous.value} -> {new_status.value}",
                    event_time=func.now(),
                    payload={"from": previous.value, "to": new_status.value, "reason": reason},
                    created_by=actor,
                )
            )
            return True

    async def _list_timeline(self, transaction_id: uuid.UUID) -> list[TimelineEventRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(TimelineEvent)
                .where(TimelineEvent.transaction_id == transaction_id)
                .order_by(TimelineEvent.id)
            )
            return [TimelineEventRecord.model_validate(row) for row in result.scalars().all()]

    # -- vector index ---------------------------------------------------------

    async def _existing_chunk_indexes(
        self, document_id: uuid.UUID, indexes: list[int]
    ) -> set[int]:
        if not indexes:
            return set()
        async with self._session() as session:
            result = await session.execute(
                select(DocumentChunk.chunk_index).where(
                    DocumentChunk.document_id == document_id,
                    DocumentChunk.chunk_index.in_(indexes),
                )
            )
            return set(result.scalars().all())

    async def _insert_chunks(self, document_id: uuid.UUID, payloads: list[ChunkCreate]) -> int:
        async with self._session(write=True) as session:
            session.add_all(
                DocumentChunk(
                    document_id=document_id,
                    chunk_index=p.chunk_index,
                    content=p.content,
                    embedding=p.embedding,
                    tokens=p.tokens,
                )
                for p in payloads
            )
        logger.debug("Chunks indexed", document_id=str(document_id), count=len(payloads))
        return len(payloads)

    async def _search_chunks(
        self, query_embedding: list[float], top_k: int, min_content_length: int
    ) -> list[ChunkMatch]:
        distance = DocumentChunk.embedding.cosine_distance(query_embedding).label("distance")
        query = (
            select(
                DocumentChunk.document_id,
                DocumentChunk.chunk_index,
                DocumentChunk.content,
                distance,
            )
            .where(func.length(DocumentChunk.content) >= min_content_length)
            .order_by(distance, DocumentChunk.chunk_index, DocumentChunk.document_id)
            .limit(top_k)
        )
        async with self._session() as session:
            result = await session.execute(query)
            return [
                ChunkMatch(
                    document_id=row.document_id,
                    chunk_index=row.chunk_index,
                    content=row.content,
                    similarity=1.0 - float(row.distance),
                )
                for row in result
            ]
