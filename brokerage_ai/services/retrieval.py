"""
Retrieval service: vector search over document chunks and deal facts.

Chunk text and embeddings are produced upstream; this service only
validates and stores them, and ranks stored chunks against a query
embedding by cosine distance. Search in production runs on an approximate
(IVFFlat) index: results are ordered consistently with the exact metric,
but the set is not guaranteed to be the exact global top-k.

Usage:
    service = RetrievalService(store)
    await service.index_chunks(document_id, [{"chunk_index": 0, ...}])
    matches = await service.search_chunks(query_embedding, top_k=5)
    text = await service.deal_facts(transaction_id)
"""

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from brokerage_ai.core.config import settings
from brokerage_ai.core.logging import get_logger
from brokerage_ai.services.deal_facts import render_deal_facts
from brokerage_ai.store.base import FactStore
from brokerage_ai.store.records import ChunkCreate, ChunkMatch

logger = get_logger(__name__)


class RetrievalService:
    """Chunk indexing, nearest-neighbor search, and deal facts."""

    def __init__(self, store: FactStore):
        self.store = store

    async def index_chunks(
        self,
        document_id: uuid.UUID,
        chunks: Sequence[ChunkCreate | Mapping[str, Any]],
    ) -> int:
        """
        Append embedded chunks for a document.

        Raises:
            ValidationError: wrong dimension, non-finite or zero vector,
                duplicate chunk_index (nothing is written)
            NotFoundError: unknown document
        """
        count = await self.store.add_chunks(document_id, chunks)
        logger.info("Chunks added", document_id=str(document_id), count=count)
        return count

    async def search_chunks(
        self,
        query_embedding: Sequence[float],
        top_k: int | None = None,
        min_content_length: int | None = None,
    ) -> list[ChunkMatch]:
        """
        Rank chunks by similarity to ``query_embedding``.

        Chunks shorter than ``min_content_length`` are filtered out before
        ranking. Ties are broken by chunk_index, then document_id.
        """
        top_k = top_k if top_k is not None else settings.search_top_k
        if min_content_length is None:
            min_content_length = settings.search_min_content_length

        matches = await self.store.search_chunks(query_embedding, top_k, min_content_length)
        logger.debug(
            "Chunk search",
            top_k=top_k,
            min_content_length=min_content_length,
            returned=len(matches),
        )
        return matches

    async def deal_facts(self, transaction_id: uuid.UUID) -> str:
        """Fixed-order deal facts text for a transaction."""
        txn = await self.store.get_transaction(transaction_id)
        return render_deal_facts(txn)
