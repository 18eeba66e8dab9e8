"""
DocumentChunk model: a slice of document text with its embedding.

Chunks are the unit of vector retrieval. Chunking and embedding happen
upstream; rows are inserted once and never modified.

The embedding column uses pgvector with a fixed dimension matching the
embedding model in use (1536 for text-embedding-3-small). An IVFFlat index
with cosine ops backs nearest-neighbor search, so results are approximate.
"""

import uuid
from typing import TYPE_CHECKING

from pgvector.sqlalchemy import Vector
from sqlalchemy import BigInteger, ForeignKey, Identity, Index, Integer, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brokerage_ai.core.config import settings
from brokerage_ai.db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from brokerage_ai.db.models.document import Document


class DocumentChunk(CreatedAtMixin, Base):
    """
    A text segment of one document, with its embedding.

    Constraints:
        - (document_id, chunk_index) must be unique
        - embedding is mandatory: a chunk without a vector is never stored
    """

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.embedding_dimension),
        nullable=False,
    )
    tokens: Mapped[int | None] = mapped_column(Integer, nullable=True)

    document: Mapped["Document"] = relationship("Document", back_populates="chunks")

    __table_args__ = (
        UniqueConstraint(
            "document_id",
            "chunk_index",
            name="uq_document_chunks_document_id_chunk_index",
        ),
    )

    def __repr__(self) -> str:
        return f"<DocumentChunk(document_id={self.document_id}, index={self.chunk_index}, len={len(self.content)})>"


# Cosine-distance ANN index
Index(
    "ix_document_chunks_embedding",
    DocumentChunk.embedding,
    postgresql_using="ivfflat",
    postgresql_with={"lists": 100},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)
