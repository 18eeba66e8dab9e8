"""TimelineEvent model: dated milestones and status changes of a transaction."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Identity, Index, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from brokerage_ai.db.base import Base, CreatedAtMixin


class TimelineEvent(CreatedAtMixin, Base):
    """
    A timeline entry for a transaction.

    event_key examples: 'emd_due', 'inspection_scheduled', 'status_changed'.
    created_by names the writer: 'rollup', 'manual', a bot, an agent.
    """

    id: Mapped[int] = mapped_column(BigInteger, Identity(), primary_key=True)

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_key: Mapped[str] = mapped_column(Text, nullable=False)
    event_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_by: Mapped[str | None] = mapped_column(Text, nullable=True)


Index("ix_timeline_events_transaction_id_event_key", TimelineEvent.transaction_id, TimelineEvent.event_key)
