"""Party model: a person or firm participating in a transaction."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brokerage_ai.db.base import Base, CreatedAtMixin, UUIDMixin, pg_enum
from brokerage_ai.db.enums import PartyRole

if TYPE_CHECKING:
    from brokerage_ai.db.models.transaction import Transaction


class Party(UUIDMixin, CreatedAtMixin, Base):
    """
    A party to a transaction (buyer, seller, agent, holder, lender, ...).

    Belongs to exactly one transaction and is deleted with it.
    """

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    role: Mapped[PartyRole] = mapped_column(pg_enum(PartyRole, "party_role"), nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    firm: Mapped[str | None] = mapped_column(Text, nullable=True)
    license_no: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="parties")

    def __repr__(self) -> str:
        return f"<Party(role={self.role}, full_name={self.full_name!r})>"


Index("ix_parties_transaction_id_role", Party.transaction_id, Party.role)
