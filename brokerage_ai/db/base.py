"""
Declarative base, shared engine, and column mixins.

Table names are derived from class names (``DocField`` -> ``doc_fields``,
``Party`` -> ``parties``) and constraint names follow NAMING_CONVENTION, so
the ORM metadata and the hand-written migration agree on every name.
"""

import enum
import re
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, MetaData, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from uuid6 import uuid7

from brokerage_ai.core.config import settings

NAMING_CONVENTION: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)

# Shared by the API process. Workers and scripts run their own event loop
# and build a private engine through db.session.create_session_factory.
engine = create_async_engine(
    settings.db_url,
    echo=settings.is_development and settings.api_debug,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def table_name_for(class_name: str) -> str:
    """Pluralised snake_case table name for a model class name."""
    singular = _CAMEL_BOUNDARY.sub("_", class_name).lower()
    if singular.endswith("y"):
        return singular[:-1] + "ies"
    if singular.endswith("s"):
        return singular + "es"
    return singular + "s"


class Base(AsyncAttrs, DeclarativeBase):
    """Base class of every model; records are read through store.records."""

    metadata = metadata

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return table_name_for(cls.__name__)


class UUIDMixin:
    """Time-sortable UUID7 primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid7,
        sort_order=-100,
    )


class CreatedAtMixin:
    """Insert timestamp for append-only rows (results, chunks, events)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        sort_order=100,
    )


class TimestampMixin(CreatedAtMixin):
    """Insert timestamp plus ``updated_at``, touched by every ORM UPDATE."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        sort_order=101,
    )


def pg_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Native PostgreSQL enum type that stores member values, not names."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=True,
        create_constraint=False,
        values_callable=lambda members: [m.value for m in members],
    )


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Enable pgvector and create every table on ``bind`` (default: the shared
    engine). Development and tests only; deployments run the Alembic
    migration.
    """
    async with (bind or engine).begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(metadata.create_all)


async def drop_db(bind: AsyncEngine | None = None) -> None:
    """Drop every table. Tests only."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(metadata.drop_all)


async def dispose_engine() -> None:
    await engine.dispose()
