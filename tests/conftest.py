"""Pytest configuration and shared fixtures."""

import os

# Tests run against the in-process fact store; set before settings load.
os.environ.setdefault("FACT_STORE_BACKEND", "memory")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from brokerage_ai.api.deps import get_store  # noqa: E402
from brokerage_ai.compliance import seed_catalog  # noqa: E402
from brokerage_ai.main import app  # noqa: E402
from brokerage_ai.services import RuleEngine, StatusAggregator  # noqa: E402
from brokerage_ai.store import InMemoryFactStore  # noqa: E402
from brokerage_ai.store.records import TransactionRecord  # noqa: E402

EMBEDDING_DIMENSION = 3
BINDING_DATE = date(2025, 8, 1)


@pytest.fixture
def store() -> InMemoryFactStore:
    """Empty in-memory fact store with 3-dimensional embeddings."""
    return InMemoryFactStore(embedding_dimension=EMBEDDING_DIMENSION)


@pytest_asyncio.fixture
async def seeded_store(store: InMemoryFactStore) -> InMemoryFactStore:
    """Fact store with the seed check definitions and TN_RES_2025 pack."""
    await seed_catalog(store)
    return store


@pytest.fixture
def sample_transaction_data() -> dict[str, Any]:
    """A financed RF401 deal with earnest money due 3 days after binding."""
    return {
        "deal_code": "TRX-2025-000312",
        "property_address": "1420 Maple Ridge Dr",
        "property_city": "Franklin",
        "property_state": "TN",
        "property_zip": "37064",
        "property_county": "Williamson",
        "purchase_price": Decimal("450000.00"),
        "financing": "conventional",
        "appraisal": "contingent",
        "earnest_money_amount": Decimal("5000.00"),
        "earnest_money_due_days": 3,
        "earnest_money_holder_name": "Volunteer Title & Escrow",
        "binding_agreement_date": BINDING_DATE,
        "closing_date": date(2025, 9, 15),
        "form_version": "RF401 2025",
    }


@pytest.fixture
def make_transaction(
    seeded_store: InMemoryFactStore,
    sample_transaction_data: dict[str, Any],
) -> Callable[..., Awaitable[TransactionRecord]]:
    """Factory creating a transaction assigned to TN_RES_2025, with field overrides."""

    async def _make(pack: str | None = "TN_RES_2025", **overrides: Any) -> TransactionRecord:
        txn = await seeded_store.create_transaction({**sample_transaction_data, **overrides})
        if pack:
            await seeded_store.assign_rule_pack(txn.id, pack)
        return txn

    return _make


@pytest.fixture
def make_engine(seeded_store: InMemoryFactStore) -> Callable[[date], RuleEngine]:
    """Factory for a rule engine evaluating as of a fixed day."""

    def _make(today: date) -> RuleEngine:
        return RuleEngine(seeded_store, clock=lambda: today, emd_warn_window_days=2)

    return _make


@pytest.fixture
def aggregator(seeded_store: InMemoryFactStore) -> StatusAggregator:
    return StatusAggregator(seeded_store, max_attempts=3)


@pytest_asyncio.fixture(scope="function")
async def async_client(store: InMemoryFactStore) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client for FastAPI backed by a fresh in-memory store."""
    app.dependency_overrides[get_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
