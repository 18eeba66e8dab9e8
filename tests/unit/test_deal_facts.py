"""Unit tests for deal facts rendering."""

import uuid

import pytest

from brokerage_ai.core.errors import NotFoundError
from brokerage_ai.services import DEAL_FACT_LABELS, RetrievalService, render_deal_facts

pytestmark = pytest.mark.asyncio


class TestRenderDealFacts:
    """Tests for the fixed-order deal facts text."""

    async def test_full_transaction(self, store, sample_transaction_data) -> None:
        txn = await store.create_transaction(
            {**sample_transaction_data, "special_stipulations": ["Seller to repair deck", "Home warranty"]}
        )

        text = render_deal_facts(txn)

        assert text.splitlines() == [
            "Deal Code: TRX-2025-000312",
            "Address: 1420 Maple Ridge Dr, Franklin, TN 37064",
            "County: Williamson",
            "Price: $450,000.00",
            "Financing: conventional",
            "Appraisal: contingent",
            "EMD: $5,000.00 due in 3 days (Holder: Volunteer Title & Escrow)",
            "Closing Date: 2025-09-15",
            "Form Version: RF401 2025",
            "Special Stipulations: Seller to repair deck; Home warranty",
        ]

    async def test_empty_transaction_uses_placeholders(self, store) -> None:
        txn = await store.create_transaction({})

        lines = render_deal_facts(txn).splitlines()

        assert [line.split(":", 1)[0] for line in lines] == list(DEAL_FACT_LABELS)
        assert "Address: unspecified" in lines
        assert "Price: unspecified" in lines
        assert "EMD: unspecified due in ? days (Holder: unspecified)" in lines
        assert "Special Stipulations: (none)" in lines

    async def test_unit_is_part_of_street(self, store) -> None:
        txn = await store.create_transaction(
            {"property_address": "200 Main St", "property_unit": "Apt 4", "property_city": "Nashville"}
        )

        assert "Address: 200 Main St Apt 4, Nashville" in render_deal_facts(txn).splitlines()

    async def test_only_changed_line_differs(self, store, sample_transaction_data) -> None:
        txn = await store.create_transaction(sample_transaction_data)
        before = render_deal_facts(txn).splitlines()

        updated = await store.update_transaction(
            txn.id, {"special_stipulations": ["Buyer to assume HOA transfer fee"]}
        )
        after = render_deal_facts(updated).splitlines()

        changed = [i for i, (a, b) in enumerate(zip(before, after)) if a != b]
        assert changed == [DEAL_FACT_LABELS.index("Special Stipulations")]

    async def test_multiline_values_stay_on_one_line(self, store, sample_transaction_data) -> None:
        txn = await store.create_transaction(
            {
                **sample_transaction_data,
                "earnest_money_holder_name": "Volunteer Title\r\n& Escrow",
                "special_stipulations": ["Seller to repair deck\nbefore closing", "Home warranty"],
            }
        )

        lines = render_deal_facts(txn).splitlines()

        assert len(lines) == len(DEAL_FACT_LABELS)
        assert lines[-1] == "Special Stipulations: Seller to repair deck before closing; Home warranty"
        assert "EMD: $5,000.00 due in 3 days (Holder: Volunteer Title & Escrow)" in lines

    async def test_rendering_is_stable(self, store, sample_transaction_data) -> None:
        txn = await store.create_transaction(sample_transaction_data)
        service = RetrievalService(store)

        assert await service.deal_facts(txn.id) == await service.deal_facts(txn.id)

    async def test_unknown_transaction(self, store) -> None:
        with pytest.raises(NotFoundError):
            await RetrievalService(store).deal_facts(uuid.uuid4())
