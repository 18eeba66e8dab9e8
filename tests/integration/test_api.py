"""Integration tests for the Brokerage Compliance API.

These tests drive the HTTP surface end to end against an in-memory fact
store, so no database or broker is needed.
"""

import uuid
from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

TXN_URL = "/api/v1/transactions"
DOC_URL = "/api/v1/documents"
COMPLIANCE_URL = "/api/v1/compliance"


def transaction_payload(**overrides) -> dict:
    """An overdue earnest money deal relative to the current date."""
    payload = {
        "deal_code": "TRX-2025-000312",
        "property_address": "1420 Maple Ridge Dr",
        "property_city": "Franklin",
        "property_state": "TN",
        "property_zip": "37064",
        "purchase_price": "450000.00",
        "financing": "conventional",
        "appraisal": "contingent",
        "earnest_money_amount": "5000.00",
        "earnest_money_due_days": 3,
        "earnest_money_holder_name": "Volunteer Title & Escrow",
        "binding_agreement_date": (date.today() - timedelta(days=10)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def seeded_client(async_client: AsyncClient) -> AsyncClient:
    response = await async_client.post(f"{COMPLIANCE_URL}/catalog/seed")
    assert response.status_code == 200
    return async_client


@pytest_asyncio.fixture
async def transaction(seeded_client: AsyncClient) -> dict:
    response = await seeded_client.post(
        TXN_URL, params={"rule_pack": "TN_RES_2025"}, json=transaction_payload()
    )
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Health & Root Tests
# =============================================================================


class TestHealthEndpoints:
    """Tests for health and root endpoints."""

    async def test_health_check(self, async_client: AsyncClient) -> None:
        """Test health endpoint returns healthy status."""
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["fact_store"] == "memory"

    async def test_root_endpoint(self, async_client: AsyncClient) -> None:
        """Test root endpoint returns API info."""
        response = await async_client.get("/")

        assert response.status_code == 200
        assert "Brokerage" in response.json()["service"]

    async def test_openapi_schema(self, async_client: AsyncClient) -> None:
        """Test OpenAPI schema is generated."""
        response = await async_client.get("/openapi.json")

        assert response.status_code == 200
        assert len(response.json()["paths"]) > 15


# =============================================================================
# Transactions API Tests
# =============================================================================


class TestTransactionsAPI:
    """Tests for transaction endpoints."""

    async def test_create_and_get(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.get(f"{TXN_URL}/{transaction['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["transaction"]["deal_code"] == "TRX-2025-000312"
        assert data["transaction"]["status"] == "open"
        assert data["assigned_packs"] == ["TN_RES_2025"]
        assert data["rollup_status"] is None

    async def test_get_unknown_transaction(self, async_client: AsyncClient) -> None:
        response = await async_client.get(f"{TXN_URL}/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    async def test_invalid_payload_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(TXN_URL, json={"purchase_price": "-5"})

        assert response.status_code == 422

    async def test_unknown_rule_pack(self, seeded_client: AsyncClient) -> None:
        response = await seeded_client.post(
            TXN_URL, params={"rule_pack": "NOPE"}, json=transaction_payload()
        )

        assert response.status_code == 404

    async def test_patch_fields(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.patch(
            f"{TXN_URL}/{transaction['id']}", json={"form_version": "RF401 2025"}
        )

        assert response.status_code == 200
        assert response.json()["form_version"] == "RF401 2025"
        assert response.json()["deal_code"] == "TRX-2025-000312"

    async def test_add_party(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.post(
            f"{TXN_URL}/{transaction['id']}/parties",
            json={"role": "buyer", "full_name": "Dana Reyes"},
        )

        assert response.status_code == 201
        assert response.json()["transaction_id"] == transaction["id"]


# =============================================================================
# Documents API Tests
# =============================================================================


class TestDocumentsAPI:
    """Tests for document endpoints."""

    async def test_version_chain(self, seeded_client: AsyncClient, transaction: dict) -> None:
        url = f"{TXN_URL}/{transaction['id']}/documents"
        v1 = (await seeded_client.post(url, json={"doc_type": "psa"})).json()
        v2 = (
            await seeded_client.post(
                url, json={"doc_type": "psa", "supersedes_document_id": v1["id"]}
            )
        ).json()

        response = await seeded_client.get(f"{DOC_URL}/{v1['id']}/head")

        assert response.status_code == 200
        assert response.json()["id"] == v2["id"]
        assert response.json()["version_no"] == 2

    async def test_cross_transaction_supersede_rejected(
        self, seeded_client: AsyncClient, transaction: dict
    ) -> None:
        other = (await seeded_client.post(TXN_URL, json=transaction_payload(deal_code="TRX-2"))).json()
        doc = (
            await seeded_client.post(f"{TXN_URL}/{other['id']}/documents", json={"doc_type": "psa"})
        ).json()

        response = await seeded_client.post(
            f"{TXN_URL}/{transaction['id']}/documents",
            json={"doc_type": "psa", "supersedes_document_id": doc["id"]},
        )

        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "supersedes_document_id"

    async def test_esign_event(self, seeded_client: AsyncClient, transaction: dict) -> None:
        doc = (
            await seeded_client.post(
                f"{TXN_URL}/{transaction['id']}/documents", json={"doc_type": "audit_trail"}
            )
        ).json()

        response = await seeded_client.post(
            f"{DOC_URL}/{doc['id']}/esign-events",
            json={"signer_name": "Dana Reyes", "action": "signed"},
        )

        assert response.status_code == 201
        assert response.json()["action"] == "signed"

    async def test_field_without_value_rejected(
        self, seeded_client: AsyncClient, transaction: dict
    ) -> None:
        doc = (
            await seeded_client.post(
                f"{TXN_URL}/{transaction['id']}/documents", json={"doc_type": "other"}
            )
        ).json()

        response = await seeded_client.post(
            f"{DOC_URL}/{doc['id']}/fields", json={"field_name": "emd_receipt"}
        )

        assert response.status_code == 422


# =============================================================================
# Compliance API Tests
# =============================================================================


class TestComplianceAPI:
    """Tests for evaluation, results, and lifecycle endpoints."""

    async def test_list_checks(self, seeded_client: AsyncClient) -> None:
        response = await seeded_client.get(f"{COMPLIANCE_URL}/checks")

        assert response.status_code == 200
        assert {c["key"] for c in response.json()} == {
            "emd_timeline",
            "cash_proof_letter",
            "appraisal_marked",
        }

    async def test_evaluate_overdue_emd(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.post(
            f"{COMPLIANCE_URL}/transactions/{transaction['id']}/evaluate/emd_timeline"
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "fail"
        assert data["details"]["holder"] == "Volunteer Title & Escrow"

    async def test_evaluate_unknown_check(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.post(
            f"{COMPLIANCE_URL}/transactions/{transaction['id']}/evaluate/inspection_deadline"
        )

        assert response.status_code == 404

    async def test_full_lifecycle(self, seeded_client: AsyncClient, transaction: dict) -> None:
        txn_id = transaction["id"]
        evaluate_url = f"{COMPLIANCE_URL}/transactions/{txn_id}/evaluate"

        first = (await seeded_client.post(evaluate_url)).json()
        assert len(first["results"]) == 3
        assert first["rollup"]["status"] == "pending_hitl"

        # Closing is refused until every check settles
        response = await seeded_client.post(f"{TXN_URL}/{txn_id}/close")
        assert response.status_code == 422

        doc = (
            await seeded_client.post(f"{TXN_URL}/{txn_id}/documents", json={"doc_type": "other"})
        ).json()
        await seeded_client.post(
            f"{DOC_URL}/{doc['id']}/fields",
            json={"field_name": "emd_receipt", "field_value_text": "received"},
        )

        second = (await seeded_client.post(evaluate_url)).json()
        assert second["rollup"]["status"] == "ready_to_close"
        assert second["rollup"]["previous_status"] == "pending_hitl"

        closed = await seeded_client.post(f"{TXN_URL}/{txn_id}/close")
        assert closed.status_code == 200
        assert closed.json()["status"] == "closed"

        history = (
            await seeded_client.get(
                f"{COMPLIANCE_URL}/transactions/{txn_id}/results",
                params={"check_key": "emd_timeline"},
            )
        ).json()
        assert [r["status"] for r in history] == ["fail", "pass"]

        timeline = (await seeded_client.get(f"{TXN_URL}/{txn_id}/timeline")).json()
        assert [e["payload"]["to"] for e in timeline] == [
            "pending_hitl",
            "ready_to_close",
            "closed",
        ]

    async def test_rollup_endpoint_is_idempotent(
        self, seeded_client: AsyncClient, transaction: dict
    ) -> None:
        txn_id = transaction["id"]
        await seeded_client.post(
            f"{COMPLIANCE_URL}/transactions/{txn_id}/evaluate", params={"rollup": "false"}
        )

        first = (await seeded_client.post(f"{COMPLIANCE_URL}/transactions/{txn_id}/rollup")).json()
        second = (await seeded_client.post(f"{COMPLIANCE_URL}/transactions/{txn_id}/rollup")).json()

        assert first["changed"] is True
        assert second["changed"] is False
        assert second["status"] == first["status"]

    async def test_latest_results(self, seeded_client: AsyncClient, transaction: dict) -> None:
        txn_id = transaction["id"]
        await seeded_client.post(f"{COMPLIANCE_URL}/transactions/{txn_id}/evaluate")

        response = await seeded_client.get(f"{COMPLIANCE_URL}/transactions/{txn_id}/results/latest")

        assert response.status_code == 200
        assert set(response.json()) == {"emd_timeline", "cash_proof_letter", "appraisal_marked"}

    async def test_void(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.post(f"{TXN_URL}/{transaction['id']}/void")

        assert response.status_code == 200
        assert response.json()["status"] == "void"
        assert response.json()["terminal"] is True

    async def test_refresh_async_falls_back_to_background(
        self, seeded_client: AsyncClient, transaction: dict
    ) -> None:
        txn_id = transaction["id"]

        response = await seeded_client.post(
            f"{COMPLIANCE_URL}/transactions/{txn_id}/refresh/async"
        )

        assert response.status_code == 202
        assert response.json()["mode"] == "background"
        detail = (await seeded_client.get(f"{TXN_URL}/{txn_id}")).json()
        assert detail["rollup_status"] == "pending_hitl"


# =============================================================================
# Retrieval API Tests
# =============================================================================


class TestRetrievalAPI:
    """Tests for chunk indexing, search, and deal facts."""

    async def test_index_and_search(self, seeded_client: AsyncClient, transaction: dict) -> None:
        doc = (
            await seeded_client.post(
                f"{TXN_URL}/{transaction['id']}/documents", json={"doc_type": "psa"}
            )
        ).json()
        chunks = [
            {
                "chunk_index": 0,
                "content": "Earnest money shall be delivered within three days of binding.",
                "embedding": [1.0, 0.0, 0.0],
            },
            {
                "chunk_index": 1,
                "content": "Closing shall take place on or before the closing date.",
                "embedding": [0.0, 1.0, 0.0],
            },
        ]

        indexed = await seeded_client.post(f"{DOC_URL}/{doc['id']}/chunks", json={"chunks": chunks})
        assert indexed.status_code == 201
        assert indexed.json()["indexed"] == 2

        response = await seeded_client.post(
            "/api/v1/retrieval/search",
            json={"query_embedding": [0.9, 0.1, 0.0], "top_k": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["matches"][0]["chunk_index"] == 0

    async def test_search_dimension_mismatch(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/retrieval/search", json={"query_embedding": [1.0, 0.0]}
        )

        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "query_embedding"

    async def test_deal_facts(self, seeded_client: AsyncClient, transaction: dict) -> None:
        response = await seeded_client.get(f"/api/v1/retrieval/deal-facts/{transaction['id']}")

        assert response.status_code == 200
        content = response.json()["content"]
        assert content.splitlines()[0] == "Deal Code: TRX-2025-000312"
        assert "Price: $450,000.00" in content
