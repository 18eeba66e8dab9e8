"""Unit tests for the in-memory fact store."""

import uuid
from decimal import Decimal

import pytest

from brokerage_ai.core.errors import NotFoundError, ValidationError
from brokerage_ai.db.enums import CheckStatus, TxnStatus
from brokerage_ai.store import InMemoryFactStore

pytestmark = pytest.mark.asyncio


class TestTransactions:
    """Tests for transaction intake and edits."""

    async def test_create_and_get(self, store: InMemoryFactStore, sample_transaction_data) -> None:
        txn = await store.create_transaction(sample_transaction_data)

        fetched = await store.get_transaction(txn.id)
        assert fetched == txn
        assert fetched.status == TxnStatus.OPEN
        assert fetched.form_name.startswith("RF401")
        assert txn.id.version == 7

    async def test_get_unknown_raises(self, store: InMemoryFactStore) -> None:
        with pytest.raises(NotFoundError):
            await store.get_transaction(uuid.uuid4())

    async def test_update_applies_only_set_fields(
        self, store: InMemoryFactStore, sample_transaction_data
    ) -> None:
        txn = await store.create_transaction(sample_transaction_data)

        updated = await store.update_transaction(txn.id, {"closing_date": None})

        assert updated.closing_date is None
        assert updated.purchase_price == txn.purchase_price
        assert updated.updated_at >= txn.updated_at

    async def test_update_rejects_status(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        with pytest.raises(ValidationError) as exc_info:
            await store.update_transaction(txn.id, {"status": "closed"})
        assert exc_info.value.field == "status"

    async def test_update_rejects_null_currency(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        with pytest.raises(ValidationError):
            await store.update_transaction(txn.id, {"currency": None})

    async def test_list_transaction_ids(self, store: InMemoryFactStore) -> None:
        first = await store.create_transaction({})
        second = await store.create_transaction({})

        assert await store.list_transaction_ids() == sorted([first.id, second.id])

    async def test_party_requires_transaction(self, store: InMemoryFactStore) -> None:
        with pytest.raises(NotFoundError):
            await store.add_party(
                {"transaction_id": uuid.uuid4(), "role": "buyer", "full_name": "Dana Reyes"}
            )


class TestDocumentVersions:
    """Tests for supersedes chains."""

    async def test_version_numbers_follow_chain(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        v1 = await store.add_document({"transaction_id": txn.id, "doc_type": "psa"})
        v2 = await store.add_document(
            {"transaction_id": txn.id, "doc_type": "psa", "supersedes_document_id": v1.id}
        )
        v3 = await store.add_document(
            {"transaction_id": txn.id, "doc_type": "psa", "supersedes_document_id": v2.id}
        )

        assert (v1.version_no, v2.version_no, v3.version_no) == (1, 2, 3)
        head = await store.document_chain_head(v1.id)
        assert head.id == v3.id

    async def test_head_of_unsuperseded_document_is_itself(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        doc = await store.add_document({"transaction_id": txn.id, "doc_type": "addendum"})

        assert (await store.document_chain_head(doc.id)).id == doc.id

    async def test_branch_picks_latest_insert(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        v1 = await store.add_document({"transaction_id": txn.id, "doc_type": "psa"})
        await store.add_document(
            {"transaction_id": txn.id, "doc_type": "psa", "supersedes_document_id": v1.id}
        )
        later = await store.add_document(
            {"transaction_id": txn.id, "doc_type": "psa", "supersedes_document_id": v1.id}
        )

        assert (await store.document_chain_head(v1.id)).id == later.id

    async def test_cannot_supersede_other_transaction(self, store: InMemoryFactStore) -> None:
        a = await store.create_transaction({})
        b = await store.create_transaction({})
        doc = await store.add_document({"transaction_id": a.id, "doc_type": "psa"})

        with pytest.raises(ValidationError) as exc_info:
            await store.add_document(
                {"transaction_id": b.id, "doc_type": "psa", "supersedes_document_id": doc.id}
            )
        assert exc_info.value.field == "supersedes_document_id"

    async def test_cannot_supersede_missing_document(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        with pytest.raises(ValidationError):
            await store.add_document(
                {"transaction_id": txn.id, "doc_type": "psa", "supersedes_document_id": uuid.uuid4()}
            )

    async def test_field_requires_document(self, store: InMemoryFactStore) -> None:
        with pytest.raises(NotFoundError):
            await store.add_doc_field(
                {"document_id": uuid.uuid4(), "field_name": "emd_receipt", "field_value_text": "received"}
            )

    async def test_field_without_value_rejected(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        doc = await store.add_document({"transaction_id": txn.id, "doc_type": "other"})

        with pytest.raises(ValidationError):
            await store.add_doc_field({"document_id": doc.id, "field_name": "emd_receipt"})

        snapshot = await store.load_snapshot(txn.id)
        assert snapshot.doc_fields == ()

    async def test_esign_event_recorded_for_document(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        doc = await store.add_document({"transaction_id": txn.id, "doc_type": "psa"})

        event = await store.add_esign_event(
            {"document_id": doc.id, "signer_name": "Dana Reyes", "action": "signed"}
        )

        assert event.document_id == doc.id
        assert (await store.get_document(doc.id)).version_no == 1
        with pytest.raises(NotFoundError):
            await store.add_esign_event({"document_id": uuid.uuid4(), "action": "viewed"})


class TestCatalogAndResults:
    """Tests for rule packs and the append-only result log."""

    async def test_pack_with_unknown_check_rejected(self, seeded_store: InMemoryFactStore) -> None:
        with pytest.raises(NotFoundError):
            await seeded_store.upsert_rule_pack(
                {"code": "X", "title": "X", "weights": {"does_not_exist": "1.0"}}
            )

    async def test_definitions_listed_by_key(self, seeded_store: InMemoryFactStore) -> None:
        keys = [d.key for d in await seeded_store.list_check_definitions()]

        assert keys == ["appraisal_marked", "cash_proof_letter", "emd_timeline"]

    async def test_assign_unknown_pack(self, seeded_store: InMemoryFactStore) -> None:
        txn = await seeded_store.create_transaction({})
        with pytest.raises(NotFoundError):
            await seeded_store.assign_rule_pack(txn.id, "NOPE")

    async def test_non_pass_result_needs_details(self, seeded_store: InMemoryFactStore) -> None:
        txn = await seeded_store.create_transaction({})
        with pytest.raises(ValidationError) as exc_info:
            await seeded_store.append_check_result(
                {"transaction_id": txn.id, "check_key": "emd_timeline", "status": "fail"}
            )
        assert exc_info.value.field == "details"

    async def test_result_for_unknown_check_key(self, seeded_store: InMemoryFactStore) -> None:
        txn = await seeded_store.create_transaction({})
        with pytest.raises(NotFoundError):
            await seeded_store.append_check_result(
                {"transaction_id": txn.id, "check_key": "nope", "status": "pass"}
            )

    async def test_results_are_appended_and_latest_wins(
        self, seeded_store: InMemoryFactStore
    ) -> None:
        txn = await seeded_store.create_transaction({})
        first = await seeded_store.append_check_result(
            {
                "transaction_id": txn.id,
                "check_key": "appraisal_marked",
                "status": "fail",
                "details": {"reason": "appraisal contingency not marked"},
            }
        )
        second = await seeded_store.append_check_result(
            {"transaction_id": txn.id, "check_key": "appraisal_marked", "status": "pass"}
        )

        history = await seeded_store.list_check_results(txn.id, "appraisal_marked")
        assert [r.id for r in history] == [first.id, second.id]
        snapshot = await seeded_store.load_snapshot(txn.id)
        assert snapshot.latest_results["appraisal_marked"].status == CheckStatus.PASS

    async def test_snapshot_merges_pack_weights_by_max(
        self, seeded_store: InMemoryFactStore
    ) -> None:
        await seeded_store.upsert_rule_pack(
            {"code": "HEAVY", "title": "Heavy", "weights": {"emd_timeline": "3.0"}}
        )
        txn = await seeded_store.create_transaction({})
        await seeded_store.assign_rule_pack(txn.id, "TN_RES_2025")
        await seeded_store.assign_rule_pack(txn.id, "HEAVY")

        snapshot = await seeded_store.load_snapshot(txn.id)

        assert snapshot.weight_for("emd_timeline") == Decimal("3.0")
        assert snapshot.weight_for("appraisal_marked") == Decimal("1.0")
        assert snapshot.applicable_keys == ["appraisal_marked", "cash_proof_letter", "emd_timeline"]


class TestCompareAndSetStatus:
    """Tests for the conditional status write."""

    async def test_first_write_expects_no_row(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})

        assert await store.compare_and_set_status(txn.id, None, TxnStatus.PENDING_HITL, actor="rollup")
        assert not await store.compare_and_set_status(txn.id, None, TxnStatus.OPEN, actor="rollup")

        assert (await store.get_transaction(txn.id)).status == TxnStatus.PENDING_HITL

    async def test_write_appends_timeline_event(self, store: InMemoryFactStore) -> None:
        txn = await store.create_transaction({})
        await store.compare_and_set_status(
            txn.id, None, TxnStatus.READY_TO_CLOSE, actor="rollup", reason="all_checks_settled"
        )

        events = await store.list_timeline(txn.id)

        assert len(events) == 1
        assert events[0].event_key == "status_changed"
        assert events[0].created_by == "rollup"
        assert events[0].payload == {
            "from": "open",
            "to": "ready_to_close",
            "reason": "all_checks_settled",
        }
