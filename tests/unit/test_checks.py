"""Unit tests for the built-in compliance checks."""

from datetime import date, datetime, timedelta, timezone

import pytest

from brokerage_ai.compliance import CheckRegistry, default_registry
from brokerage_ai.compliance.check import Check, CheckOutcome
from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.db.enums import CheckStatus
from brokerage_ai.store.records import DocFieldRecord

BINDING_DATE = date(2025, 8, 1)


def day(n: int) -> date:
    return BINDING_DATE + timedelta(days=n)


class TestRegistry:
    """Tests for the check registry."""

    def test_builtin_checks_registered(self) -> None:
        assert {"emd_timeline", "cash_proof_letter", "appraisal_marked"} <= set(
            default_registry.keys()
        )

    def test_duplicate_key_rejected(self) -> None:
        class Dummy(Check):
            key = "dummy"

            def evaluate(self, ctx):
                return CheckOutcome.passed()

        registry = CheckRegistry([Dummy()])
        with pytest.raises(ValueError):
            registry.register(Dummy())
        registry.register(Dummy(), replace=True)
        assert len(registry) == 1
        assert "dummy" in registry


class TestEmdTimeline:
    """Tests for the earnest money deadline check."""

    async def test_overdue_without_receipt_fails(self, make_transaction, make_engine) -> None:
        """Binding on day 0, due in 3 days, evaluated on day 5."""
        txn = await make_transaction()

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.FAIL
        assert result.details["due_by"] == day(3).isoformat()
        assert result.details["holder"] == "Volunteer Title & Escrow"
        assert result.details["days_late"] == 2

    async def test_due_soon_warns(self, make_transaction, make_engine) -> None:
        txn = await make_transaction()

        result = await make_engine(day(1)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.WARN
        assert result.details["days_left"] == 2

    async def test_on_due_date_still_warns(self, make_transaction, make_engine) -> None:
        txn = await make_transaction()

        result = await make_engine(day(3)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.WARN
        assert result.details["days_left"] == 0

    async def test_far_from_due_date_passes(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(earnest_money_due_days=10)

        result = await make_engine(day(1)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.PASS
        assert result.details["due_by"] == day(10).isoformat()

    async def test_receipt_field_passes_with_document(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction()
        doc = await seeded_store.add_document({"transaction_id": txn.id, "doc_type": "other"})
        await seeded_store.add_doc_field(
            {"document_id": doc.id, "field_name": "EMD_Received_Date", "field_value_date": day(2)}
        )

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.PASS
        assert result.document_id == doc.id

    async def test_missing_binding_date_is_pending(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(binding_agreement_date=None)

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.PENDING
        assert result.details["reason"] == "binding_agreement_date missing"

    async def test_receipt_field_without_value_is_not_evidence(
        self, seeded_store, make_transaction
    ) -> None:
        """A stored receipt row with no value (legacy data) does not stop the failure."""
        txn = await make_transaction()
        doc = await seeded_store.add_document({"transaction_id": txn.id, "doc_type": "other"})
        snapshot = await seeded_store.load_snapshot(txn.id)
        empty_receipt = DocFieldRecord.model_construct(
            id=1,
            document_id=doc.id,
            field_name="emd_receipt",
            page=None,
            field_value_text=None,
            field_value_num=None,
            field_value_date=None,
            confidence=None,
            created_at=datetime.now(timezone.utc),
        )
        ctx = CheckContext(
            transaction=snapshot.transaction,
            definition=snapshot.definitions["emd_timeline"],
            today=day(5),
            documents=snapshot.documents,
            doc_fields=(empty_receipt,),
        )

        assert ctx.find_fields(names=["emd_receipt"]) == []
        assert default_registry.get("emd_timeline").evaluate(ctx).status == CheckStatus.FAIL

    async def test_holder_falls_back_to_party(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction(earnest_money_holder_name=None, binding_agreement_date=None)
        await seeded_store.add_party(
            {"transaction_id": txn.id, "role": "earnest_money_holder", "full_name": "Harpeth Title"}
        )

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.details["holder"] == "Harpeth Title"

    async def test_unspecified_financing_is_na(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(financing="unspecified")

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.NA

    async def test_no_earnest_money_terms_is_na(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(earnest_money_amount=None, earnest_money_due_days=None)

        result = await make_engine(day(5)).evaluate(txn.id, "emd_timeline")

        assert result.status == CheckStatus.NA


class TestCashProofLetter:
    """Tests for the proof-of-funds check."""

    async def test_financed_deal_is_na(self, make_transaction, make_engine) -> None:
        txn = await make_transaction()

        result = await make_engine(day(1)).evaluate(txn.id, "cash_proof_letter")

        assert result.status == CheckStatus.NA
        assert result.details["financing"] == "conventional"

    async def test_cash_without_letter_fails(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(financing="cash")

        result = await make_engine(day(1)).evaluate(txn.id, "cash_proof_letter")

        assert result.status == CheckStatus.FAIL
        assert result.details["reason"] == "proof of funds letter missing"

    async def test_cash_with_letter_passes(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction(financing="cash")
        doc = await seeded_store.add_document({"transaction_id": txn.id, "doc_type": "disclosure"})
        await seeded_store.add_doc_field(
            {"document_id": doc.id, "field_name": "proof_of_funds_bank", "field_value_text": "yes"}
        )

        result = await make_engine(day(1)).evaluate(txn.id, "cash_proof_letter")

        assert result.status == CheckStatus.PASS
        assert result.document_id == doc.id

    async def test_letter_on_purchase_agreement_does_not_count(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction(financing="cash")
        doc = await seeded_store.add_document({"transaction_id": txn.id, "doc_type": "psa"})
        await seeded_store.add_doc_field(
            {"document_id": doc.id, "field_name": "proof_of_funds", "field_value_text": "Bank letter"}
        )

        result = await make_engine(day(1)).evaluate(txn.id, "cash_proof_letter")

        assert result.status == CheckStatus.FAIL


class TestAppraisalMarked:
    """Tests for the appraisal contingency check."""

    async def test_marked_passes(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(appraisal="not_contingent")

        result = await make_engine(day(1)).evaluate(txn.id, "appraisal_marked")

        assert result.status == CheckStatus.PASS
        assert result.details == {"appraisal": "not_contingent"}

    async def test_unspecified_fails(self, make_transaction, make_engine) -> None:
        txn = await make_transaction(appraisal="unspecified")

        result = await make_engine(day(1)).evaluate(txn.id, "appraisal_marked")

        assert result.status == CheckStatus.FAIL
        assert result.details["reason"] == "appraisal contingency not marked"
