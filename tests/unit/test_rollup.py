"""Unit tests for the status aggregator."""

import asyncio
import uuid
from datetime import date
from decimal import Decimal

import pytest

from brokerage_ai.core.errors import InvalidTransitionError, NotFoundError, RollupConflictError
from brokerage_ai.db.enums import TxnStatus
from brokerage_ai.services import ComplianceService, StatusAggregator
from brokerage_ai.store import InMemoryFactStore

pytestmark = pytest.mark.asyncio


async def record(store, transaction_id, check_key, status, **details):
    if status != "pass" and not details:
        details = {"reason": f"{check_key} {status}"}
    return await store.append_check_result(
        {
            "transaction_id": transaction_id,
            "check_key": check_key,
            "status": status,
            "details": details or None,
        }
    )


async def settle_all(store, transaction_id):
    await record(store, transaction_id, "emd_timeline", "pass")
    await record(store, transaction_id, "cash_proof_letter", "na")
    await record(store, transaction_id, "appraisal_marked", "pass")


class LosingStore(InMemoryFactStore):
    """Every conditional write loses to a concurrent writer."""

    def __init__(self, embedding_dimension: int):
        super().__init__(embedding_dimension)
        self.cas_calls = 0

    async def _compare_and_set_status(self, *args, **kwargs) -> bool:
        self.cas_calls += 1
        return False


class TestRollup:
    """Tests for status precedence and idempotence."""

    async def test_all_settled_is_ready_to_close(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.READY_TO_CLOSE
        assert outcome.previous_status == TxnStatus.OPEN
        assert outcome.changed
        assert outcome.reason == "all_checks_settled"
        assert outcome.score == Decimal("1.0000")
        assert (await seeded_store.get_transaction(txn.id)).status == TxnStatus.READY_TO_CLOSE

    async def test_rollup_is_idempotent(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)

        await aggregator.rollup(txn.id)
        again = await aggregator.rollup(txn.id)

        assert not again.changed
        assert again.status == TxnStatus.READY_TO_CLOSE
        assert len(await seeded_store.list_timeline(txn.id)) == 1

    async def test_failed_check_needs_review(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "fail", days_late=2)
        await record(seeded_store, txn.id, "cash_proof_letter", "na")
        await record(seeded_store, txn.id, "appraisal_marked", "pass")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.PENDING_HITL
        assert outcome.reason == "check_failed"
        assert outcome.score == Decimal("0.5000")

    async def test_critical_failure_blocks(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        await seeded_store.upsert_check_definition(
            {
                "key": "emd_timeline",
                "title": "Earnest Money due on time",
                "severity": "critical",
                "requires_hitl": True,
            }
        )
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "fail")
        await record(seeded_store, txn.id, "appraisal_marked", "warn")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.BLOCKED
        assert outcome.reason == "critical_check_failed"

    async def test_blocked_recovers_when_fixed(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        await seeded_store.upsert_check_definition(
            {"key": "emd_timeline", "title": "EMD", "severity": "critical", "requires_hitl": True}
        )
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "fail")
        assert (await aggregator.rollup(txn.id)).status == TxnStatus.BLOCKED

        await settle_all(seeded_store, txn.id)
        outcome = await aggregator.rollup(txn.id)

        assert outcome.previous_status == TxnStatus.BLOCKED
        assert outcome.status == TxnStatus.READY_TO_CLOSE

    async def test_pending_hitl_check(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "pending")
        await record(seeded_store, txn.id, "appraisal_marked", "pass")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.PENDING_HITL
        assert outcome.reason == "hitl_check_pending"

    async def test_pending_non_hitl_check_stays_open(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "pass")
        await record(seeded_store, txn.id, "cash_proof_letter", "na")
        await record(seeded_store, txn.id, "appraisal_marked", "pending")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.OPEN
        assert outcome.reason == "checks_outstanding"

    async def test_warning_keeps_open(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "warn", days_left=1)
        await record(seeded_store, txn.id, "cash_proof_letter", "na")
        await record(seeded_store, txn.id, "appraisal_marked", "pass")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.OPEN
        assert outcome.reason == "check_warning"

    async def test_unevaluated_checks_stay_open(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "appraisal_marked", "pass")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.OPEN
        assert outcome.reason == "checks_outstanding"

    async def test_latest_result_wins(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "fail")
        await settle_all(seeded_store, txn.id)

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.READY_TO_CLOSE

    async def test_no_results_is_a_noop(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()

        outcome = await aggregator.rollup(txn.id)

        assert not outcome.changed
        assert outcome.reason == "no_check_results"
        assert await seeded_store.list_timeline(txn.id) == []

    async def test_unknown_transaction(self, aggregator) -> None:
        with pytest.raises(NotFoundError):
            await aggregator.rollup(uuid.uuid4())

    async def test_conflict_after_retries(self, sample_transaction_data) -> None:
        store = LosingStore(embedding_dimension=3)
        txn = await store.create_transaction(sample_transaction_data)
        await store.upsert_check_definition({"key": "appraisal_marked", "title": "Appraisal"})
        await record(store, txn.id, "appraisal_marked", "pass")

        with pytest.raises(RollupConflictError):
            await StatusAggregator(store, max_attempts=3).rollup(txn.id)
        assert store.cas_calls == 3


class TestManualTransitions:
    """Tests for close and void."""

    async def test_close_from_ready(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)
        await aggregator.rollup(txn.id)

        outcome = await aggregator.close(txn.id)

        assert outcome.status == TxnStatus.CLOSED
        assert outcome.terminal
        events = await seeded_store.list_timeline(txn.id)
        assert events[-1].created_by == "manual"
        assert events[-1].payload["to"] == "closed"

    async def test_close_twice_is_noop(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)
        await aggregator.rollup(txn.id)
        await aggregator.close(txn.id)

        again = await aggregator.close(txn.id)

        assert not again.changed
        assert again.status == TxnStatus.CLOSED

    async def test_close_requires_ready(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()
        await record(seeded_store, txn.id, "emd_timeline", "fail")
        await aggregator.rollup(txn.id)

        with pytest.raises(InvalidTransitionError):
            await aggregator.close(txn.id)

    async def test_rollup_after_close_is_terminal_noop(
        self, seeded_store, make_transaction, aggregator
    ) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)
        await aggregator.rollup(txn.id)
        await aggregator.close(txn.id)
        await record(seeded_store, txn.id, "emd_timeline", "fail")

        outcome = await aggregator.rollup(txn.id)

        assert outcome.status == TxnStatus.CLOSED
        assert outcome.terminal
        assert not outcome.changed
        assert outcome.reason == "terminal_closed"

    async def test_void_from_any_status(self, seeded_store, make_transaction, aggregator) -> None:
        txn = await make_transaction()

        outcome = await aggregator.void(txn.id)
        again = await aggregator.void(txn.id)

        assert outcome.status == TxnStatus.VOID
        assert outcome.changed
        assert not again.changed
        await record(seeded_store, txn.id, "appraisal_marked", "pass")
        assert (await aggregator.rollup(txn.id)).status == TxnStatus.VOID


class TestComplianceService:
    """Tests for evaluate-then-rollup."""

    async def test_refresh_rolls_up_overdue_emd(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction()
        service = ComplianceService(seeded_store, engine=make_engine(date(2025, 8, 6)))

        results, outcome = await service.refresh(txn.id)

        assert {r.check_key for r in results} == {
            "appraisal_marked",
            "cash_proof_letter",
            "emd_timeline",
        }
        assert outcome.status == TxnStatus.PENDING_HITL
        assert outcome.reason == "check_failed"

    async def test_cancelled_refresh_skips_rollup(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction()
        service = ComplianceService(seeded_store, engine=make_engine(date(2025, 8, 6)))
        cancel = asyncio.Event()
        cancel.set()

        results, outcome = await service.refresh(txn.id, cancel_event=cancel)

        assert results == []
        assert outcome is None
        assert (await seeded_store.load_snapshot(txn.id)).rollup_status is None

    async def test_cash_letter_clears_review(
        self, seeded_store, make_transaction, make_engine
    ) -> None:
        txn = await make_transaction(financing="cash")
        service = ComplianceService(seeded_store, engine=make_engine(date(2025, 8, 2)))

        _, first = await service.refresh(txn.id)
        assert first.status == TxnStatus.PENDING_HITL

        doc = await seeded_store.add_document({"transaction_id": txn.id, "doc_type": "disclosure"})
        await seeded_store.add_doc_field(
            {"document_id": doc.id, "field_name": "proof_of_funds", "field_value_text": "Bank letter"}
        )
        results, second = await service.refresh(txn.id)

        statuses = {r.check_key: r.status.value for r in results}
        assert statuses["cash_proof_letter"] == "pass"
        # Earnest money is due in two days, so the deal stays open
        assert statuses["emd_timeline"] == "warn"
        assert second.status == TxnStatus.OPEN
        assert second.previous_status == TxnStatus.PENDING_HITL

    @pytest.mark.parametrize("terminal", ["close", "void"])
    async def test_refresh_after_terminal_keeps_status(
        self, seeded_store, make_transaction, make_engine, aggregator, terminal
    ) -> None:
        txn = await make_transaction()
        await settle_all(seeded_store, txn.id)
        await aggregator.rollup(txn.id)
        await getattr(aggregator, terminal)(txn.id)
        before = len(await seeded_store.list_check_results(txn.id))
        service = ComplianceService(seeded_store, engine=make_engine(date(2025, 8, 6)))

        results, outcome = await service.refresh(txn.id)

        assert len(results) == 3
        assert len(await seeded_store.list_check_results(txn.id)) == before + 3
        assert outcome.terminal
        assert not outcome.changed
        expected = TxnStatus.CLOSED if terminal == "close" else TxnStatus.VOID
        assert outcome.status == expected
        assert (await seeded_store.load_snapshot(txn.id)).current_status == expected
