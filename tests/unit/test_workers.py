"""Unit tests for Celery tasks, executed in-process on the memory backend."""

import asyncio
import uuid

from brokerage_ai.compliance import seed_catalog
from brokerage_ai.store import get_fact_store
from brokerage_ai.workers.tasks import bulk_rollup_task, index_chunks_task, refresh_transaction_task


def _create_transaction(data: dict) -> uuid.UUID:
    async def create() -> uuid.UUID:
        store = get_fact_store()
        await seed_catalog(store)
        txn = await store.create_transaction(data)
        await store.assign_rule_pack(txn.id, "TN_RES_2025")
        return txn.id

    return asyncio.run(create())


class TestComplianceTasks:
    """Tests for refresh and bulk rollup tasks."""

    def test_refresh_transaction(self, sample_transaction_data) -> None:
        transaction_id = _create_transaction(sample_transaction_data)

        result = refresh_transaction_task(str(transaction_id))

        assert result["transaction_id"] == str(transaction_id)
        assert result["evaluated"] == 3
        assert result["rollup"]["status"] in {"pending_hitl", "open", "ready_to_close"}

    def test_bulk_rollup_counts_unknown_as_error(self, sample_transaction_data) -> None:
        transaction_id = _create_transaction(sample_transaction_data)

        summary = bulk_rollup_task([str(transaction_id), str(uuid.uuid4())])

        assert summary["total"] == 2
        assert summary["errors"] == 1
        assert str(transaction_id) in summary["statuses"]


class TestIndexingTask:
    """Tests for the chunk indexing task."""

    def test_index_chunks(self) -> None:
        async def create_document() -> uuid.UUID:
            store = get_fact_store()
            txn = await store.create_transaction({})
            doc = await store.add_document({"transaction_id": txn.id, "doc_type": "psa"})
            return doc.id

        document_id = asyncio.run(create_document())
        dimension = get_fact_store().embedding_dimension
        embedding = [1.0] + [0.0] * (dimension - 1)

        result = index_chunks_task(
            str(document_id),
            [{"chunk_index": 0, "content": "Earnest money clause", "embedding": embedding}],
        )

        assert result == {"document_id": str(document_id), "indexed": 1}


class TestCeleryApp:
    """Tests for the Celery app configuration."""

    def test_tasks_routed_to_compliance_queue(self) -> None:
        from brokerage_ai.workers.celery_app import TASK_QUEUE, celery_app

        assert celery_app.conf.task_default_queue == TASK_QUEUE
        assert "brokerage_ai.workers.tasks.refresh_transaction_task" in celery_app.tasks

    def test_nightly_refresh_scheduled(self) -> None:
        from brokerage_ai.workers.celery_app import celery_app

        entry = celery_app.conf.beat_schedule["nightly-compliance-refresh"]

        assert entry["task"] == "brokerage_ai.workers.tasks.bulk_rollup_task"
        assert entry["kwargs"] == {"evaluate": True}
