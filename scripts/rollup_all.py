"""
Re-evaluate compliance checks and roll up the status of every transaction.

Runs in-process against PostgreSQL (no Celery worker needed). Useful after
changing a rule pack or deploying a new check evaluator.

Usage:
    python scripts/rollup_all.py                   # Evaluate + roll up all transactions
    python scripts/rollup_all.py --rollup-only     # Skip evaluation, only recompute status
    python scripts/rollup_all.py --concurrency 4   # Limit parallel transactions
"""

import argparse
import asyncio
from collections import Counter

from brokerage_ai.core.config import settings
from brokerage_ai.core.errors import NotFoundError, RollupConflictError
from brokerage_ai.core.logging import get_logger, setup_logging
from brokerage_ai.db.session import create_session_factory
from brokerage_ai.services import ComplianceService
from brokerage_ai.store.sql import SqlFactStore

logger = get_logger(__name__)


async def run(rollup_only: bool = False, concurrency: int = 8) -> None:
    engine, session_factory = create_session_factory()

    try:
        store = SqlFactStore(session_factory, embedding_dimension=settings.embedding_dimension)
        service = ComplianceService(store)

        transaction_ids = await store.list_transaction_ids()
        print(f"\nTransactions: {len(transaction_ids)}")

        semaphore = asyncio.Semaphore(concurrency)
        statuses: Counter[str] = Counter()
        changed = 0
        failed = 0

        async def run_one(transaction_id) -> None:
            nonlocal changed, failed
            async with semaphore:
                try:
                    if rollup_only:
                        outcome = await service.aggregator.rollup(transaction_id)
                    else:
                        _, outcome = await service.refresh(transaction_id)
                except (NotFoundError, RollupConflictError) as e:
                    failed += 1
                    logger.warning("Rollup skipped", transaction_id=str(transaction_id), error=str(e))
                    return
            statuses[outcome.status.value] += 1
            if outcome.changed:
                changed += 1

        await asyncio.gather(*(run_one(tid) for tid in transaction_ids))

        print(f"Status changed: {changed}")
        print(f"Errors: {failed}")
        print(f"\n{'STATUS':<16} COUNT")
        print("-" * 24)
        for status, count in statuses.most_common():
            print(f"{status:<16} {count}")
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Refresh compliance status for all transactions")
    parser.add_argument(
        "--rollup-only",
        action="store_true",
        help="Recompute status from existing results without re-evaluating checks",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.max_concurrent_checks,
        help="Transactions processed in parallel",
    )
    args = parser.parse_args()

    setup_logging()
    print("=" * 60)
    print("Compliance Rollup")
    print("=" * 60)
    print("Mode: ROLLUP ONLY" if args.rollup_only else "Mode: EVALUATE + ROLLUP")

    asyncio.run(run(rollup_only=args.rollup_only, concurrency=args.concurrency))


if __name__ == "__main__":
    main()
