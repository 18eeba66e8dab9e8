"""
Rule engine: evaluates compliance checks and appends their results.

Each evaluation reads a fresh snapshot of the transaction, resolves the
evaluator by check key through the registry, and appends one CheckResult
row. Re-evaluating is an audit event, so every call writes a new row.

A check that cannot decide never takes the batch down: a missing
evaluator, an evaluator that raises, or a check outside the assigned
rule packs is logged and recorded as ``pending``.

Usage:
    engine = RuleEngine(store)
    result = await engine.evaluate(txn_id, "emd_timeline")
    results = await engine.evaluate_all(txn_id)
"""

import asyncio
import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone

from brokerage_ai.compliance import CheckContext, CheckOutcome, CheckRegistry, default_registry
from brokerage_ai.core.config import settings
from brokerage_ai.core.errors import InconsistentStateError, NotFoundError
from brokerage_ai.core.logging import get_logger
from brokerage_ai.db.enums import CheckStatus
from brokerage_ai.store.base import FactStore
from brokerage_ai.store.records import (
    CheckDefinitionRecord,
    CheckResultCreate,
    CheckResultRecord,
    TransactionSnapshot,
)

logger = get_logger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _require_pack_member(snapshot: TransactionSnapshot, check_key: str) -> None:
    """Raise InconsistentStateError when ``check_key`` is outside the assigned packs."""
    if snapshot.assigned_packs and check_key not in snapshot.pack_weights:
        raise InconsistentStateError(
            f"Check {check_key} is not a member of rule packs {list(snapshot.assigned_packs)}"
        )


class RuleEngine:
    """Evaluates registered checks against transactions."""

    def __init__(
        self,
        store: FactStore,
        registry: CheckRegistry | None = None,
        clock: Callable[[], date] = utc_today,
        emd_warn_window_days: int | None = None,
        max_concurrency: int | None = None,
    ):
        self.store = store
        self.registry = registry if registry is not None else default_registry
        self.clock = clock
        self.emd_warn_window_days = (
            emd_warn_window_days
            if emd_warn_window_days is not None
            else settings.emd_warn_window_days
        )
        self.max_concurrency = max_concurrency or settings.max_concurrent_checks

    async def evaluate(self, transaction_id: uuid.UUID, check_key: str) -> CheckResultRecord:
        """
        Evaluate one check and append its result.

        Raises:
            NotFoundError: unknown transaction or check key
            DependencyUnavailable: the fact store is unreachable
        """
        snapshot = await self.store.load_snapshot(transaction_id)
        definition = snapshot.definitions.get(check_key)
        if definition is None:
            raise NotFoundError("CheckDefinition", check_key)

        outcome = self._run_check(snapshot, definition)
        result = await self.store.append_check_result(
            CheckResultCreate(
                transaction_id=transaction_id,
                check_key=check_key,
                status=outcome.status,
                details=outcome.details or None,
                document_id=outcome.document_id,
            )
        )
        logger.info(
            "Check evaluated",
            transaction_id=str(transaction_id),
            check_key=check_key,
            status=result.status.value,
        )
        return result

    async def evaluate_all(
        self,
        transaction_id: uuid.UUID,
        cancel_event: asyncio.Event | None = None,
    ) -> list[CheckResultRecord]:
        """
        Evaluate every applicable check concurrently.

        Applicable means the checks of the assigned rule packs, or the whole
        catalog when none is assigned. Once ``cancel_event`` is set, checks
        that have not started are skipped; started ones finish writing.
        Results come back in check key order.
        """
        snapshot = await self.store.load_snapshot(transaction_id)
        keys = snapshot.applicable_keys
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(check_key: str) -> CheckResultRecord | None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return None
                return await self.evaluate(transaction_id, check_key)

        results = await asyncio.gather(*(run_one(key) for key in keys))
        written = [r for r in results if r is not None]

        if len(written) < len(keys):
            logger.warning(
                "Check batch cancelled",
                transaction_id=str(transaction_id),
                evaluated=len(written),
                skipped=len(keys) - len(written),
            )
        return written

    def _run_check(
        self, snapshot: TransactionSnapshot, definition: CheckDefinitionRecord
    ) -> CheckOutcome:
        key = definition.key
        log = logger.bind(transaction_id=str(snapshot.transaction.id), check_key=key)

        try:
            _require_pack_member(snapshot, key)
        except InconsistentStateError as e:
            log.warning("Check outside assigned rule packs", error=str(e))
            return CheckOutcome.pending(
                "check_not_in_assigned_packs", packs=list(snapshot.assigned_packs)
            )

        check = self.registry.get(key)
        if check is None:
            log.warning("No evaluator registered")
            return CheckOutcome.pending("no_evaluator_registered")

        ctx = CheckContext.from_snapshot(
            snapshot,
            definition,
            today=self.clock(),
            emd_warn_window_days=self.emd_warn_window_days,
        )
        try:
            outcome = check.evaluate(ctx)
        except Exception as e:
            log.exception("Check evaluator failed", error=str(e))
            return CheckOutcome.pending("evaluator_error", error=f"{type(e).__name__}: {e}")

        if outcome.status != CheckStatus.PASS and not outcome.details:
            return CheckOutcome(
                outcome.status,
                {"reason": f"{key} returned {outcome.status.value}"},
                outcome.document_id,
            )
        return outcome
