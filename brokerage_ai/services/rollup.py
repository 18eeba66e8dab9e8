"""
Status aggregation: folds current check results into one lifecycle status.

Precedence (first match wins):
    1. transaction is void                               -> void
    2. any critical check failed                         -> blocked
    3. any check failed, or a HITL check is pending      -> pending_hitl
    4. any check warns                                   -> open
    5. every applicable check passed or is n/a           -> ready_to_close
    otherwise (checks not yet evaluated, non-HITL pending) -> open

The rollup always recomputes from scratch out of a single snapshot, and
writes through a conditional status update keyed on the status it read.
Losing that race re-reads and retries a bounded number of times.

``closed`` is never computed; it is set by ``close()``. Once a transaction
is closed or void, rollup is a no-op reported as success.
"""

import asyncio
import uuid
from dataclasses import dataclass
from decimal import Decimal

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from brokerage_ai.core.config import settings
from brokerage_ai.core.errors import (
    InconsistentStateError,
    InvalidTransitionError,
    RollupConflictError,
)
from brokerage_ai.core.logging import get_logger
from brokerage_ai.db.enums import CheckSeverity, CheckStatus, TxnStatus
from brokerage_ai.services.rule_engine import RuleEngine
from brokerage_ai.store.base import FactStore
from brokerage_ai.store.records import CheckResultRecord, TransactionSnapshot

logger = get_logger(__name__)

ROLLUP_ACTOR = "rollup"
MANUAL_ACTOR = "manual"


class StatusRaced(Exception):
    """The stored status changed between the snapshot and the write."""

    pass


@dataclass(frozen=True)
class RollupOutcome:
    """Result of one rollup call."""

    transaction_id: uuid.UUID
    status: TxnStatus
    previous_status: TxnStatus
    changed: bool
    terminal: bool = False
    score: Decimal | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "transaction_id": str(self.transaction_id),
            "status": self.status.value,
            "previous_status": self.previous_status.value,
            "changed": self.changed,
            "terminal": self.terminal,
            "score": str(self.score) if self.score is not None else None,
            "reason": self.reason,
        }


def applicable_results(snapshot: TransactionSnapshot) -> dict[str, CheckResultRecord]:
    """Latest result per applicable check key."""
    return {
        key: snapshot.latest_results[key]
        for key in snapshot.applicable_keys
        if key in snapshot.latest_results
    }


def compute_status(snapshot: TransactionSnapshot) -> tuple[TxnStatus, str]:
    """Pure aggregation of a snapshot into (status, reason)."""
    if snapshot.transaction.status == TxnStatus.VOID:
        return TxnStatus.VOID, "transaction_void"

    results = applicable_results(snapshot)

    def severity(key: str) -> CheckSeverity:
        return snapshot.definitions[key].severity

    def needs_hitl(key: str) -> bool:
        return snapshot.definitions[key].requires_hitl

    failed = [k for k, r in results.items() if r.status == CheckStatus.FAIL]
    if any(severity(k).is_blocking for k in failed):
        return TxnStatus.BLOCKED, "critical_check_failed"

    pending_hitl = [
        k for k, r in results.items() if r.status == CheckStatus.PENDING and needs_hitl(k)
    ]
    if failed:
        return TxnStatus.PENDING_HITL, "check_failed"
    if pending_hitl:
        return TxnStatus.PENDING_HITL, "hitl_check_pending"

    if any(r.status == CheckStatus.WARN for r in results.values()):
        return TxnStatus.OPEN, "check_warning"

    applicable = snapshot.applicable_keys
    if applicable and all(
        key in results and results[key].status.is_settled for key in applicable
    ):
        return TxnStatus.READY_TO_CLOSE, "all_checks_settled"
    return TxnStatus.OPEN, "checks_outstanding"


def weighted_score(snapshot: TransactionSnapshot) -> Decimal | None:
    """Share of pack weight held by passing checks, ignoring n/a results."""
    passed = Decimal("0")
    total = Decimal("0")
    for key, result in applicable_results(snapshot).items():
        if result.status == CheckStatus.NA:
            continue
        weight = snapshot.weight_for(key)
        total += weight
        if result.status == CheckStatus.PASS:
            passed += weight
    if total == 0:
        return None
    return (passed / total).quantize(Decimal("0.0001"))


def _require_results(snapshot: TransactionSnapshot) -> None:
    """Raise InconsistentStateError for a live transaction with no stored results."""
    if snapshot.transaction.status != TxnStatus.VOID and not snapshot.latest_results:
        raise InconsistentStateError(
            f"Transaction {snapshot.transaction.id} has no check results"
        )


class StatusAggregator:
    """Computes and persists the rollup status of transactions."""

    def __init__(self, store: FactStore, max_attempts: int | None = None):
        self.store = store
        self.max_attempts = max_attempts or settings.rollup_max_attempts

    async def rollup(self, transaction_id: uuid.UUID) -> RollupOutcome:
        """
        Recompute and store the rollup status.

        Raises:
            NotFoundError: unknown transaction
            RollupConflictError: every conditional write lost to a concurrent writer
        """
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(StatusRaced),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.01, max=0.2),
                reraise=True,
            ):
                with attempt:
                    return await self._rollup_once(transaction_id)
        except StatusRaced as e:
            logger.error(
                "Rollup conflict",
                transaction_id=str(transaction_id),
                attempts=self.max_attempts,
            )
            raise RollupConflictError(transaction_id, self.max_attempts) from e

    async def _rollup_once(self, transaction_id: uuid.UUID) -> RollupOutcome:
        snapshot = await self.store.load_snapshot(transaction_id)
        current = snapshot.current_status
        score = weighted_score(snapshot)

        if current.is_terminal:
            return RollupOutcome(
                transaction_id, current, current, changed=False, terminal=True,
                score=score, reason=f"terminal_{current.value}",
            )

        new_status, reason = compute_status(snapshot)

        try:
            _require_results(snapshot)
        except InconsistentStateError as e:
            logger.warning("Rollup skipped", transaction_id=str(transaction_id), error=str(e))
            return RollupOutcome(
                transaction_id, current, current, changed=False, score=score,
                reason="no_check_results",
            )

        if new_status == current and snapshot.rollup_status is not None:
            return RollupOutcome(
                transaction_id, current, current, changed=False, score=score, reason=reason
            )

        written = await self.store.compare_and_set_status(
            transaction_id, snapshot.rollup_status, new_status, actor=ROLLUP_ACTOR, reason=reason
        )
        if not written:
            raise StatusRaced(transaction_id)

        logger.info(
            "Rollup status updated",
            transaction_id=str(transaction_id),
            previous=current.value,
            status=new_status.value,
            reason=reason,
        )
        return RollupOutcome(
            transaction_id,
            new_status,
            current,
            changed=new_status != current,
            terminal=new_status.is_terminal,
            score=score,
            reason=reason,
        )

    async def close(self, transaction_id: uuid.UUID, actor: str = MANUAL_ACTOR) -> RollupOutcome:
        """
        Manually close a transaction that is ready to close.

        Raises:
            InvalidTransitionError: transaction is void, or not ready to close
        """
        snapshot = await self.store.load_snapshot(transaction_id)
        current = snapshot.current_status
        if current == TxnStatus.CLOSED:
            return RollupOutcome(
                transaction_id, current, current, changed=False, terminal=True,
                reason="already_closed",
            )
        if current != TxnStatus.READY_TO_CLOSE:
            raise InvalidTransitionError(
                f"Cannot close transaction in status {current.value}", field="status"
            )
        return await self._manual_transition(snapshot, TxnStatus.CLOSED, actor, "manual_close")

    async def void(self, transaction_id: uuid.UUID, actor: str = MANUAL_ACTOR) -> RollupOutcome:
        """Manually void a transaction from any status."""
        snapshot = await self.store.load_snapshot(transaction_id)
        current = snapshot.current_status
        if current == TxnStatus.VOID:
            return RollupOutcome(
                transaction_id, current, current, changed=False, terminal=True,
                reason="already_void",
            )
        return await self._manual_transition(snapshot, TxnStatus.VOID, actor, "manual_void")

    async def _manual_transition(
        self,
        snapshot: TransactionSnapshot,
        new_status: TxnStatus,
        actor: str,
        reason: str,
    ) -> RollupOutcome:
        transaction_id = snapshot.transaction.id
        current = snapshot.current_status
        written = await self.store.compare_and_set_status(
            transaction_id, snapshot.rollup_status, new_status, actor=actor, reason=reason
        )
        if not written:
            raise RollupConflictError(transaction_id, 1)
        logger.info(
            "Transaction status set manually",
            transaction_id=str(transaction_id),
            previous=current.value,
            status=new_status.value,
            actor=actor,
        )
        return RollupOutcome(
            transaction_id, new_status, current, changed=True, terminal=True, reason=reason
        )


class ComplianceService:
    """Evaluate-then-rollup facade used by the API and workers."""

    def __init__(
        self,
        store: FactStore,
        engine: RuleEngine | None = None,
        aggregator: StatusAggregator | None = None,
    ):
        self.store = store
        self.engine = engine or RuleEngine(store)
        self.aggregator = aggregator or StatusAggregator(store)

    async def refresh(
        self,
        transaction_id: uuid.UUID,
        cancel_event: asyncio.Event | None = None,
    ) -> tuple[list[CheckResultRecord], RollupOutcome | None]:
        """
        Re-evaluate all applicable checks and recompute the rollup.

        A cancelled batch leaves its written results in place but skips the
        rollup, so no status is computed from a partial batch.
        """
        results = await self.engine.evaluate_all(transaction_id, cancel_event=cancel_event)
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Refresh cancelled before rollup", transaction_id=str(transaction_id))
            return results, None
        outcome = await self.aggregator.rollup(transaction_id)
        return results, outcome
