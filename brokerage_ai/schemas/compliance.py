"""Pydantic schemas for compliance endpoints."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from brokerage_ai.db.enums import TxnStatus
from brokerage_ai.store.records import CheckResultRecord


class RollupResponse(BaseModel):
    """Outcome of a rollup or a manual lifecycle transition."""

    model_config = ConfigDict(from_attributes=True)

    transaction_id: UUID
    status: TxnStatus
    previous_status: TxnStatus
    changed: bool = Field(description="Whether the status changed")
    terminal: bool = Field(description="Status is closed or void")
    score: Decimal | None = Field(
        default=None, description="Weighted share of passing checks (informational)"
    )
    reason: str | None = None


class EvaluationResponse(BaseModel):
    """Results of a batch evaluation, with the rollup that followed."""

    transaction_id: UUID
    results: list[CheckResultRecord]
    rollup: RollupResponse | None = None


class RefreshDispatchResponse(BaseModel):
    """Background refresh accepted."""

    transaction_id: UUID
    task_id: str | None = Field(default=None, description="Celery task id, if queued")
    mode: str = Field(description="celery or background")
