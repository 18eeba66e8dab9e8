"""
Check interface.

A check is looked up by its catalog key and evaluated against a
CheckContext. It returns a CheckOutcome; it must not raise for data that
is merely missing. Missing prerequisites map to ``pending`` and terms that
make the rule irrelevant map to ``na``.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from brokerage_ai.compliance.context import CheckContext
from brokerage_ai.db.enums import CheckStatus


@dataclass(frozen=True)
class CheckOutcome:
    """Status plus explanation produced by one evaluation."""

    status: CheckStatus
    details: dict[str, Any] = field(default_factory=dict)
    document_id: uuid.UUID | None = None

    @classmethod
    def passed(cls, document_id: uuid.UUID | None = None, **details: Any) -> "CheckOutcome":
        return cls(CheckStatus.PASS, details, document_id)

    @classmethod
    def failed(cls, reason: str, **details: Any) -> "CheckOutcome":
        return cls(CheckStatus.FAIL, {"reason": reason, **details})

    @classmethod
    def warning(cls, reason: str, **details: Any) -> "CheckOutcome":
        return cls(CheckStatus.WARN, {"reason": reason, **details})

    @classmethod
    def not_applicable(cls, reason: str, **details: Any) -> "CheckOutcome":
        return cls(CheckStatus.NA, {"reason": reason, **details})

    @classmethod
    def pending(cls, reason: str, **details: Any) -> "CheckOutcome":
        return cls(CheckStatus.PENDING, {"reason": reason, **details})


class Check(ABC):
    """Base class for compliance checks."""

    key: str

    @abstractmethod
    def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        """Evaluate the rule against one transaction."""
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(key={self.key!r})>"
