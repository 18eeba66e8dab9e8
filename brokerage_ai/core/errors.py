"""
Error taxonomy shared by the fact store, rule engine, and retrieval service.

- ValidationError: a constraint was violated; nothing was written.
- NotFoundError: a referenced transaction/document/check key does not exist.
- InconsistentStateError: the data cannot support the requested operation.
  Never escapes the engine or the aggregator; it is logged and turned into
  a ``pending`` result or a rollup no-op.
- DependencyUnavailable: the database or index is unreachable. The core
  fails fast; retrying is the orchestrating caller's decision.
- RollupConflictError: a conditional status write kept losing to a
  concurrent writer.
"""


class BrokerageError(Exception):
    """Base exception for all domain errors."""

    pass


class ValidationError(BrokerageError):
    """Raised when input violates a data constraint."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InvalidTransitionError(ValidationError):
    """Raised when a manual lifecycle transition is not allowed."""

    pass


class NotFoundError(BrokerageError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, key: object):
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key


class InconsistentStateError(BrokerageError):
    """Raised when stored data cannot support the requested operation."""

    pass


class DependencyUnavailable(BrokerageError):
    """Raised when the fact store or vector index cannot be reached."""

    pass


class RollupConflictError(BrokerageError):
    """Raised when the rollup status write loses every optimistic retry."""

    def __init__(self, transaction_id: object, attempts: int):
        super().__init__(
            f"Rollup for transaction {transaction_id} conflicted {attempts} times"
        )
        self.transaction_id = transaction_id
        self.attempts = attempts
