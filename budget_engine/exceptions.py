"""Error taxonomy shared by the budget engine services."""

from decimal import Decimal
from typing import Any, Dict, Optional


class BudgetEngineError(Exception):
    """Base class for all engine errors.

    ``message`` is written to be shown to an end user as-is; ``details``
    carries the same context in machine-readable form.
    """

    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BudgetEngineError):
    """Malformed input: missing fields, non-positive amounts, threshold out of range."""


class NotFoundError(BudgetEngineError):
    """Template, budget or category absent or inactive."""


class ConflictError(BudgetEngineError):
    """Duplicate period generation or duplicate name.

    Bulk operations treat this as a benign skip.
    """


class InsufficientFundsError(BudgetEngineError):
    """Transfer exceeds the source category's available balance."""

    def __init__(self, message: str, available: Decimal, requested: Decimal):
        super().__init__(
            message, details={"available": str(available), "requested": str(requested)}
        )
        self.available = available
        self.requested = requested


class StorageFailure(BudgetEngineError):
    """Transient infrastructure error; the caller may retry with backoff."""

    retryable = True
