"""Translation of engine errors into HTTP responses."""

from fastapi import HTTPException, status

from budget_engine.exceptions import (
    BudgetEngineError,
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    StorageFailure,
    ValidationError,
)
from budget_engine.logging_config import get_logger

logger = get_logger(__name__)

STATUS_CODES = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InsufficientFundsError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def to_http_exception(error: BudgetEngineError) -> HTTPException:
    """Map an engine error to the HTTPException a route raises.

    Args:
        error: Engine error

    Returns:
        HTTPException with the user-facing message as detail
    """
    status_code = STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)

    if isinstance(error, InsufficientFundsError):
        return HTTPException(
            status_code=status_code,
            detail={
                "message": error.message,
                "available": str(error.available),
                "requested": str(error.requested),
            },
        )

    if isinstance(error, StorageFailure):
        logger.warning("Storage failure surfaced to client", error=error.message)
        return HTTPException(
            status_code=status_code, detail=error.message, headers={"Retry-After": "1"}
        )

    return HTTPException(status_code=status_code, detail=error.message)
