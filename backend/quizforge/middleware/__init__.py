"""HTTP middleware and the service exception hierarchy."""

from quizforge.middleware.error_handling import (
    ConflictError,
    ErrorHandlingMiddleware,
    InvalidTransitionError,
    InvariantViolationError,
    LLMError,
    NotFoundError,
    ServiceError,
    ValidationError,
    WorkerTimeoutError,
    setup_error_handling,
)

__all__ = [
    "ConflictError",
    "ErrorHandlingMiddleware",
    "InvalidTransitionError",
    "InvariantViolationError",
    "LLMError",
    "NotFoundError",
    "ServiceError",
    "ValidationError",
    "WorkerTimeoutError",
    "setup_error_handling",
]
