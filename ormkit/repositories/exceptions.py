"""Repository layer exceptions.

Provides a typed exception hierarchy for query building and lock-safe
execution. Driver errors raised while executing statements are never
wrapped: they reach the caller unchanged, whether or not they were retried.
"""

from typing import Any


class RepositoryError(Exception):
    """Base exception for all repository errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(RepositoryError):
    """Raised when builder input fails validation."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = errors

        super().__init__(message, details)
        self.field = field
        self.errors = errors or []


class InvalidPageError(ValidationError):
    """Raised when a page number below 1 is requested."""

    def __init__(self, page: int) -> None:
        super().__init__(
            f"Incorrect page number: {page}. Only positive page number allowed.",
            field="page",
        )
        self.page = page


class NonUniqueResultError(RepositoryError):
    """Raised when a query capped at one row produced more than one."""

    def __init__(self, entity_type: str, count: int | None = None) -> None:
        details: dict[str, Any] = {"entity_type": entity_type}
        if count is not None:
            details["count"] = count

        super().__init__(f"Expected at most one {entity_type}, got more", details)
        self.entity_type = entity_type
        self.count = count


class TransactionError(RepositoryError):
    """Raised when a transaction operation fails."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        details: dict[str, Any] = {}
        if original_error:
            details["original_error"] = str(original_error)
            details["error_type"] = type(original_error).__name__

        super().__init__(message, details)
        self.original_error = original_error


class RetryCancelledError(TransactionError):
    """Raised when a retry loop is cancelled between attempts."""

    def __init__(
        self,
        operation: str,
        attempts: int,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            f"Retry of '{operation}' cancelled after {attempts} attempt(s)",
            original_error,
        )
        self.operation = operation
        self.attempts = attempts


__all__ = [
    "RepositoryError",
    "ValidationError",
    "InvalidPageError",
    "NonUniqueResultError",
    "TransactionError",
    "RetryCancelledError",
]
