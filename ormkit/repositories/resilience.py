"""Resilience patterns for statement execution.

Provides a retry policy for statements that fail on transient lock
conflicts (lock wait timeouts, deadlock victims), and an executor that
applies it around a single SQL statement.

The default classifier is a heuristic over the driver's error text. It
matches MySQL/MariaDB, whose lock wait timeout (1205) and deadlock (1213)
messages both end in "try restarting transaction". Other backends need
their own markers, e.g. PostgreSQL:

    policy = RetryPolicy(
        classifier=message_contains("deadlock detected", "could not serialize access"),
    )
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ParamSpec, Protocol, TypeVar

from sqlalchemy import text
from sqlalchemy.sql.base import Executable

from ormkit.config import get_settings
from ormkit.repositories.exceptions import RetryCancelledError
from ormkit.shared.utils.logging import get_logger

if TYPE_CHECKING:
    from ormkit.config import OrmKitSettings

logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

FailureClassifier = Callable[[BaseException], bool]

DEFAULT_RETRYABLE_MARKERS: tuple[str, ...] = ("try restarting transaction",)


def _sanitize_error_for_logging(error: BaseException) -> str:
    """Sanitize an error for safe logging.

    Driver messages can carry SQL text and bound values, so only a
    generic description derived from the exception type is logged.

    Args:
        error: The exception to sanitize

    Returns:
        Safe error description for logging
    """
    error_type = type(error).__name__

    safe_messages = {
        "OperationalError": "Database operational error",
        "InternalError": "Database internal error",
        "DBAPIError": "Database driver error",
        "IntegrityError": "Data integrity constraint violation",
        "ProgrammingError": "Query execution error",
        "TimeoutError": "Operation timed out",
    }

    return safe_messages.get(error_type, f"Error of type {error_type}")


def message_contains(*markers: str) -> FailureClassifier:
    """Build a classifier matching any marker in the error message.

    Matching is case-insensitive.

    Args:
        *markers: Message fragments identifying a retryable failure

    Returns:
        Classifier returning True when the error text contains a marker
    """
    lowered = tuple(marker.lower() for marker in markers)

    def classify(error: BaseException) -> bool:
        message = str(error).lower()
        return any(marker in message for marker in lowered)

    return classify


is_transient_failure: FailureClassifier = message_contains(*DEFAULT_RETRYABLE_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for lock-conflict retries.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1)
        delay: Fixed delay between attempts in seconds
        classifier: Decides whether a failure is worth another attempt
    """

    max_attempts: int = 3
    delay: float = 1.0
    classifier: FailureClassifier = field(default=is_transient_failure)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be non-negative, got {self.delay}")

    @classmethod
    def from_settings(cls, settings: OrmKitSettings | None = None) -> RetryPolicy:
        """Build the policy configured through ORMKIT_LOCK_RETRY_* settings."""
        settings = settings or get_settings()
        return cls(
            max_attempts=settings.lock_retry_max_attempts,
            delay=settings.lock_retry_delay_seconds,
            classifier=message_contains(*settings.lock_retry_markers),
        )

    def is_retryable(self, error: BaseException) -> bool:
        """Check whether the error should trigger another attempt."""
        return self.classifier(error)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    cancel_event: asyncio.Event | None = None,
    operation_name: str = "operation",
) -> T:
    """Run an async operation under a retry policy.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        policy: Retry policy to apply
        cancel_event: When set, no further attempt is started
        operation_name: Name used in log entries

    Returns:
        The result of the first successful attempt

    Raises:
        RetryCancelledError: If cancel_event was set between attempts
        Exception: The original failure when it is not retryable or
            the last attempt failed
    """
    last_error: Exception | None = None

    for attempt in range(1, policy.max_attempts + 1):
        if last_error is not None and cancel_event is not None and cancel_event.is_set():
            logger.warning(
                "lock_retry_cancelled",
                operation=operation_name,
                attempts=attempt - 1,
            )
            raise RetryCancelledError(operation_name, attempt - 1, last_error) from last_error

        try:
            return await operation()
        except Exception as e:
            if not policy.is_retryable(e):
                raise

            if attempt == policy.max_attempts:
                logger.error(
                    "lock_retry_exhausted",
                    operation=operation_name,
                    max_attempts=policy.max_attempts,
                    error_type=type(e).__name__,
                    error_msg=_sanitize_error_for_logging(e),
                )
                e.add_note(f"Retries exhausted after {attempt} attempt(s)")
                raise

            logger.warning(
                "lock_retry_attempt",
                operation=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=policy.delay,
                error_type=type(e).__name__,
                error_msg=_sanitize_error_for_logging(e),
            )
            last_error = e
            await asyncio.sleep(policy.delay)

    raise RuntimeError("Unexpected state: no result and no exception")


def with_lock_retry(
    policy: RetryPolicy | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator retrying an async function on lock conflicts.

    Args:
        policy: Retry policy, defaults to the configured one

    Returns:
        Decorated function with retry logic

    Example:
        @with_lock_retry(RetryPolicy(max_attempts=5, delay=0.5))
        async def mark_old_users(conn):
            ...
    """

    def decorator(
        func: Callable[P, Awaitable[T]],
    ) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await run_with_retry(
                lambda: func(*args, **kwargs),
                policy or RetryPolicy.from_settings(),
                operation_name=func.__name__,
            )

        return wrapper

    return decorator


class SupportsExecute(Protocol):
    """Anything with SQLAlchemy's async execute(): AsyncConnection, AsyncSession."""

    async def execute(self, statement: Any, parameters: Any = None) -> Any: ...


def as_executable(statement: str | Executable) -> Executable:
    """Wrap raw SQL text in text(), pass SQLAlchemy constructs through."""
    if isinstance(statement, str):
        return text(statement)
    return statement


class RetryingExecutor:
    """Executes update statements, retrying transient lock failures.

    The executor holds no state between calls. Each attempt is a plain
    execute() on the wrapped connection; transaction handling stays with
    the caller.

    Example:
        executor = RetryingExecutor(conn, RetryPolicy(max_attempts=3, delay=1))
        affected = await executor.execute(
            "UPDATE users SET is_old = 1 WHERE created_at < :cutoff",
            {"cutoff": cutoff},
        )
    """

    def __init__(
        self,
        executable: SupportsExecute,
        policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            executable: Connection or session used to run statements
            policy: Default retry policy, falls back to the configured one
        """
        self._executable = executable
        self.policy = policy or RetryPolicy.from_settings()

    async def execute(
        self,
        statement: str | Executable,
        params: Mapping[str, Any] | None = None,
        *,
        policy: RetryPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Execute a statement and return the number of affected rows.

        Args:
            statement: SQL text or SQLAlchemy executable
            params: Bound parameter values
            policy: Overrides the executor's policy for this call
            cancel_event: Checked between attempts

        Returns:
            Number of affected rows
        """
        executable = as_executable(statement)
        bound = dict(params or {})

        async def attempt() -> int:
            result = await self._executable.execute(executable, bound)
            return result.rowcount

        return await run_with_retry(
            attempt,
            policy or self.policy,
            cancel_event=cancel_event,
            operation_name="execute_update",
        )


__all__ = [
    "DEFAULT_RETRYABLE_MARKERS",
    "FailureClassifier",
    "RetryPolicy",
    "RetryingExecutor",
    "as_executable",
    "is_transient_failure",
    "message_contains",
    "run_with_retry",
    "with_lock_retry",
]
