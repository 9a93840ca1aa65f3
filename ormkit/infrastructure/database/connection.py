"""Lock-safe update execution on top of an async engine."""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql.base import Executable

from ormkit.config import get_settings
from ormkit.repositories.resilience import RetryPolicy, as_executable, run_with_retry
from ormkit.shared.utils.logging import LoggerMixin


class LockSafeConnection(LoggerMixin):
    """Runs update statements that survive lock wait timeouts and deadlocks.

    Each attempt runs in its own transaction, so a deadlock victim is
    rolled back before the statement is tried again.

    Usage:
        conn = LockSafeConnection(get_engine())
        affected = await conn.locks_safe_update("UPDATE users SET is_old = 1")
    """

    def __init__(
        self,
        engine: AsyncEngine,
        transaction_restart_delay: float | None = None,
    ) -> None:
        """Initialize the connection wrapper.

        Args:
            engine: Async engine to open transactions on
            transaction_restart_delay: Seconds to wait before restarting a
                locked transaction, defaults to the configured delay
        """
        self.engine = engine
        if transaction_restart_delay is None:
            transaction_restart_delay = get_settings().lock_retry_delay_seconds
        self.transaction_restart_delay = transaction_restart_delay

    async def execute_update(
        self,
        query: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """Execute a statement once in its own transaction.

        Returns:
            Number of affected rows
        """
        async with self.engine.begin() as conn:
            result = await conn.execute(as_executable(query), dict(params or {}))
            return result.rowcount

    async def locks_safe_update(
        self,
        query: str | Executable,
        params: Mapping[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> int:
        """Execute an update, restarting it on lock conflicts.

        Args:
            query: SQL text or SQLAlchemy executable
            params: Bound parameter values
            max_attempts: Total attempts, defaults to the configured count

        Returns:
            Number of affected rows
        """
        configured = RetryPolicy.from_settings()
        policy = RetryPolicy(
            max_attempts=configured.max_attempts if max_attempts is None else max_attempts,
            delay=self.transaction_restart_delay,
            classifier=configured.classifier,
        )
        self.logger.debug("locks_safe_update", max_attempts=policy.max_attempts)
        return await run_with_retry(
            lambda: self.execute_update(query, params),
            policy,
            operation_name="locks_safe_update",
        )
