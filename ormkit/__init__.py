"""ormkit: lock-safe updates and fluent entity queries for SQLAlchemy.

Modules:
    - repositories: EntityQueryBuilder, BaseRepository, retry policy and exceptions
    - infrastructure: engine/session management and LockSafeConnection
    - shared: structured logging helpers
"""

from ormkit.repositories import (
    BaseRepository,
    EntityQueryBuilder,
    RetryingExecutor,
    RetryPolicy,
)

__version__ = "0.1.0"
__all__ = [
    "BaseRepository",
    "EntityQueryBuilder",
    "RetryPolicy",
    "RetryingExecutor",
]
