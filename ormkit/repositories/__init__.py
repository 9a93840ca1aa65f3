"""Repository layer: fluent entity queries and lock-safe statement execution."""

from ormkit.repositories.base import BaseRepository, validate_pagination
from ormkit.repositories.exceptions import (
    InvalidPageError,
    NonUniqueResultError,
    RepositoryError,
    RetryCancelledError,
    TransactionError,
    ValidationError,
)
from ormkit.repositories.predicates import Equals, In, IsNull, Raw
from ormkit.repositories.query_builder import EntityQueryBuilder, derive_entity_alias
from ormkit.repositories.resilience import (
    RetryingExecutor,
    RetryPolicy,
    is_transient_failure,
    message_contains,
    with_lock_retry,
)

__all__ = [
    # Base
    "BaseRepository",
    "validate_pagination",
    # Query building
    "EntityQueryBuilder",
    "derive_entity_alias",
    "Equals",
    "In",
    "IsNull",
    "Raw",
    # Exceptions
    "RepositoryError",
    "ValidationError",
    "InvalidPageError",
    "NonUniqueResultError",
    "TransactionError",
    "RetryCancelledError",
    # Resilience
    "RetryPolicy",
    "RetryingExecutor",
    "is_transient_failure",
    "message_contains",
    "with_lock_retry",
]
