"""Base repository abstract class.

Provides a generic repository whose lookups are all expressed through
EntityQueryBuilder, and whose filter() hands out a fresh builder for
ad-hoc queries.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from ormkit.repositories.exceptions import ValidationError
from ormkit.repositories.query_builder import EntityQueryBuilder

T = TypeVar("T")

# Maximum allowed limit for pagination to prevent DoS
MAX_QUERY_LIMIT = 1000


def validate_pagination(limit: int, offset: int) -> tuple[int, int]:
    """Validate pagination parameters.

    Args:
        limit: Requested limit
        offset: Requested offset

    Returns:
        Validated (limit, offset) tuple

    Raises:
        ValidationError: If parameters are invalid
    """
    if limit < 0:
        raise ValidationError("Limit must be non-negative", field="limit")
    if offset < 0:
        raise ValidationError("Offset must be non-negative", field="offset")
    if limit > MAX_QUERY_LIMIT:
        limit = MAX_QUERY_LIMIT
    return limit, offset


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository for one mapped entity.

    Concrete repositories name their model and get filtering, lookup by
    id, pagination and counting for free.

    Example:
        class PostRepository(BaseRepository[Post]):
            model_class = Post

        posts = await repo.filter().filter_by_column("Post.authorId", author_id).fetch_all()

    Type Parameters:
        T: The entity type this repository manages
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with a database session.

        Args:
            session: Async SQLAlchemy session for database operations
        """
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[T]:
        """Return the SQLAlchemy model class for this repository."""
        pass

    def filter(self) -> EntityQueryBuilder[T]:
        """Start a new query on this repository's entity."""
        return EntityQueryBuilder(self.session, self.model_class)

    def _column(self, builder: EntityQueryBuilder[T], field_name: str) -> str:
        return f"{builder.alias}.{field_name}"

    async def get_by_id(self, entity_id: Any) -> T | None:
        """Get an entity by its ID.

        Args:
            entity_id: The unique identifier of the entity

        Returns:
            The entity if found, None otherwise
        """
        builder = self.filter()
        return await builder.filter_by_column(self._column(builder, "id"), entity_id).fetch_one()

    async def get_all(self, limit: int = 100, offset: int = 0) -> list[T]:
        """Get all entities with pagination.

        Raises:
            ValidationError: If pagination parameters are invalid
        """
        limit, offset = validate_pagination(limit, offset)
        return await self.filter().limit(limit, offset).fetch_all()

    async def list_by_field(
        self,
        field_name: str,
        field_value: Any,
        limit: int = 100,
        offset: int = 0,
    ) -> list[T]:
        """List entities filtered by a single field.

        A list value filters with IN, None with IS NULL.

        Args:
            field_name: Name of the field to filter by
            field_value: Value to filter for
            limit: Maximum number to return
            offset: Number to skip

        Returns:
            List of matching entities
        """
        limit, offset = validate_pagination(limit, offset)

        builder = self.filter()
        return await (
            builder.filter_by_column(self._column(builder, field_name), field_value)
            .limit(limit, offset)
            .fetch_all()
        )

    async def count(self, **filters: Any) -> int:
        """Count entities matching optional field filters.

        None values are skipped rather than compared with NULL.
        """
        builder = self.filter().select(func.count())
        for field_name, value in filters.items():
            builder.filter_by_column(self._column(builder, field_name), value, strict=False)
        return await builder.fetch_scalar() or 0
