"""Fluent entity query builder.

Wraps SQLAlchemy's select() with a small filtering vocabulary:

    posts = await (
        EntityQueryBuilder(session, Post)
        .filter_by_column("Post.title", "Superman")
        .filter_by_column("Post.categoryId", [1, 2, 3])
        .filter_by_column("Post.subtitle", None, strict=False)
        .filter_by_statement("Post.views > :min_views", {"min_views": 100})
        .paginate(2, 20)
        .fetch_all()
    )

The builder is mutable and not safe to share between concurrent tasks.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence, Set
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, inspect, literal_column, select
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import MultipleResultsFound
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.sql import quoted_name

from ormkit.config import get_settings
from ormkit.repositories.exceptions import (
    InvalidPageError,
    NonUniqueResultError,
    ValidationError,
)
from ormkit.repositories.predicates import (
    Equals,
    In,
    IsNull,
    Predicate,
    Raw,
    render_conjunction,
)
from ormkit.shared.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

PARAMETER_PREFIX = "p"


def derive_entity_alias(entity_name: str, separator: str = ".") -> str:
    """Return the last component of a qualified entity name.

    Examples:
        >>> derive_entity_alias("Very.Long.Namespace.EntityClassName")
        'EntityClassName'
        >>> derive_entity_alias("Post")
        'Post'
    """
    return entity_name.rsplit(separator, 1)[-1]


def qualified_name(model: type) -> str:
    """Fully qualified name of a mapped class."""
    return f"{model.__module__}.{model.__qualname__}"


def _is_value_list(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, (Sequence, Set, Iterator))


class EntityQueryBuilder(Generic[T]):
    """Builds and runs filtered SELECT queries for one mapped entity.

    The entity is selected under an alias equal to its class name, so
    column paths can be written as "Post.title". A path whose prefix is the
    alias (or that has no prefix) resolves to the mapped attribute; any
    other path is passed to SQL verbatim.

    Attributes:
        session: Async session used by the fetch methods
        model: The mapped entity class
        entity_name: Fully qualified name of the entity class
        alias: Alias of the entity in the generated query
    """

    def __init__(self, session: AsyncSession, model: type[T]) -> None:
        """Initialize the builder.

        Args:
            session: Async SQLAlchemy session
            model: Mapped entity class to query
        """
        self.session = session
        self.model = model
        self.entity_name = qualified_name(model)
        self.alias = derive_entity_alias(self.entity_name)
        # Unquoted so raw fragments can spell the alias the same way
        self._entity = aliased(model, name=quoted_name(self.alias, quote=False))
        self._column_names = frozenset(inspect(model).all_orm_descriptors.keys())

        self._predicates: list[Predicate] = []
        self._parameters: dict[str, Any] = {}
        self._max_results: int | None = None
        self._first_result: int | None = None
        self._columns: list[Any] = []
        self._order_by: list[Any] = []

    # ===========================================
    # STATE ACCESSORS
    # ===========================================

    @property
    def entity(self) -> Any:
        """The aliased entity used in FROM."""
        return self._entity

    @property
    def parameters(self) -> dict[str, Any]:
        """Copy of the bound parameters."""
        return dict(self._parameters)

    @property
    def predicates(self) -> tuple[Predicate, ...]:
        return tuple(self._predicates)

    @property
    def max_results(self) -> int | None:
        return self._max_results

    @property
    def first_result(self) -> int | None:
        return self._first_result

    # ===========================================
    # FILTERING
    # ===========================================

    def filter_by_column(
        self,
        column: str,
        value: Any,
        strict: bool = True,
    ) -> EntityQueryBuilder[T]:
        """Apply filter by column.

        Example:
            builder.filter_by_column("Post.title", "Superman")
            builder.filter_by_column("Post.categoryId", [1, 2, 3])
            builder.filter_by_column("Post.subtitle", None)

        Args:
            column: Column path
            value: Scalar (equality), list/set/tuple/iterator (IN) or None (IS NULL)
            strict: For None, compare with NULL (True) or skip the filter (False)

        Returns:
            The builder
        """
        if value is None and not strict:
            return self

        if _is_value_list(value):
            return self._add_predicate(In(column, tuple(value)))

        if value is None:
            return self._add_predicate(IsNull(column))

        parameter_name = self.find_unused_parameter_name()
        self._add_predicate(Equals(column, parameter_name))
        return self.append_parameters({parameter_name: value})

    def filter_by_statement(
        self,
        statement: str,
        params: Mapping[str, Any] | None = None,
    ) -> EntityQueryBuilder[T]:
        """Apply a raw statement filter.

        Example:
            builder.filter_by_statement("Post.title = :title", {"title": "Superman"})

        Args:
            statement: SQL condition, used verbatim
            params: Parameters referenced by the statement

        Returns:
            The builder
        """
        self._add_predicate(Raw(statement))
        return self.append_parameters(params or {})

    def _add_predicate(self, predicate: Predicate) -> EntityQueryBuilder[T]:
        self._predicates.append(predicate)
        return self

    # ===========================================
    # PARAMETERS
    # ===========================================

    def append_parameters(self, params: Any) -> EntityQueryBuilder[T]:
        """Merge parameters, overwriting values of existing names.

        Anything that is not a mapping is ignored.
        """
        if not isinstance(params, Mapping):
            logger.debug("append_parameters_ignored", type=type(params).__name__)
            return self

        for name, value in params.items():
            self._parameters[name] = value
        return self

    def set_parameter(self, name: str, value: Any) -> EntityQueryBuilder[T]:
        self._parameters[name] = value
        return self

    def set_parameters(self, params: Mapping[str, Any]) -> EntityQueryBuilder[T]:
        """Replace all bound parameters."""
        self._parameters = dict(params)
        return self

    def find_unused_parameter_name(self) -> str:
        """Return the first name in p1, p2, ... not bound yet."""
        index = 1
        while f"{PARAMETER_PREFIX}{index}" in self._parameters:
            index += 1
        return f"{PARAMETER_PREFIX}{index}"

    # ===========================================
    # WINDOW
    # ===========================================

    def limit(self, max_results: int, offset: int | None = None) -> EntityQueryBuilder[T]:
        """Limit max number of results.

        Args:
            max_results: Maximum number of rows
            offset: Rows to skip; None keeps the current offset

        Raises:
            ValidationError: If a value is negative
        """
        if max_results < 0:
            raise ValidationError("Limit must be non-negative", field="limit")
        if offset is not None and offset < 0:
            raise ValidationError("Offset must be non-negative", field="offset")

        self._max_results = max_results
        if offset is not None:
            self._first_result = offset
        return self

    def offset(self, offset: int) -> EntityQueryBuilder[T]:
        if offset < 0:
            raise ValidationError("Offset must be non-negative", field="offset")
        self._first_result = offset
        return self

    def paginate(self, page: int = 1, items_per_page: int | None = None) -> EntityQueryBuilder[T]:
        """Limit results to the selected page.

        Args:
            page: Page number, 1..n
            items_per_page: Items per page, defaults to the configured page size

        Raises:
            InvalidPageError: If page is lower than 1
        """
        if page < 1:
            raise InvalidPageError(page)

        if items_per_page is None:
            items_per_page = get_settings().default_items_per_page
        return self.limit(items_per_page, (page - 1) * items_per_page)

    # ===========================================
    # SELECT / ORDER
    # ===========================================

    def select(self, *columns: Any) -> EntityQueryBuilder[T]:
        """Replace the selected columns.

        Strings resolve like filter column paths. Once columns are selected
        the fetch methods return rows instead of entities.
        """
        self._columns = [self._resolve(column) for column in columns]
        return self

    def order_by(self, *clauses: Any) -> EntityQueryBuilder[T]:
        """Append ordering; a leading "-" on a string path sorts descending."""
        for clause in clauses:
            if isinstance(clause, str) and clause.startswith("-"):
                self._order_by.append(self.resolve_column(clause[1:]).desc())
            else:
                self._order_by.append(self._resolve(clause))
        return self

    def resolve_column(self, path: str) -> ColumnElement[Any]:
        """Resolve a column path against the aliased entity."""
        prefix, _, attribute = path.rpartition(".")
        if prefix in ("", self.alias) and attribute in self._column_names:
            return getattr(self._entity, attribute)
        return literal_column(path)

    def _resolve(self, column: Any) -> Any:
        if isinstance(column, str):
            return self.resolve_column(column)
        return column

    # ===========================================
    # STATEMENT
    # ===========================================

    def where_clause(self) -> str:
        """Return the filter conjunction as text."""
        return render_conjunction(self._predicates)

    def statement(self) -> Select[Any]:
        """Build the SQLAlchemy statement with parameters bound."""
        if self._columns:
            stmt = select(*self._columns).select_from(self._entity)
        else:
            stmt = select(self._entity)

        grouped = len(self._predicates) > 1
        clauses = [
            predicate.to_clause(self.resolve_column, self._parameters, grouped)
            if isinstance(predicate, Raw)
            else predicate.to_clause(self.resolve_column, self._parameters)
            for predicate in self._predicates
        ]
        if clauses:
            stmt = stmt.where(*clauses)
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        if self._max_results is not None:
            stmt = stmt.limit(self._max_results)
        if self._first_result is not None:
            stmt = stmt.offset(self._first_result)
        return stmt

    def show_query(self, dialect: Dialect | None = None) -> str:
        """Compile the statement with parameter values inlined.

        Meant for debugging; the output is not safe to execute.

        Args:
            dialect: Dialect to compile for, defaults to the session's
        """
        if dialect is None:
            bind = self.session.get_bind()
            dialect = bind.dialect
        compiled = self.statement().compile(
            dialect=dialect,
            compile_kwargs={"literal_binds": True},
        )
        return str(compiled)

    # ===========================================
    # FETCHING
    # ===========================================

    async def fetch_all(self, params: Mapping[str, Any] | None = None) -> list[Any]:
        """Fetch all matching entities (or rows when columns were selected)."""
        self.append_parameters(params or {})
        result = await self._execute("all")
        if self._columns:
            return list(result.all())
        return list(result.scalars().all())

    async def fetch_one(self, params: Mapping[str, Any] | None = None) -> Any | None:
        """Fetch the first entity, or None.

        Raises:
            NonUniqueResultError: If the capped query still returned several rows
        """
        self.append_parameters(params or {})
        self.limit(1, 0)
        result = await self._execute("one")
        try:
            if self._columns:
                return result.one_or_none()
            return result.scalar_one_or_none()
        except MultipleResultsFound as e:
            raise NonUniqueResultError(self.alias) from e

    async def fetch_scalar(self, params: Mapping[str, Any] | None = None) -> Any | None:
        """Fetch the first column of the first row, or None."""
        self.append_parameters(params or {})
        self.limit(1, 0)
        result = await self._execute("scalar")
        row = result.first()
        if row is None:
            return None
        return row[0]

    async def _execute(self, mode: str) -> Any:
        logger.debug(
            "query_builder_fetch",
            alias=self.alias,
            mode=mode,
            predicates=len(self._predicates),
            limit=self._max_results,
            offset=self._first_result,
        )
        return await self.session.execute(self.statement())


__all__ = [
    "EntityQueryBuilder",
    "derive_entity_alias",
    "qualified_name",
]
