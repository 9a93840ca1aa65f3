"""Predicate expression tree used by EntityQueryBuilder.

Filters are kept as small typed values and only turned into SQL when the
statement is built. Each predicate renders twice: as readable text for
inspection and logging, and as a SQLAlchemy clause for execution.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from sqlalchemy import ColumnElement, bindparam, false, text

ColumnResolver = Callable[[str], ColumnElement[Any]]

# Same rule text() uses to find :name placeholders
_PLACEHOLDER_PATTERN = re.compile(r"(?<![:\w\x5c]):(\w+)(?!:)")

# Matches fragments that need grouping when joined with AND
_COMPOUND_PATTERN = re.compile(r"\s(OR|AND)\s", re.IGNORECASE)


def render_literal(value: Any) -> str:
    """Render a value for the text form of a predicate."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def is_compound(statement: str) -> bool:
    """Check whether a raw fragment contains a bare OR/AND."""
    return bool(_COMPOUND_PATTERN.search(statement))


def placeholder_names(statement: str) -> list[str]:
    """Names of :name placeholders in a raw fragment, in order of appearance."""
    return list(dict.fromkeys(_PLACEHOLDER_PATTERN.findall(statement)))


@dataclass(frozen=True)
class Equals:
    """column = :parameter"""

    column: str
    parameter: str

    def render(self) -> str:
        return f"{self.column} = :{self.parameter}"

    def to_clause(
        self, resolve: ColumnResolver, params: Mapping[str, Any]
    ) -> ColumnElement[bool]:
        return resolve(self.column) == bindparam(self.parameter, params.get(self.parameter))


@dataclass(frozen=True)
class IsNull:
    """column IS NULL"""

    column: str

    def render(self) -> str:
        return f"{self.column} IS NULL"

    def to_clause(
        self, resolve: ColumnResolver, params: Mapping[str, Any]
    ) -> ColumnElement[bool]:
        return resolve(self.column).is_(None)


@dataclass(frozen=True)
class In:
    """column IN (values), with the values kept inline.

    An empty value list never matches.
    """

    column: str
    values: tuple[Any, ...]

    def render(self) -> str:
        if not self.values:
            return "1 = 0"
        rendered = ", ".join(render_literal(value) for value in self.values)
        return f"{self.column} IN ({rendered})"

    def to_clause(
        self, resolve: ColumnResolver, params: Mapping[str, Any]
    ) -> ColumnElement[bool]:
        if not self.values:
            return false()
        return resolve(self.column).in_(self.values)


@dataclass(frozen=True)
class Raw:
    """A caller-supplied fragment, used verbatim."""

    statement: str

    def render(self, grouped: bool = False) -> str:
        if grouped and is_compound(self.statement):
            return f"({self.statement})"
        return self.statement

    def to_clause(
        self, resolve: ColumnResolver, params: Mapping[str, Any], grouped: bool = False
    ) -> ColumnElement[bool]:
        clause = text(self.render(grouped))
        bound = [
            bindparam(name, params[name])
            for name in placeholder_names(self.statement)
            if name in params
        ]
        if bound:
            clause = clause.bindparams(*bound)
        return clause


Predicate: TypeAlias = Equals | IsNull | In | Raw


def render_conjunction(predicates: list[Predicate] | tuple[Predicate, ...]) -> str:
    """Join predicates with AND, grouping compound raw fragments."""
    grouped = len(predicates) > 1
    parts = [
        predicate.render(grouped) if isinstance(predicate, Raw) else predicate.render()
        for predicate in predicates
    ]
    return " AND ".join(parts)


__all__ = [
    "ColumnResolver",
    "Equals",
    "In",
    "IsNull",
    "Predicate",
    "Raw",
    "is_compound",
    "placeholder_names",
    "render_conjunction",
    "render_literal",
]
