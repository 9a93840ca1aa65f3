"""Tests for the predicate expression tree."""

import pytest
from sqlalchemy import Integer, String, column, table
from sqlalchemy.dialects import sqlite

from ormkit.repositories.predicates import (
    Equals,
    In,
    IsNull,
    Raw,
    is_compound,
    placeholder_names,
    render_conjunction,
    render_literal,
)


posts = table(
    "posts",
    column("id", Integer),
    column("title", String),
    column("subtitle", String),
)


def _resolve(path: str):
    return posts.c[path.rsplit(".", 1)[-1]]


def _compile(clause) -> str:
    return str(clause.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


class TestRender:
    """Test the text form of predicates."""

    def test_equals(self):
        assert Equals("Post.title", "p1").render() == "Post.title = :p1"

    def test_is_null(self):
        assert IsNull("Post.authorId").render() == "Post.authorId IS NULL"

    def test_in(self):
        assert In("Post.id", (1, 2)).render() == "Post.id IN (1, 2)"

    def test_in_quotes_strings(self):
        assert In("Post.title", ("it's",)).render() == "Post.title IN ('it''s')"

    def test_empty_in(self):
        assert In("Post.id", ()).render() == "1 = 0"

    def test_raw_grouping_only_when_requested(self):
        raw = Raw("a = 1 OR b = 1")
        assert raw.render() == "a = 1 OR b = 1"
        assert raw.render(grouped=True) == "(a = 1 OR b = 1)"

    def test_simple_raw_never_grouped(self):
        assert Raw("a = 1").render(grouped=True) == "a = 1"

    @pytest.mark.parametrize(
        "value,expected",
        [(None, "NULL"), (True, "1"), (False, "0"), (3, "3"), (1.5, "1.5"), ("x", "'x'")],
    )
    def test_render_literal(self, value, expected):
        assert render_literal(value) == expected


class TestConjunction:
    """Test AND composition."""

    def test_single_predicate(self):
        assert render_conjunction([Raw("a = 1 OR b = 1")]) == "a = 1 OR b = 1"

    def test_groups_compound_raw(self):
        predicates = [Equals("a", "p1"), Raw("b = 1 OR c = 1"), IsNull("d")]
        assert render_conjunction(predicates) == "a = :p1 AND (b = 1 OR c = 1) AND d IS NULL"

    def test_empty(self):
        assert render_conjunction([]) == ""

    def test_is_compound(self):
        assert is_compound("a = 1 or b = 2")
        assert is_compound("a = 1 AND b = 2")
        assert not is_compound("author = 1")
        assert not is_compound("a = 'ORDER'")


class TestToClause:
    """Test SQLAlchemy rendering."""

    def test_equals_binds_value(self):
        sql = _compile(Equals("Post.title", "p1").to_clause(_resolve, {"p1": "Superman"}))
        assert sql == "posts.title = 'Superman'"

    def test_is_null(self):
        assert _compile(IsNull("Post.subtitle").to_clause(_resolve, {})) == "posts.subtitle IS NULL"

    def test_in(self):
        sql = _compile(In("Post.id", (1, 2, 3)).to_clause(_resolve, {}))
        assert sql == "posts.id IN (1, 2, 3)"

    def test_empty_in_is_false(self):
        sql = _compile(In("Post.id", ()).to_clause(_resolve, {}))
        assert "posts.id" not in sql

    def test_raw_binds_known_placeholders(self):
        clause = Raw("title = :title").to_clause(_resolve, {"title": "Bound", "other": 1})
        assert _compile(clause) == "title = 'Bound'"

    def test_raw_grouped(self):
        clause = Raw("a = 1 OR b = 1").to_clause(_resolve, {}, grouped=True)
        assert _compile(clause) == "(a = 1 OR b = 1)"

    def test_placeholder_names(self):
        assert placeholder_names("a = :x AND b = :y AND c = :x") == ["x", "y"]
        assert placeholder_names("a::int = 1") == []
