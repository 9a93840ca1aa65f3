"""Mock SQLAlchemy results."""

from typing import Any
from unittest.mock import MagicMock


def make_result(
    scalars: list[Any] | None = None,
    rows: list[tuple[Any, ...]] | None = None,
    rowcount: int = 0,
) -> MagicMock:
    """Build a mock SQLAlchemy Result."""
    result = MagicMock()
    result.rowcount = rowcount
    result.scalars.return_value.all.return_value = list(scalars or [])
    result.all.return_value = list(rows or [])
    result.first.return_value = rows[0] if rows else None
    return result
