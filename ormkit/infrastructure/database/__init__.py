"""Database infrastructure package."""

from ormkit.infrastructure.database.connection import LockSafeConnection
from ormkit.infrastructure.database.session import (
    close_db,
    get_db_session,
    get_engine,
    get_session_factory,
)

__all__ = [
    "LockSafeConnection",
    "close_db",
    "get_db_session",
    "get_engine",
    "get_session_factory",
]
