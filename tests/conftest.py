"""Global pytest fixtures for ormkit.

This module provides shared fixtures for testing including:
- Mock async sessions and engines
- Mock SQLAlchemy results
- Settings cache isolation
"""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from ormkit.config import get_settings
from tests.factories import Base, PostFactory
from tests.factories.results import make_result


# ===========================================
# SETTINGS
# ===========================================


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Make every test read settings from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ===========================================
# DATABASE SESSION FIXTURES
# ===========================================


@pytest.fixture
def db_session() -> Generator[AsyncMock, None, None]:
    """Create a mock async database session for unit tests."""
    session = AsyncMock()
    session.execute = AsyncMock(return_value=make_result())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    yield session


@pytest.fixture
def mock_engine() -> MagicMock:
    """Create a mock async engine whose begin() yields a mock connection."""
    engine = MagicMock()
    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=make_result(rowcount=1))
    engine.begin.return_value.__aenter__.return_value = conn
    engine.begin.return_value.__aexit__.return_value = None
    engine.connection = conn
    return engine


@pytest.fixture
def sqlite_session() -> Generator[Session, None, None]:
    """In-memory SQLite session seeded with three posts.

    Superman: author 1, category 1, published, no subtitle
    Batman: author 2, category 2, draft, subtitle "Dark"
    Flash: author 1, category 3, approved, subtitle "Fast"
    """
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all(
            [
                PostFactory.create(title="Superman", author_id=1, category_id=1),
                PostFactory.create(
                    title="Batman",
                    subtitle="Dark",
                    author_id=2,
                    category_id=2,
                    publish_status="draft",
                ),
                PostFactory.create(
                    title="Flash",
                    subtitle="Fast",
                    author_id=1,
                    category_id=3,
                    publish_status="approved",
                ),
            ]
        )
        session.commit()
        yield session
    engine.dispose()
