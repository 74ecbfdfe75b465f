"""
Shared pytest configuration for bandroom tests.

Each test gets a fresh SQLite file database (aiosqlite) under tmp_path with
foreign keys enforced. A file rather than :memory: so that code opening several
sessions at once (backup export, analytics) and the TestClient's own event loop
all see the same data.
"""

import os

# Must be set before the routes package is imported so rate limits are no-ops
os.environ["ENV"] = "test"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from bandroom.database.db import Base, build_session_factory, enable_sqlite_foreign_keys
from bandroom.database.models import User, UserRole, UserStatus


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a test database engine with every table created."""
    # NullPool: no connection is shared between the test loop and the TestClient loop
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A database session for one test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user():
    """Factory inserting a user row (approved member by default)."""

    async def _make_user(
        session,
        user_id,
        name="Test User",
        email=None,
        phone=None,
        status=UserStatus.APPROVED.value,
        role=UserRole.USER.value,
        last_sign_in_at=None,
    ):
        user = User(
            id=user_id,
            name=name,
            email=email or f"{user_id}@example.com",
            phone=phone,
            status=status,
            role=role,
            last_sign_in_at=last_sign_in_at,
        )
        session.add(user)
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def app_with_db(session_factory):
    """The app wired to the per-test database; restored afterwards."""
    from bandroom.api.main import app

    original = getattr(app.state, "session_factory", None)
    app.state.session_factory = session_factory
    yield app
    app.state.session_factory = original
