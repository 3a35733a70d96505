"""
Test infrastructure for the auth API.

Strategy
--------
- Environment is pinned before the app is imported: SQLite in-memory as
  the database URL, a fixed signing secret, and the lowest bcrypt work
  factor so hashing does not dominate the suite's runtime.
- SQLite in-memory via aiosqlite with StaticPool: every session shares the
  one connection, which is required because an in-memory database is
  connection-scoped.
- The app's get_db dependency is overridden so every request uses the
  test session factory.
- All tables are created fresh before each test and dropped after.
- Redis is disabled by setting cache._redis = None; the CacheManager then
  misses on every read and skips every write.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-signing-secret-not-for-production-use"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter
from app.models import Role, User
from app.passwords import hash_password
from app.tokens import TokenCodec

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for calling services directly and asserting ORM state."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def session_factory() -> async_sessionmaker:
    """Factory for a second, independent session (competing requests)."""
    return async_session_test


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec.from_settings()


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport, Redis off."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """An admin credential inserted directly; registration never grants admin."""
    user = User(
        username="admin",
        email="admin@example.com",
        password_hash=hash_password("adminpass"),
        role=Role.ADMIN,
    )
    db_session.add(user)
    await db_session.commit()
    return user

