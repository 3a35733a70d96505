from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.middleware import install_query_counter


def _engine_options(url: str) -> dict:
    options = {"echo": settings.DEBUG and settings.LOG_LEVEL == "DEBUG"}
    if url.startswith("sqlite"):
        # SQLite connections are handed between the event loop and aiosqlite's worker thread.
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Timezone-aware UTC now; every timestamp written by the app goes through here."""
    return datetime.now(timezone.utc)


async def get_db():
    """
    Request-scoped session.

    Services that hand out credentials commit on their own before
    returning; the trailing commit here covers read-only handlers and is a
    no-op otherwise.  Any exception rolls the transaction back.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
