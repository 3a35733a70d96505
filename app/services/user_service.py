"""
User service — reads and creation of the User aggregate.

Detail reads go through the cache-aside pattern (Redis, falling back to
the database).  Users are not mutated anywhere in this codebase, so a
cached detail only goes stale through deletion, which the TTL bounds.
Credential lookups used by the auth flows always hit the database.
"""
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.config import settings
from app.models import User
from app.schemas import RegisterRequest, UserResponse


def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a JSON-safe dict (no password hash)."""
    return UserResponse.model_validate(user).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(db: AsyncSession, offset: int = 0, limit: int = 20) -> list[User]:
    """Return one page of users ordered by creation date (newest first)."""
    q = select(User).order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit)
    result = await db.execute(q)
    return list(result.scalars().all())


async def count_users(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(User))).scalar_one()


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Return the public dict for *user_id*, or None when it does not exist.

    Misses are not cached, so a user registered after a failed lookup is
    visible immediately.
    """
    cache_key = f"users:detail:{user_id}"
    cached = await cache.get(cache_key)
    if cached is not None:
        return cached

    user = await db.get(User, user_id)
    if user is None:
        return None

    data = _user_to_dict(user)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_USER)
    return data


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_login(db: AsyncSession, username_or_email: str) -> User | None:
    """Look a credential up by username or by email."""
    q = select(User).where(
        or_(User.username == username_or_email, User.email == username_or_email)
    )
    result = await db.execute(q)
    return result.scalars().first()


async def identity_taken(db: AsyncSession, username: str, email: str) -> bool:
    q = select(User.id).where(or_(User.username == username, User.email == email)).limit(1)
    return (await db.execute(q)).first() is not None


async def create_user(db: AsyncSession, data: RegisterRequest, password_hash: str) -> User:
    """
    Insert a new user.

    Uniqueness of username and email is enforced by the database; an
    ``IntegrityError`` from the flush is left for the caller to translate.
    """
    user = User(
        username=data.username,
        email=data.email,
        password_hash=password_hash,
        nickname=data.nickname,
        avatar=data.avatar,
        gender=data.gender,
    )
    db.add(user)
    await db.flush()
    return user
