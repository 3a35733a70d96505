"""
Session store — persistence of issued refresh tokens.

A deliberately dumb layer: it inserts, looks up and revokes
``UserSession`` rows through the session it is given and never commits.
The one-active-session policy is enforced by the auth flows (and backed
by the partial unique index on ``user_sessions``), not here.

Refresh tokens are stored as their SHA-256 digest; lookups hash the
presented string, so matching is still on the exact token.
"""
from __future__ import annotations

import hashlib
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.models import UserSession


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_session(self, user_id: int, refresh_token: str, ttl: timedelta) -> UserSession:
        """Insert a new non-revoked session expiring *ttl* from now."""
        now = utcnow()
        record = UserSession(
            user_id=user_id,
            token_hash=hash_token(refresh_token),
            created_at=now,
            expires_at=now + ttl,
            revoked=False,
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_active_session(self, user_id: int) -> UserSession | None:
        """Most recently issued non-revoked session of *user_id*."""
        q = (
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.revoked.is_(False))
            .order_by(UserSession.created_at.desc(), UserSession.id.desc())
            .limit(1)
        )
        result = await self.db.execute(q)
        return result.scalar_one_or_none()

    async def find_usable_session(self, user_id: int, refresh_token: str) -> UserSession | None:
        """Session of *user_id* holding exactly *refresh_token*, not revoked and not expired."""
        q = select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.token_hash == hash_token(refresh_token),
            UserSession.revoked.is_(False),
            UserSession.expires_at > utcnow(),
        )
        result = await self.db.execute(q)
        return result.scalar_one_or_none()

    async def revoke(self, record: UserSession) -> None:
        """Revoke *record* and expire it immediately.  Idempotent."""
        if record.revoked:
            return
        record.revoked = True
        record.expires_at = utcnow()
        await self.db.flush()

    async def revoke_if_active(self, record: UserSession) -> bool:
        """
        Compare-and-set revoke of *record*.

        The UPDATE only matches while the row is still unrevoked and
        unexpired, so when two requests race on the same refresh token
        exactly one of them gets ``True``.
        """
        now = utcnow()
        result = await self.db.execute(
            update(UserSession)
            .where(
                UserSession.id == record.id,
                UserSession.revoked.is_(False),
                UserSession.expires_at > now,
            )
            .values(revoked=True, expires_at=now)
            .returning(UserSession.id)
            .execution_options(synchronize_session="fetch")
        )
        return result.first() is not None

    async def revoke_all(self, user_id: int) -> int:
        """Revoke every non-revoked session of *user_id*; returns how many."""
        result = await self.db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.revoked.is_(False))
            .values(revoked=True, expires_at=utcnow())
            .returning(UserSession.id)
            .execution_options(synchronize_session="fetch")
        )
        return len(result.all())
