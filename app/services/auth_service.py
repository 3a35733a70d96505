"""
Auth service — registration, login, refresh-token rotation and logout.

Lifecycle of one user::

    anonymous --register/login--> authenticated(access, refresh)
              --refresh--------> authenticated(rotated pair)
              --logout / next login--> revoked

Design notes
------------
- Every flow commits its session changes before returning tokens, so a
  token is never handed out for a session row that failed to persist.
- Login revokes every live session of the user before inserting the new
  one, keeping at most one non-revoked session per user.
- Refresh is single-use: the presented session is revoked with a
  compare-and-set UPDATE in the same transaction that inserts its
  successor.  Replaying a consumed token, or losing a race against a
  concurrent refresh, yields ``UnauthenticatedError``.
- bcrypt runs in the threadpool so hashing never stalls the event loop.
- Database failures are rolled back, logged with their traceback and
  surfaced as a generic ``InternalError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthenticatedError,
)
from app.guards import Identity
from app.models import User
from app.passwords import hash_password, verify_password
from app.schemas import RegisterRequest
from app.services import user_service
from app.services.session_store import SessionStore
from app.tokens import InvalidToken, TokenCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    access_token: str
    refresh_token: str


class AuthService:
    def __init__(self, db: AsyncSession, codec: TokenCodec) -> None:
        self.db = db
        self.codec = codec
        self.sessions = SessionStore(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _start_session(self, user: User) -> AuthResult:
        access = self.codec.issue_access_token(user.id, user.username)
        refresh = self.codec.issue_refresh_token(user.id, user.username)
        await self.sessions.create_session(user.id, refresh, self.codec.refresh_ttl)
        return AuthResult(user=user, access_token=access, refresh_token=refresh)

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Commit failed during %s", action)
            raise InternalError()

    async def _fail_internal(self, action: str) -> InternalError:
        await self.db.rollback()
        logger.exception("Database error during %s", action)
        return InternalError()

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def register(self, data: RegisterRequest) -> AuthResult:
        try:
            if await user_service.identity_taken(self.db, data.username, data.email):
                raise ConflictError()
            password_hash = await run_in_threadpool(hash_password, data.password)
            user = await user_service.create_user(self.db, data, password_hash)
            result = await self._start_session(user)
        except IntegrityError:
            # Lost a race against a concurrent registration of the same identity.
            await self.db.rollback()
            raise ConflictError()
        except SQLAlchemyError:
            raise await self._fail_internal("register")

        await self._commit("register")
        logger.info("Registered user id=%s", user.id)
        return result

    async def login(self, username_or_email: str, password: str) -> AuthResult:
        try:
            user = await user_service.get_user_by_login(self.db, username_or_email)
            if user is None:
                raise NotFoundError(f"User with username/email {username_or_email} not found.")
            if not await run_in_threadpool(verify_password, password, user.password_hash):
                logger.warning("Rejected login for user id=%s: bad password", user.id)
                raise InvalidCredentialsError()

            revoked = await self.sessions.revoke_all(user.id)
            result = await self._start_session(user)
        except IntegrityError:
            # A concurrent login for the same user inserted its session first.
            await self.db.rollback()
            raise ConflictError("Another login for this user is in progress, try again.")
        except SQLAlchemyError:
            raise await self._fail_internal("login")

        await self._commit("login")
        logger.info("User id=%s logged in (%d prior session(s) revoked)", user.id, revoked)
        return result

    async def refresh(self, refresh_token: str | None) -> AuthResult:
        if not refresh_token:
            raise UnauthenticatedError("No refresh token provided.")
        try:
            payload = self.codec.verify_refresh_token(refresh_token)
        except InvalidToken as exc:
            logger.warning("Rejected refresh token: %s", exc)
            raise ForbiddenError("Invalid refresh token.")

        try:
            record = await self.sessions.find_usable_session(payload.subject_id, refresh_token)
            if record is None or not await self.sessions.revoke_if_active(record):
                logger.warning("Refresh token for user id=%s is revoked, expired or unknown",
                               payload.subject_id)
                raise UnauthenticatedError("Refresh token is no longer valid.")

            user = await user_service.get_user_by_id(self.db, payload.subject_id)
            if user is None:
                raise UnauthenticatedError("User no longer exists.")
            result = await self._start_session(user)
        except UnauthenticatedError:
            await self.db.rollback()
            raise
        except IntegrityError:
            await self.db.rollback()
            raise UnauthenticatedError("Refresh token is no longer valid.")
        except SQLAlchemyError:
            raise await self._fail_internal("refresh")

        await self._commit("refresh")
        logger.info("Rotated refresh token for user id=%s", user.id)
        return result

    async def logout(self, identity: Identity | None) -> None:
        if identity is None:
            raise UnauthenticatedError("Unauthorized: no user in context.")
        try:
            record = await self.sessions.find_active_session(identity.user_id)
            if record is None:
                raise NotFoundError("No active session.")
            await self.sessions.revoke(record)
        except SQLAlchemyError:
            raise await self._fail_internal("logout")

        await self._commit("logout")
        logger.info("User id=%s logged out", identity.user_id)
