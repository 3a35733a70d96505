"""
Request guards.

Guards run before a handler and return a ``GuardResult`` instead of
raising, so handlers decide how a failed check is answered.  They compose
left to right: ``authorize`` passes an earlier failure straight through.

    guard = authenticate(request.headers.get("Authorization"), codec)
    guard = await authorize(db, guard, {Role.ADMIN})
    if guard.error:
        return error_response(guard.error)
"""
from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import AuthError, ForbiddenError, NotFoundError, UnauthenticatedError
from app.models import Role, User
from app.tokens import InvalidToken, TokenCodec, TokenExpired

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str


@dataclass(frozen=True)
class GuardResult:
    identity: Identity | None = None
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.identity is not None


def authenticate(authorization: str | None, codec: TokenCodec) -> GuardResult:
    """Resolve the identity carried by an ``Authorization: Bearer`` header."""
    if not authorization:
        return GuardResult(error=UnauthenticatedError("Missing Authorization header."))
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return GuardResult(error=UnauthenticatedError("Authorization header must be 'Bearer <token>'."))

    try:
        payload = codec.verify_access_token(token)
    except TokenExpired:
        return GuardResult(error=UnauthenticatedError("Access token has expired."))
    except InvalidToken as exc:
        logger.debug("Rejected access token: %s", exc)
        return GuardResult(error=UnauthenticatedError("Invalid access token."))

    return GuardResult(identity=Identity(user_id=payload.subject_id, username=payload.username))


async def authorize(db: AsyncSession, result: GuardResult, roles: Collection[Role]) -> GuardResult:
    """Require the authenticated user to hold one of *roles* (read from the database)."""
    if not result.ok:
        return result

    user = await db.get(User, result.identity.user_id)
    if user is None:
        return GuardResult(error=NotFoundError("Not Found: User not found."))
    if user.role not in roles:
        logger.warning("User id=%s with role %s denied, requires %s",
                       user.id, user.role.value, sorted(r.value for r in roles))
        return GuardResult(error=ForbiddenError("Access Denied. Insufficient Permission."))
    return result
