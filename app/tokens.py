"""
Access / refresh token codec.

Both token kinds are JWTs signed with the server-held ``JWT_SECRET``.  The
``type`` claim keeps one kind from being accepted in place of the other,
and a random ``jti`` makes every issued token unique even when two are
minted for the same user within the same second.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from app.config import settings

ACCESS = "access"
REFRESH = "refresh"


class InvalidToken(Exception):
    """Signature, structure or claims of a token are not acceptable."""


class TokenExpired(InvalidToken):
    """The token was valid but its ``exp`` has passed."""


@dataclass(frozen=True)
class TokenPayload:
    subject_id: int
    username: str
    issued_at: datetime
    expires_at: datetime
    jti: str


class TokenCodec:
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls) -> "TokenCodec":
        return cls(
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------

    def _issue(self, token_type: str, subject_id: int, username: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "username": username,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def issue_access_token(self, subject_id: int, username: str) -> str:
        return self._issue(ACCESS, subject_id, username, self.access_ttl)

    def issue_refresh_token(self, subject_id: int, username: str) -> str:
        return self._issue(REFRESH, subject_id, username, self.refresh_ttl)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _verify(self, token: str, expected_type: str) -> TokenPayload:
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat", "type"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired") from exc
        except PyJWTError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

        if claims.get("type") != expected_type:
            raise InvalidToken(f"Expected a {expected_type} token")
        username = claims.get("username")
        if not username:
            raise InvalidToken("Token carries no username")
        try:
            subject_id = int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise InvalidToken("Token subject is not a user id") from exc

        return TokenPayload(
            subject_id=subject_id,
            username=username,
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            jti=claims.get("jti", ""),
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        return self._verify(token, REFRESH)
