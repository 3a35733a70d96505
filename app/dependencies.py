from functools import lru_cache

from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.guards import GuardResult, authenticate
from app.services.auth_service import AuthService
from app.tokens import TokenCodec


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec built from settings; override in tests for custom TTLs."""
    return TokenCodec.from_settings()


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> AuthService:
    return AuthService(db, codec)


def current_identity(
    authorization: str | None = Header(None),
    codec: TokenCodec = Depends(get_token_codec),
) -> GuardResult:
    """Run the ``authenticate`` guard on the request's Authorization header."""
    return authenticate(authorization, codec)


class PaginationParams:
    """
    Parses ``page`` / ``page_size`` query parameters.

    ``page_size`` is clamped to ``settings.MAX_PAGE_SIZE`` even though the
    query schema already caps it, so a settings change is sufficient.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
