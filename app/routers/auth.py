from fastapi import APIRouter, Cookie, Depends, Header, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import current_identity, get_auth_service
from app.errors import NotFoundError, error_response
from app.guards import GuardResult
from app.schemas import (
    AuthContent,
    AuthResponse,
    LoginRequest,
    MessageContent,
    MessageEnvelope,
    RefreshRequest,
    RegisterRequest,
    UserContent,
    UserEnvelope,
    UserResponse,
    ok,
)
from app.services import user_service
from app.services.auth_service import AuthResult, AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

_COOKIE_PATH = "/api/v1/auth"


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        path=_COOKIE_PATH,
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="lax",
    )


def _auth_response(result: AuthResult, msg: str) -> AuthResponse:
    return AuthResponse(
        status=ok(msg),
        content=AuthContent(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            data=UserResponse.model_validate(result.user),
        ),
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    data: RegisterRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    result = await auth.register(data)
    _set_refresh_cookie(response, result.refresh_token)
    return _auth_response(result, "User registered successfully.")


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
):
    result = await auth.login(data.username_or_email, data.password)
    _set_refresh_cookie(response, result.refresh_token)
    return _auth_response(result, "User logged in successfully.")


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    response: Response,
    data: RefreshRequest | None = None,
    x_refresh_token: str | None = Header(None),
    refresh_cookie: str | None = Cookie(None, alias=settings.REFRESH_COOKIE_NAME),
    auth: AuthService = Depends(get_auth_service),
):
    # Body wins over header, header over cookie.
    token = (data.refresh_token if data else None) or x_refresh_token or refresh_cookie
    result = await auth.refresh(token)
    _set_refresh_cookie(response, result.refresh_token)
    return _auth_response(result, "Tokens refreshed successfully.")


@router.post("/logout", response_model=MessageEnvelope)
async def logout(
    response: Response,
    guard: GuardResult = Depends(current_identity),
    auth: AuthService = Depends(get_auth_service),
):
    if guard.error:
        return error_response(guard.error)
    await auth.logout(guard.identity)
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path=_COOKIE_PATH)
    return MessageEnvelope(
        status=ok("User logged out successfully."),
        content=MessageContent(message="Session revoked."),
    )


@router.get("/me", response_model=UserEnvelope)
async def me(
    guard: GuardResult = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
):
    if guard.error:
        return error_response(guard.error)
    user = await user_service.get_user(db, guard.identity.user_id)
    if user is None:
        return error_response(NotFoundError("Not Found: User not found."))
    return UserEnvelope(status=ok("Current user."), content=UserContent(data=user))
