"""
Error kinds of the auth layer and their mapping to the response envelope.

Every failure leaves the API as ``{"status": {"code": 1, "status": ...,
"msg": ...}, "content": null}`` with a matching HTTP status.  Internal
failures are logged with their traceback but only a generic message is
returned.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class; subclasses fix the HTTP status and envelope status."""

    http_status = 400
    status = "BAD_REQUEST"
    default_msg = "Bad request."

    def __init__(self, msg: str | None = None) -> None:
        self.msg = msg or self.default_msg
        super().__init__(self.msg)


class ConflictError(AuthError):
    http_status = 409
    status = "CONFLICT"
    default_msg = "Username or email already taken."


class NotFoundError(AuthError):
    http_status = 404
    status = "NOT_FOUND"
    default_msg = "Not found."


class InvalidCredentialsError(AuthError):
    http_status = 401
    status = "INVALID_CREDENTIALS"
    default_msg = "Invalid credentials."


class UnauthenticatedError(AuthError):
    http_status = 401
    status = "UNAUTHENTICATED"
    default_msg = "Authentication required."


class ForbiddenError(AuthError):
    http_status = 403
    status = "FORBIDDEN"
    default_msg = "Access denied."


class InternalError(AuthError):
    http_status = 500
    status = "INTERNAL_SERVER_ERROR"
    default_msg = "Internal server error."


def envelope(code: int, status: str, msg: str, content: dict | None = None) -> dict:
    return {"status": {"code": code, "status": status, "msg": msg}, "content": content}


def error_response(err: AuthError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if err.http_status == 401 else None
    return JSONResponse(
        status_code=err.http_status,
        content=envelope(1, err.status, err.msg),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, err: AuthError):
        if isinstance(err, InternalError):
            logger.error("%s %s failed: %s", request.method, request.url.path, err.msg)
        return error_response(err)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, err: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in e["loc"][1:]) or "body" for e in err.errors())
        return JSONResponse(
            status_code=422,
            content=envelope(1, "VALIDATION_ERROR", f"Invalid input: {fields}"),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, err: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=err)
        return error_response(InternalError())
