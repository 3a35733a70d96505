from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models import Gender, Role
from app.passwords import check_password_length

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serialises as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Requests ---

class RegisterRequest(CamelModel):
    username: str = Field(min_length=1, max_length=20)
    email: str = Field(max_length=50, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=4, max_length=72)
    nickname: str | None = Field(None, max_length=50)
    avatar: str | None = None
    gender: Gender = Gender.OTHER

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class LoginRequest(CamelModel):
    username_or_email: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


# --- User ---

class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    nickname: str | None = None
    avatar: str | None = None
    gender: Gender
    role: Role
    created_at: datetime
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# --- Envelope ---

class ResponseStatus(BaseModel):
    code: int  # 0 on success, 1 on failure
    status: str
    msg: str


class AuthContent(CamelModel):
    access_token: str
    refresh_token: str | None = None
    data: UserResponse


class AuthResponse(BaseModel):
    status: ResponseStatus
    content: AuthContent | None = None


class UserContent(BaseModel):
    data: UserResponse | None


class UserEnvelope(BaseModel):
    status: ResponseStatus
    content: UserContent | None = None


class UsersContent(BaseModel):
    data: list[UserResponse]
    total: int
    page: int
    page_size: int = Field(serialization_alias="pageSize")
    pages: int


class UsersEnvelope(BaseModel):
    status: ResponseStatus
    content: UsersContent | None = None


class MessageContent(BaseModel):
    message: str


class MessageEnvelope(BaseModel):
    status: ResponseStatus
    content: MessageContent | None = None


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_users: int
    active_sessions: int
    revoked_sessions: int
    cache_info: dict = {}


def ok(msg: str) -> ResponseStatus:
    return ResponseStatus(code=0, status="OK", msg=msg)
