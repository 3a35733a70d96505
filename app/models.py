from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


# ---------------------------------------------------------------------------
# User (credential record)
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gender: Mapped[Gender] = mapped_column(
        Enum(Gender, name="user_gender", values_callable=lambda e: [m.value for m in e]),
        default=Gender.OTHER,
        nullable=False,
    )
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=Role.USER,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # lazy="noload": sessions are only ever read through the session store.
    sessions: Mapped[List["UserSession"]] = relationship(
        "UserSession", back_populates="user", lazy="noload", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# UserSession (issued refresh token)
# ---------------------------------------------------------------------------
class UserSession(Base):
    __tablename__ = "user_sessions"

    __table_args__ = (
        # Lookup of a user's live session (login revocation, logout, refresh)
        Index("ix_user_sessions_user_id_revoked", "user_id", "revoked"),
        # At most one non-revoked session per user; a racing second insert fails
        Index(
            "uq_user_sessions_one_active",
            "user_id",
            unique=True,
            postgresql_where=text("revoked = false"),
            sqlite_where=text("revoked = 0"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # SHA-256 hex digest of the refresh token string; the token itself is never stored.
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="sessions", lazy="noload")
