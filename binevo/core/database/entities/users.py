"""
User and credential entities.

Contains dashboard users, password-reset tokens and the per-NGO API tokens
used by the LinkedIn browser extension.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class User(Base, table=True):
    """Dashboard user.

    Table: bv_users
    """

    __tablename__ = "bv_users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    name: str = Field(max_length=255)
    role: str = Field(default="NGO_ADMIN", max_length=32)
    ngo_id: Optional[str] = Field(default=None, foreign_key="bv_ngos.id", index=True, max_length=64)
    is_active: bool = Field(default=True)
    last_login_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email}, role={self.role})"


class PasswordResetToken(Base, table=True):
    """Single-use password reset token.

    Table: bv_password_reset_tokens
    """

    __tablename__ = "bv_password_reset_tokens"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    token: str = Field(max_length=128, unique=True, index=True)
    user_id: str = Field(foreign_key="bv_users.id", index=True, max_length=64)
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class ApiToken(Base, table=True):
    """Bearer token for the browser extension.

    Table: bv_api_tokens
    """

    __tablename__ = "bv_api_tokens"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    user_id: Optional[str] = Field(default=None, foreign_key="bv_users.id", max_length=64)
    token: str = Field(max_length=128, unique=True, index=True)
    name: str = Field(default="Chrome Extension", max_length=255)
    is_active: bool = Field(default=True)
    last_used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
