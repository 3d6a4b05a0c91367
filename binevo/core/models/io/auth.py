"""
Authentication I/O models: registration, login and password reset.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Self-service signup: creates an NGO and its first administrator."""

    email: EmailStr = Field(description="Administrator email (login)")
    password: str = Field(min_length=8, max_length=128, description="At least 8 characters")
    name: str = Field(min_length=2, max_length=255, description="Administrator full name")
    ngo_name: str = Field(min_length=2, max_length=255, description="Organisation name")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=128)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: str
    ngo_id: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class NgoSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    subscription_plan: str
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    is_verified: bool


class AuthResponse(BaseModel):
    """Returned by register and login; the token is also set as a cookie."""

    user: UserRead
    ngo: Optional[NgoSummary] = None
    token: Optional[str] = None
    plan: Optional[str] = Field(default=None, description="Plan currently in effect")


class TokenResponse(BaseModel):
    token: str
    user: UserRead
