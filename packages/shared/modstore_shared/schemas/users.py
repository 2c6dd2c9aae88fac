"""User account schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import UserRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """The authenticated user's own profile."""
    id: UUID4
    username: str
    email: Optional[str] = None
    role: UserRole
    twitch_linked: bool = False
    created_at: datetime


class AuthResponse(BaseModel):
    user_id: str
    email: str
    message: str
