"""
Authentication for Modstore.

Supports:
- bcrypt password hashing (user logins and modpack access passwords)
- JWT session tokens, sent as a Bearer header or the ms_session cookie
- Redis revocation list for logged-out sessions
- FastAPI dependencies for the current user, an optional user and site admins
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError, ForbiddenError
from app.core.redis import is_jti_revoked, revoke_jti
from app.models.user import User

from modstore_shared.schemas.common import SITE_ADMIN_ROLES, UserRole

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "ms_session"
CSRF_COOKIE = "ms_csrf"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash (constant-time)."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


async def revoke_jwt(payload: dict) -> None:
    """Revoke a decoded token for the rest of its lifetime."""
    jti = payload.get("jti")
    if not jti:
        return
    ttl = int(payload.get("exp", 0) - datetime.now(timezone.utc).timestamp())
    await revoke_jti(jti, ttl)


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    return await is_jti_revoked(jti)


def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

def token_from_request(request: Request) -> Optional[str]:
    """Bearer header wins over the session cookie."""
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def _authenticate_jwt(token: str, session: AsyncSession) -> User:
    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise AuthenticationError("Session has been revoked")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_optional_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Resolve the caller if a session token is present; anonymous otherwise.

    A token that is present but invalid is still rejected with 401.
    """
    token = token_from_request(request)
    if not token:
        return None
    user = await _authenticate_jwt(token, session)
    request.state.user_id = user.id
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """Requires an authenticated user."""
    if user is None:
        raise AuthenticationError()
    return user


async def require_site_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Requires a marketplace-wide admin (admin or superadmin)."""
    if UserRole(user.role) not in SITE_ADMIN_ROLES:
        raise ForbiddenError("Site administrator access required", code="SITE_ADMIN_REQUIRED")
    return user
